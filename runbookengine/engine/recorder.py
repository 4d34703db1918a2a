"""Execution record lifecycle."""

import uuid
from datetime import datetime

from runbookengine.core.errors import PersistenceError
from runbookengine.core.logging import get_logger
from runbookengine.models.execution import Execution, ExecutionStatus, StepResult
from runbookengine.models.runbook import Runbook
from runbookengine.models.trigger import TriggerContext
from runbookengine.observability.metrics import EXECUTIONS_FINISHED, PERSISTENCE_ERRORS
from runbookengine.storage.base import EngineStorage

logger = get_logger(__name__)


class ExecutionRecorder:
    """Creates, updates and finalizes execution records.

    Every storage failure surfaces as PersistenceError.
    """

    def __init__(self, storage: EngineStorage):
        self._storage = storage

    async def start(self, runbook: Runbook, context: TriggerContext, at: datetime) -> Execution:
        """Create a running execution for a runbook."""
        execution = Execution(
            execution_id=f"exec_{uuid.uuid4().hex[:16]}",
            runbook_id=runbook.runbook_id,
            user_id=runbook.user_id,
            incident_id=context.incident_id,
            status=ExecutionStatus.RUNNING,
            started_at=at,
        )
        try:
            created = await self._storage.create_execution(execution)
        except Exception as e:
            raise self._persistence_error("create", e, runbook_id=runbook.runbook_id) from e

        logger.info(
            "Execution started",
            execution_id=created.execution_id,
            runbook_id=runbook.runbook_id,
            steps=len(runbook.steps),
        )
        return created

    async def mark_dispatched(self, runbook: Runbook, at: datetime) -> None:
        """Start the runbook's cooldown from the dispatch time."""
        try:
            await self._storage.update_runbook_cooldown(runbook.runbook_id, at)
        except Exception as e:
            raise self._persistence_error("cooldown", e, runbook_id=runbook.runbook_id) from e
        runbook.last_triggered_at = at

    async def record_step(self, execution: Execution, result: StepResult) -> None:
        """Append a step result and flush it before the next step starts."""
        execution.append_step(result)
        try:
            await self._storage.append_step_result(execution.execution_id, result)
        except Exception as e:
            raise self._persistence_error(
                "append_step", e, execution_id=execution.execution_id, index=result.index
            ) from e

    async def finish(self, execution: Execution, at: datetime) -> Execution:
        """Finalize an execution after all its steps were attempted.

        ``execution`` keeps its running status until the terminal header is
        stored, so a failed write can still be followed by ``abort``.
        """
        finalized = execution.model_copy(deep=True)
        finalized.finalize(at)
        try:
            await self._storage.finalize_execution(finalized)
        except Exception as e:
            raise self._persistence_error("finalize", e, execution_id=execution.execution_id) from e

        execution.status = finalized.status
        execution.error_message = finalized.error_message
        execution.completed_at = finalized.completed_at
        EXECUTIONS_FINISHED.labels(status=execution.status.value).inc()
        logger.info(
            "Execution finished",
            execution_id=execution.execution_id,
            status=execution.status.value,
            steps=len(execution.steps_completed),
        )
        return execution

    async def abort(self, execution: Execution, at: datetime, reason: str) -> None:
        """Best-effort finalize as failed after a persistence error.

        The record may stay in ``running`` if storage is still failing.
        """
        if execution.status.is_terminal:
            return
        execution.finalize(at, error_message=reason)
        EXECUTIONS_FINISHED.labels(status=execution.status.value).inc()
        try:
            await self._storage.finalize_execution(execution)
        except Exception as e:
            PERSISTENCE_ERRORS.labels(operation="abort").inc()
            logger.error(
                "Could not mark execution failed; record left running",
                execution_id=execution.execution_id,
                error=str(e),
            )

    @staticmethod
    def _persistence_error(operation: str, error: Exception, **context) -> PersistenceError:
        PERSISTENCE_ERRORS.labels(operation=operation).inc()
        logger.error("Execution record write failed", operation=operation, error=str(error), **context)
        if isinstance(error, PersistenceError):
            return error
        return PersistenceError(f"{operation} failed: {error}")
