"""Runbook engine entry point."""

import asyncio

from runbookengine.core.clock import Clock, utcnow
from runbookengine.core.config import Settings, get_settings
from runbookengine.core.errors import PersistenceError
from runbookengine.core.logging import get_logger
from runbookengine.engine.actions.base import ActionContext
from runbookengine.engine.actions.wait import Sleep
from runbookengine.engine.executor import StepExecutor, build_handlers
from runbookengine.engine.recorder import ExecutionRecorder
from runbookengine.engine.selector import RunbookSelector
from runbookengine.models.execution import (
    Execution,
    ExecutionStatus,
    RunbookRunResult,
    TriggerOutcome,
)
from runbookengine.models.runbook import Runbook
from runbookengine.models.trigger import TriggerContext, TriggerRequest
from runbookengine.notification.transport import NotificationTransport
from runbookengine.observability.metrics import RUNBOOKS_SELECTED, TRIGGERS_RECEIVED
from runbookengine.observability.tracing import TraceContext
from runbookengine.storage.base import EngineStorage, ResourceRegistry

logger = get_logger(__name__)


class RunbookEngine:
    """Selects runbooks for a trigger and runs their steps.

    Pipeline per trigger:
    1. Select eligible runbooks (errors here propagate, nothing is created)
    2. For each runbook: create the execution, start its cooldown
    3. Run steps in declared order, persisting each result before the next
    4. Finalize the execution and report per-runbook outcomes
    """

    def __init__(
        self,
        storage: EngineStorage,
        registry: ResourceRegistry,
        transport: NotificationTransport,
        settings: Settings | None = None,
        clock: Clock = utcnow,
        sleep: Sleep | None = None,
    ):
        self._settings = settings or get_settings()
        self._clock = clock
        self._selector = RunbookSelector(storage)
        self._recorder = ExecutionRecorder(storage)
        self._executor = StepExecutor(
            build_handlers(registry, transport, self._settings, sleep),
            clock=clock,
        )

    async def preview(self, request: TriggerRequest) -> list[Runbook]:
        """Runbooks a trigger would run right now, without running them."""
        return await self._selector.select(request, self._clock())

    async def trigger(self, request: TriggerRequest) -> TriggerOutcome:
        """Run every runbook selected for a trigger.

        Raises:
            SelectionError: The request cannot be resolved (nothing dispatched)
        """
        with TraceContext(user_id=request.user_id, trigger_mode=request.mode):
            TRIGGERS_RECEIVED.labels(mode=request.mode).inc()
            logger.info(
                "Trigger received",
                runbook_id=request.runbook_id,
                incident_id=request.incident_id,
            )

            runbooks = await self._selector.select(request, self._clock())
            RUNBOOKS_SELECTED.labels(mode=request.mode).inc(len(runbooks))
            context = request.to_context()

            if self._settings.parallel_runbooks and len(runbooks) > 1:
                results = list(
                    await asyncio.gather(*(self._run_runbook(rb, context) for rb in runbooks))
                )
            else:
                results = [await self._run_runbook(rb, context) for rb in runbooks]

            outcome = TriggerOutcome(
                executed=sum(1 for r in results if r.execution_id),
                results=results,
            )
            logger.info(
                "Trigger processed",
                executed=outcome.executed,
                failed=sum(1 for r in results if r.status == ExecutionStatus.FAILED),
            )
            return outcome

    async def _run_runbook(self, runbook: Runbook, context: TriggerContext) -> RunbookRunResult:
        """Run one runbook; persistence errors end only this runbook's run."""
        try:
            execution = await self._recorder.start(runbook, context, self._clock())
        except PersistenceError as e:
            return RunbookRunResult(
                runbook_id=runbook.runbook_id,
                runbook_name=runbook.name,
                status=ExecutionStatus.FAILED,
                error=str(e),
            )

        steps = list(runbook.steps)
        try:
            await self._recorder.mark_dispatched(runbook, execution.started_at)
            for index, step in enumerate(steps):
                ctx = ActionContext(
                    runbook=runbook,
                    trigger=context,
                    execution_id=execution.execution_id,
                    now=self._clock(),
                )
                result = await self._executor.execute(step, index, ctx)
                await self._recorder.record_step(execution, result)
            await self._recorder.finish(execution, self._clock())
        except PersistenceError as e:
            await self._recorder.abort(execution, self._clock(), f"Persistence failure: {e}")
            return self._to_result(runbook, execution, error=str(e))

        return self._to_result(runbook, execution)

    @staticmethod
    def _to_result(
        runbook: Runbook,
        execution: Execution,
        error: str | None = None,
    ) -> RunbookRunResult:
        return RunbookRunResult(
            runbook_id=runbook.runbook_id,
            runbook_name=runbook.name,
            execution_id=execution.execution_id,
            status=ExecutionStatus.FAILED if error else execution.status,
            steps_completed=list(execution.steps_completed),
            error=error,
        )
