"""Step executor: runs one declared step and records its outcome."""

import time

from runbookengine.core.clock import Clock, utcnow
from runbookengine.core.config import Settings
from runbookengine.core.errors import StepFailedError
from runbookengine.core.logging import get_logger
from runbookengine.engine.actions.base import ActionContext, ActionHandler
from runbookengine.engine.actions.incident import CreateLogHandler, UpdateIncidentHandler
from runbookengine.engine.actions.infrastructure import RestartServiceHandler, ScaleUpHandler
from runbookengine.engine.actions.notify import NotifyTeamHandler
from runbookengine.engine.actions.wait import Sleep, WaitHandler
from runbookengine.models.execution import StepResult, StepStatus
from runbookengine.models.runbook import ActionKind, Step, UnknownStep
from runbookengine.notification.transport import NotificationTransport
from runbookengine.observability.metrics import STEP_LATENCY, STEP_RESULTS
from runbookengine.storage.base import ResourceRegistry

logger = get_logger(__name__)


def build_handlers(
    registry: ResourceRegistry,
    transport: NotificationTransport,
    settings: Settings,
    sleep: Sleep | None = None,
) -> dict[ActionKind, ActionHandler]:
    """Create the handler for every supported action kind."""
    wait = WaitHandler(settings, sleep) if sleep else WaitHandler(settings)
    handlers: list[ActionHandler] = [
        ScaleUpHandler(registry, settings),
        RestartServiceHandler(registry, settings),
        NotifyTeamHandler(transport, settings),
        UpdateIncidentHandler(registry),
        CreateLogHandler(registry, settings),
        wait,
    ]
    return {handler.action: handler for handler in handlers}


class StepExecutor:
    """Dispatches steps to action handlers.

    ``execute`` never raises: every failure becomes a failed StepResult and
    unknown actions become skipped ones. Failed steps are not retried.
    """

    def __init__(self, handlers: dict[ActionKind, ActionHandler], clock: Clock = utcnow):
        self._handlers = handlers
        self._clock = clock

    async def execute(self, step: Step, index: int, ctx: ActionContext) -> StepResult:
        """Execute one step.

        Args:
            step: Step declaration
            index: Position of the step in its runbook
            ctx: Run context

        Returns:
            Result of the step
        """
        action = step.action
        handler = None if isinstance(step, UnknownStep) else self._handlers.get(step.kind)

        if handler is None:
            logger.warning("Skipping unknown action", action=action, index=index)
            return self._result(index, action, StepStatus.SKIPPED, f"Unknown action: {action}")

        started = time.perf_counter()
        try:
            detail = await handler.run(step, ctx)
            status = StepStatus.COMPLETED
        except StepFailedError as e:
            detail = str(e)
            status = StepStatus.FAILED
        except Exception as e:
            logger.error(
                "Step raised unexpectedly",
                action=action,
                index=index,
                error=str(e),
                exc_info=True,
            )
            detail = str(e) or e.__class__.__name__
            status = StepStatus.FAILED
        finally:
            STEP_LATENCY.labels(action=action).observe(time.perf_counter() - started)

        log = logger.info if status == StepStatus.COMPLETED else logger.warning
        log("Step finished", action=action, index=index, status=status.value, detail=detail)
        return self._result(index, action, status, detail)

    def _result(self, index: int, action: str, status: StepStatus, detail: str) -> StepResult:
        # Unknown action names come from user data; keep label cardinality bounded
        label = "unknown" if status == StepStatus.SKIPPED else action
        STEP_RESULTS.labels(action=label, status=status.value).inc()
        return StepResult(
            index=index,
            action=action,
            status=status,
            detail=detail,
            timestamp=self._clock(),
        )
