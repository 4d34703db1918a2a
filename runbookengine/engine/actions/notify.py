"""Team notification action."""

import asyncio

from runbookengine.core.config import Settings
from runbookengine.core.logging import get_logger
from runbookengine.engine.actions.base import ActionContext, ActionHandler
from runbookengine.models.notification import NotificationPayload
from runbookengine.models.runbook import ActionKind, NotifyTeamStep
from runbookengine.notification.transport import NotificationTransport

logger = get_logger(__name__)


class NotifyTeamHandler(ActionHandler):
    """Sends a notification about the running runbook.

    Delivery is best effort and bounded by ``notify_timeout_seconds``; its
    outcome only changes the detail, the step always completes.
    """

    def __init__(self, transport: NotificationTransport, settings: Settings):
        self._transport = transport
        self._settings = settings

    @property
    def action(self) -> ActionKind:
        return ActionKind.NOTIFY_TEAM

    async def run(self, step: NotifyTeamStep, ctx: ActionContext) -> str:
        runbook = ctx.runbook
        payload = NotificationPayload(
            event_type="incident",
            title=f"[Runbook] {runbook.name} executed",
            message=step.message or f'Runbook "{runbook.name}" auto-executed for incident.',
            severity="info",
            user_id=runbook.user_id,
            metadata={
                "runbook_id": runbook.runbook_id,
                "runbook_name": runbook.name,
                "execution_id": ctx.execution_id,
                "incident_id": ctx.trigger.incident_id,
            },
        )

        try:
            delivered = await asyncio.wait_for(
                self._transport.send(payload),
                timeout=self._settings.notify_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Notification timed out",
                runbook_id=runbook.runbook_id,
                timeout=self._settings.notify_timeout_seconds,
            )
            delivered = False
        except Exception as e:
            logger.warning("Notification transport error", runbook_id=runbook.runbook_id, error=str(e))
            delivered = False

        return "Notification sent" if delivered else "Notification delivery attempted"
