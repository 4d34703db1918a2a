"""Incident and operational-log actions."""

import uuid

from runbookengine.core.config import Settings
from runbookengine.engine.actions.base import ActionContext, ActionHandler
from runbookengine.models.resources import LogEntry, LogSeverity
from runbookengine.models.runbook import ActionKind, CreateLogStep, UpdateIncidentStep
from runbookengine.storage.base import ResourceRegistry


class UpdateIncidentHandler(ActionHandler):
    """Moves the trigger's incident to a new status with an annotation.

    Without an incident (or with one that no longer exists or belongs to
    another user) the step is a recorded no-op.
    """

    def __init__(self, registry: ResourceRegistry):
        self._registry = registry

    @property
    def action(self) -> ActionKind:
        return ActionKind.UPDATE_INCIDENT

    async def run(self, step: UpdateIncidentStep, ctx: ActionContext) -> str:
        incident_id = ctx.trigger.incident_id
        if not incident_id:
            return "No incident associated"

        current = await self._registry.get_incident(incident_id)
        if current is None or current.user_id != ctx.runbook.user_id:
            return f"Incident {incident_id} not found"

        annotation = {
            "runbook_executed": ctx.runbook.name,
            "runbook_id": ctx.runbook.runbook_id,
            "execution_id": ctx.execution_id,
            "auto_remediation": True,
            "executed_at": ctx.now.isoformat(),
        }
        incident = await self._registry.update_incident(incident_id, step.new_status, annotation)
        if incident is None:
            return f"Incident {incident_id} not found"
        return f"Incident status updated to {step.new_status.value}"


class CreateLogHandler(ActionHandler):
    """Writes a log entry on the owner's first server."""

    def __init__(self, registry: ResourceRegistry, settings: Settings):
        self._registry = registry
        self._settings = settings

    @property
    def action(self) -> ActionKind:
        return ActionKind.CREATE_LOG

    async def run(self, step: CreateLogStep, ctx: ActionContext) -> str:
        server = await self._registry.first_server(ctx.runbook.user_id)
        if server is None:
            return "No servers available for log entry"

        await self._registry.add_log(
            LogEntry(
                log_id=uuid.uuid4().hex,
                server_id=server.server_id,
                severity=LogSeverity.INFO,
                message=step.message or f"[Runbook] {ctx.runbook.name} auto-executed",
                source=self._settings.log_source,
                metadata={
                    "runbook_id": ctx.runbook.runbook_id,
                    "execution_id": ctx.execution_id,
                },
                timestamp=ctx.now,
            )
        )
        return "Log entry created"
