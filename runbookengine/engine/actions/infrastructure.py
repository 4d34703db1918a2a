"""Server and service remediation actions."""

from runbookengine.core.config import Settings
from runbookengine.core.errors import ConcurrentUpdateError, StepFailedError
from runbookengine.core.logging import get_logger
from runbookengine.engine.actions.base import ActionContext, ActionHandler
from runbookengine.models.resources import HealthStatus
from runbookengine.models.runbook import ActionKind, RestartServiceStep, ScaleUpStep
from runbookengine.storage.base import ResourceRegistry

logger = get_logger(__name__)


class ScaleUpHandler(ActionHandler):
    """Adds instances to a named server of the runbook owner."""

    def __init__(self, registry: ResourceRegistry, settings: Settings):
        self._registry = registry
        self._settings = settings

    @property
    def action(self) -> ActionKind:
        return ActionKind.SCALE_UP

    async def run(self, step: ScaleUpStep, ctx: ActionContext) -> str:
        server = await self._registry.get_server_by_name(ctx.runbook.user_id, step.server_name)
        if server is None:
            raise StepFailedError(f"Server {step.server_name} not found")

        count = step.count or self._settings.default_scale_count
        try:
            scaled = await self._registry.scale_server(server.server_id, count, ctx.now)
        except ConcurrentUpdateError as e:
            raise StepFailedError(str(e)) from e
        if scaled is None:
            raise StepFailedError(f"Server {step.server_name} not found")

        logger.info(
            "Server scaled",
            server_id=server.server_id,
            added=count,
            instances=scaled.instances,
        )
        return f"Scaled {step.server_name} to {scaled.instances} instances"


class RestartServiceHandler(ActionHandler):
    """Marks a named service healthy again."""

    def __init__(self, registry: ResourceRegistry, settings: Settings):
        self._registry = registry
        self._settings = settings

    @property
    def action(self) -> ActionKind:
        return ActionKind.RESTART_SERVICE

    async def run(self, step: RestartServiceStep, ctx: ActionContext) -> str:
        service = await self._registry.get_service_by_name(ctx.runbook.user_id, step.service_name)
        if service is None:
            raise StepFailedError(f"Service {step.service_name} not found")

        updated = await self._registry.update_service_health(
            service.service_id,
            HealthStatus.HEALTHY,
            self._settings.restart_health_score,
        )
        if updated is None:
            raise StepFailedError(f"Service {step.service_name} not found")

        return f"Restarted {step.service_name}"
