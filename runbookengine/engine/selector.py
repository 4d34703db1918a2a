"""Runbook selection for a trigger."""

from datetime import datetime

from runbookengine.core.errors import RunbookNotFoundError, StorageUnavailableError
from runbookengine.core.logging import get_logger
from runbookengine.engine.matching import conditions_match, cooldown_elapsed, cooldown_ends_at
from runbookengine.models.runbook import Runbook
from runbookengine.models.trigger import TriggerRequest
from runbookengine.storage.base import EngineStorage

logger = get_logger(__name__)


class RunbookSelector:
    """Resolves a trigger request to the runbooks eligible to run.

    Selection reads storage but never writes it.
    """

    def __init__(self, storage: EngineStorage):
        self._storage = storage

    async def select(self, request: TriggerRequest, now: datetime) -> list[Runbook]:
        """Select runbooks for a trigger.

        Args:
            request: Validated trigger request
            now: Reference time for cooldown checks

        Returns:
            Eligible runbooks, in storage order

        Raises:
            RunbookNotFoundError: Explicit runbook id is unknown to the caller
            StorageUnavailableError: Runbooks could not be read
        """
        if request.is_explicit:
            return await self._select_explicit(request, now)
        return await self._select_for_anomaly(request, now)

    async def _select_explicit(self, request: TriggerRequest, now: datetime) -> list[Runbook]:
        try:
            runbook = await self._storage.get_runbook(request.runbook_id)
        except Exception as e:
            raise StorageUnavailableError(f"Runbook lookup failed: {e}") from e
        if runbook is None or (request.user_id and runbook.user_id != request.user_id):
            raise RunbookNotFoundError(request.runbook_id)

        if not runbook.enabled:
            logger.info("Runbook disabled, not executing", runbook_id=runbook.runbook_id)
            return []
        if not self._out_of_cooldown(runbook, now):
            return []
        return [runbook]

    async def _select_for_anomaly(self, request: TriggerRequest, now: datetime) -> list[Runbook]:
        context = request.to_context()
        try:
            candidates = await self._storage.list_enabled_runbooks(request.user_id)
        except Exception as e:
            raise StorageUnavailableError(f"Runbook listing failed: {e}") from e

        selected = []
        for runbook in candidates:
            # list_enabled_runbooks filters already; a fake or stale index may not
            if not runbook.enabled:
                continue
            if not self._out_of_cooldown(runbook, now):
                continue
            if not conditions_match(context, runbook.trigger_conditions):
                logger.debug("Runbook conditions not matched", runbook_id=runbook.runbook_id)
                continue
            selected.append(runbook)

        logger.info(
            "Runbooks selected for anomaly",
            user_id=request.user_id,
            metric=context.metric,
            severity=context.severity,
            candidates=len(candidates),
            selected=len(selected),
        )
        return selected

    @staticmethod
    def _out_of_cooldown(runbook: Runbook, now: datetime) -> bool:
        if cooldown_elapsed(runbook.last_triggered_at, runbook.cooldown_minutes, now):
            return True
        logger.debug(
            "Runbook in cooldown",
            runbook_id=runbook.runbook_id,
            cooldown_ends_at=cooldown_ends_at(
                runbook.last_triggered_at, runbook.cooldown_minutes
            ).isoformat(),
        )
        return False
