"""Pause action."""

import asyncio
from typing import Awaitable, Callable

from runbookengine.core.config import Settings
from runbookengine.engine.actions.base import ActionContext, ActionHandler
from runbookengine.models.runbook import ActionKind, WaitStep

Sleep = Callable[[float], Awaitable[None]]


class WaitHandler(ActionHandler):
    """Suspends the run, never longer than ``max_wait_seconds``."""

    def __init__(self, settings: Settings, sleep: Sleep = asyncio.sleep):
        self._settings = settings
        self._sleep = sleep

    @property
    def action(self) -> ActionKind:
        return ActionKind.WAIT

    async def run(self, step: WaitStep, ctx: ActionContext) -> str:
        # Zero counts as unset
        requested = step.seconds or self._settings.default_wait_seconds
        effective = min(requested, self._settings.max_wait_seconds)
        await self._sleep(effective)

        detail = f"Waited {effective:g}s"
        if requested > effective:
            detail += " (capped)"
        return detail
