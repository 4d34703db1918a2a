"""Base class for step action handlers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from runbookengine.models.runbook import ActionKind, Runbook
from runbookengine.models.trigger import TriggerContext


@dataclass(frozen=True)
class ActionContext:
    """What a handler knows about the run it is part of."""

    runbook: Runbook
    trigger: TriggerContext
    execution_id: str
    now: datetime


class ActionHandler(ABC):
    """Performs one kind of remediation step."""

    @property
    @abstractmethod
    def action(self) -> ActionKind:
        """Action kind handled."""
        pass

    @abstractmethod
    async def run(self, step: Any, ctx: ActionContext) -> str:
        """Perform the step.

        Args:
            step: Step declaration of this handler's variant
            ctx: Run context

        Returns:
            Detail describing what was done

        Raises:
            StepFailedError: The step could not be performed
        """
        pass
