"""Trigger condition matching and cooldown gating.

Both checks are pure functions over their arguments.
"""

from datetime import datetime, timedelta

from runbookengine.core.clock import ensure_utc
from runbookengine.models.runbook import TriggerConditions
from runbookengine.models.trigger import TriggerContext


def conditions_match(context: TriggerContext, conditions: TriggerConditions) -> bool:
    """Check every declared condition field against the trigger.

    Unset and ``any`` fields always pass; concrete values must equal the
    trigger's value for that field.
    """
    return all(
        matcher.matches(context.value_of(field))
        for field, matcher in conditions.items()
    )


def cooldown_ends_at(last_triggered_at: datetime | None, cooldown_minutes: int) -> datetime | None:
    """When the runbook may fire again, or None if it never fired."""
    if last_triggered_at is None:
        return None
    return ensure_utc(last_triggered_at) + timedelta(minutes=cooldown_minutes)


def cooldown_elapsed(
    last_triggered_at: datetime | None,
    cooldown_minutes: int,
    now: datetime,
) -> bool:
    """Check whether a runbook is out of its cooldown window."""
    ends_at = cooldown_ends_at(last_triggered_at, cooldown_minutes)
    return ends_at is None or ensure_utc(now) >= ends_at
