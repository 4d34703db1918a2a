"""Tests for condition matching, cooldown gating and runbook selection."""

from datetime import timedelta

import pytest

from runbookengine.core.errors import RunbookNotFoundError
from runbookengine.engine.matching import conditions_match, cooldown_elapsed, cooldown_ends_at
from runbookengine.engine.selector import RunbookSelector
from runbookengine.models.runbook import TriggerConditions
from runbookengine.models.trigger import TriggerContext, TriggerRequest

from conftest import T0, USER


def anomaly(**fields) -> TriggerRequest:
    return TriggerRequest(user_id=USER, anomaly=fields)


@pytest.mark.parametrize(
    "conditions, context, expected",
    [
        ({}, {}, True),
        ({"metric": "any", "severity": "any"}, {}, True),
        ({"metric": "cpu"}, {"metric": "cpu", "severity": "warning"}, True),
        ({"metric": "cpu"}, {"metric": "memory"}, False),
        ({"metric": "cpu"}, {}, False),
        ({"metric": "cpu", "severity": "critical"}, {"metric": "cpu", "severity": "warning"}, False),
        ({"server": "web-1"}, {"server": "web-1"}, True),
    ],
)
def test_conditions_match(conditions: dict, context: dict, expected: bool) -> None:
    assert conditions_match(
        TriggerContext(**context),
        TriggerConditions.model_validate(conditions),
    ) is expected


def test_cooldown_never_triggered_is_elapsed() -> None:
    assert cooldown_ends_at(None, 10) is None
    assert cooldown_elapsed(None, 10, T0)


def test_cooldown_boundary_is_inclusive() -> None:
    last = T0 - timedelta(minutes=10)

    assert cooldown_elapsed(last, 10, T0)
    assert not cooldown_elapsed(last + timedelta(seconds=1), 10, T0)


def test_cooldown_accepts_naive_datetimes_as_utc() -> None:
    last = (T0 - timedelta(minutes=2)).replace(tzinfo=None)

    assert not cooldown_elapsed(last, 10, T0)
    assert cooldown_elapsed(last, 0, T0)


@pytest.mark.asyncio
async def test_anomaly_selection_filters_conditions_cooldown_and_enabled(
    storage, make_runbook
) -> None:
    storage.add_runbook(make_runbook("rb_cpu", conditions={"metric": "cpu"}))
    storage.add_runbook(make_runbook("rb_any", conditions={"metric": "any"}))
    storage.add_runbook(make_runbook("rb_latency", conditions={"metric": "latency"}))
    storage.add_runbook(
        make_runbook("rb_cooling", last_triggered_at=T0 - timedelta(minutes=2))
    )
    storage.add_runbook(make_runbook("rb_disabled", enabled=False))
    storage.add_runbook(make_runbook("rb_other_user", user_id="user_2"))

    selected = await RunbookSelector(storage).select(anomaly(metric="cpu"), T0)

    assert [r.runbook_id for r in selected] == ["rb_cpu", "rb_any"]
    assert storage.writes == []


@pytest.mark.asyncio
async def test_runbook_in_cooldown_is_excluded_even_when_matching(storage, make_runbook) -> None:
    storage.add_runbook(
        make_runbook(
            conditions={"metric": "cpu", "severity": "critical"},
            cooldown_minutes=10,
            last_triggered_at=T0 - timedelta(minutes=2),
        )
    )

    selected = await RunbookSelector(storage).select(
        anomaly(metric="cpu", severity="critical"), T0
    )

    assert selected == []


@pytest.mark.asyncio
async def test_explicit_selection_bypasses_conditions(storage, make_runbook) -> None:
    storage.add_runbook(make_runbook(conditions={"metric": "latency"}))

    selected = await RunbookSelector(storage).select(
        TriggerRequest(user_id=USER, runbook_id="rb_1"), T0
    )

    assert [r.runbook_id for r in selected] == ["rb_1"]


@pytest.mark.asyncio
async def test_explicit_selection_still_enforces_enabled_and_cooldown(
    storage, make_runbook
) -> None:
    storage.add_runbook(make_runbook("rb_disabled", enabled=False))
    storage.add_runbook(
        make_runbook("rb_cooling", last_triggered_at=T0 - timedelta(minutes=1))
    )
    selector = RunbookSelector(storage)

    assert await selector.select(TriggerRequest(runbook_id="rb_disabled"), T0) == []
    assert await selector.select(TriggerRequest(runbook_id="rb_cooling"), T0) == []


@pytest.mark.asyncio
async def test_explicit_selection_unknown_or_foreign_runbook_is_not_found(
    storage, make_runbook
) -> None:
    storage.add_runbook(make_runbook("rb_theirs", user_id="user_2"))
    selector = RunbookSelector(storage)

    with pytest.raises(RunbookNotFoundError):
        await selector.select(TriggerRequest(runbook_id="rb_missing"), T0)
    with pytest.raises(RunbookNotFoundError) as exc_info:
        await selector.select(TriggerRequest(user_id=USER, runbook_id="rb_theirs"), T0)

    assert exc_info.value.runbook_id == "rb_theirs"
