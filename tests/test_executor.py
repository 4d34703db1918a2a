"""Tests for the step executor and action handlers."""

import pytest

from runbookengine.core.errors import StepFailedError
from runbookengine.engine.actions.base import ActionContext, ActionHandler
from runbookengine.engine.executor import StepExecutor, build_handlers
from runbookengine.models.execution import StepStatus
from runbookengine.models.resources import HealthStatus, Incident, IncidentStatus
from runbookengine.models.runbook import (
    ActionKind,
    CreateLogStep,
    NotifyTeamStep,
    RestartServiceStep,
    ScaleUpStep,
    UnknownStep,
    UpdateIncidentStep,
    WaitStep,
)
from runbookengine.models.trigger import TriggerContext

from conftest import T0, USER, build_runbook


def make_ctx(incident_id: str | None = "inc_1", user_id: str = USER) -> ActionContext:
    return ActionContext(
        runbook=build_runbook(user_id=user_id, name="CPU fix"),
        trigger=TriggerContext(metric="cpu", severity="critical", incident_id=incident_id),
        execution_id="exec_test",
        now=T0,
    )


@pytest.fixture
def executor(registry, transport, settings, clock, sleeper) -> StepExecutor:
    return StepExecutor(build_handlers(registry, transport, settings, sleeper), clock=clock)


@pytest.mark.asyncio
async def test_scale_up_adds_instances(executor, registry) -> None:
    result = await executor.execute(ScaleUpStep(server_name="serverA", count=2), 0, make_ctx())

    assert result.status == StepStatus.COMPLETED
    assert result.detail == "Scaled serverA to 3 instances"
    assert result.index == 0
    assert result.action == "scale_up"
    assert result.timestamp == T0
    metadata = registry.servers["srv_a"].metadata
    assert metadata["instances"] == 3
    assert metadata["scaled_by"] == "runbook"


@pytest.mark.asyncio
async def test_scale_up_uses_default_count(executor, registry) -> None:
    result = await executor.execute(ScaleUpStep(server_name="serverA"), 0, make_ctx())

    assert result.detail == "Scaled serverA to 3 instances"


@pytest.mark.asyncio
async def test_scale_up_missing_server_fails(executor) -> None:
    result = await executor.execute(ScaleUpStep(server_name="ghost"), 0, make_ctx())

    assert result.status == StepStatus.FAILED
    assert result.detail == "Server ghost not found"


@pytest.mark.asyncio
async def test_scale_up_does_not_see_other_users_servers(executor) -> None:
    result = await executor.execute(
        ScaleUpStep(server_name="serverA"), 0, make_ctx(user_id="user_2")
    )

    assert result.status == StepStatus.FAILED


@pytest.mark.asyncio
async def test_restart_service_marks_service_healthy(executor, registry) -> None:
    result = await executor.execute(RestartServiceStep(service_name="User API"), 1, make_ctx())

    assert result.status == StepStatus.COMPLETED
    assert result.detail == "Restarted User API"
    service = registry.services["svc_api"]
    assert service.status == HealthStatus.HEALTHY
    assert service.health_score == 95


@pytest.mark.asyncio
async def test_restart_missing_service_fails(executor) -> None:
    result = await executor.execute(RestartServiceStep(service_name="svcX"), 0, make_ctx())

    assert result.status == StepStatus.FAILED
    assert result.detail == "Service svcX not found"


@pytest.mark.asyncio
async def test_notify_team_sends_payload(executor, transport) -> None:
    result = await executor.execute(NotifyTeamStep(message="Scaled up"), 0, make_ctx())

    assert result.status == StepStatus.COMPLETED
    assert result.detail == "Notification sent"
    payload = transport.sent[0]
    assert payload.title == "[Runbook] CPU fix executed"
    assert payload.message == "Scaled up"
    assert payload.user_id == USER
    assert payload.metadata["execution_id"] == "exec_test"


@pytest.mark.asyncio
async def test_notify_team_default_message(executor, transport) -> None:
    await executor.execute(NotifyTeamStep(), 0, make_ctx())

    assert transport.sent[0].message == 'Runbook "CPU fix" auto-executed for incident.'


@pytest.mark.asyncio
async def test_notify_team_failure_still_completes(executor, transport) -> None:
    transport.error = RuntimeError("smtp down")

    result = await executor.execute(NotifyTeamStep(), 0, make_ctx())

    assert result.status == StepStatus.COMPLETED
    assert result.detail == "Notification delivery attempted"


@pytest.mark.asyncio
async def test_notify_team_timeout_is_bounded(executor, transport) -> None:
    transport.delay = 5

    result = await executor.execute(NotifyTeamStep(), 0, make_ctx())

    assert result.status == StepStatus.COMPLETED
    assert result.detail == "Notification delivery attempted"
    assert transport.sent == []


@pytest.mark.asyncio
async def test_update_incident_sets_status_and_annotation(executor, registry) -> None:
    result = await executor.execute(
        UpdateIncidentStep(new_status=IncidentStatus.RESOLVED), 0, make_ctx()
    )

    assert result.status == StepStatus.COMPLETED
    assert result.detail == "Incident status updated to resolved"
    incident = registry.incidents["inc_1"]
    assert incident.status == IncidentStatus.RESOLVED
    automation = incident.ai_analysis["automation"]
    assert automation["runbook_executed"] == "CPU fix"
    assert automation["execution_id"] == "exec_test"
    assert automation["auto_remediation"] is True


@pytest.mark.asyncio
async def test_update_incident_without_incident_is_noop(executor) -> None:
    result = await executor.execute(UpdateIncidentStep(), 0, make_ctx(incident_id=None))

    assert result.status == StepStatus.COMPLETED
    assert result.detail == "No incident associated"


@pytest.mark.asyncio
async def test_update_incident_unknown_incident_is_noop(executor) -> None:
    result = await executor.execute(UpdateIncidentStep(), 0, make_ctx(incident_id="inc_gone"))

    assert result.status == StepStatus.COMPLETED
    assert result.detail == "Incident inc_gone not found"


@pytest.mark.asyncio
async def test_update_incident_of_other_user_is_untouched(executor, registry) -> None:
    registry.add_incident(Incident(incident_id="inc_other", user_id="user_2", title="Disk full"))

    result = await executor.execute(
        UpdateIncidentStep(new_status=IncidentStatus.RESOLVED), 0, make_ctx(incident_id="inc_other")
    )

    assert result.status == StepStatus.COMPLETED
    assert result.detail == "Incident inc_other not found"
    incident = registry.incidents["inc_other"]
    assert incident.status == IncidentStatus.ACTIVE
    assert incident.ai_analysis is None


@pytest.mark.asyncio
async def test_create_log_writes_entry_on_first_server(executor, registry) -> None:
    result = await executor.execute(CreateLogStep(), 0, make_ctx())

    assert result.detail == "Log entry created"
    entry = registry.logs[0]
    assert entry.server_id == "srv_a"
    assert entry.message == "[Runbook] CPU fix auto-executed"
    assert entry.source == "runbook-engine"


@pytest.mark.asyncio
async def test_create_log_without_servers_is_noop(executor) -> None:
    result = await executor.execute(CreateLogStep(message="hi"), 0, make_ctx(user_id="user_2"))

    assert result.status == StepStatus.COMPLETED
    assert result.detail == "No servers available for log entry"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "seconds, slept, detail",
    [
        (5, 5, "Waited 5s"),
        (None, 5, "Waited 5s"),
        (0, 5, "Waited 5s"),
        (0.5, 0.5, "Waited 0.5s"),
        (120, 30, "Waited 30s (capped)"),
    ],
)
async def test_wait_is_capped(executor, sleeper, seconds, slept, detail) -> None:
    result = await executor.execute(WaitStep(seconds=seconds), 0, make_ctx())

    assert result.status == StepStatus.COMPLETED
    assert result.detail == detail
    assert sleeper.calls == [slept]


@pytest.mark.asyncio
async def test_unknown_action_is_skipped(executor) -> None:
    result = await executor.execute(UnknownStep(action="reboot_datacenter"), 4, make_ctx())

    assert result.status == StepStatus.SKIPPED
    assert result.detail == "Unknown action: reboot_datacenter"
    assert result.index == 4


class ExplodingHandler(ActionHandler):
    @property
    def action(self) -> ActionKind:
        return ActionKind.SCALE_UP

    async def run(self, step, ctx) -> str:
        raise KeyError("metadata")


class RefusingHandler(ActionHandler):
    @property
    def action(self) -> ActionKind:
        return ActionKind.SCALE_UP

    async def run(self, step, ctx) -> str:
        raise StepFailedError("quota exceeded")


@pytest.mark.asyncio
async def test_unexpected_handler_error_becomes_failed_result(clock) -> None:
    executor = StepExecutor({ActionKind.SCALE_UP: ExplodingHandler()}, clock=clock)

    result = await executor.execute(ScaleUpStep(server_name="serverA"), 0, make_ctx())

    assert result.status == StepStatus.FAILED
    assert "metadata" in result.detail


@pytest.mark.asyncio
async def test_step_failed_error_detail_is_kept(clock) -> None:
    executor = StepExecutor({ActionKind.SCALE_UP: RefusingHandler()}, clock=clock)

    result = await executor.execute(ScaleUpStep(server_name="serverA"), 0, make_ctx())

    assert result.status == StepStatus.FAILED
    assert result.detail == "quota exceeded"


@pytest.mark.asyncio
async def test_missing_handler_is_skipped(clock) -> None:
    executor = StepExecutor({}, clock=clock)

    result = await executor.execute(WaitStep(seconds=1), 0, make_ctx())

    assert result.status == StepStatus.SKIPPED
    assert result.detail == "Unknown action: wait"
