"""Pytest configuration and fixtures."""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import pytest

from runbookengine.core.config import Settings
from runbookengine.engine.orchestrator import RunbookEngine
from runbookengine.models.execution import Execution, StepResult
from runbookengine.models.notification import NotificationPayload
from runbookengine.models.resources import (
    HealthStatus,
    Incident,
    IncidentStatus,
    LogEntry,
    Server,
    Service,
)
from runbookengine.models.runbook import Runbook, RunbookMetadata
from runbookengine.notification.transport import NotificationTransport
from runbookengine.storage.base import EngineStorage, ResourceRegistry

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
USER = "user_1"


class FixedClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now += timedelta(**delta)


class InMemoryEngineStorage(EngineStorage):
    """Engine storage keeping copies of everything in dicts.

    Operations named in ``fail_operations`` raise, optionally only for the
    runbooks in ``fail_runbook_ids``; those in ``fail_once`` raise on their
    next call only. ``fail_reads`` makes runbook lookups raise.
    """

    def __init__(self):
        self.runbooks: dict[str, Runbook] = {}
        self.executions: dict[str, Execution] = {}
        self.fail_operations: set[str] = set()
        self.fail_runbook_ids: set[str] = set()
        self.fail_once: set[str] = set()
        self.fail_reads = False
        self.writes: list[str] = []

    def add_runbook(self, runbook: Runbook) -> Runbook:
        self.runbooks[runbook.runbook_id] = runbook.model_copy(deep=True)
        return runbook

    def _check(self, operation: str, runbook_id: str) -> None:
        if operation in self.fail_once:
            self.fail_once.discard(operation)
            raise RuntimeError(f"{operation} interrupted")
        if operation in self.fail_operations and (
            not self.fail_runbook_ids or runbook_id in self.fail_runbook_ids
        ):
            raise RuntimeError(f"{operation} unavailable")
        self.writes.append(operation)

    def _check_read(self) -> None:
        if self.fail_reads:
            raise ConnectionError("runbook storage unreachable")

    async def get_runbook(self, runbook_id: str) -> Runbook | None:
        self._check_read()
        runbook = self.runbooks.get(runbook_id)
        return runbook.model_copy(deep=True) if runbook else None

    async def list_enabled_runbooks(self, user_id: str) -> list[Runbook]:
        self._check_read()
        return [
            r.model_copy(deep=True)
            for r in self.runbooks.values()
            if r.user_id == user_id and r.enabled
        ]

    async def update_runbook_cooldown(self, runbook_id: str, triggered_at: datetime) -> None:
        self._check("cooldown", runbook_id)
        self.runbooks[runbook_id].last_triggered_at = triggered_at

    async def create_execution(self, execution: Execution) -> Execution:
        self._check("create", execution.runbook_id)
        self.executions[execution.execution_id] = execution.model_copy(deep=True)
        return execution

    async def append_step_result(self, execution_id: str, result: StepResult) -> None:
        stored = self.executions[execution_id]
        self._check("append_step", stored.runbook_id)
        stored.append_step(result)

    async def finalize_execution(self, execution: Execution) -> None:
        self._check("finalize", execution.runbook_id)
        self.executions[execution.execution_id] = execution.model_copy(deep=True)

    async def get_execution(self, execution_id: str) -> Execution | None:
        execution = self.executions.get(execution_id)
        return execution.model_copy(deep=True) if execution else None

    async def list_executions(self, runbook_id: str) -> list[Execution]:
        owned = [e for e in self.executions.values() if e.runbook_id == runbook_id]
        return list(reversed(owned))


class InMemoryResourceRegistry(ResourceRegistry):
    """Resource registry with a lock per server for scale updates."""

    def __init__(self):
        self.servers: dict[str, Server] = {}
        self.services: dict[str, Service] = {}
        self.incidents: dict[str, Incident] = {}
        self.logs: list[LogEntry] = []
        self._locks: dict[str, asyncio.Lock] = {}

    def add_server(self, server: Server) -> Server:
        self.servers[server.server_id] = server
        return server

    def add_service(self, service: Service) -> Service:
        self.services[service.service_id] = service
        return service

    def add_incident(self, incident: Incident) -> Incident:
        self.incidents[incident.incident_id] = incident
        return incident

    async def get_server_by_name(self, user_id: str, name: str) -> Server | None:
        for server in self.servers.values():
            if server.user_id == user_id and server.name == name:
                return server
        return None

    async def first_server(self, user_id: str) -> Server | None:
        owned = sorted(
            (s for s in self.servers.values() if s.user_id == user_id),
            key=lambda s: s.created_at,
        )
        return owned[0] if owned else None

    async def scale_server(self, server_id: str, count: int, scaled_at: datetime) -> Server | None:
        lock = self._locks.setdefault(server_id, asyncio.Lock())
        async with lock:
            server = self.servers.get(server_id)
            if server is None:
                return None
            current = server.instances
            await asyncio.sleep(0)
            server.metadata = {
                **server.metadata,
                "instances": current + count,
                "last_scaled_at": scaled_at.isoformat(),
                "scaled_by": "runbook",
            }
            return server

    async def get_service_by_name(self, user_id: str, name: str) -> Service | None:
        for service in self.services.values():
            if service.user_id == user_id and service.name == name:
                return service
        return None

    async def update_service_health(
        self,
        service_id: str,
        status: HealthStatus,
        health_score: int,
    ) -> Service | None:
        service = self.services.get(service_id)
        if service is None:
            return None
        service.status = status
        service.health_score = health_score
        return service

    async def get_incident(self, incident_id: str) -> Incident | None:
        return self.incidents.get(incident_id)

    async def update_incident(
        self,
        incident_id: str,
        status: IncidentStatus,
        annotation: dict[str, Any],
    ) -> Incident | None:
        incident = self.incidents.get(incident_id)
        if incident is None:
            return None
        incident.status = status
        incident.ai_analysis = {**(incident.ai_analysis or {}), "automation": annotation}
        return incident

    async def add_log(self, entry: LogEntry) -> None:
        self.logs.append(entry)


class FakeTransport(NotificationTransport):
    """Transport recording payloads instead of sending them."""

    def __init__(self, delivered: bool = True):
        self.delivered = delivered
        self.delay = 0.0
        self.error: Exception | None = None
        self.sent: list[NotificationPayload] = []
        self.closed = False

    @property
    def transport_type(self) -> str:
        return "fake"

    async def send(self, payload: NotificationPayload) -> bool:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        self.sent.append(payload)
        return self.delivered

    async def close(self) -> None:
        self.closed = True


class RecordingSleep:
    """Sleep replacement that records requested durations."""

    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def build_runbook(
    runbook_id: str = "rb_1",
    user_id: str = USER,
    name: str | None = None,
    conditions: dict | None = None,
    steps: list[dict] | None = None,
    cooldown_minutes: int = 10,
    enabled: bool = True,
    last_triggered_at: datetime | None = None,
    created_at: datetime = T0 - timedelta(days=1),
) -> Runbook:
    return Runbook.model_validate(
        {
            "runbook_id": runbook_id,
            "user_id": user_id,
            "name": name or f"Runbook {runbook_id}",
            "enabled": enabled,
            "trigger_conditions": conditions or {},
            "cooldown_minutes": cooldown_minutes,
            "steps": steps if steps is not None else [{"action": "create_log"}],
            "last_triggered_at": last_triggered_at,
            "metadata": RunbookMetadata(created_at=created_at, updated_at=created_at),
        }
    )


@pytest.fixture
def make_runbook() -> Callable[..., Runbook]:
    """Factory for runbooks owned by USER."""
    return build_runbook


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the environment."""
    return Settings(_env_file=None, notify_timeout_seconds=0.2)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def storage() -> InMemoryEngineStorage:
    return InMemoryEngineStorage()


@pytest.fixture
def registry() -> InMemoryResourceRegistry:
    """Registry with one server, one service and one incident for USER."""
    registry = InMemoryResourceRegistry()
    registry.add_server(
        Server(server_id="srv_a", user_id=USER, name="serverA", created_at=T0 - timedelta(days=2))
    )
    registry.add_service(
        Service(
            service_id="svc_api",
            user_id=USER,
            name="User API",
            status=HealthStatus.DEGRADED,
            health_score=40,
        )
    )
    registry.add_incident(Incident(incident_id="inc_1", user_id=USER, title="CPU usage above 95%"))
    return registry


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def sleeper() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def engine(
    storage: InMemoryEngineStorage,
    registry: InMemoryResourceRegistry,
    transport: FakeTransport,
    settings: Settings,
    clock: FixedClock,
    sleeper: RecordingSleep,
) -> RunbookEngine:
    return RunbookEngine(
        storage=storage,
        registry=registry,
        transport=transport,
        settings=settings,
        clock=clock,
        sleep=sleeper,
    )
