"""Storage ports the engine depends on."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from runbookengine.models.execution import Execution, StepResult
from runbookengine.models.resources import HealthStatus, Incident, IncidentStatus, LogEntry, Server, Service
from runbookengine.models.runbook import Runbook


class EngineStorage(ABC):
    """Runbook and execution persistence used by the engine."""

    @abstractmethod
    async def get_runbook(self, runbook_id: str) -> Runbook | None:
        """Load a runbook (including its last-triggered time)."""

    @abstractmethod
    async def list_enabled_runbooks(self, user_id: str) -> list[Runbook]:
        """List a user's enabled runbooks in creation order."""

    @abstractmethod
    async def update_runbook_cooldown(self, runbook_id: str, triggered_at: datetime) -> None:
        """Record a dispatch time as the runbook's last-triggered time."""

    @abstractmethod
    async def create_execution(self, execution: Execution) -> Execution:
        """Persist a new running execution."""

    @abstractmethod
    async def append_step_result(self, execution_id: str, result: StepResult) -> None:
        """Durably append one step result to a running execution."""

    @abstractmethod
    async def finalize_execution(self, execution: Execution) -> None:
        """Persist an execution's terminal status."""

    @abstractmethod
    async def get_execution(self, execution_id: str) -> Execution | None:
        """Load an execution with its step results."""

    @abstractmethod
    async def list_executions(self, runbook_id: str) -> list[Execution]:
        """List a runbook's executions, newest first."""


class ResourceRegistry(ABC):
    """Servers, services, incidents and logs the actions operate on."""

    @abstractmethod
    async def get_server_by_name(self, user_id: str, name: str) -> Server | None:
        """Find a user's server by name."""

    @abstractmethod
    async def first_server(self, user_id: str) -> Server | None:
        """Return the user's oldest server, if any."""

    @abstractmethod
    async def scale_server(self, server_id: str, count: int, scaled_at: datetime) -> Server | None:
        """Atomically add ``count`` instances to a server's metadata.

        Returns the updated server, or None if it no longer exists.
        """

    @abstractmethod
    async def get_service_by_name(self, user_id: str, name: str) -> Service | None:
        """Find a user's service by name."""

    @abstractmethod
    async def update_service_health(
        self,
        service_id: str,
        status: HealthStatus,
        health_score: int,
    ) -> Service | None:
        """Set a service's health state."""

    @abstractmethod
    async def get_incident(self, incident_id: str) -> Incident | None:
        """Load an incident."""

    @abstractmethod
    async def update_incident(
        self,
        incident_id: str,
        status: IncidentStatus,
        annotation: dict[str, Any],
    ) -> Incident | None:
        """Change an incident's status and attach an automation annotation."""

    @abstractmethod
    async def add_log(self, entry: LogEntry) -> None:
        """Append an operational log entry."""
