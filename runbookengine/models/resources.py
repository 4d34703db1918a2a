"""Infrastructure entities the remediation actions act on."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from runbookengine.core.clock import utcnow


class HealthStatus(str, Enum):
    """Server and service health."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    CRITICAL = "critical"
    OFFLINE = "offline"


class IncidentStatus(str, Enum):
    """Incident lifecycle status."""

    ACTIVE = "active"
    INVESTIGATING = "investigating"
    RESOLVED = "resolved"


class LogSeverity(str, Enum):
    """Operational log severity."""

    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    CRITICAL = "critical"


class Server(BaseModel):
    """Monitored server."""

    server_id: str
    user_id: str
    name: str
    hostname: str = ""
    status: HealthStatus = HealthStatus.HEALTHY
    health_score: int = Field(default=100, ge=0, le=100)
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def instances(self) -> int:
        """Recorded instance count (a server without one counts as 1)."""
        return int(self.metadata.get("instances") or 1)


class Service(BaseModel):
    """Monitored service."""

    service_id: str
    user_id: str
    name: str
    status: HealthStatus = HealthStatus.HEALTHY
    health_score: int = Field(default=100, ge=0, le=100)
    server_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    updated_at: datetime = Field(default_factory=utcnow)


class Incident(BaseModel):
    """Incident raised against a user's infrastructure."""

    incident_id: str
    user_id: str
    title: str
    severity: str = "warning"
    status: IncidentStatus = IncidentStatus.ACTIVE
    ai_analysis: dict[str, Any] | None = None
    updated_at: datetime = Field(default_factory=utcnow)


class LogEntry(BaseModel):
    """Operational log line attached to a server."""

    log_id: str
    server_id: str
    severity: LogSeverity = LogSeverity.INFO
    message: str
    source: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utcnow)
