"""Runbook API schemas."""

from datetime import datetime

from pydantic import BaseModel, Field

from runbookengine.models.runbook import RunbookMetadata, Step, TriggerConditions


class RunbookCreate(BaseModel):
    """Schema for creating a new runbook."""

    user_id: str = Field(..., min_length=1, description="Owning user")
    name: str = Field(..., min_length=1, max_length=100, description="Runbook name")
    description: str = Field(default="", max_length=500, description="Runbook description")
    enabled: bool = Field(default=True, description="Whether runbook may fire")
    trigger_conditions: TriggerConditions = Field(
        default_factory=TriggerConditions,
        description="Anomaly fields this runbook reacts to",
    )
    cooldown_minutes: int = Field(default=30, ge=0, le=10080, description="Cooldown in minutes")
    steps: list[Step] = Field(..., min_length=1, description="Ordered remediation steps")


class RunbookUpdate(BaseModel):
    """Schema for partially updating a runbook."""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    enabled: bool | None = None
    trigger_conditions: TriggerConditions | None = None
    cooldown_minutes: int | None = Field(default=None, ge=0, le=10080)
    steps: list[Step] | None = Field(default=None, min_length=1)


class RunbookStatusUpdate(BaseModel):
    """Schema for updating runbook enabled status."""

    enabled: bool = Field(..., description="Whether runbook is enabled")


class RunbookResponse(BaseModel):
    """Schema for runbook response."""

    runbook_id: str
    user_id: str
    name: str
    description: str
    enabled: bool
    trigger_conditions: TriggerConditions
    cooldown_minutes: int
    steps: list[Step]
    last_triggered_at: datetime | None
    metadata: RunbookMetadata


class RunbookCreateResponse(BaseModel):
    """Schema for runbook creation response."""

    runbook_id: str = Field(..., description="Created runbook ID")
    created_at: datetime = Field(..., description="Creation timestamp")


class RunbookTemplate(BaseModel):
    """Preset runbook a user can start from."""

    name: str
    description: str
    trigger_conditions: TriggerConditions
    cooldown_minutes: int
    steps: list[Step]


RUNBOOK_TEMPLATES: list[RunbookTemplate] = [
    RunbookTemplate.model_validate(t)
    for t in (
        {
            "name": "Auto-Scale on High CPU",
            "description": "Automatically scale up servers when CPU anomaly is detected",
            "trigger_conditions": {"metric": "cpu", "severity": "critical"},
            "steps": [
                {"action": "scale_up", "server_name": "prod-web-01", "count": 2},
                {"action": "update_incident", "new_status": "investigating"},
                {"action": "notify_team", "message": "Auto-scaling triggered due to high CPU. 2 instances added."},
                {"action": "create_log", "message": "Runbook auto-scale executed for CPU anomaly"},
            ],
            "cooldown_minutes": 30,
        },
        {
            "name": "Restart on Service Degradation",
            "description": "Restart degraded services and notify the team",
            "trigger_conditions": {"severity": "critical", "metric": "any"},
            "steps": [
                {"action": "restart_service", "service_name": "User API"},
                {"action": "wait", "seconds": 10},
                {"action": "update_incident", "new_status": "investigating"},
                {"action": "notify_team", "message": "Service auto-restarted due to degradation."},
            ],
            "cooldown_minutes": 15,
        },
        {
            "name": "Latency Spike Response",
            "description": "Handle latency spikes by scaling and notifying",
            "trigger_conditions": {"metric": "latency", "severity": "any"},
            "steps": [
                {"action": "create_log", "message": "Latency spike detected, initiating runbook"},
                {"action": "scale_up", "server_name": "prod-web-01", "count": 1},
                {"action": "notify_team", "message": "Latency spike detected. Auto-scaling initiated."},
            ],
            "cooldown_minutes": 20,
        },
    )
]


class RunbookPreview(BaseModel):
    """Runbook a trigger would run."""

    runbook_id: str
    name: str
    steps: list[Step]


class PreviewResponse(BaseModel):
    """Dry-run selection result."""

    would_execute: int = Field(..., description="Number of runbooks that would run")
    runbooks: list[RunbookPreview] = Field(default_factory=list)
