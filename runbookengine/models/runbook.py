"""Runbook domain models."""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    Tag,
    field_validator,
    model_serializer,
    model_validator,
)

from runbookengine.core.clock import ensure_utc, utcnow
from runbookengine.models.resources import IncidentStatus

ANY_VALUE = "any"


class MatchMode(str, Enum):
    """How a trigger condition field is matched."""

    UNSET = "unset"
    ANY = "any"
    EQUALS = "equals"


class FieldMatcher(BaseModel):
    """Matcher for one trigger condition field.

    Accepts the shorthand stored by the dashboard: ``null`` or ``""`` for an
    unconfigured field, ``"any"`` for an explicit wildcard, any other string
    for an exact match. Serializes back to the same shorthand.
    """

    model_config = ConfigDict(frozen=True)

    mode: MatchMode = MatchMode.UNSET
    value: str | None = None

    @model_validator(mode="before")
    @classmethod
    def parse_shorthand(cls, data: Any) -> Any:
        if data is None or data == "":
            return {"mode": MatchMode.UNSET}
        if isinstance(data, str):
            if data == ANY_VALUE:
                return {"mode": MatchMode.ANY}
            return {"mode": MatchMode.EQUALS, "value": data}
        return data

    @model_validator(mode="after")
    def check_value(self) -> "FieldMatcher":
        if self.mode == MatchMode.EQUALS and not self.value:
            raise ValueError("equals matcher requires a value")
        if self.mode != MatchMode.EQUALS and self.value is not None:
            raise ValueError(f"{self.mode.value} matcher takes no value")
        return self

    @model_serializer
    def to_shorthand(self) -> str | None:
        if self.mode == MatchMode.ANY:
            return ANY_VALUE
        return self.value

    @classmethod
    def equals(cls, value: str) -> "FieldMatcher":
        return cls(mode=MatchMode.EQUALS, value=value)

    @classmethod
    def wildcard(cls) -> "FieldMatcher":
        return cls(mode=MatchMode.ANY)

    @property
    def is_wildcard(self) -> bool:
        return self.mode != MatchMode.EQUALS

    def matches(self, actual: str | None) -> bool:
        """Check a trigger value against this matcher."""
        if self.is_wildcard:
            return True
        return actual is not None and actual == self.value


class TriggerConditions(BaseModel):
    """Anomaly fields a runbook reacts to (all must match)."""

    model_config = ConfigDict(extra="ignore")

    metric: FieldMatcher = Field(default_factory=FieldMatcher, description="Metric name")
    severity: FieldMatcher = Field(default_factory=FieldMatcher, description="Anomaly severity")
    server: FieldMatcher = Field(default_factory=FieldMatcher, description="Server identifier")

    def items(self) -> list[tuple[str, FieldMatcher]]:
        return [("metric", self.metric), ("severity", self.severity), ("server", self.server)]


class ActionKind(str, Enum):
    """Remediation actions a step can perform."""

    SCALE_UP = "scale_up"
    RESTART_SERVICE = "restart_service"
    NOTIFY_TEAM = "notify_team"
    UPDATE_INCIDENT = "update_incident"
    CREATE_LOG = "create_log"
    WAIT = "wait"


class StepBase(BaseModel):
    """Common configuration for step declarations."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    @property
    def kind(self) -> ActionKind | None:
        try:
            return ActionKind(self.action)  # type: ignore[attr-defined]
        except ValueError:
            return None


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class ScaleUpStep(StepBase):
    """Add instances to a server."""

    action: Literal["scale_up"] = "scale_up"
    server_name: str = Field(..., min_length=1, description="Target server name")
    count: int | None = Field(default=None, ge=1, description="Instances to add")


class RestartServiceStep(StepBase):
    """Restart a degraded service."""

    action: Literal["restart_service"] = "restart_service"
    service_name: str = Field(..., min_length=1, description="Target service name")


class NotifyTeamStep(StepBase):
    """Send a notification about the execution."""

    action: Literal["notify_team"] = "notify_team"
    message: str | None = Field(default=None, description="Notification body")

    @field_validator("message", mode="before")
    @classmethod
    def blank_message(cls, value: Any) -> Any:
        return _blank_to_none(value)


class UpdateIncidentStep(StepBase):
    """Change the associated incident's status."""

    action: Literal["update_incident"] = "update_incident"
    new_status: IncidentStatus = Field(
        default=IncidentStatus.INVESTIGATING,
        description="Status to move the incident to",
    )


class CreateLogStep(StepBase):
    """Write an operational log entry."""

    action: Literal["create_log"] = "create_log"
    message: str | None = Field(default=None, description="Log message")

    @field_validator("message", mode="before")
    @classmethod
    def blank_message(cls, value: Any) -> Any:
        return _blank_to_none(value)


class WaitStep(StepBase):
    """Pause between steps."""

    action: Literal["wait"] = "wait"
    seconds: float | None = Field(default=None, ge=0, description="Requested pause in seconds")


class UnknownStep(StepBase):
    """Step with an action this engine does not implement."""

    model_config = ConfigDict(frozen=True, extra="allow")

    action: str = Field(..., description="Unrecognized action name")


_KNOWN_ACTIONS = {kind.value for kind in ActionKind}


def _step_tag(value: Any) -> str:
    action = value.get("action") if isinstance(value, dict) else getattr(value, "action", None)
    if isinstance(action, ActionKind):
        action = action.value
    return action if action in _KNOWN_ACTIONS else "unknown"


Step = Annotated[
    Union[
        Annotated[ScaleUpStep, Tag("scale_up")],
        Annotated[RestartServiceStep, Tag("restart_service")],
        Annotated[NotifyTeamStep, Tag("notify_team")],
        Annotated[UpdateIncidentStep, Tag("update_incident")],
        Annotated[CreateLogStep, Tag("create_log")],
        Annotated[WaitStep, Tag("wait")],
        Annotated[UnknownStep, Tag("unknown")],
    ],
    Discriminator(_step_tag),
]


class RunbookMetadata(BaseModel):
    """Runbook bookkeeping."""

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    version: int = Field(default=1)


class Runbook(BaseModel):
    """User-owned automation rule: trigger conditions, cooldown and steps."""

    runbook_id: str = Field(..., description="Runbook unique identifier")
    user_id: str = Field(..., description="Owning user")
    name: str = Field(..., description="Runbook name")
    description: str = Field(default="", description="Runbook description")
    enabled: bool = Field(default=True, description="Whether runbook may fire")
    trigger_conditions: TriggerConditions = Field(
        default_factory=TriggerConditions,
        description="Anomaly fields this runbook reacts to",
    )
    cooldown_minutes: int = Field(default=30, ge=0, description="Minimum minutes between dispatches")
    steps: list[Step] = Field(default_factory=list, description="Ordered remediation steps")
    last_triggered_at: datetime | None = Field(
        default=None,
        description="Last dispatch time, maintained by the engine",
    )
    metadata: RunbookMetadata = Field(default_factory=RunbookMetadata)

    @field_validator("last_triggered_at")
    @classmethod
    def normalize_last_triggered(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value) if value is not None else None
