"""Trigger input models."""

from pydantic import BaseModel, ConfigDict, Field, model_validator


class AnomalySignal(BaseModel):
    """Anomaly reported by the detector.

    The detector sends extra descriptive keys (title, recommendation, ...);
    only the fields used for matching are kept.
    """

    model_config = ConfigDict(extra="ignore")

    metric: str | None = Field(default=None, description="Metric name, e.g. 'cpu'")
    severity: str | None = Field(default=None, description="Severity, e.g. 'critical'")
    server: str | None = Field(default=None, description="Server or service identifier")


class TriggerContext(BaseModel):
    """Values a runbook's trigger conditions are matched against."""

    model_config = ConfigDict(frozen=True)

    metric: str | None = None
    severity: str | None = None
    server: str | None = None
    incident_id: str | None = None

    def value_of(self, field: str) -> str | None:
        return getattr(self, field, None)


class TriggerRequest(BaseModel):
    """Request to run runbooks, either by id or for an anomaly."""

    user_id: str | None = Field(default=None, description="User whose runbooks are considered")
    incident_id: str | None = Field(default=None, description="Incident to associate")
    anomaly: AnomalySignal | None = Field(default=None, description="Anomaly to match against")
    runbook_id: str | None = Field(default=None, description="Runbook to run explicitly")

    @model_validator(mode="after")
    def validate_mode(self) -> "TriggerRequest":
        """Exactly one of runbook_id / anomaly selects the mode."""
        if self.runbook_id and self.anomaly:
            raise ValueError("runbook_id and anomaly are mutually exclusive")
        if not self.runbook_id and self.anomaly is None:
            raise ValueError("either runbook_id or anomaly is required")
        if self.anomaly is not None and not self.user_id:
            raise ValueError("user_id is required for anomaly triggers")
        return self

    @property
    def is_explicit(self) -> bool:
        return bool(self.runbook_id)

    @property
    def mode(self) -> str:
        return "explicit" if self.is_explicit else "anomaly"

    def to_context(self) -> TriggerContext:
        anomaly = self.anomaly or AnomalySignal()
        return TriggerContext(
            metric=anomaly.metric,
            severity=anomaly.severity,
            server=anomaly.server,
            incident_id=self.incident_id,
        )
