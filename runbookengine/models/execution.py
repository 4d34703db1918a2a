"""Execution record domain models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from runbookengine.core.clock import utcnow

STEP_FAILURE_MESSAGE = "One or more steps failed"


class ExecutionStatus(str, Enum):
    """Execution lifecycle status."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not ExecutionStatus.RUNNING


class StepStatus(str, Enum):
    """Outcome of a single step."""

    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class StepResult(BaseModel):
    """Recorded outcome of one executed step."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(..., ge=0, description="Position of the step in the runbook")
    action: str = Field(..., description="Action kind of the step")
    status: StepStatus = Field(..., description="Step outcome")
    detail: str = Field(default="", description="Human-readable outcome")
    timestamp: datetime = Field(default_factory=utcnow)


class Execution(BaseModel):
    """One run of one runbook against one trigger."""

    execution_id: str = Field(..., description="Execution unique identifier")
    runbook_id: str = Field(..., description="Runbook that was run")
    user_id: str = Field(..., description="Runbook owner")
    incident_id: str | None = Field(default=None, description="Associated incident")
    status: ExecutionStatus = Field(default=ExecutionStatus.RUNNING)
    steps_completed: list[StepResult] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=utcnow)
    completed_at: datetime | None = None
    error_message: str | None = None

    @property
    def has_failures(self) -> bool:
        return any(r.status == StepStatus.FAILED for r in self.steps_completed)

    def append_step(self, result: StepResult) -> None:
        """Append a step result; results are never reordered or removed."""
        if self.status.is_terminal:
            raise ValueError(f"Execution {self.execution_id} is already {self.status.value}")
        if result.index != len(self.steps_completed):
            raise ValueError(
                f"Step result index {result.index} out of order "
                f"(expected {len(self.steps_completed)})"
            )
        self.steps_completed.append(result)

    def finalize(self, at: datetime, error_message: str | None = None) -> None:
        """Move to a terminal status once every step has been attempted.

        ``error_message`` forces a failed outcome (used when the run had to
        stop early).
        """
        if self.status.is_terminal:
            raise ValueError(f"Execution {self.execution_id} is already {self.status.value}")
        if error_message or self.has_failures:
            self.status = ExecutionStatus.FAILED
            self.error_message = error_message or STEP_FAILURE_MESSAGE
        else:
            self.status = ExecutionStatus.COMPLETED
            self.error_message = None
        self.completed_at = at


class RunbookRunResult(BaseModel):
    """Per-runbook entry of a trigger response."""

    model_config = ConfigDict(populate_by_name=True)

    runbook_id: str
    runbook_name: str
    execution_id: str | None = None
    status: ExecutionStatus
    steps_completed: list[StepResult] = Field(default_factory=list, alias="stepsCompleted")
    error: str | None = None


class TriggerOutcome(BaseModel):
    """Aggregate result of one trigger cycle."""

    executed: int = Field(default=0, ge=0, description="Executions dispatched")
    results: list[RunbookRunResult] = Field(default_factory=list)
