"""Notification payload sent across the notify boundary."""

from typing import Any

from pydantic import BaseModel, Field


class NotificationPayload(BaseModel):
    """Message handed to the notification transport."""

    event_type: str = Field(..., description="Event category, e.g. 'incident'")
    title: str = Field(..., description="Short headline")
    message: str = Field(..., description="Notification body")
    severity: str = Field(default="info", description="info, warning, error or critical")
    user_id: str = Field(..., description="User the notification belongs to")
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional context (runbook id, execution id, ...)",
    )
