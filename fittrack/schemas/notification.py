"""Notification inspection schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from fittrack.models.notification_message import NotificationChannel, NotificationStatus
from fittrack.notifications.scheduler import ScheduleOutcome


class NotificationResponse(BaseModel):
    """API response describing a stored notification work item."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    channel: NotificationChannel
    notification_type: str
    correlation_id: str
    recipient: str
    status: NotificationStatus
    attempts: int
    last_attempt_at: Optional[datetime]
    sent_at: Optional[datetime]
    next_attempt_at: Optional[datetime]
    last_error: Optional[str]
    created_at: datetime
    updated_at: datetime


class RequeueResponse(BaseModel):
    outcome: ScheduleOutcome
    notification_id: Optional[UUID]
