"""Typed payloads for the notification kinds the service can send."""

from __future__ import annotations

from abc import abstractmethod
from datetime import date, datetime
from decimal import Decimal
from typing import ClassVar, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

WELCOME_NOTIFICATION = "user.registration.welcome"
TRAINER_INVITATION_NOTIFICATION = "trainer.invitation.created"
TRAINING_COMPLETED_NOTIFICATION = "training.completed"


class NotificationPayload(BaseModel):
    """Base payload carried by every scheduled notification.

    Subclasses pin ``notification_type`` and decide which field identifies the
    business fact (``correlation_id``) the notification is about.
    """

    model_config = ConfigDict(frozen=True)

    notification_type: ClassVar[str]

    recipient_email: str = Field(..., min_length=3, max_length=320)
    culture_name: str = Field(default="en-US", max_length=16)

    @property
    @abstractmethod
    def correlation_id(self) -> str:
        """Identifier of the business fact this notification is about."""


class WelcomeEmailPayload(NotificationPayload):
    notification_type: ClassVar[str] = WELCOME_NOTIFICATION

    user_id: UUID
    user_name: str = Field(..., min_length=1, max_length=256)

    @property
    def correlation_id(self) -> str:
        return str(self.user_id)


class InvitationEmailPayload(NotificationPayload):
    notification_type: ClassVar[str] = TRAINER_INVITATION_NOTIFICATION

    invitation_id: UUID
    invitation_code: str = Field(..., min_length=1, max_length=128)
    expires_at: datetime
    trainer_name: str = Field(..., min_length=1, max_length=256)

    @property
    def correlation_id(self) -> str:
        return str(self.invitation_id)


class TrainingExerciseSummary(BaseModel):
    """One row of the training summary table."""

    model_config = ConfigDict(frozen=True)

    exercise_name: str
    series: int = Field(..., ge=0)
    reps: int = Field(..., ge=0)
    weight: Optional[Decimal] = None
    unit: str = Field(default="kg", max_length=16)


class TrainingCompletedEmailPayload(NotificationPayload):
    notification_type: ClassVar[str] = TRAINING_COMPLETED_NOTIFICATION

    user_id: UUID
    training_id: UUID
    plan_day_name: str = Field(..., min_length=1, max_length=256)
    training_date: date
    exercises: List[TrainingExerciseSummary] = Field(default_factory=list)

    @property
    def correlation_id(self) -> str:
        return str(self.training_id)


class EmailMessage(BaseModel):
    """A rendered message ready to hand to a sender."""

    model_config = ConfigDict(frozen=True)

    to: str
    subject: str
    body: str
    is_html: bool = False
