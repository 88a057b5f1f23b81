"""Pydantic models describing outbox events and their payloads."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from fittrack.events_engine.errors import OutboxPayloadError
from fittrack.notifications.payloads import TrainingExerciseSummary

USER_REGISTERED = "user.registered"
TRAINER_INVITATION_CREATED = "trainer.invitation.created"
TRAINING_COMPLETED = "training.completed"

WILDCARD_EVENT_TYPE = "*"


class EventEnvelope(BaseModel):
    """Canonical event document forwarded to external transports."""

    event_id: UUID
    event_type: str = Field(..., min_length=3, max_length=128)
    correlation_id: str = Field(..., max_length=128)
    occurred_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="UTC timestamp for when the event was recorded in the outbox.",
    )
    schema_version: str = Field(default="v1", max_length=16)
    payload: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("occurred_at")
    @classmethod
    def _ensure_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class UserRegisteredEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: UUID
    user_name: str = Field(..., min_length=1, max_length=256)
    email: str = Field(..., min_length=3, max_length=320)
    culture_name: str = Field(default="en-US", max_length=16)


class TrainerInvitationCreatedEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    invitation_id: UUID
    invitation_code: str = Field(..., min_length=1, max_length=128)
    expires_at: datetime
    trainer_name: str = Field(..., min_length=1, max_length=256)
    invitee_email: str = Field(..., min_length=3, max_length=320)
    culture_name: str = Field(default="en-US", max_length=16)


class TrainingCompletedEvent(BaseModel):
    """A finished training session; a blank ``email`` means no summary is sent."""

    model_config = ConfigDict(frozen=True)

    user_id: UUID
    training_id: UUID
    email: str = Field(default="", max_length=320)
    culture_name: str = Field(default="en-US", max_length=16)
    plan_day_name: str = Field(..., min_length=1, max_length=256)
    training_date: date
    exercises: List[TrainingExerciseSummary] = Field(default_factory=list)


P = TypeVar("P", bound=BaseModel)


@dataclass(frozen=True)
class OutboxEventDefinition(Generic[P]):
    """Binds an event type string to the model its payload must satisfy."""

    event_type: str
    payload_model: Type[P]
    schema_version: str = "v1"

    def serialize(self, payload: P) -> str:
        return payload.model_dump_json()

    def deserialize(self, payload_json: str) -> P:
        try:
            return self.payload_model.model_validate_json(payload_json)
        except ValidationError as exc:
            raise OutboxPayloadError(
                f"Invalid payload for {self.event_type}: {exc.error_count()} validation error(s)"
            ) from exc

    def validate(self, payload: Dict[str, Any]) -> P:
        try:
            return self.payload_model.model_validate(payload)
        except ValidationError as exc:
            raise OutboxPayloadError(
                f"Invalid payload for {self.event_type}: {exc.error_count()} validation error(s)"
            ) from exc


USER_REGISTERED_EVENT = OutboxEventDefinition(USER_REGISTERED, UserRegisteredEvent)
TRAINER_INVITATION_CREATED_EVENT = OutboxEventDefinition(TRAINER_INVITATION_CREATED, TrainerInvitationCreatedEvent)
TRAINING_COMPLETED_EVENT = OutboxEventDefinition(TRAINING_COMPLETED, TrainingCompletedEvent)

EVENT_DEFINITIONS: Dict[str, OutboxEventDefinition] = {
    definition.event_type: definition
    for definition in (USER_REGISTERED_EVENT, TRAINER_INVITATION_CREATED_EVENT, TRAINING_COMPLETED_EVENT)
}


def get_event_definition(event_type: str) -> Optional[OutboxEventDefinition]:
    return EVENT_DEFINITIONS.get(event_type)
