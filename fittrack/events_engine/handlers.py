"""Outbox delivery handlers and their registry."""

from __future__ import annotations

import json
import logging
import os
from typing import Callable, Dict, Iterable, List, Optional, Protocol
from uuid import UUID

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from sqlalchemy.orm import Session

from fittrack.core.config import AppSettings, get_settings
from fittrack.events_engine.errors import OutboxEventNotFoundError, OutboxHandlerNotRegisteredError
from fittrack.events_engine.schemas import (
    TRAINER_INVITATION_CREATED_EVENT,
    TRAINING_COMPLETED_EVENT,
    USER_REGISTERED_EVENT,
    WILDCARD_EVENT_TYPE,
    EventEnvelope,
    OutboxEventDefinition,
    TrainerInvitationCreatedEvent,
    TrainingCompletedEvent,
    UserRegisteredEvent,
)
from fittrack.models.outbox import OutboxMessage
from fittrack.notifications.payloads import (
    TRAINING_COMPLETED_NOTIFICATION,
    InvitationEmailPayload,
    NotificationPayload,
    TrainingCompletedEmailPayload,
    WelcomeEmailPayload,
)
from fittrack.notifications.scheduler import EmailScheduler
from fittrack.notifications.subscriptions import SubscriptionStore

LOGGER = logging.getLogger("fittrack.events_engine.handlers")


class OutboxHandler(Protocol):
    """One independent consumer of an outbox event.

    ``handle`` must tolerate being called more than once for the same
    ``event_id``; raising marks only this handler's delivery as failed.
    """

    handler_name: str
    event_type: str

    def handle(self, session: Session, *, event_id: UUID, correlation_id: str, payload_json: str) -> None:
        ...


class OutboxHandlerRegistry:
    """Handlers keyed by name, resolvable by event type."""

    def __init__(self, handlers: Optional[Iterable[OutboxHandler]] = None) -> None:
        self._handlers: Dict[str, OutboxHandler] = {}
        for handler in handlers or ():
            self.register(handler)

    def register(self, handler: OutboxHandler) -> None:
        if handler.handler_name in self._handlers:
            raise ValueError(f"Outbox handler '{handler.handler_name}' is already registered")
        self._handlers[handler.handler_name] = handler

    def handlers_for(self, event_type: str) -> List[OutboxHandler]:
        return [
            handler
            for name, handler in sorted(self._handlers.items())
            if handler.event_type in (event_type, WILDCARD_EVENT_TYPE)
        ]

    def get(self, handler_name: str) -> OutboxHandler:
        handler = self._handlers.get(handler_name)
        if handler is None:
            raise OutboxHandlerNotRegisteredError(f"Outbox handler '{handler_name}' is not registered")
        return handler

    def names(self) -> List[str]:
        return sorted(self._handlers)


class ScheduleEmailHandler(OutboxHandler):
    """Bridges a domain event to the email scheduler."""

    def __init__(
        self,
        *,
        handler_name: str,
        definition: OutboxEventDefinition,
        build_payload: Callable[[object], NotificationPayload],
        skip_reason: Optional[Callable[[Session, object], Optional[str]]] = None,
        scheduler_factory: Callable[[Session], EmailScheduler] = EmailScheduler,
    ) -> None:
        self.handler_name = handler_name
        self.event_type = definition.event_type
        self._definition = definition
        self._build_payload = build_payload
        self._skip_reason = skip_reason
        self._scheduler_factory = scheduler_factory

    def handle(self, session: Session, *, event_id: UUID, correlation_id: str, payload_json: str) -> None:
        event = self._definition.deserialize(payload_json)
        reason = self._skip_reason(session, event) if self._skip_reason is not None else None
        if reason is not None:
            LOGGER.info(
                "outbox_email_skipped",
                extra={"event_id": str(event_id), "handler_name": self.handler_name, "reason": reason},
            )
            return

        result = self._scheduler_factory(session).schedule(self._build_payload(event))
        LOGGER.info(
            "outbox_email_scheduled",
            extra={
                "event_id": str(event_id),
                "handler_name": self.handler_name,
                "outcome": result.outcome.value,
                "notification_id": str(result.notification_id) if result.notification_id else None,
            },
        )


def _welcome_payload(event: UserRegisteredEvent) -> WelcomeEmailPayload:
    return WelcomeEmailPayload(
        user_id=event.user_id,
        user_name=event.user_name,
        recipient_email=event.email,
        culture_name=event.culture_name,
    )


def _invitation_payload(event: TrainerInvitationCreatedEvent) -> InvitationEmailPayload:
    return InvitationEmailPayload(
        invitation_id=event.invitation_id,
        invitation_code=event.invitation_code,
        expires_at=event.expires_at,
        trainer_name=event.trainer_name,
        recipient_email=event.invitee_email,
        culture_name=event.culture_name,
    )


def _training_completed_skip_reason(session: Session, event: TrainingCompletedEvent) -> Optional[str]:
    if not event.email.strip():
        return "missing_recipient"
    if not SubscriptionStore(session).is_subscribed(event.user_id, TRAINING_COMPLETED_NOTIFICATION):
        return "not_subscribed"
    return None


def _training_completed_payload(event: TrainingCompletedEvent) -> TrainingCompletedEmailPayload:
    return TrainingCompletedEmailPayload(
        user_id=event.user_id,
        training_id=event.training_id,
        recipient_email=event.email.strip(),
        culture_name=event.culture_name,
        plan_day_name=event.plan_day_name,
        training_date=event.training_date,
        exercises=event.exercises,
    )


class SnsForwardingHandler(OutboxHandler):
    """Publishes every outbox event to an AWS SNS topic."""

    handler_name = "sns.forward"
    event_type = WILDCARD_EVENT_TYPE

    def __init__(self, *, topic_arn: str, region_name: str, client=None) -> None:
        self._topic_arn = topic_arn
        self._client = client or boto3.client("sns", region_name=region_name)

    def handle(self, session: Session, *, event_id: UUID, correlation_id: str, payload_json: str) -> None:
        record = session.get(OutboxMessage, event_id)
        if record is None:
            raise OutboxEventNotFoundError(f"Outbox event {event_id} not found")

        envelope = EventEnvelope(
            event_id=event_id,
            event_type=record.event_type,
            correlation_id=correlation_id,
            occurred_at=record.created_at,
            schema_version=record.schema_version,
            payload=json.loads(payload_json),
        )
        try:
            self._client.publish(
                TopicArn=self._topic_arn,
                Message=json.dumps(envelope.model_dump(mode="json")),
                MessageAttributes={
                    "event_type": {
                        "DataType": "String",
                        "StringValue": envelope.event_type,
                    }
                },
            )
        except (BotoCoreError, ClientError):
            LOGGER.exception(
                "outbox_sns_publish_failed",
                extra={"event_id": str(event_id), "topic_arn": self._topic_arn},
            )
            raise
        LOGGER.info(
            "outbox_sns_published",
            extra={"event_id": str(event_id), "event_type": envelope.event_type},
        )


def build_default_handlers(settings: Optional[AppSettings] = None) -> OutboxHandlerRegistry:
    settings = settings or get_settings()
    registry = OutboxHandlerRegistry(
        [
            ScheduleEmailHandler(
                handler_name="email.welcome",
                definition=USER_REGISTERED_EVENT,
                build_payload=_welcome_payload,
            ),
            ScheduleEmailHandler(
                handler_name="email.trainer_invitation",
                definition=TRAINER_INVITATION_CREATED_EVENT,
                build_payload=_invitation_payload,
            ),
            ScheduleEmailHandler(
                handler_name="email.training_completed",
                definition=TRAINING_COMPLETED_EVENT,
                build_payload=_training_completed_payload,
                skip_reason=_training_completed_skip_reason,
            ),
        ]
    )
    if settings.event_topic_arn:
        region = os.getenv("AWS_REGION") or os.getenv("AWS_DEFAULT_REGION") or "us-east-1"
        registry.register(SnsForwardingHandler(topic_arn=settings.event_topic_arn, region_name=region))
    return registry


_registry: Optional[OutboxHandlerRegistry] = None


def get_handler_registry() -> OutboxHandlerRegistry:
    """Return the cached handler registry for the process."""

    global _registry
    if _registry is None:
        _registry = build_default_handlers()
    return _registry


def set_handler_registry(registry: Optional[OutboxHandlerRegistry]) -> None:
    """Override the cached handler registry (primarily for tests)."""

    global _registry
    _registry = registry
