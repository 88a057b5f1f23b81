"""Producer side of the notification pipeline."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from fittrack.core.config import AppSettings, get_settings
from fittrack.core.idempotency import Conflict
from fittrack.core.metrics import DeliveryMetrics, get_email_metrics
from fittrack.models.base import utc_now
from fittrack.models.notification_message import (
    NotificationChannel,
    NotificationMessage,
    NotificationStatus,
)
from fittrack.notifications.errors import NotificationNotFoundError, RequeueNotAllowedError
from fittrack.notifications.payloads import NotificationPayload
from fittrack.notifications.policies import NotificationPolicyRegistry
from fittrack.notifications.store import NotificationStore
from fittrack.workflow_orchestration.triggers import BackgroundTrigger, get_email_trigger

LOGGER = logging.getLogger("fittrack.notifications.scheduler")


class ScheduleOutcome(str, Enum):
    CREATED = "created"
    ALREADY_SCHEDULED = "already_scheduled"
    REQUEUED = "requeued"
    EXHAUSTED = "exhausted"
    DISABLED = "disabled"
    CONCURRENT = "concurrent"


@dataclass(frozen=True)
class ScheduleResult:
    outcome: ScheduleOutcome
    notification_id: Optional[UUID] = None


class EmailScheduler:
    """Records the intent to send an email and nudges the job runner.

    ``schedule`` never raises for duplicates or disabled kinds; those are
    normal outcomes reported through :class:`ScheduleResult`. The row is
    committed before the trigger fires so the worker can always see it.
    """

    def __init__(
        self,
        session: Session,
        *,
        store: Optional[NotificationStore] = None,
        trigger: Optional[BackgroundTrigger] = None,
        metrics: Optional[DeliveryMetrics] = None,
        policies: Optional[NotificationPolicyRegistry] = None,
        settings: Optional[AppSettings] = None,
    ) -> None:
        self._session = session
        self._settings = settings or get_settings()
        self._store = store or NotificationStore(session, settings=self._settings)
        self._trigger = trigger or get_email_trigger()
        self._metrics = metrics or get_email_metrics()
        self._policies = policies or NotificationPolicyRegistry()

    def schedule(self, payload: NotificationPayload) -> ScheduleResult:
        kind = payload.notification_type
        policy = self._policies.get(kind)
        log_context = {
            "notification_type": kind,
            "correlation_id": payload.correlation_id,
        }

        if not policy.is_enabled(self._settings):
            LOGGER.info("notification_schedule_disabled", extra=log_context)
            return ScheduleResult(outcome=ScheduleOutcome.DISABLED)

        existing = self._store.find_by_correlation(kind, payload.correlation_id, payload.recipient_email)
        if existing is not None:
            return self._handle_existing(existing)

        message = NotificationMessage(
            channel=NotificationChannel.EMAIL,
            notification_type=kind,
            correlation_id=payload.correlation_id,
            recipient=payload.recipient_email,
            payload_json=payload.model_dump_json(),
            status=NotificationStatus.PENDING,
            attempts=0,
        )
        result = self._store.create(message)
        if isinstance(result, Conflict):
            return self._handle_conflict(payload)

        self._session.commit()
        self._enqueue(result.record)
        LOGGER.info(
            "notification_scheduled",
            extra={**log_context, "notification_id": str(result.record.id)},
        )
        return ScheduleResult(outcome=ScheduleOutcome.CREATED, notification_id=result.record.id)

    def requeue(self, notification_id: UUID) -> ScheduleResult:
        """Operator-initiated retry of a failed row, bounded by the attempt ceiling."""

        message = self._store.find_by_id(notification_id)
        if message is None or message.is_deleted:
            raise NotificationNotFoundError(f"Notification {notification_id} not found")
        if message.status != NotificationStatus.FAILED:
            raise RequeueNotAllowedError(
                f"Notification {notification_id} is {message.status.value}; only failed notifications can be requeued"
            )
        if message.attempts >= self._store.max_attempts:
            raise RequeueNotAllowedError(
                f"Notification {notification_id} exhausted {message.attempts} of {self._store.max_attempts} attempts"
            )

        self._mark_due(message)
        self._session.commit()
        self._trigger.enqueue(message.id)
        self._metrics.record_retried(message.notification_type)
        LOGGER.info(
            "notification_requeued",
            extra={
                "notification_id": str(message.id),
                "notification_type": message.notification_type,
                "attempts": message.attempts,
            },
        )
        return ScheduleResult(outcome=ScheduleOutcome.REQUEUED, notification_id=message.id)

    def _handle_existing(self, message: NotificationMessage) -> ScheduleResult:
        log_context = {
            "notification_id": str(message.id),
            "notification_type": message.notification_type,
            "status": message.status.value,
            "attempts": message.attempts,
        }
        if message.status != NotificationStatus.FAILED:
            LOGGER.debug("notification_already_scheduled", extra=log_context)
            return ScheduleResult(outcome=ScheduleOutcome.ALREADY_SCHEDULED, notification_id=message.id)

        if message.attempts >= self._store.max_attempts:
            LOGGER.warning("notification_requeue_exhausted", extra=log_context)
            return ScheduleResult(outcome=ScheduleOutcome.EXHAUSTED, notification_id=message.id)

        self._mark_due(message)
        self._session.commit()
        self._trigger.enqueue(message.id)
        self._metrics.record_retried(message.notification_type)
        LOGGER.info("notification_requeued", extra=log_context)
        return ScheduleResult(outcome=ScheduleOutcome.REQUEUED, notification_id=message.id)

    def _handle_conflict(self, payload: NotificationPayload) -> ScheduleResult:
        winner = self._store.find_by_correlation(
            payload.notification_type,
            payload.correlation_id,
            payload.recipient_email,
        )
        if winner is None:
            # Only a soft-deleted row holds the key.
            LOGGER.warning(
                "notification_conflict_without_live_row",
                extra={
                    "notification_type": payload.notification_type,
                    "correlation_id": payload.correlation_id,
                },
            )
            return ScheduleResult(outcome=ScheduleOutcome.ALREADY_SCHEDULED)

        self._session.commit()
        self._enqueue(winner)
        LOGGER.info(
            "notification_schedule_concurrent",
            extra={"notification_id": str(winner.id), "notification_type": winner.notification_type},
        )
        return ScheduleResult(outcome=ScheduleOutcome.CONCURRENT, notification_id=winner.id)

    def _mark_due(self, message: NotificationMessage) -> None:
        # The sweep still finds the row if the trigger signal is lost.
        message.next_attempt_at = utc_now()
        self._store.save(message)

    def _enqueue(self, message: NotificationMessage) -> None:
        self._trigger.enqueue(message.id)
        self._metrics.record_enqueued(message.notification_type)
