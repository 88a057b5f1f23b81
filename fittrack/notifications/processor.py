"""Job-side execution of a single email notification."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from fittrack.core.backoff import BackoffPolicy, build_backoff_policy
from fittrack.core.config import AppSettings, get_settings
from fittrack.core.errors import sanitize_error
from fittrack.core.metrics import DeliveryMetrics, get_email_metrics
from fittrack.models.base import utc_now
from fittrack.models.notification_message import NotificationMessage, NotificationStatus
from fittrack.notifications.composers import EmailComposerRegistry, get_composer_registry
from fittrack.notifications.senders import EmailSender, get_email_sender
from fittrack.notifications.store import NotificationStore

LOGGER = logging.getLogger("fittrack.notifications.processor")

SENDER_DISABLED_ERROR = "Email sender disabled."


class ProcessOutcome(str, Enum):
    MISSING = "missing"
    ALREADY_SENT = "already_sent"
    CANCELLED = "cancelled"
    NOT_CLAIMED = "not_claimed"
    NOT_DELIVERED = "not_delivered"
    SENT = "sent"


class EmailJobProcessor:
    """Claims a notification row, renders it and hands it to the sender.

    Safe to invoke any number of times for the same id. Every failure is
    written to the row and committed before the exception leaves
    :meth:`process`, so the job runner's retry sees the same state an
    operator would.
    """

    def __init__(
        self,
        session: Session,
        *,
        store: Optional[NotificationStore] = None,
        composers: Optional[EmailComposerRegistry] = None,
        sender: Optional[EmailSender] = None,
        metrics: Optional[DeliveryMetrics] = None,
        backoff: Optional[BackoffPolicy] = None,
        settings: Optional[AppSettings] = None,
    ) -> None:
        self._session = session
        self._settings = settings or get_settings()
        self._store = store or NotificationStore(session, settings=self._settings)
        self._composers = composers or get_composer_registry()
        self._sender = sender or get_email_sender()
        self._metrics = metrics or get_email_metrics()
        self._backoff = backoff or build_backoff_policy(self._settings)

    def process(
        self,
        notification_id: UUID,
        *,
        is_cancelled: Optional[Callable[[], bool]] = None,
    ) -> ProcessOutcome:
        message = self._store.find_by_id(notification_id)
        if message is None or message.is_deleted:
            LOGGER.warning("notification_missing", extra={"notification_id": str(notification_id)})
            return ProcessOutcome.MISSING

        if message.status == NotificationStatus.SENT:
            LOGGER.debug("notification_already_sent", extra={"notification_id": str(notification_id)})
            return ProcessOutcome.ALREADY_SENT

        if is_cancelled is not None and is_cancelled():
            LOGGER.info("notification_processing_cancelled", extra={"notification_id": str(notification_id)})
            return ProcessOutcome.CANCELLED

        if not self._store.try_claim(notification_id):
            LOGGER.info(
                "notification_claim_skipped",
                extra={"notification_id": str(notification_id), "status": message.status.value},
            )
            return ProcessOutcome.NOT_CLAIMED
        self._session.commit()

        # From here on the attempt is on record; run it to completion.
        message = self._store.find_by_id(notification_id)
        if message is None:
            LOGGER.warning("notification_missing_after_claim", extra={"notification_id": str(notification_id)})
            return ProcessOutcome.MISSING
        kind = message.notification_type
        if message.attempts > 1:
            self._metrics.record_retried(kind)

        try:
            composer = self._composers.get(kind)
            payload = composer.deserialize(message.payload_json)
            email = composer.compose(payload)
        except Exception as exc:
            self._record_failure(message, exc)
            raise

        try:
            delivered = self._sender.send(email)
        except Exception as exc:
            self._record_failure(message, exc)
            raise

        if not delivered:
            message.status = NotificationStatus.FAILED
            message.last_error = SENDER_DISABLED_ERROR
            message.next_attempt_at = None
            self._store.save(message)
            self._session.commit()
            self._metrics.record_failed(kind)
            LOGGER.warning(
                "notification_not_delivered",
                extra={"notification_id": str(message.id), "notification_type": kind},
            )
            return ProcessOutcome.NOT_DELIVERED

        now = utc_now()
        message.status = NotificationStatus.SENT
        message.sent_at = now
        message.last_error = None
        message.next_attempt_at = None
        self._store.save(message)
        self._session.commit()
        self._metrics.record_sent(kind)
        LOGGER.info(
            "notification_sent",
            extra={
                "notification_id": str(message.id),
                "notification_type": kind,
                "attempts": message.attempts,
            },
        )
        return ProcessOutcome.SENT

    def _record_failure(self, message: NotificationMessage, exc: BaseException) -> None:
        now = utc_now()
        message.status = NotificationStatus.FAILED
        message.last_error = sanitize_error(exc)
        if message.attempts < self._store.max_attempts:
            message.next_attempt_at = self._backoff.next_attempt_at(message.attempts, now)
        else:
            message.next_attempt_at = None
        self._store.save(message)
        self._session.commit()
        self._metrics.record_failed(message.notification_type)
        LOGGER.error(
            "notification_failed",
            extra={
                "notification_id": str(message.id),
                "notification_type": message.notification_type,
                "attempts": message.attempts,
                "error": message.last_error,
            },
        )
