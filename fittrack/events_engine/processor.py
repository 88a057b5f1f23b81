"""Execution of a single outbox delivery against its handler."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from fittrack.core.backoff import BackoffPolicy, build_backoff_policy
from fittrack.core.config import AppSettings, get_settings
from fittrack.core.errors import sanitize_error
from fittrack.core.metrics import DeliveryMetrics, get_outbox_metrics
from fittrack.events_engine.handlers import OutboxHandlerRegistry, get_handler_registry
from fittrack.events_engine.store import OutboxStore
from fittrack.models.base import utc_now
from fittrack.models.outbox import OutboxDelivery, OutboxDeliveryStatus

LOGGER = logging.getLogger("fittrack.events_engine.processor")


class DeliveryOutcome(str, Enum):
    MISSING = "missing"
    ALREADY_DELIVERED = "already_delivered"
    CANCELLED = "cancelled"
    NOT_CLAIMED = "not_claimed"
    DELIVERED = "delivered"


class OutboxDeliveryProcessor:
    """Runs one handler for one event and records the result on the delivery row."""

    def __init__(
        self,
        session: Session,
        *,
        store: Optional[OutboxStore] = None,
        handlers: Optional[OutboxHandlerRegistry] = None,
        metrics: Optional[DeliveryMetrics] = None,
        backoff: Optional[BackoffPolicy] = None,
        settings: Optional[AppSettings] = None,
    ) -> None:
        self._session = session
        self._settings = settings or get_settings()
        self._store = store or OutboxStore(session, settings=self._settings)
        self._handlers = handlers or get_handler_registry()
        self._metrics = metrics or get_outbox_metrics()
        self._backoff = backoff or build_backoff_policy(self._settings)

    def process(
        self,
        delivery_id: UUID,
        *,
        is_cancelled: Optional[Callable[[], bool]] = None,
    ) -> DeliveryOutcome:
        """Claim and execute a delivery; entry point for the job runner."""

        delivery = self._store.find_delivery_by_id(delivery_id)
        if delivery is None or delivery.is_deleted:
            LOGGER.warning("outbox_delivery_missing", extra={"delivery_id": str(delivery_id)})
            return DeliveryOutcome.MISSING

        if delivery.status == OutboxDeliveryStatus.DELIVERED:
            return DeliveryOutcome.ALREADY_DELIVERED

        if is_cancelled is not None and is_cancelled():
            LOGGER.info("outbox_delivery_cancelled", extra={"delivery_id": str(delivery_id)})
            return DeliveryOutcome.CANCELLED

        if not self._store.try_claim_delivery(delivery_id):
            LOGGER.info(
                "outbox_delivery_claim_skipped",
                extra={"delivery_id": str(delivery_id), "status": delivery.status.value},
            )
            return DeliveryOutcome.NOT_CLAIMED
        self._session.commit()

        delivery = self._store.find_delivery_by_id(delivery_id)
        if delivery is None:
            LOGGER.warning("outbox_delivery_missing_after_claim", extra={"delivery_id": str(delivery_id)})
            return DeliveryOutcome.MISSING
        return self.execute(delivery)

    def execute(self, delivery: OutboxDelivery) -> DeliveryOutcome:
        """Run the handler for a delivery the caller has already claimed."""

        event = delivery.event
        event_type = event.event_type
        if delivery.attempts > 1:
            self._metrics.record_retried(event_type)

        try:
            handler = self._handlers.get(delivery.handler_name)
            handler.handle(
                self._session,
                event_id=event.id,
                correlation_id=event.correlation_id,
                payload_json=event.payload_json,
            )
        except Exception as exc:
            # Drop whatever the handler left uncommitted; the claim is already durable.
            self._session.rollback()
            self._record_failure(delivery, event_type, exc)
            raise

        delivery.status = OutboxDeliveryStatus.DELIVERED
        delivery.processed_at = utc_now()
        delivery.last_error = None
        delivery.next_attempt_at = None
        self._store.save(delivery)
        self._session.commit()
        self._metrics.record_sent(event_type)
        LOGGER.info(
            "outbox_delivery_delivered",
            extra={
                "delivery_id": str(delivery.id),
                "event_id": str(delivery.event_id),
                "handler_name": delivery.handler_name,
                "attempts": delivery.attempts,
            },
        )
        return DeliveryOutcome.DELIVERED

    def _record_failure(self, delivery: OutboxDelivery, event_type: str, exc: BaseException) -> None:
        now = utc_now()
        delivery.status = OutboxDeliveryStatus.FAILED
        delivery.last_error = sanitize_error(exc)
        if delivery.attempts < self._store.max_attempts:
            delivery.next_attempt_at = self._backoff.next_attempt_at(delivery.attempts, now)
        else:
            delivery.next_attempt_at = None
        self._store.save(delivery)
        self._session.commit()
        self._metrics.record_failed(event_type)
        LOGGER.error(
            "outbox_delivery_failed",
            extra={
                "delivery_id": str(delivery.id),
                "event_id": str(delivery.event_id),
                "handler_name": delivery.handler_name,
                "attempts": delivery.attempts,
                "next_attempt_at": delivery.next_attempt_at.isoformat() if delivery.next_attempt_at else None,
                "error": delivery.last_error,
            },
        )
