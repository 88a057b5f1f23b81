"""Outbox dispatcher: fans events out to deliveries and runs ready deliveries."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from fittrack.core.backoff import BackoffPolicy, build_backoff_policy
from fittrack.core.config import AppSettings, get_settings
from fittrack.core.errors import sanitize_error
from fittrack.core.idempotency import Created
from fittrack.events_engine.handlers import OutboxHandlerRegistry, get_handler_registry
from fittrack.events_engine.processor import OutboxDeliveryProcessor
from fittrack.events_engine.store import OutboxStore
from fittrack.models.base import utc_now
from fittrack.models.outbox import OutboxDelivery, OutboxDeliveryStatus, OutboxMessage, OutboxMessageStatus
from fittrack.workflow_orchestration.triggers import BackgroundTrigger

LOGGER = logging.getLogger("fittrack.events_engine.dispatcher")


@dataclass
class DispatchReport:
    """Counters for one ``dispatch_pending`` pass."""

    events_claimed: int = 0
    events_processed: int = 0
    events_failed: int = 0
    deliveries_created: int = 0
    deliveries_claimed: int = 0
    deliveries_delivered: int = 0
    deliveries_failed: int = 0
    deliveries_enqueued: int = 0

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)


class OutboxDispatcher:
    """Drives the outbox forward in two phases.

    Fan-out claims ready events and creates one delivery row per registered
    handler. The delivery phase then claims ready deliveries and executes
    them in-process, or hands their ids to ``trigger`` when one is supplied.
    A failing delivery never stops the rest of the batch.
    """

    def __init__(
        self,
        session: Session,
        *,
        store: Optional[OutboxStore] = None,
        handlers: Optional[OutboxHandlerRegistry] = None,
        processor: Optional[OutboxDeliveryProcessor] = None,
        trigger: Optional[BackgroundTrigger] = None,
        backoff: Optional[BackoffPolicy] = None,
        settings: Optional[AppSettings] = None,
    ) -> None:
        self._session = session
        self._settings = settings or get_settings()
        self._store = store or OutboxStore(session, settings=self._settings)
        self._handlers = handlers or get_handler_registry()
        self._backoff = backoff or build_backoff_policy(self._settings)
        self._processor = processor or OutboxDeliveryProcessor(
            session,
            store=self._store,
            handlers=self._handlers,
            backoff=self._backoff,
            settings=self._settings,
        )
        self._trigger = trigger

    @property
    def batch_size(self) -> int:
        return self._settings.dispatch_batch_size

    def dispatch_pending(self, now: Optional[datetime] = None) -> DispatchReport:
        now = now or utc_now()
        report = DispatchReport()
        self._fan_out(now, report)
        self._deliver(now, report)
        LOGGER.info("outbox_dispatch_completed", extra=report.as_dict())
        return report

    def _fan_out(self, now: datetime, report: DispatchReport) -> None:
        candidate_ids = [message.id for message in self._store.list_ready_messages(self.batch_size, now)]
        self._session.commit()

        for event_id in candidate_ids:
            if not self._store.try_claim_message(event_id, now):
                self._session.commit()
                continue
            self._session.commit()
            report.events_claimed += 1

            message = self._store.find_message(event_id)
            if message is None:
                continue

            try:
                created = self._create_deliveries(message)
            except Exception as exc:
                self._session.rollback()
                self._record_message_failure(message, exc)
                report.events_failed += 1
                continue

            message.status = OutboxMessageStatus.PROCESSED
            message.processed_at = utc_now()
            message.last_error = None
            message.next_attempt_at = None
            self._store.save(message)
            self._session.commit()
            report.events_processed += 1
            report.deliveries_created += len(created)

    def _create_deliveries(self, message: OutboxMessage) -> List[UUID]:
        created: List[UUID] = []
        for handler in self._handlers.handlers_for(message.event_type):
            if self._store.find_delivery(message.id, handler.handler_name) is not None:
                continue
            result = self._store.create_delivery(
                OutboxDelivery(
                    event_id=message.id,
                    handler_name=handler.handler_name,
                    status=OutboxDeliveryStatus.PENDING,
                    attempts=0,
                )
            )
            if isinstance(result, Created):
                created.append(result.record.id)
        LOGGER.debug(
            "outbox_deliveries_created",
            extra={"event_id": str(message.id), "event_type": message.event_type, "count": len(created)},
        )
        return created

    def _record_message_failure(self, message: OutboxMessage, exc: BaseException) -> None:
        now = utc_now()
        exhausted = message.attempts >= self._store.max_attempts
        message.status = OutboxMessageStatus.FAILED if exhausted else OutboxMessageStatus.PENDING
        message.next_attempt_at = None if exhausted else self._backoff.next_attempt_at(message.attempts, now)
        message.last_error = sanitize_error(exc)
        self._store.save(message)
        self._session.commit()
        LOGGER.error(
            "outbox_fan_out_failed",
            extra={
                "event_id": str(message.id),
                "event_type": message.event_type,
                "attempts": message.attempts,
                "error": message.last_error,
            },
        )

    def _deliver(self, now: datetime, report: DispatchReport) -> None:
        candidate_ids = [delivery.id for delivery in self._store.list_ready_deliveries(self.batch_size, now)]
        self._session.commit()

        if self._trigger is not None:
            for delivery_id in candidate_ids:
                if self._trigger.enqueue(delivery_id):
                    report.deliveries_enqueued += 1
            return

        for delivery_id in candidate_ids:
            if not self._store.try_claim_delivery(delivery_id, now):
                self._session.commit()
                continue
            self._session.commit()
            report.deliveries_claimed += 1

            delivery = self._store.find_delivery_by_id(delivery_id)
            if delivery is None:
                continue
            try:
                self._processor.execute(delivery)
            except Exception:  # noqa: BLE001
                LOGGER.exception(
                    "outbox_delivery_execution_failed",
                    extra={"delivery_id": str(delivery_id), "handler_name": delivery.handler_name},
                )
                report.deliveries_failed += 1
                continue
            report.deliveries_delivered += 1


def get_outbox_dispatcher(session: Session, *, trigger: Optional[BackgroundTrigger] = None) -> OutboxDispatcher:
    """Build a dispatcher bound to ``session`` with the process-wide handlers."""

    return OutboxDispatcher(session, handlers=get_handler_registry(), trigger=trigger)
