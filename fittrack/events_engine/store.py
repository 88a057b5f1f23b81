"""Persistence for outbox events and deliveries."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import List, Optional
from uuid import UUID

from sqlalchemy import and_, or_, select, update
from sqlalchemy.orm import Session, selectinload

from fittrack.core.config import AppSettings, get_settings
from fittrack.core.idempotency import CreateResult, insert_or_conflict
from fittrack.models.base import utc_now
from fittrack.models.outbox import (
    OutboxDelivery,
    OutboxDeliveryStatus,
    OutboxMessage,
    OutboxMessageStatus,
)

LOGGER = logging.getLogger("fittrack.events_engine.store")


class OutboxStore:
    """Conditional reads and writes for ``outbox_messages`` and ``outbox_deliveries``."""

    def __init__(self, session: Session, *, settings: Optional[AppSettings] = None) -> None:
        self._session = session
        self._settings = settings or get_settings()

    @property
    def max_attempts(self) -> int:
        return self._settings.max_delivery_attempts

    @property
    def processing_lease(self) -> timedelta:
        return timedelta(seconds=self._settings.processing_lease_seconds)

    # Events

    def create_message(self, message: OutboxMessage) -> CreateResult[OutboxMessage]:
        return insert_or_conflict(self._session, message, (message.event_type, message.correlation_id))

    def find_message(self, event_id: UUID) -> Optional[OutboxMessage]:
        return self._session.get(OutboxMessage, event_id)

    def find_message_with_deliveries(self, event_id: UUID) -> Optional[OutboxMessage]:
        stmt = (
            select(OutboxMessage)
            .options(selectinload(OutboxMessage.deliveries))
            .where(OutboxMessage.id == event_id)
        )
        return self._session.scalar(stmt)

    def find_message_by_correlation(self, event_type: str, correlation_id: str) -> Optional[OutboxMessage]:
        stmt = select(OutboxMessage).where(
            OutboxMessage.event_type == event_type,
            OutboxMessage.correlation_id == correlation_id,
            OutboxMessage.is_deleted.is_(False),
        )
        return self._session.scalar(stmt)

    def _message_ready_clause(self, now: datetime):
        return and_(
            OutboxMessage.is_deleted.is_(False),
            or_(
                and_(
                    OutboxMessage.status == OutboxMessageStatus.PENDING,
                    or_(OutboxMessage.next_attempt_at.is_(None), OutboxMessage.next_attempt_at <= now),
                ),
                and_(
                    OutboxMessage.status == OutboxMessageStatus.PROCESSING,
                    OutboxMessage.last_attempt_at <= now - self.processing_lease,
                ),
            ),
        )

    def list_ready_messages(self, batch_size: int, now: Optional[datetime] = None) -> List[OutboxMessage]:
        now = now or utc_now()
        stmt = (
            select(OutboxMessage)
            .where(self._message_ready_clause(now))
            .order_by(OutboxMessage.created_at.asc())
            .limit(batch_size)
        )
        return list(self._session.scalars(stmt))

    def try_claim_message(self, event_id: UUID, now: Optional[datetime] = None) -> bool:
        now = now or utc_now()
        stmt = (
            update(OutboxMessage)
            .where(OutboxMessage.id == event_id, self._message_ready_clause(now))
            .values(
                status=OutboxMessageStatus.PROCESSING,
                attempts=OutboxMessage.attempts + 1,
                last_attempt_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        claimed = self._session.execute(stmt).rowcount == 1
        if claimed:
            self._refresh(OutboxMessage, event_id)
        else:
            LOGGER.debug("outbox_message_claim_lost", extra={"event_id": str(event_id)})
        return claimed

    def list_messages(
        self,
        *,
        status: Optional[OutboxMessageStatus] = None,
        event_type: Optional[str] = None,
        limit: int = 100,
    ) -> List[OutboxMessage]:
        stmt = select(OutboxMessage).where(OutboxMessage.is_deleted.is_(False))
        if status is not None:
            stmt = stmt.where(OutboxMessage.status == status)
        if event_type is not None:
            stmt = stmt.where(OutboxMessage.event_type == event_type)
        stmt = stmt.order_by(OutboxMessage.created_at.desc()).limit(limit)
        return list(self._session.scalars(stmt))

    # Deliveries

    def create_delivery(self, delivery: OutboxDelivery) -> CreateResult[OutboxDelivery]:
        return insert_or_conflict(self._session, delivery, (delivery.event_id, delivery.handler_name))

    def find_delivery(self, event_id: UUID, handler_name: str) -> Optional[OutboxDelivery]:
        stmt = select(OutboxDelivery).where(
            OutboxDelivery.event_id == event_id,
            OutboxDelivery.handler_name == handler_name,
            OutboxDelivery.is_deleted.is_(False),
        )
        return self._session.scalar(stmt)

    def find_delivery_by_id(self, delivery_id: UUID) -> Optional[OutboxDelivery]:
        return self._session.get(OutboxDelivery, delivery_id)

    def _delivery_ready_clause(self, now: datetime):
        return and_(
            OutboxDelivery.is_deleted.is_(False),
            or_(
                and_(
                    OutboxDelivery.status == OutboxDeliveryStatus.PENDING,
                    or_(OutboxDelivery.next_attempt_at.is_(None), OutboxDelivery.next_attempt_at <= now),
                ),
                and_(
                    OutboxDelivery.status == OutboxDeliveryStatus.FAILED,
                    OutboxDelivery.attempts < self.max_attempts,
                    OutboxDelivery.next_attempt_at.is_not(None),
                    OutboxDelivery.next_attempt_at <= now,
                ),
                and_(
                    OutboxDelivery.status == OutboxDeliveryStatus.PROCESSING,
                    OutboxDelivery.last_attempt_at <= now - self.processing_lease,
                ),
            ),
        )

    def list_ready_deliveries(self, batch_size: int, now: Optional[datetime] = None) -> List[OutboxDelivery]:
        now = now or utc_now()
        stmt = (
            select(OutboxDelivery)
            .where(self._delivery_ready_clause(now))
            .order_by(OutboxDelivery.created_at.asc())
            .limit(batch_size)
        )
        return list(self._session.scalars(stmt))

    def try_claim_delivery(self, delivery_id: UUID, now: Optional[datetime] = None) -> bool:
        """Claim a delivery for execution and count the attempt.

        Like notifications, a failed delivery below the attempt ceiling is
        claimable before its ``next_attempt_at``; the dispatcher only offers
        due rows, so an early claim means an explicit re-enqueue.
        """

        now = now or utc_now()
        claimable = and_(
            OutboxDelivery.is_deleted.is_(False),
            or_(
                OutboxDelivery.status == OutboxDeliveryStatus.PENDING,
                and_(
                    OutboxDelivery.status == OutboxDeliveryStatus.FAILED,
                    OutboxDelivery.attempts < self.max_attempts,
                ),
                and_(
                    OutboxDelivery.status == OutboxDeliveryStatus.PROCESSING,
                    OutboxDelivery.last_attempt_at <= now - self.processing_lease,
                ),
            ),
        )
        stmt = (
            update(OutboxDelivery)
            .where(OutboxDelivery.id == delivery_id, claimable)
            .values(
                status=OutboxDeliveryStatus.PROCESSING,
                attempts=OutboxDelivery.attempts + 1,
                last_attempt_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        claimed = self._session.execute(stmt).rowcount == 1
        if claimed:
            self._refresh(OutboxDelivery, delivery_id)
        else:
            LOGGER.debug("outbox_delivery_claim_lost", extra={"delivery_id": str(delivery_id)})
        return claimed

    def list_dead_deliveries(self, limit: int = 100) -> List[OutboxDelivery]:
        stmt = (
            select(OutboxDelivery)
            .where(
                OutboxDelivery.is_deleted.is_(False),
                OutboxDelivery.status == OutboxDeliveryStatus.FAILED,
                or_(
                    OutboxDelivery.attempts >= self.max_attempts,
                    OutboxDelivery.next_attempt_at.is_(None),
                ),
            )
            .order_by(OutboxDelivery.updated_at.desc())
            .limit(limit)
        )
        return list(self._session.scalars(stmt))

    def save(self, item):
        self._session.add(item)
        self._session.flush()
        return item

    def _refresh(self, model, identity: UUID) -> None:
        # The in-session copy is stale after a bulk UPDATE.
        instance = self._session.get(model, identity)
        if instance is not None:
            self._session.refresh(instance)
