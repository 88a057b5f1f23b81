"""Persistence for notification work items."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import List, Optional
from uuid import UUID

from sqlalchemy import and_, or_, select, update
from sqlalchemy.orm import Session

from fittrack.core.config import AppSettings, get_settings
from fittrack.core.idempotency import CreateResult, insert_or_conflict
from fittrack.models.base import utc_now
from fittrack.models.notification_message import NotificationMessage, NotificationStatus

LOGGER = logging.getLogger("fittrack.notifications.store")


class NotificationStore:
    """Reads and conditional writes against ``notification_messages``.

    Every status transition that races with another worker goes through
    :meth:`try_claim`, a single ``UPDATE ... WHERE`` that only one caller can
    win. The remaining writes are plain flushes of a row the caller owns.
    """

    def __init__(self, session: Session, *, settings: Optional[AppSettings] = None) -> None:
        self._session = session
        self._settings = settings or get_settings()

    @property
    def max_attempts(self) -> int:
        return self._settings.max_manual_requeue_attempts

    @property
    def processing_lease(self) -> timedelta:
        return timedelta(seconds=self._settings.processing_lease_seconds)

    def create(self, message: NotificationMessage) -> CreateResult[NotificationMessage]:
        key = (message.notification_type, message.correlation_id, message.recipient)
        return insert_or_conflict(self._session, message, key)

    def find_by_id(self, notification_id: UUID) -> Optional[NotificationMessage]:
        return self._session.get(NotificationMessage, notification_id)

    def find_by_correlation(
        self,
        notification_type: str,
        correlation_id: str,
        recipient: str,
    ) -> Optional[NotificationMessage]:
        stmt = select(NotificationMessage).where(
            NotificationMessage.notification_type == notification_type,
            NotificationMessage.correlation_id == correlation_id,
            NotificationMessage.recipient == recipient,
            NotificationMessage.is_deleted.is_(False),
        )
        return self._session.scalar(stmt)

    def list_ready(self, batch_size: int, now: Optional[datetime] = None) -> List[NotificationMessage]:
        """Return rows a sweep should hand back to the job runner, oldest first."""

        now = now or utc_now()
        stale_before = now - self.processing_lease
        stmt = (
            select(NotificationMessage)
            .where(
                NotificationMessage.is_deleted.is_(False),
                or_(
                    and_(
                        NotificationMessage.status == NotificationStatus.PENDING,
                        or_(
                            NotificationMessage.next_attempt_at.is_(None),
                            NotificationMessage.next_attempt_at <= now,
                        ),
                    ),
                    and_(
                        NotificationMessage.status == NotificationStatus.FAILED,
                        NotificationMessage.attempts < self.max_attempts,
                        NotificationMessage.next_attempt_at.is_not(None),
                        NotificationMessage.next_attempt_at <= now,
                    ),
                    and_(
                        NotificationMessage.status == NotificationStatus.PROCESSING,
                        NotificationMessage.last_attempt_at <= stale_before,
                    ),
                ),
            )
            .order_by(NotificationMessage.created_at.asc())
            .limit(batch_size)
        )
        return list(self._session.scalars(stmt))

    def try_claim(self, notification_id: UUID, now: Optional[datetime] = None) -> bool:
        """Move a ready row to ``processing`` and count the attempt.

        A failed row below the attempt ceiling is claimable regardless of its
        ``next_attempt_at``: reaching the processor means someone explicitly
        re-enqueued it.
        """

        now = now or utc_now()
        stale_before = now - self.processing_lease
        stmt = (
            update(NotificationMessage)
            .where(
                NotificationMessage.id == notification_id,
                NotificationMessage.is_deleted.is_(False),
                or_(
                    NotificationMessage.status == NotificationStatus.PENDING,
                    and_(
                        NotificationMessage.status == NotificationStatus.FAILED,
                        NotificationMessage.attempts < self.max_attempts,
                    ),
                    and_(
                        NotificationMessage.status == NotificationStatus.PROCESSING,
                        NotificationMessage.last_attempt_at <= stale_before,
                    ),
                ),
            )
            .values(
                status=NotificationStatus.PROCESSING,
                attempts=NotificationMessage.attempts + 1,
                last_attempt_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        result = self._session.execute(stmt)
        claimed = result.rowcount == 1
        if claimed:
            # The in-session copy is stale after a bulk UPDATE.
            message = self._session.get(NotificationMessage, notification_id)
            if message is not None:
                self._session.refresh(message)
        else:
            LOGGER.debug("notification_claim_lost", extra={"notification_id": str(notification_id)})
        return claimed

    def save(self, message: NotificationMessage) -> NotificationMessage:
        self._session.add(message)
        self._session.flush()
        return message

    def list_messages(
        self,
        *,
        status: Optional[NotificationStatus] = None,
        notification_type: Optional[str] = None,
        limit: int = 100,
    ) -> List[NotificationMessage]:
        stmt = select(NotificationMessage).where(NotificationMessage.is_deleted.is_(False))
        if status is not None:
            stmt = stmt.where(NotificationMessage.status == status)
        if notification_type is not None:
            stmt = stmt.where(NotificationMessage.notification_type == notification_type)
        stmt = stmt.order_by(NotificationMessage.created_at.desc()).limit(limit)
        return list(self._session.scalars(stmt))

    def list_dead_letters(self, limit: int = 100) -> List[NotificationMessage]:
        """Failed rows no automatic path will pick up again."""

        stmt = (
            select(NotificationMessage)
            .where(
                NotificationMessage.is_deleted.is_(False),
                NotificationMessage.status == NotificationStatus.FAILED,
                or_(
                    NotificationMessage.attempts >= self.max_attempts,
                    NotificationMessage.next_attempt_at.is_(None),
                ),
            )
            .order_by(NotificationMessage.updated_at.desc())
            .limit(limit)
        )
        return list(self._session.scalars(stmt))
