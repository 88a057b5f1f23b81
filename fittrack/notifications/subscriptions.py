"""Email notification subscriptions."""

from __future__ import annotations

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from fittrack.core.idempotency import Conflict, insert_or_conflict
from fittrack.models.email_subscription import EmailNotificationSubscription

LOGGER = logging.getLogger("fittrack.notifications.subscriptions")


class SubscriptionStore:
    """Reads and toggles a user's opt-in for one notification kind.

    Writes are flushed, not committed; the caller owns the transaction.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def _find(self, user_id: UUID, notification_type: str) -> Optional[EmailNotificationSubscription]:
        stmt = select(EmailNotificationSubscription).where(
            EmailNotificationSubscription.user_id == user_id,
            EmailNotificationSubscription.notification_type == notification_type,
        )
        return self._session.scalar(stmt)

    def is_subscribed(self, user_id: UUID, notification_type: str) -> bool:
        record = self._find(user_id, notification_type)
        return record is not None and not record.is_deleted

    def subscribe(self, user_id: UUID, notification_type: str) -> EmailNotificationSubscription:
        record = self._find(user_id, notification_type)
        if record is None:
            result = insert_or_conflict(
                self._session,
                EmailNotificationSubscription(user_id=user_id, notification_type=notification_type),
                (user_id, notification_type),
            )
            if not isinstance(result, Conflict):
                LOGGER.info(
                    "email_subscription_created",
                    extra={"user_id": str(user_id), "notification_type": notification_type},
                )
                return result.record
            record = self._find(user_id, notification_type)

        if record.is_deleted:
            record.is_deleted = False
            self._session.flush()
            LOGGER.info(
                "email_subscription_restored",
                extra={"user_id": str(user_id), "notification_type": notification_type},
            )
        return record

    def unsubscribe(self, user_id: UUID, notification_type: str) -> bool:
        """Return ``True`` when a live subscription was switched off."""

        record = self._find(user_id, notification_type)
        if record is None or record.is_deleted:
            return False
        record.is_deleted = True
        self._session.flush()
        LOGGER.info(
            "email_subscription_removed",
            extra={"user_id": str(user_id), "notification_type": notification_type},
        )
        return True

    def list_for_user(self, user_id: UUID) -> List[str]:
        stmt = (
            select(EmailNotificationSubscription.notification_type)
            .where(
                EmailNotificationSubscription.user_id == user_id,
                EmailNotificationSubscription.is_deleted.is_(False),
            )
            .order_by(EmailNotificationSubscription.notification_type)
        )
        return list(self._session.scalars(stmt))
