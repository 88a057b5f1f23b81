"""Per-user opt-in to optional email notification kinds."""

from __future__ import annotations

import uuid

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from fittrack.models.base import Base, SoftDeleteMixin, TimestampMixin
from fittrack.models.types import GUID


class EmailNotificationSubscription(TimestampMixin, SoftDeleteMixin, Base):
    """A live row means the user wants ``notification_type`` emails.

    Unsubscribing soft-deletes the row; subscribing again revives it.
    """

    __tablename__ = "email_notification_subscriptions"
    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "notification_type",
            name="uq_email_notification_subscriptions_user_type",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(GUID(), nullable=False, index=True)
    notification_type: Mapped[str] = mapped_column(String(length=128), nullable=False)
