"""Durable record of a single-recipient notification."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from fittrack.models.base import AttemptTrackingMixin, Base, SoftDeleteMixin, TimestampMixin, status_enum
from fittrack.models.types import GUID, UTCDateTime


class NotificationChannel(str, Enum):
    EMAIL = "email"


class NotificationStatus(str, Enum):
    """Lifecycle: pending -> processing -> sent | failed."""

    PENDING = "pending"
    PROCESSING = "processing"
    SENT = "sent"
    FAILED = "failed"


class NotificationMessage(AttemptTrackingMixin, TimestampMixin, SoftDeleteMixin, Base):
    """One "this email must eventually be sent" work item."""

    __tablename__ = "notification_messages"
    __table_args__ = (
        UniqueConstraint(
            "notification_type",
            "correlation_id",
            "recipient",
            name="uq_notification_messages_correlation",
        ),
        Index("ix_notification_messages_status_next_attempt", "status", "next_attempt_at"),
        Index("ix_notification_messages_created_at", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    channel: Mapped[NotificationChannel] = mapped_column(
        status_enum(NotificationChannel, "notification_channel"),
        nullable=False,
        default=NotificationChannel.EMAIL,
    )
    notification_type: Mapped[str] = mapped_column(String(length=128), nullable=False)
    correlation_id: Mapped[str] = mapped_column(String(length=128), nullable=False)
    recipient: Mapped[str] = mapped_column(String(length=320), nullable=False)
    payload_json: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[NotificationStatus] = mapped_column(
        status_enum(NotificationStatus, "notification_status"),
        nullable=False,
        default=NotificationStatus.PENDING,
    )
    sent_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
