"""Transactional outbox: business events and their per-handler deliveries."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import List, Optional

from sqlalchemy import ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fittrack.models.base import AttemptTrackingMixin, Base, SoftDeleteMixin, TimestampMixin, status_enum
from fittrack.models.types import GUID, UTCDateTime


class OutboxMessageStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    PROCESSED = "processed"
    FAILED = "failed"


class OutboxDeliveryStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    DELIVERED = "delivered"
    FAILED = "failed"


class OutboxMessage(AttemptTrackingMixin, TimestampMixin, SoftDeleteMixin, Base):
    """What happened: one business event awaiting fan-out."""

    __tablename__ = "outbox_messages"
    __table_args__ = (
        UniqueConstraint("event_type", "correlation_id", name="uq_outbox_messages_correlation"),
        Index("ix_outbox_messages_status_next_attempt", "status", "next_attempt_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    event_type: Mapped[str] = mapped_column(String(length=128), nullable=False)
    correlation_id: Mapped[str] = mapped_column(String(length=128), nullable=False)
    schema_version: Mapped[str] = mapped_column(String(length=16), nullable=False, default="v1")
    payload_json: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[OutboxMessageStatus] = mapped_column(
        status_enum(OutboxMessageStatus, "outbox_message_status"),
        nullable=False,
        default=OutboxMessageStatus.PENDING,
    )
    processed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)

    deliveries: Mapped[List["OutboxDelivery"]] = relationship(
        back_populates="event",
        order_by="OutboxDelivery.handler_name",
    )


class OutboxDelivery(AttemptTrackingMixin, TimestampMixin, SoftDeleteMixin, Base):
    """Who must act on an event, and how that handler's attempts went."""

    __tablename__ = "outbox_deliveries"
    __table_args__ = (
        UniqueConstraint("event_id", "handler_name", name="uq_outbox_deliveries_event_handler"),
        Index("ix_outbox_deliveries_status_next_attempt", "status", "next_attempt_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    event_id: Mapped[uuid.UUID] = mapped_column(
        GUID(),
        ForeignKey("outbox_messages.id"),
        nullable=False,
    )
    handler_name: Mapped[str] = mapped_column(String(length=128), nullable=False)
    status: Mapped[OutboxDeliveryStatus] = mapped_column(
        status_enum(OutboxDeliveryStatus, "outbox_delivery_status"),
        nullable=False,
        default=OutboxDeliveryStatus.PENDING,
    )
    processed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)

    event: Mapped[OutboxMessage] = relationship(back_populates="deliveries")
