"""Declarative base and the column groups shared by every work-item table."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Type

from sqlalchemy import Boolean, Integer, String, false, func
from sqlalchemy import Enum as SqlEnum
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from fittrack.core.errors import MAX_ERROR_LENGTH
from fittrack.models.types import UTCDateTime


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def status_enum(enum_cls: Type[Enum], name: str) -> SqlEnum:
    """Store an enum by its ``.value`` in a VARCHAR with a CHECK constraint."""

    return SqlEnum(
        enum_cls,
        name=name,
        native_enum=False,
        values_callable=lambda members: [member.value for member in members],
    )


class Base(DeclarativeBase):
    pass


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        default=utc_now,
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        default=utc_now,
        server_default=func.now(),
        onupdate=utc_now,
        nullable=False,
    )


class SoftDeleteMixin:
    """Rows are never removed; superseded rows are hidden from dispatch queries."""

    is_deleted: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        server_default=false(),
        nullable=False,
    )


class AttemptTrackingMixin:
    """Retry bookkeeping for anything a worker claims and may fail on.

    ``next_attempt_at`` is NULL for rows that are due immediately and for rows
    that reached a terminal state. ``last_error`` only ever holds a sanitized,
    truncated message.
    """

    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_attempt_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
    next_attempt_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
    last_error: Mapped[Optional[str]] = mapped_column(String(length=MAX_ERROR_LENGTH), nullable=True)
