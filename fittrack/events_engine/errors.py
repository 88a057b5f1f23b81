"""Exceptions raised by the transactional outbox."""

from __future__ import annotations


class OutboxError(RuntimeError):
    """Base class for outbox errors."""


class OutboxHandlerNotRegisteredError(OutboxError):
    """Raised when a delivery names a handler the process does not know."""


class OutboxEventNotFoundError(OutboxError):
    """Raised when an event id does not match a stored outbox message."""


class OutboxPayloadError(OutboxError):
    """Raised when an event payload does not match its registered schema."""
