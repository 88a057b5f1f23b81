"""Exceptions raised by the notification pipeline."""

from __future__ import annotations


class NotificationError(RuntimeError):
    """Base class for notification pipeline errors."""


class UnknownNotificationTypeError(NotificationError):
    """Raised when no policy exists for a notification type."""


class NotificationPayloadError(NotificationError):
    """Raised when a stored payload cannot be turned back into its model."""


class ComposerNotRegisteredError(NotificationError):
    """Raised when no composer is registered for a notification type."""


class TemplateNotFoundError(NotificationError):
    """Raised when no template file matches the requested culture or its fallbacks."""


class TemplateFormatError(NotificationError):
    """Raised when a template file is missing its subject header or body separator."""


class InvalidRecipientError(NotificationError):
    """Raised when a message recipient is not a usable email address."""


class NotificationNotFoundError(NotificationError):
    """Raised when a notification id does not match a stored row."""


class RequeueNotAllowedError(NotificationError):
    """Raised when a manual requeue targets a row that is not retryable."""
