"""SQLAlchemy ORM models for the delivery pipeline."""

from fittrack.models.base import Base  # noqa: F401
from fittrack.models.email_subscription import EmailNotificationSubscription  # noqa: F401
from fittrack.models.notification_message import (  # noqa: F401
    NotificationChannel,
    NotificationMessage,
    NotificationStatus,
)
from fittrack.models.outbox import (  # noqa: F401
    OutboxDelivery,
    OutboxDeliveryStatus,
    OutboxMessage,
    OutboxMessageStatus,
)
