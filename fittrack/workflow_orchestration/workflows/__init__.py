"""Temporal workflow definitions."""

from fittrack.workflow_orchestration.workflows.email_notification import ProcessEmailNotificationWorkflow  # noqa: F401
from fittrack.workflow_orchestration.workflows.outbox_delivery import ProcessOutboxDeliveryWorkflow  # noqa: F401
