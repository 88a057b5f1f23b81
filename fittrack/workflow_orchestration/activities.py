"""Temporal activities that execute work items.

Activities are synchronous and run on the worker's thread pool; each opens
its own database session.
"""

from __future__ import annotations

import logging
from uuid import UUID

from temporalio import activity

from fittrack.core.database import session_scope
from fittrack.events_engine.processor import OutboxDeliveryProcessor
from fittrack.notifications.processor import EmailJobProcessor
from fittrack.workflow_orchestration.workflows.email_notification import PROCESS_EMAIL_ACTIVITY
from fittrack.workflow_orchestration.workflows.outbox_delivery import PROCESS_OUTBOX_DELIVERY_ACTIVITY

LOGGER = logging.getLogger("fittrack.workflow.activities")


@activity.defn(name=PROCESS_EMAIL_ACTIVITY)
def process_email_notification_activity(notification_id: str) -> str:
    info = activity.info()
    LOGGER.info(
        "workflow_process_email_notification",
        extra={"notification_id": notification_id, "activity_attempt": info.attempt},
    )
    with session_scope() as session:
        outcome = EmailJobProcessor(session).process(
            UUID(notification_id),
            is_cancelled=activity.is_cancelled,
        )
    return outcome.value


@activity.defn(name=PROCESS_OUTBOX_DELIVERY_ACTIVITY)
def process_outbox_delivery_activity(delivery_id: str) -> str:
    info = activity.info()
    LOGGER.info(
        "workflow_process_outbox_delivery",
        extra={"delivery_id": delivery_id, "activity_attempt": info.attempt},
    )
    with session_scope() as session:
        outcome = OutboxDeliveryProcessor(session).process(
            UUID(delivery_id),
            is_cancelled=activity.is_cancelled,
        )
    return outcome.value
