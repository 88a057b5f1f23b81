"""Temporal worker bootstrap."""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor

from temporalio.worker import Worker

from fittrack.core.config import get_settings
from fittrack.workflow_orchestration.activities import (
    process_email_notification_activity,
    process_outbox_delivery_activity,
)
from fittrack.workflow_orchestration.client import get_temporal_client
from fittrack.workflow_orchestration.config import get_temporal_config
from fittrack.workflow_orchestration.workflows import (
    ProcessEmailNotificationWorkflow,
    ProcessOutboxDeliveryWorkflow,
)

LOGGER = logging.getLogger("fittrack.workflow.worker")

WORKFLOWS = [
    ProcessEmailNotificationWorkflow,
    ProcessOutboxDeliveryWorkflow,
]

ACTIVITIES = [
    process_email_notification_activity,
    process_outbox_delivery_activity,
]


async def run_worker() -> None:
    """Run the Temporal worker with all registered workflows and activities."""

    settings = get_settings()
    config = get_temporal_config(settings)
    if not config.enabled:
        LOGGER.error(
            "temporal_worker_not_configured",
            extra={"required": ["FT_TEMPORAL_HOST", "FT_TEMPORAL_NAMESPACE", "FT_TEMPORAL_API_KEY"]},
        )
        raise RuntimeError("Temporal service is not configured")

    LOGGER.info(
        "temporal_worker_connecting",
        extra={"host": config.host, "namespace": config.namespace, "task_queue": config.task_queue},
    )
    client = await get_temporal_client(config)

    with ThreadPoolExecutor(max_workers=settings.worker_max_concurrent_activities) as executor:
        worker = Worker(
            client,
            task_queue=config.task_queue,
            workflows=WORKFLOWS,
            activities=ACTIVITIES,
            activity_executor=executor,
            max_concurrent_activities=settings.worker_max_concurrent_activities,
        )
        LOGGER.info(
            "temporal_worker_started",
            extra={"workflows": len(WORKFLOWS), "activities": len(ACTIVITIES)},
        )
        await worker.run()


if __name__ == "__main__":
    asyncio.run(run_worker())
