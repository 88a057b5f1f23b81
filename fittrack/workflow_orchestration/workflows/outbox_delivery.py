"""Workflow that runs one outbox delivery against its handler."""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Dict

from temporalio import workflow
from temporalio.common import RetryPolicy

PROCESS_OUTBOX_DELIVERY_ACTIVITY = "process_outbox_delivery_activity"


@workflow.defn(name="process_outbox_delivery")
class ProcessOutboxDeliveryWorkflow:
    @workflow.run
    async def run(self, delivery_id: str, options: Dict[str, Any]) -> str:  # noqa: D401
        return await workflow.execute_activity(
            PROCESS_OUTBOX_DELIVERY_ACTIVITY,
            delivery_id,
            start_to_close_timeout=timedelta(seconds=options.get("timeout_seconds", 120)),
            retry_policy=RetryPolicy(
                maximum_attempts=options.get("max_attempts", 3),
                initial_interval=timedelta(seconds=options.get("initial_interval_seconds", 30)),
                backoff_coefficient=2.0,
            ),
            result_type=str,
        )
