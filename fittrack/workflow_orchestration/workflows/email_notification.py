"""Workflow that drives one email notification to a terminal state."""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Dict

from temporalio import workflow
from temporalio.common import RetryPolicy

PROCESS_EMAIL_ACTIVITY = "process_email_notification_activity"


@workflow.defn(name="process_email_notification")
class ProcessEmailNotificationWorkflow:
    """Run the email processor for a notification id, retrying on failure."""

    @workflow.run
    async def run(self, notification_id: str, options: Dict[str, Any]) -> str:  # noqa: D401
        return await workflow.execute_activity(
            PROCESS_EMAIL_ACTIVITY,
            notification_id,
            start_to_close_timeout=timedelta(seconds=options.get("timeout_seconds", 120)),
            retry_policy=RetryPolicy(
                maximum_attempts=options.get("max_attempts", 3),
                initial_interval=timedelta(seconds=options.get("initial_interval_seconds", 30)),
                backoff_coefficient=2.0,
            ),
            result_type=str,
        )
