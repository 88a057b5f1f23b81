from __future__ import annotations

from uuid import uuid4

from temporalio.exceptions import WorkflowAlreadyStartedError

from fittrack.workflow_orchestration.config import JobOptions, TemporalConfig
from fittrack.workflow_orchestration.starter import WorkflowStarter
from fittrack.workflow_orchestration.triggers import (
    EMAIL_WORKFLOW_PREFIX,
    NullBackgroundTrigger,
    TemporalBackgroundTrigger,
    background_jobs_active,
    get_email_trigger,
    get_outbox_delivery_trigger,
)
from fittrack.workflow_orchestration.workflows import (
    ProcessEmailNotificationWorkflow,
    ProcessOutboxDeliveryWorkflow,
)

JOB_OPTIONS = JobOptions(max_attempts=3, initial_interval_seconds=5.0, timeout_seconds=60)


class StubStarter:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls: list[dict[str, object]] = []

    async def start_workflow(self, *, workflow_class, workflow_id, args):
        self.calls.append({"workflow_class": workflow_class, "workflow_id": workflow_id, "args": args})
        if self.error is not None:
            raise self.error
        return workflow_id


def _trigger(starter: StubStarter) -> TemporalBackgroundTrigger:
    return TemporalBackgroundTrigger(
        workflow_class=ProcessEmailNotificationWorkflow,
        workflow_id_prefix=EMAIL_WORKFLOW_PREFIX,
        starter=starter,
        job_options=JOB_OPTIONS,
    )


def test_trigger_starts_one_workflow_per_work_item() -> None:
    starter = StubStarter()
    notification_id = uuid4()

    assert _trigger(starter).enqueue(notification_id) is True

    assert len(starter.calls) == 1
    call = starter.calls[0]
    assert call["workflow_class"] is ProcessEmailNotificationWorkflow
    assert call["workflow_id"] == f"email-notification-{notification_id}"
    assert call["args"] == (
        str(notification_id),
        {"max_attempts": 3, "initial_interval_seconds": 5.0, "timeout_seconds": 60},
    )


def test_already_running_workflow_counts_as_enqueued() -> None:
    notification_id = uuid4()
    error = WorkflowAlreadyStartedError(
        f"email-notification-{notification_id}",
        "process_email_notification",
    )

    assert _trigger(StubStarter(error)).enqueue(notification_id) is True


def test_unconfigured_temporal_is_swallowed() -> None:
    assert _trigger(StubStarter(RuntimeError("Temporal service is not configured"))).enqueue(uuid4()) is False


def test_unexpected_start_failure_is_swallowed() -> None:
    assert _trigger(StubStarter(ConnectionError("connection refused"))).enqueue(uuid4()) is False


def test_trigger_with_disabled_config_never_raises() -> None:
    disabled_config = TemporalConfig(
        host=None,
        namespace=None,
        api_key=None,
        task_queue="unused",
        tls_enabled=True,
    )
    trigger = TemporalBackgroundTrigger(
        workflow_class=ProcessEmailNotificationWorkflow,
        workflow_id_prefix=EMAIL_WORKFLOW_PREFIX,
        starter=WorkflowStarter(config=disabled_config),
        job_options=JOB_OPTIONS,
    )

    assert trigger.enqueue(uuid4()) is False


def test_null_trigger_reports_not_enqueued() -> None:
    assert NullBackgroundTrigger(name="email").enqueue(uuid4()) is False


def test_default_triggers_are_null_without_temporal() -> None:
    assert background_jobs_active() is False
    assert isinstance(get_email_trigger(), NullBackgroundTrigger)
    assert isinstance(get_outbox_delivery_trigger(), NullBackgroundTrigger)


def test_workflows_carry_stable_names() -> None:
    email_definition = getattr(ProcessEmailNotificationWorkflow, "__temporal_workflow_definition")
    delivery_definition = getattr(ProcessOutboxDeliveryWorkflow, "__temporal_workflow_definition")

    assert email_definition.name == "process_email_notification"
    assert delivery_definition.name == "process_outbox_delivery"
