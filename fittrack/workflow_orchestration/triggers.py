"""Background triggers: advisory "process this work item soon" signals."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Protocol, Type
from uuid import UUID

from temporalio.exceptions import WorkflowAlreadyStartedError

from fittrack.core.config import get_settings
from fittrack.workflow_orchestration.config import JobOptions, get_job_options, get_temporal_config
from fittrack.workflow_orchestration.starter import WorkflowStarter
from fittrack.workflow_orchestration.workflows import (
    ProcessEmailNotificationWorkflow,
    ProcessOutboxDeliveryWorkflow,
)

LOGGER = logging.getLogger("fittrack.workflow.triggers")

EMAIL_WORKFLOW_PREFIX = "email-notification"
OUTBOX_DELIVERY_WORKFLOW_PREFIX = "outbox-delivery"


class BackgroundTrigger(Protocol):
    """Hands a work-item id to the job runner.

    Implementations must not raise: the row is already durable and the
    reconciliation sweep picks up anything whose signal was lost.
    """

    def enqueue(self, work_item_id: UUID) -> bool:
        ...


class NullBackgroundTrigger(BackgroundTrigger):
    """No-op trigger used when background jobs are disabled."""

    def __init__(self, *, name: str = "null") -> None:
        self._name = name

    def enqueue(self, work_item_id: UUID) -> bool:  # noqa: D401
        LOGGER.debug(
            "background_trigger_skipped",
            extra={"trigger": self._name, "work_item_id": str(work_item_id)},
        )
        return False


class TemporalBackgroundTrigger(BackgroundTrigger):
    """Starts one Temporal workflow per work item."""

    def __init__(
        self,
        *,
        workflow_class: Type,
        workflow_id_prefix: str,
        starter: Optional[WorkflowStarter] = None,
        job_options: Optional[JobOptions] = None,
    ) -> None:
        self._workflow_class = workflow_class
        self._workflow_id_prefix = workflow_id_prefix
        self._starter = starter or WorkflowStarter()
        self._job_options = job_options or get_job_options()

    def workflow_id_for(self, work_item_id: UUID) -> str:
        return f"{self._workflow_id_prefix}-{work_item_id}"

    def enqueue(self, work_item_id: UUID) -> bool:
        workflow_id = self.workflow_id_for(work_item_id)
        try:
            asyncio.run(
                self._starter.start_workflow(
                    workflow_class=self._workflow_class,
                    workflow_id=workflow_id,
                    args=(str(work_item_id), self._job_options.as_workflow_arg()),
                )
            )
        except WorkflowAlreadyStartedError:
            LOGGER.info("background_trigger_already_running", extra={"workflow_id": workflow_id})
            return True
        except RuntimeError as exc:
            LOGGER.warning(
                "background_trigger_skipped",
                extra={"reason": str(exc), "workflow_id": workflow_id},
            )
            return False
        except Exception:  # noqa: BLE001
            LOGGER.exception("background_trigger_failed", extra={"workflow_id": workflow_id})
            return False

        LOGGER.info("background_trigger_enqueued", extra={"workflow_id": workflow_id})
        return True


_email_trigger: Optional[BackgroundTrigger] = None
_outbox_delivery_trigger: Optional[BackgroundTrigger] = None


def background_jobs_active() -> bool:
    """True when work items should be handed to Temporal instead of run in-process."""

    settings = get_settings()
    return settings.background_jobs_enabled and get_temporal_config(settings).enabled


def get_email_trigger() -> BackgroundTrigger:
    """Return the cached trigger for email notifications."""

    global _email_trigger
    if _email_trigger is not None:
        return _email_trigger

    if background_jobs_active():
        _email_trigger = TemporalBackgroundTrigger(
            workflow_class=ProcessEmailNotificationWorkflow,
            workflow_id_prefix=EMAIL_WORKFLOW_PREFIX,
        )
    else:
        _email_trigger = NullBackgroundTrigger(name="email")
    return _email_trigger


def get_outbox_delivery_trigger() -> BackgroundTrigger:
    """Return the cached trigger for outbox deliveries."""

    global _outbox_delivery_trigger
    if _outbox_delivery_trigger is not None:
        return _outbox_delivery_trigger

    if background_jobs_active():
        _outbox_delivery_trigger = TemporalBackgroundTrigger(
            workflow_class=ProcessOutboxDeliveryWorkflow,
            workflow_id_prefix=OUTBOX_DELIVERY_WORKFLOW_PREFIX,
        )
    else:
        _outbox_delivery_trigger = NullBackgroundTrigger(name="outbox_delivery")
    return _outbox_delivery_trigger


def set_email_trigger(trigger: Optional[BackgroundTrigger]) -> None:
    """Override the cached email trigger (primarily for tests)."""

    global _email_trigger
    _email_trigger = trigger


def set_outbox_delivery_trigger(trigger: Optional[BackgroundTrigger]) -> None:
    """Override the cached outbox delivery trigger (primarily for tests)."""

    global _outbox_delivery_trigger
    _outbox_delivery_trigger = trigger
