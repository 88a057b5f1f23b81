"""Reconciliation sweep: re-discovers work whose trigger signal was lost.

Each cycle hands every ready notification back to the job runner (or runs it
in-process when background jobs are off) and performs one outbox dispatch
pass.
"""

from __future__ import annotations

import logging
import time
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from fittrack.core.config import AppSettings, get_settings
from fittrack.core.database import session_scope
from fittrack.core.logging import configure_logging
from fittrack.events_engine.dispatcher import DispatchReport, OutboxDispatcher
from fittrack.models.base import utc_now
from fittrack.notifications.processor import EmailJobProcessor
from fittrack.notifications.store import NotificationStore
from fittrack.workflow_orchestration.triggers import (
    BackgroundTrigger,
    background_jobs_active,
    get_email_trigger,
    get_outbox_delivery_trigger,
)

LOGGER = logging.getLogger("fittrack.workers.delivery_sweeper")

SessionFactory = Callable[[], AbstractContextManager[Session]]


@dataclass
class SweepReport:
    notifications_found: int = 0
    notifications_enqueued: int = 0
    notifications_processed: int = 0
    notifications_failed: int = 0
    dispatch: DispatchReport = field(default_factory=DispatchReport)


class DeliverySweeper:
    """Periodic loop over the stores; the stores, not the triggers, are authoritative."""

    def __init__(
        self,
        *,
        session_factory: SessionFactory = session_scope,
        email_trigger: Optional[BackgroundTrigger] = None,
        delivery_trigger: Optional[BackgroundTrigger] = None,
        settings: Optional[AppSettings] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._session_factory = session_factory
        self._email_trigger = email_trigger
        self._delivery_trigger = delivery_trigger
        self._settings = settings or get_settings()
        self._sleep = sleep

    def run_once(self, now: Optional[datetime] = None) -> SweepReport:
        now = now or utc_now()
        report = SweepReport()

        with self._session_factory() as session:
            store = NotificationStore(session, settings=self._settings)
            ready_ids: List[UUID] = [
                message.id for message in store.list_ready(self._settings.dispatch_batch_size, now)
            ]
        report.notifications_found = len(ready_ids)

        for notification_id in ready_ids:
            if self._email_trigger is not None:
                if self._email_trigger.enqueue(notification_id):
                    report.notifications_enqueued += 1
                continue
            try:
                with self._session_factory() as session:
                    EmailJobProcessor(session, settings=self._settings).process(notification_id)
                report.notifications_processed += 1
            except Exception:  # noqa: BLE001 - one bad row must not stall the sweep
                LOGGER.exception("sweep_notification_failed", extra={"notification_id": str(notification_id)})
                report.notifications_failed += 1

        with self._session_factory() as session:
            dispatcher = OutboxDispatcher(session, trigger=self._delivery_trigger, settings=self._settings)
            report.dispatch = dispatcher.dispatch_pending(now)

        LOGGER.info(
            "sweep_completed",
            extra={
                "notifications_found": report.notifications_found,
                "notifications_enqueued": report.notifications_enqueued,
                "notifications_processed": report.notifications_processed,
                "notifications_failed": report.notifications_failed,
                **{f"dispatch_{key}": value for key, value in report.dispatch.as_dict().items()},
            },
        )
        return report

    def run_forever(self, *, max_cycles: Optional[int] = None) -> None:
        LOGGER.info("sweep_loop_started", extra={"interval_seconds": self._settings.sweep_interval_seconds})
        cycles = 0
        while max_cycles is None or cycles < max_cycles:
            cycles += 1
            try:
                self.run_once()
            except Exception:  # noqa: BLE001 - intentionally broad for worker safety
                LOGGER.exception("sweep_cycle_failed")
            self._sleep(self._settings.sweep_interval_seconds)


def build_delivery_sweeper() -> DeliverySweeper:
    """Wire the sweeper to Temporal when it is configured, else run work in-process."""

    if background_jobs_active():
        return DeliverySweeper(
            email_trigger=get_email_trigger(),
            delivery_trigger=get_outbox_delivery_trigger(),
        )
    return DeliverySweeper()


def main() -> None:
    configure_logging(get_settings())
    sweeper = build_delivery_sweeper()
    sweeper.run_forever()


if __name__ == "__main__":
    main()
