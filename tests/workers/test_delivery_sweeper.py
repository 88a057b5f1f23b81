from __future__ import annotations

from uuid import uuid4

from sqlalchemy import select

from fittrack.core.database import session_scope
from fittrack.events_engine.publisher import OutboxPublisher
from fittrack.events_engine.schemas import USER_REGISTERED, UserRegisteredEvent
from fittrack.models.notification_message import NotificationChannel, NotificationMessage, NotificationStatus
from fittrack.models.outbox import OutboxDelivery, OutboxDeliveryStatus
from fittrack.notifications.payloads import WELCOME_NOTIFICATION, WelcomeEmailPayload
from fittrack.workers.delivery_sweeper import DeliverySweeper, build_delivery_sweeper


class CollectingTrigger:
    def __init__(self) -> None:
        self.enqueued = []

    def enqueue(self, work_item_id):
        self.enqueued.append(work_item_id)
        return True


def _orphaned_notification():
    """A committed row whose trigger signal never reached the job runner."""

    payload = WelcomeEmailPayload(user_id=uuid4(), user_name="Sam", recipient_email="sam@x.com")
    with session_scope() as session:
        message = NotificationMessage(
            channel=NotificationChannel.EMAIL,
            notification_type=WELCOME_NOTIFICATION,
            correlation_id=payload.correlation_id,
            recipient=payload.recipient_email,
            payload_json=payload.model_dump_json(),
            status=NotificationStatus.PENDING,
            attempts=0,
        )
        session.add(message)
        session.flush()
        return message.id


def _publish_registration():
    user_id = uuid4()
    event = UserRegisteredEvent(user_id=user_id, user_name="Alex", email="a@x.com")
    with session_scope() as session:
        OutboxPublisher().publish(session, event_type=USER_REGISTERED, payload=event, correlation_id=str(user_id))


def test_sweep_processes_orphans_inline(stub_sender) -> None:
    notification_id = _orphaned_notification()

    report = DeliverySweeper().run_once()

    assert report.notifications_found == 1
    assert report.notifications_processed == 1
    assert report.notifications_failed == 0
    assert [message.to for message in stub_sender.messages] == ["sam@x.com"]
    with session_scope() as session:
        assert session.get(NotificationMessage, notification_id).status == NotificationStatus.SENT


def test_sweep_dispatches_outbox_events(stub_sender) -> None:
    _publish_registration()

    report = DeliverySweeper().run_once()

    assert report.dispatch.events_processed == 1
    assert report.dispatch.deliveries_delivered == 1
    with session_scope() as session:
        delivery = session.scalars(select(OutboxDelivery)).one()
        assert delivery.handler_name == "email.welcome"
        assert delivery.status == OutboxDeliveryStatus.DELIVERED
        assert session.scalars(select(NotificationMessage)).one().recipient == "a@x.com"

    # The welcome email scheduled by the handler is picked up on the next cycle.
    follow_up = DeliverySweeper().run_once()
    assert follow_up.notifications_processed == 1
    assert [message.to for message in stub_sender.messages] == ["a@x.com"]


def test_sweep_counts_failures_and_keeps_going(stub_sender) -> None:
    stub_sender.error = ConnectionError("relay down")
    _orphaned_notification()
    _orphaned_notification()

    report = DeliverySweeper().run_once()

    assert report.notifications_found == 2
    assert report.notifications_failed == 2
    with session_scope() as session:
        statuses = {row.status for row in session.scalars(select(NotificationMessage))}
        assert statuses == {NotificationStatus.FAILED}


def test_sweep_hands_work_to_triggers_when_configured(stub_sender) -> None:
    email_trigger = CollectingTrigger()
    delivery_trigger = CollectingTrigger()
    notification_id = _orphaned_notification()
    _publish_registration()

    report = DeliverySweeper(email_trigger=email_trigger, delivery_trigger=delivery_trigger).run_once()

    assert report.notifications_enqueued == 1
    assert email_trigger.enqueued == [notification_id]
    assert report.dispatch.deliveries_enqueued == 1
    assert len(delivery_trigger.enqueued) == 1
    assert stub_sender.messages == []


def test_run_forever_sleeps_between_cycles(settings) -> None:
    sleeps = []
    sweeper = DeliverySweeper(sleep=sleeps.append)

    sweeper.run_forever(max_cycles=2)

    assert sleeps == [settings.sweep_interval_seconds, settings.sweep_interval_seconds]


def test_build_sweeper_runs_inline_without_temporal() -> None:
    sweeper = build_delivery_sweeper()

    assert sweeper.run_once().notifications_found == 0
