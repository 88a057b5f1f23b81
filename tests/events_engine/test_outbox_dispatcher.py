from __future__ import annotations

from datetime import timedelta
from uuid import uuid4

from sqlalchemy import select

from fittrack.core.database import session_scope
from fittrack.core.metrics import FAILED, SENT, get_outbox_metrics
from fittrack.events_engine.dispatcher import OutboxDispatcher
from fittrack.events_engine.handlers import OutboxHandlerRegistry, build_default_handlers
from fittrack.events_engine.publisher import OutboxPublisher
from fittrack.events_engine.schemas import USER_REGISTERED, UserRegisteredEvent
from fittrack.models.base import utc_now
from fittrack.models.notification_message import NotificationMessage
from fittrack.models.outbox import OutboxDelivery, OutboxDeliveryStatus, OutboxMessage, OutboxMessageStatus

EVENT_TYPE = "training.plan.updated"


class RecordingHandler:
    def __init__(self, handler_name: str, *, event_type: str = EVENT_TYPE, fail: bool = False) -> None:
        self.handler_name = handler_name
        self.event_type = event_type
        self.fail = fail
        self.calls = []

    def handle(self, session, *, event_id, correlation_id, payload_json) -> None:  # noqa: ANN001
        self.calls.append(event_id)
        if self.fail:
            raise RuntimeError(f"{self.handler_name} is unavailable")


class StubTrigger:
    def __init__(self) -> None:
        self.enqueued = []

    def enqueue(self, work_item_id):
        self.enqueued.append(work_item_id)
        return True


def _publish(event_type: str = EVENT_TYPE, payload=None, correlation_id=None):
    with session_scope() as session:
        result = OutboxPublisher().publish(
            session,
            event_type=event_type,
            payload=payload if payload is not None else {"plan_id": "p-1"},
            correlation_id=correlation_id or str(uuid4()),
        )
        return result.event.id


def _dispatch(handlers, now=None, trigger=None):
    with session_scope() as session:
        return OutboxDispatcher(session, handlers=handlers, trigger=trigger).dispatch_pending(now)


def _deliveries(event_id):
    with session_scope() as session:
        rows = session.scalars(
            select(OutboxDelivery).where(OutboxDelivery.event_id == event_id).order_by(OutboxDelivery.handler_name)
        ).all()
        return {row.handler_name: (row.status, row.attempts, row.last_error) for row in rows}


def test_failing_handler_does_not_block_its_siblings() -> None:
    failing = RecordingHandler("a.failing", fail=True)
    healthy = RecordingHandler("b.healthy")
    handlers = OutboxHandlerRegistry([failing, healthy])
    event_id = _publish()

    report = _dispatch(handlers)

    assert report.events_processed == 1
    assert report.deliveries_created == 2
    assert report.deliveries_delivered == 1
    assert report.deliveries_failed == 1

    deliveries = _deliveries(event_id)
    assert deliveries["a.failing"][0] == OutboxDeliveryStatus.FAILED
    assert deliveries["a.failing"][1] == 1
    assert deliveries["a.failing"][2] == "RuntimeError: a.failing is unavailable"
    assert deliveries["b.healthy"][:2] == (OutboxDeliveryStatus.DELIVERED, 1)

    with session_scope() as session:
        event = session.get(OutboxMessage, event_id)
        assert event.status == OutboxMessageStatus.PROCESSED
        assert event.processed_at is not None

    assert get_outbox_metrics().value(FAILED, EVENT_TYPE) == 1
    assert get_outbox_metrics().value(SENT, EVENT_TYPE) == 1


def test_only_the_failed_handler_is_retried() -> None:
    failing = RecordingHandler("a.failing", fail=True)
    healthy = RecordingHandler("b.healthy")
    handlers = OutboxHandlerRegistry([failing, healthy])
    event_id = _publish()
    _dispatch(handlers)

    # Not yet due: the backoff window has not elapsed.
    early = _dispatch(handlers)
    assert early.deliveries_claimed == 0

    failing.fail = False
    later = _dispatch(handlers, now=utc_now() + timedelta(days=1))

    assert later.deliveries_claimed == 1
    assert later.deliveries_delivered == 1
    assert len(failing.calls) == 2
    assert len(healthy.calls) == 1

    deliveries = _deliveries(event_id)
    assert deliveries["a.failing"] == (OutboxDeliveryStatus.DELIVERED, 2, None)
    assert deliveries["b.healthy"][:2] == (OutboxDeliveryStatus.DELIVERED, 1)


def test_fan_out_runs_once_per_event() -> None:
    handler = RecordingHandler("a.only")
    handlers = OutboxHandlerRegistry([handler])
    _publish()

    first = _dispatch(handlers)
    second = _dispatch(handlers)

    assert first.deliveries_created == 1
    assert second.events_claimed == 0
    assert second.deliveries_created == 0
    assert len(handler.calls) == 1


def test_events_without_handlers_are_marked_processed() -> None:
    handlers = OutboxHandlerRegistry([RecordingHandler("other", event_type="something.else")])
    event_id = _publish()

    report = _dispatch(handlers)

    assert report.events_processed == 1
    assert report.deliveries_created == 0
    assert _deliveries(event_id) == {}


def test_wildcard_handler_receives_every_event_type() -> None:
    wildcard = RecordingHandler("z.forward", event_type="*")
    handlers = OutboxHandlerRegistry([wildcard, RecordingHandler("a.specific")])
    first = _publish()
    second = _publish(event_type="another.event")

    _dispatch(handlers)

    assert sorted(wildcard.calls) == sorted([first, second])
    assert set(_deliveries(first)) == {"a.specific", "z.forward"}
    assert set(_deliveries(second)) == {"z.forward"}


def test_batch_keeps_going_after_failures() -> None:
    failing = RecordingHandler("a.failing", fail=True)
    handlers = OutboxHandlerRegistry([failing])
    event_ids = [_publish() for _ in range(3)]

    report = _dispatch(handlers)

    assert report.events_processed == 3
    assert report.deliveries_failed == 3
    assert sorted(failing.calls) == sorted(event_ids)


def test_trigger_mode_enqueues_deliveries_instead_of_running_them() -> None:
    handler = RecordingHandler("a.only")
    handlers = OutboxHandlerRegistry([handler])
    trigger = StubTrigger()
    event_id = _publish()

    report = _dispatch(handlers, trigger=trigger)

    assert report.deliveries_created == 1
    assert report.deliveries_enqueued == 1
    assert handler.calls == []
    assert len(trigger.enqueued) == 1
    assert _deliveries(event_id)["a.only"][:2] == (OutboxDeliveryStatus.PENDING, 0)


def test_user_registered_event_schedules_welcome_email(email_trigger, settings) -> None:
    handlers = build_default_handlers(settings)
    user_id = uuid4()
    event = UserRegisteredEvent(user_id=user_id, user_name="Alex", email="a@x.com", culture_name="pl-PL")
    event_id = _publish(event_type=USER_REGISTERED, payload=event, correlation_id=str(user_id))

    report = _dispatch(handlers)
    _dispatch(handlers, now=utc_now() + timedelta(days=1))

    assert report.deliveries_delivered == 1
    assert _deliveries(event_id)["email.welcome"][0] == OutboxDeliveryStatus.DELIVERED

    with session_scope() as session:
        notifications = session.scalars(select(NotificationMessage)).all()
        assert len(notifications) == 1
        assert notifications[0].correlation_id == str(user_id)
        assert notifications[0].recipient == "a@x.com"
        assert email_trigger.enqueued == [notifications[0].id]
