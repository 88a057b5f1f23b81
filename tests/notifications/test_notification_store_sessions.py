"""Claims and idempotent inserts across separate connections to one SQLite file."""

from __future__ import annotations

from uuid import uuid4

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import sessionmaker

from fittrack.core.database import build_engine
from fittrack.core.idempotency import Conflict, Created
from fittrack.models import NotificationMessage
from fittrack.models.base import Base
from fittrack.models.notification_message import NotificationChannel, NotificationStatus
from fittrack.notifications.payloads import WELCOME_NOTIFICATION, WelcomeEmailPayload
from fittrack.notifications.scheduler import EmailScheduler, ScheduleOutcome
from fittrack.notifications.store import NotificationStore


@pytest.fixture()
def file_sessions(tmp_path, settings):
    file_settings = settings.model_copy(update={"database_url": f"sqlite:///{tmp_path / 'fittrack.db'}"})
    engine = build_engine(file_settings)
    Base.metadata.create_all(engine)
    # Keep loaded attributes after commit so a session can hold a stale view.
    factory = sessionmaker(bind=engine, future=True, expire_on_commit=False)
    yield factory
    engine.dispose()


def _message(correlation_id: str) -> NotificationMessage:
    return NotificationMessage(
        channel=NotificationChannel.EMAIL,
        notification_type=WELCOME_NOTIFICATION,
        correlation_id=correlation_id,
        recipient="a@x.com",
        payload_json="{}",
        status=NotificationStatus.PENDING,
        attempts=0,
    )


def _count(factory) -> int:
    with factory() as session:
        return session.scalar(select(func.count()).select_from(NotificationMessage))


def test_claim_is_decided_by_the_database_not_the_loaded_row(file_sessions) -> None:
    with file_sessions() as session:
        message = _message(str(uuid4()))
        session.add(message)
        session.commit()
        notification_id = message.id

    with file_sessions() as worker_a, file_sessions() as worker_b:
        seen_by_b = worker_b.get(NotificationMessage, notification_id)
        assert seen_by_b.status == NotificationStatus.PENDING
        # End B's read transaction so A can take the write lock.
        worker_b.commit()

        assert NotificationStore(worker_a).try_claim(notification_id) is True
        worker_a.commit()

        assert seen_by_b.status == NotificationStatus.PENDING
        assert NotificationStore(worker_b).try_claim(notification_id) is False
        worker_b.commit()

    with file_sessions() as session:
        stored = session.get(NotificationMessage, notification_id)
        assert stored.status == NotificationStatus.PROCESSING
        assert stored.attempts == 1


def test_second_insert_with_same_key_conflicts_in_another_connection(file_sessions) -> None:
    correlation_id = str(uuid4())

    with file_sessions() as writer_a:
        first = NotificationStore(writer_a).create(_message(correlation_id))
        assert isinstance(first, Created)
        writer_a.commit()
        winner_id = first.record.id

    with file_sessions() as writer_b:
        store = NotificationStore(writer_b)
        second = store.create(_message(correlation_id))

        assert isinstance(second, Conflict)
        # The savepoint rolled back only the failed INSERT.
        winner = store.find_by_correlation(WELCOME_NOTIFICATION, correlation_id, "a@x.com")
        assert winner is not None
        assert winner.id == winner_id
        writer_b.commit()

    assert _count(file_sessions) == 1


class StaleFirstLookupStore(NotificationStore):
    """Misses the winner on the first lookup, as a caller that read before it committed."""

    def __init__(self, session, **kwargs) -> None:  # noqa: ANN001
        super().__init__(session, **kwargs)
        self._lookups = 0

    def find_by_correlation(self, *args, **kwargs):  # noqa: ANN002, ANN003
        self._lookups += 1
        if self._lookups == 1:
            return None
        return super().find_by_correlation(*args, **kwargs)


def test_racing_schedulers_share_one_row(file_sessions, email_trigger, settings) -> None:
    payload = WelcomeEmailPayload(user_id=uuid4(), user_name="Alex", recipient_email="a@x.com")

    with file_sessions() as session_a:
        winner = EmailScheduler(session_a, trigger=email_trigger, settings=settings).schedule(payload)

    with file_sessions() as session_b:
        store = StaleFirstLookupStore(session_b, settings=settings)
        loser = EmailScheduler(session_b, store=store, trigger=email_trigger, settings=settings).schedule(payload)

    assert winner.outcome == ScheduleOutcome.CREATED
    assert loser.outcome == ScheduleOutcome.CONCURRENT
    assert loser.notification_id == winner.notification_id
    assert _count(file_sessions) == 1
