from __future__ import annotations

from uuid import uuid4

from fastapi.testclient import TestClient

from fittrack.core.database import session_scope
from fittrack.models.notification_message import NotificationMessage, NotificationStatus
from fittrack.notifications.payloads import WelcomeEmailPayload
from fittrack.notifications.scheduler import EmailScheduler


def _schedule(email: str = "a@x.com"):
    payload = WelcomeEmailPayload(user_id=uuid4(), user_name="Alex", recipient_email=email)
    with session_scope() as session:
        return EmailScheduler(session).schedule(payload).notification_id


def _fail(notification_id, attempts: int, next_attempt_at=None) -> None:
    with session_scope() as session:
        row = session.get(NotificationMessage, notification_id)
        row.status = NotificationStatus.FAILED
        row.attempts = attempts
        row.last_error = "ConnectionError: relay down"
        row.next_attempt_at = next_attempt_at


def test_list_and_get_notifications(client: TestClient) -> None:
    first = _schedule("a@x.com")
    second = _schedule("b@x.com")
    _fail(second, attempts=1)

    list_resp = client.get("/api/v1/notifications")
    list_resp.raise_for_status()
    assert {item["id"] for item in list_resp.json()} == {str(first), str(second)}

    failed_resp = client.get("/api/v1/notifications", params={"status": "failed"})
    failed_resp.raise_for_status()
    assert [item["id"] for item in failed_resp.json()] == [str(second)]

    detail_resp = client.get(f"/api/v1/notifications/{first}")
    detail_resp.raise_for_status()
    detail = detail_resp.json()
    assert detail["status"] == "pending"
    assert detail["recipient"] == "a@x.com"
    assert detail["notification_type"] == "user.registration.welcome"


def test_dead_letters_and_requeue(client: TestClient, email_trigger, settings) -> None:
    retryable = _schedule("a@x.com")
    exhausted = _schedule("b@x.com")
    _fail(retryable, attempts=1)
    _fail(exhausted, attempts=settings.max_manual_requeue_attempts)
    email_trigger.enqueued.clear()

    dead_resp = client.get("/api/v1/notifications/dead-letters")
    dead_resp.raise_for_status()
    assert {item["id"] for item in dead_resp.json()} == {str(retryable), str(exhausted)}

    requeue_resp = client.post(f"/api/v1/notifications/{retryable}/requeue")
    requeue_resp.raise_for_status()
    assert requeue_resp.json() == {"outcome": "requeued", "notification_id": str(retryable)}
    assert email_trigger.enqueued == [retryable]

    refused_resp = client.post(f"/api/v1/notifications/{exhausted}/requeue")
    assert refused_resp.status_code == 409


def test_requeue_rejects_rows_that_have_not_failed(client: TestClient) -> None:
    pending = _schedule()

    resp = client.post(f"/api/v1/notifications/{pending}/requeue")

    assert resp.status_code == 409


def test_missing_notification_returns_404(client: TestClient) -> None:
    assert client.get(f"/api/v1/notifications/{uuid4()}").status_code == 404
    assert client.post(f"/api/v1/notifications/{uuid4()}/requeue").status_code == 404


def test_list_limit_is_bounded(client: TestClient) -> None:
    assert client.get("/api/v1/notifications", params={"limit": 0}).status_code == 422
    assert client.get("/api/v1/notifications", params={"limit": 500}).status_code == 422
