from __future__ import annotations

from uuid import uuid4

from fastapi.testclient import TestClient


def _registration(user_id: str) -> dict:
    return {
        "event_type": "user.registered",
        "correlation_id": user_id,
        "payload": {"user_id": user_id, "user_name": "Alex", "email": "a@x.com", "culture_name": "en-US"},
    }


def test_event_publish_dispatch_and_detail(client: TestClient, email_trigger) -> None:
    user_id = str(uuid4())

    create_resp = client.post("/api/v1/events", json=_registration(user_id))
    assert create_resp.status_code == 201
    body = create_resp.json()
    assert body["created"] is True
    event = body["event"]
    assert event["event_type"] == "user.registered"
    assert event["status"] == "pending"
    assert event["payload"]["user_name"] == "Alex"

    # Deduplication should return the same event ID.
    duplicate_resp = client.post("/api/v1/events", json=_registration(user_id))
    assert duplicate_resp.status_code == 200
    assert duplicate_resp.json()["created"] is False
    assert duplicate_resp.json()["event"]["id"] == event["id"]

    dispatch_resp = client.post("/api/v1/events/dispatch")
    dispatch_resp.raise_for_status()
    report = dispatch_resp.json()
    assert report["events_processed"] == 1
    assert report["deliveries_delivered"] == 1

    detail_resp = client.get(f"/api/v1/events/{event['id']}")
    detail_resp.raise_for_status()
    detail = detail_resp.json()
    assert detail["status"] == "processed"
    assert [(item["handler_name"], item["status"]) for item in detail["deliveries"]] == [
        ("email.welcome", "delivered")
    ]
    assert len(email_trigger.enqueued) == 1


def test_invalid_payload_for_known_event_is_rejected(client: TestClient) -> None:
    resp = client.post(
        "/api/v1/events",
        json={"event_type": "user.registered", "correlation_id": "u-1", "payload": {"user_id": "nope"}},
    )

    assert resp.status_code == 422


def test_unknown_event_returns_404(client: TestClient) -> None:
    resp = client.get(f"/api/v1/events/{uuid4()}")

    assert resp.status_code == 404


def test_metrics_snapshot_reports_outbox_counters(client: TestClient) -> None:
    client.post("/api/v1/events", json=_registration(str(uuid4()))).raise_for_status()

    resp = client.get("/api/v1/metrics")
    resp.raise_for_status()

    assert resp.json()["outbox"]["enqueued_total"]["user.registered"] == 1


def test_health_check(client: TestClient) -> None:
    resp = client.get("/healthz")

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_readiness_reports_sweeper_mode_without_temporal(client: TestClient) -> None:
    resp = client.get("/readyz")

    assert resp.status_code == 200
    assert resp.json() == {"status": "ready", "database": "ok", "delivery_mode": "sweeper"}
