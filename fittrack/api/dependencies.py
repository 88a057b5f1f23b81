"""Dependency injection helpers for FastAPI routes."""

from __future__ import annotations

from fastapi import Depends
from sqlalchemy.orm import Session

from fittrack.core.database import get_session
from fittrack.core.metrics import MetricsRegistry, get_metrics_registry
from fittrack.events_engine.dispatcher import OutboxDispatcher, get_outbox_dispatcher
from fittrack.events_engine.publisher import OutboxPublisher, get_outbox_publisher
from fittrack.events_engine.store import OutboxStore
from fittrack.notifications.scheduler import EmailScheduler
from fittrack.notifications.store import NotificationStore
from fittrack.notifications.subscriptions import SubscriptionStore
from fittrack.workflow_orchestration.triggers import background_jobs_active, get_outbox_delivery_trigger


def get_db_session() -> Session:
    yield from get_session()


def get_notification_store(session: Session = Depends(get_db_session)) -> NotificationStore:
    return NotificationStore(session)


def get_email_scheduler(session: Session = Depends(get_db_session)) -> EmailScheduler:
    return EmailScheduler(session)


def get_subscription_store(session: Session = Depends(get_db_session)) -> SubscriptionStore:
    return SubscriptionStore(session)


def get_outbox_store(session: Session = Depends(get_db_session)) -> OutboxStore:
    return OutboxStore(session)


def get_publisher() -> OutboxPublisher:
    return get_outbox_publisher()


def get_dispatcher(session: Session = Depends(get_db_session)) -> OutboxDispatcher:
    trigger = get_outbox_delivery_trigger() if background_jobs_active() else None
    return get_outbox_dispatcher(session, trigger=trigger)


def get_metrics() -> MetricsRegistry:
    return get_metrics_registry()
