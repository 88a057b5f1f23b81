"""Notification inspection and manual requeue endpoints."""

from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from fittrack.api.dependencies import get_email_scheduler, get_notification_store
from fittrack.models.notification_message import NotificationStatus
from fittrack.notifications.errors import NotificationNotFoundError
from fittrack.notifications.scheduler import EmailScheduler
from fittrack.notifications.store import NotificationStore
from fittrack.schemas.notification import NotificationResponse, RequeueResponse

router = APIRouter()


@router.get(
    "",
    response_model=List[NotificationResponse],
)
def list_notifications(
    status: Optional[NotificationStatus] = Query(default=None),
    notification_type: Optional[str] = Query(default=None, max_length=128),
    limit: int = Query(default=50, ge=1, le=200),
    store: NotificationStore = Depends(get_notification_store),
) -> List[NotificationResponse]:
    records = store.list_messages(status=status, notification_type=notification_type, limit=limit)
    return [NotificationResponse.model_validate(record) for record in records]


@router.get(
    "/dead-letters",
    response_model=List[NotificationResponse],
)
def list_dead_letters(
    limit: int = Query(default=50, ge=1, le=200),
    store: NotificationStore = Depends(get_notification_store),
) -> List[NotificationResponse]:
    records = store.list_dead_letters(limit=limit)
    return [NotificationResponse.model_validate(record) for record in records]


@router.get(
    "/{notification_id}",
    response_model=NotificationResponse,
)
def get_notification(
    notification_id: UUID,
    store: NotificationStore = Depends(get_notification_store),
) -> NotificationResponse:
    record = store.find_by_id(notification_id)
    if record is None or record.is_deleted:
        raise NotificationNotFoundError(f"Notification {notification_id} not found")
    return NotificationResponse.model_validate(record)


@router.post(
    "/{notification_id}/requeue",
    response_model=RequeueResponse,
)
def requeue_notification(
    notification_id: UUID,
    scheduler: EmailScheduler = Depends(get_email_scheduler),
) -> RequeueResponse:
    result = scheduler.requeue(notification_id)
    return RequeueResponse(outcome=result.outcome, notification_id=result.notification_id)
