"""Outbox event publishing, inspection and dispatch endpoints."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from fittrack.api.dependencies import get_db_session, get_dispatcher, get_outbox_store, get_publisher
from fittrack.events_engine.dispatcher import OutboxDispatcher
from fittrack.events_engine.errors import OutboxEventNotFoundError
from fittrack.events_engine.publisher import OutboxPublisher
from fittrack.events_engine.store import OutboxStore
from fittrack.schemas.event import (
    DispatchResponse,
    EventPublishRequest,
    EventPublishResponse,
    OutboxEventResponse,
)

router = APIRouter()


@router.post(
    "",
    response_model=EventPublishResponse,
    status_code=status.HTTP_201_CREATED,
)
def publish_event(
    payload: EventPublishRequest,
    response: Response,
    session: Session = Depends(get_db_session),
    publisher: OutboxPublisher = Depends(get_publisher),
) -> EventPublishResponse:
    result = publisher.publish(
        session,
        event_type=payload.event_type,
        payload=payload.payload,
        correlation_id=payload.correlation_id,
    )
    session.flush()
    if not result.created:
        response.status_code = status.HTTP_200_OK
    return EventPublishResponse(created=result.created, event=OutboxEventResponse.from_record(result.event))


@router.post(
    "/dispatch",
    response_model=DispatchResponse,
)
def dispatch_events(dispatcher: OutboxDispatcher = Depends(get_dispatcher)) -> DispatchResponse:
    report = dispatcher.dispatch_pending()
    return DispatchResponse(**report.as_dict())


@router.get(
    "/{event_id}",
    response_model=OutboxEventResponse,
)
def get_event(
    event_id: UUID,
    store: OutboxStore = Depends(get_outbox_store),
) -> OutboxEventResponse:
    record = store.find_message_with_deliveries(event_id)
    if record is None or record.is_deleted:
        raise OutboxEventNotFoundError(f"Outbox event {event_id} not found")
    return OutboxEventResponse.from_record(record, include_deliveries=True)
