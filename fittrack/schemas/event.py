"""Outbox event schemas."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from fittrack.models.outbox import OutboxDeliveryStatus, OutboxMessage, OutboxMessageStatus


class EventPublishRequest(BaseModel):
    """Inbound payload for recording a domain event in the outbox."""

    event_type: str = Field(..., min_length=3, max_length=128)
    correlation_id: str = Field(..., min_length=1, max_length=128)
    payload: Dict[str, Any] = Field(default_factory=dict)


class OutboxDeliveryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    handler_name: str
    status: OutboxDeliveryStatus
    attempts: int
    last_attempt_at: Optional[datetime]
    processed_at: Optional[datetime]
    next_attempt_at: Optional[datetime]
    last_error: Optional[str]


class OutboxEventResponse(BaseModel):
    """API response describing an outbox event and, when loaded, its deliveries."""

    id: UUID
    event_type: str
    correlation_id: str
    schema_version: str
    payload: Dict[str, Any]
    status: OutboxMessageStatus
    attempts: int
    processed_at: Optional[datetime]
    next_attempt_at: Optional[datetime]
    last_error: Optional[str]
    created_at: datetime
    deliveries: List[OutboxDeliveryResponse] = Field(default_factory=list)

    @classmethod
    def from_record(cls, record: OutboxMessage, *, include_deliveries: bool = False) -> "OutboxEventResponse":
        deliveries = record.deliveries if include_deliveries else []
        return cls(
            id=record.id,
            event_type=record.event_type,
            correlation_id=record.correlation_id,
            schema_version=record.schema_version,
            payload=json.loads(record.payload_json),
            status=record.status,
            attempts=record.attempts,
            processed_at=record.processed_at,
            next_attempt_at=record.next_attempt_at,
            last_error=record.last_error,
            created_at=record.created_at,
            deliveries=[OutboxDeliveryResponse.model_validate(item) for item in deliveries],
        )


class EventPublishResponse(BaseModel):
    created: bool
    event: OutboxEventResponse


class DispatchResponse(BaseModel):
    events_claimed: int
    events_processed: int
    events_failed: int
    deliveries_created: int
    deliveries_claimed: int
    deliveries_delivered: int
    deliveries_failed: int
    deliveries_enqueued: int
