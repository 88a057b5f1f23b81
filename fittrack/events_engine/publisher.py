"""Producer side of the outbox: records events in the caller's transaction."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel
from sqlalchemy.orm import Session

from fittrack.core.idempotency import Conflict
from fittrack.core.metrics import DeliveryMetrics, get_outbox_metrics
from fittrack.events_engine.errors import OutboxEventNotFoundError
from fittrack.events_engine.schemas import EVENT_DEFINITIONS, OutboxEventDefinition
from fittrack.events_engine.store import OutboxStore
from fittrack.models.outbox import OutboxMessage, OutboxMessageStatus

LOGGER = logging.getLogger("fittrack.events_engine.publisher")

_publisher: Optional["OutboxPublisher"] = None


@dataclass(frozen=True)
class PublishResult:
    event: OutboxMessage
    created: bool


class OutboxPublisher:
    """Writes one outbox row per ``(event_type, correlation_id)``.

    Nothing is committed here: the event becomes visible to the dispatcher
    together with the business change that produced it.
    """

    def __init__(
        self,
        *,
        metrics: Optional[DeliveryMetrics] = None,
        definitions: Optional[Dict[str, OutboxEventDefinition]] = None,
    ) -> None:
        self._metrics = metrics or get_outbox_metrics()
        self._definitions = definitions if definitions is not None else EVENT_DEFINITIONS

    def publish(
        self,
        session: Session,
        *,
        event_type: str,
        payload: Union[BaseModel, Dict[str, Any]],
        correlation_id: str,
    ) -> PublishResult:
        store = OutboxStore(session)
        existing = store.find_message_by_correlation(event_type, correlation_id)
        if existing is not None:
            LOGGER.debug(
                "outbox_event_already_published",
                extra={"event_id": str(existing.id), "event_type": event_type},
            )
            return PublishResult(event=existing, created=False)

        definition = self._definitions.get(event_type)
        if isinstance(payload, BaseModel):
            payload_json = payload.model_dump_json()
        elif definition is not None:
            payload_json = definition.serialize(definition.validate(payload))
        else:
            payload_json = json.dumps(payload, default=str)

        message = OutboxMessage(
            event_type=event_type,
            correlation_id=correlation_id,
            schema_version=definition.schema_version if definition else "v1",
            payload_json=payload_json,
            status=OutboxMessageStatus.PENDING,
            attempts=0,
        )
        result = store.create_message(message)
        if isinstance(result, Conflict):
            winner = store.find_message_by_correlation(event_type, correlation_id)
            if winner is None:
                raise OutboxEventNotFoundError(
                    f"Outbox event for {event_type}/{correlation_id} vanished after a conflicting insert"
                )
            return PublishResult(event=winner, created=False)

        self._metrics.record_enqueued(event_type)
        LOGGER.info(
            "outbox_event_published",
            extra={
                "event_id": str(result.record.id),
                "event_type": event_type,
                "correlation_id": correlation_id,
            },
        )
        return PublishResult(event=result.record, created=True)


def get_outbox_publisher() -> OutboxPublisher:
    """Return the singleton outbox publisher for the application."""

    global _publisher
    if _publisher is None:
        _publisher = OutboxPublisher()
    return _publisher


def set_outbox_publisher(publisher: Optional[OutboxPublisher]) -> None:
    """Override the cached publisher (primarily for tests)."""

    global _publisher
    _publisher = publisher
