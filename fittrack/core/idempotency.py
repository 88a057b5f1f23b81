"""Insert-or-conflict idiom for rows guarded by a unique correlation key."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Generic, Tuple, TypeVar, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

LOGGER = logging.getLogger("fittrack.core.idempotency")

T = TypeVar("T")

CorrelationKey = Tuple[object, ...]


@dataclass(frozen=True)
class Created(Generic[T]):
    """The row was inserted by this caller."""

    record: T


@dataclass(frozen=True)
class Conflict:
    """Another writer already owns ``key``; re-read it by key."""

    key: CorrelationKey


CreateResult = Union[Created[T], Conflict]


def insert_or_conflict(session: Session, record: T, key: CorrelationKey) -> CreateResult[T]:
    """Insert ``record`` inside a SAVEPOINT and report a unique violation as ``Conflict``.

    The surrounding transaction stays usable either way, so the caller can
    look the winning row up in the same session.
    """

    try:
        with session.begin_nested():
            session.add(record)
    except IntegrityError:
        LOGGER.debug("insert_conflict", extra={"correlation_key": [str(part) for part in key]})
        return Conflict(key=key)
    return Created(record=record)
