#!/usr/bin/env python
"""CLI utility to inspect dead-lettered notifications and requeue them."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional
from uuid import UUID

from fittrack.core.database import session_scope
from fittrack.models.notification_message import NotificationStatus
from fittrack.notifications.errors import NotificationError
from fittrack.notifications.scheduler import EmailScheduler
from fittrack.notifications.store import NotificationStore


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="List or requeue failed email notifications.")
    parser.add_argument("ids", nargs="*", type=UUID, help="Notification ids to requeue.")
    parser.add_argument(
        "--all-retryable",
        action="store_true",
        help="Requeue every failed notification that still has attempts left.",
    )
    parser.add_argument("--limit", type=int, default=100, help="Maximum rows to list or requeue.")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging.")
    return parser.parse_args(argv)


def _list_dead_letters(limit: int) -> None:
    with session_scope() as session:
        for message in NotificationStore(session).list_dead_letters(limit=limit):
            logging.info(
                "%s %s attempts=%s recipient=%s error=%s",
                message.id,
                message.notification_type,
                message.attempts,
                message.recipient,
                message.last_error,
            )


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not args.ids and not args.all_retryable:
        _list_dead_letters(args.limit)
        return 0

    ids = list(args.ids)
    if args.all_retryable:
        with session_scope() as session:
            store = NotificationStore(session)
            ids.extend(
                message.id
                for message in store.list_messages(status=NotificationStatus.FAILED, limit=args.limit)
                if message.attempts < store.max_attempts
            )

    failures = 0
    for notification_id in ids:
        try:
            with session_scope() as session:
                result = EmailScheduler(session).requeue(notification_id)
        except NotificationError as exc:
            logging.error("Requeue of %s refused: %s", notification_id, exc)
            failures += 1
            continue
        logging.info("Notification %s %s", notification_id, result.outcome.value)

    logging.info("Requeued %s of %s notifications", len(ids) - failures, len(ids))
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
