"""``fittrack-worker``: hosts the email and outbox-delivery workflows."""

from __future__ import annotations

import asyncio
import logging
import sys

from fittrack.core.config import get_settings
from fittrack.core.logging import configure_logging
from fittrack.workflow_orchestration.worker import run_worker

LOGGER = logging.getLogger("fittrack.workers.temporal")


def main() -> None:
    configure_logging(get_settings())

    try:
        asyncio.run(run_worker())
    except KeyboardInterrupt:
        LOGGER.info("temporal_worker_stopped")
    except RuntimeError as exc:
        # Raised before polling starts, e.g. missing FT_TEMPORAL_* settings.
        LOGGER.error("temporal_worker_not_started", extra={"reason": str(exc)})
        sys.exit(2)
    except Exception:  # noqa: BLE001
        LOGGER.exception("temporal_worker_failed")
        sys.exit(1)


if __name__ == "__main__":
    main()
