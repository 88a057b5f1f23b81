"""Temporal client factory."""

from __future__ import annotations

import logging
import os
import socket
from typing import Any, Dict

from temporalio.client import Client

from fittrack.core.config import get_settings
from fittrack.workflow_orchestration.config import TemporalConfig, get_temporal_config

LOGGER = logging.getLogger("fittrack.workflow.client")


def client_identity() -> str:
    """Identity reported to Temporal, e.g. ``fittrack-delivery-1234@host``."""

    return f"{get_settings().service_name}-{os.getpid()}@{socket.gethostname()}"


def connect_options(config: TemporalConfig) -> Dict[str, Any]:
    return {
        "namespace": config.namespace,
        "api_key": config.api_key,
        "tls": config.tls_enabled,
        "identity": client_identity(),
    }


async def get_temporal_client(config: TemporalConfig | None = None) -> Client:
    """Connect to Temporal; raises ``RuntimeError`` when it is not configured.

    Triggers call this from ``asyncio.run`` on every enqueue, so a client is
    never shared across event loops.
    """

    config = config or get_temporal_config()
    if not config.enabled:
        raise RuntimeError("Temporal service is not configured")

    LOGGER.debug("temporal_client_connecting", extra={"host": config.host, "namespace": config.namespace})
    return await Client.connect(config.host, **connect_options(config))
