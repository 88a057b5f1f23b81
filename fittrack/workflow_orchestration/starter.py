"""Start per-work-item workflows on the configured task queue."""

from __future__ import annotations

import logging
from typing import Any, Sequence, Type

from temporalio.common import WorkflowIDReusePolicy

from fittrack.workflow_orchestration.client import get_temporal_client
from fittrack.workflow_orchestration.config import TemporalConfig, get_temporal_config

LOGGER = logging.getLogger("fittrack.workflow.starter")


def registered_workflow_name(workflow_class: Type) -> str:
    """Name a ``@workflow.defn`` class was registered under, or its class name."""

    definition = getattr(workflow_class, "__temporal_workflow_definition", None)
    return getattr(definition, "name", None) or workflow_class.__name__


class WorkflowStarter:
    def __init__(self, *, config: TemporalConfig | None = None) -> None:
        self._config = config or get_temporal_config()

    @property
    def config(self) -> TemporalConfig:
        return self._config

    async def start_workflow(
        self,
        *,
        workflow_class: Type,
        workflow_id: str,
        args: Sequence[Any],
    ) -> str:
        """Start ``workflow_class`` under ``workflow_id`` and return the run's id.

        A closed run with the same id may be started again, which is what a
        manual requeue needs. A run that is still open makes Temporal raise
        ``WorkflowAlreadyStartedError``; callers treat that as enqueued.
        """

        if not self._config.enabled:
            raise RuntimeError("Temporal service is not configured")

        client = await get_temporal_client(self._config)
        handle = await client.start_workflow(
            registered_workflow_name(workflow_class),
            args=list(args),
            id=workflow_id,
            task_queue=self._config.task_queue,
            id_reuse_policy=WorkflowIDReusePolicy.ALLOW_DUPLICATE,
        )
        LOGGER.debug("workflow_started", extra={"workflow_id": handle.id, "task_queue": self._config.task_queue})
        return handle.id
