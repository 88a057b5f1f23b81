"""Temporal connection settings and per-job retry options."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict

from fittrack.core.config import AppSettings, get_settings


@dataclass(frozen=True)
class TemporalConfig:
    host: str | None
    namespace: str | None
    api_key: str | None
    task_queue: str
    tls_enabled: bool

    @property
    def enabled(self) -> bool:
        """All three of host, namespace and API key are required to connect."""

        return all((self.host, self.namespace, self.api_key))


@dataclass(frozen=True)
class JobOptions:
    """Activity retry knobs passed to every work-item workflow as a plain dict.

    Workflows receive them as an argument so a change to settings applies to
    new runs without touching workflow code.
    """

    max_attempts: int
    initial_interval_seconds: float
    timeout_seconds: int

    def as_workflow_arg(self) -> Dict[str, Any]:
        return asdict(self)


def get_temporal_config(settings: AppSettings | None = None) -> TemporalConfig:
    settings = settings or get_settings()
    return TemporalConfig(
        host=settings.temporal_host,
        namespace=settings.temporal_namespace,
        api_key=settings.temporal_api_key,
        task_queue=settings.temporal_task_queue,
        tls_enabled=settings.temporal_tls_enabled,
    )


def get_job_options(settings: AppSettings | None = None) -> JobOptions:
    settings = settings or get_settings()
    return JobOptions(
        max_attempts=settings.job_max_attempts,
        initial_interval_seconds=settings.retry_base_delay_seconds,
        timeout_seconds=settings.job_activity_timeout_seconds,
    )
