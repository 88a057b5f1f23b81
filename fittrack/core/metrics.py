"""Delivery counters for the notification and outbox pipelines."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import RLock
from typing import Dict, Optional, Protocol, Tuple

LOGGER = logging.getLogger("fittrack.metrics")

ENQUEUED = "enqueued"
SENT = "sent"
FAILED = "failed"
RETRIED = "retried"

COUNTER_NAMES = (ENQUEUED, SENT, FAILED, RETRIED)

CounterKey = Tuple[str, str, str]


class DeliveryMetrics(Protocol):
    """Side-channel counters, tagged by work-item kind."""

    def record_enqueued(self, kind: str) -> None:
        ...

    def record_sent(self, kind: str) -> None:
        ...

    def record_failed(self, kind: str) -> None:
        ...

    def record_retried(self, kind: str) -> None:
        ...


class MetricsRegistry:
    """Thread-safe in-memory counter store keyed by ``(family, counter, kind)``."""

    def __init__(self) -> None:
        self._counters: Dict[CounterKey, int] = {}
        self._lock = RLock()

    def increment(self, family: str, counter: str, kind: str) -> None:
        key = (family, counter, kind)
        with self._lock:
            self._counters[key] = self._counters.get(key, 0) + 1
        LOGGER.debug(
            "metric_incremented",
            extra={"metric": f"{family}_{counter}_total", "kind": kind},
        )

    def value(self, family: str, counter: str, kind: str) -> int:
        with self._lock:
            return self._counters.get((family, counter, kind), 0)

    def snapshot(self) -> Dict[str, Dict[str, Dict[str, int]]]:
        """Return ``{family: {counter_total: {kind: value}}}``."""

        with self._lock:
            items = list(self._counters.items())
        result: Dict[str, Dict[str, Dict[str, int]]] = {}
        for (family, counter, kind), value in sorted(items):
            result.setdefault(family, {}).setdefault(f"{counter}_total", {})[kind] = value
        return result

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()


@dataclass
class FamilyMetrics(DeliveryMetrics):
    """Binds a registry to one work-item family (``email`` or ``outbox``)."""

    family: str
    registry: MetricsRegistry

    def record_enqueued(self, kind: str) -> None:
        self.registry.increment(self.family, ENQUEUED, kind)

    def record_sent(self, kind: str) -> None:
        self.registry.increment(self.family, SENT, kind)

    def record_failed(self, kind: str) -> None:
        self.registry.increment(self.family, FAILED, kind)

    def record_retried(self, kind: str) -> None:
        self.registry.increment(self.family, RETRIED, kind)

    def value(self, counter: str, kind: str) -> int:
        return self.registry.value(self.family, counter, kind)


_registry: Optional[MetricsRegistry] = None


def get_metrics_registry() -> MetricsRegistry:
    """Return the process-wide metrics registry."""

    global _registry
    if _registry is None:
        _registry = MetricsRegistry()
    return _registry


def get_email_metrics() -> FamilyMetrics:
    return FamilyMetrics(family="email", registry=get_metrics_registry())


def get_outbox_metrics() -> FamilyMetrics:
    return FamilyMetrics(family="outbox", registry=get_metrics_registry())
