"""Delivery counter snapshot."""

from __future__ import annotations

from typing import Dict

from fastapi import APIRouter, Depends

from fittrack.api.dependencies import get_metrics
from fittrack.core.metrics import MetricsRegistry

router = APIRouter()


@router.get("", summary="Delivery counters by family, counter and kind")
def read_metrics(registry: MetricsRegistry = Depends(get_metrics)) -> Dict[str, Dict[str, Dict[str, int]]]:
    return registry.snapshot()
