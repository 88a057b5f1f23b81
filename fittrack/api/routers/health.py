"""Liveness and readiness checks."""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from fittrack.api.dependencies import get_db_session
from fittrack.workflow_orchestration.triggers import background_jobs_active

router = APIRouter()


@router.get("/healthz", summary="Liveness check")
def health_check(session: Session = Depends(get_db_session)) -> dict[str, str]:
    session.execute(text("SELECT 1"))
    return {"status": "ok"}


@router.get("/readyz", summary="Readiness check with delivery mode")
def readiness_check(session: Session = Depends(get_db_session)) -> Dict[str, Any]:
    session.execute(text("SELECT 1"))
    # Without Temporal, only the sweeper drains pending work.
    return {
        "status": "ready",
        "database": "ok",
        "delivery_mode": "temporal" if background_jobs_active() else "sweeper",
    }
