"""FastAPI application factory for the delivery API."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from fittrack.api.error_handlers import register_exception_handlers
from fittrack.api.routers import get_api_router
from fittrack.core.config import AppSettings, get_settings
from fittrack.core.database import engine
from fittrack.core.logging import configure_logging
from fittrack.models import Base
from fittrack.workflow_orchestration.triggers import background_jobs_active

LOGGER = logging.getLogger("fittrack.api")

# Deployed environments are migrated with Alembic instead.
_AUTO_CREATE_ENVIRONMENTS = frozenset({"local", "test"})


@asynccontextmanager
async def lifespan(app: FastAPI):  # noqa: D401
    settings = get_settings()
    if settings.environment in _AUTO_CREATE_ENVIRONMENTS:
        Base.metadata.create_all(bind=engine)

    LOGGER.info(
        "delivery_api_started",
        extra={
            "environment": settings.environment,
            "background_jobs": background_jobs_active(),
            "email_delivery_mode": settings.email_delivery_mode,
        },
    )
    yield
    LOGGER.info("delivery_api_stopped")


def create_app(settings: AppSettings | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title="FitTrack Notification & Event Delivery",
        version="1.0.0",
        lifespan=lifespan,
        docs_url=None if settings.environment == "production" else "/docs",
    )
    register_exception_handlers(app)
    app.include_router(get_api_router())
    return app


app = create_app()
