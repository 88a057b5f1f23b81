"""Exception handlers for the FastAPI app."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from fittrack.events_engine.errors import OutboxEventNotFoundError, OutboxPayloadError
from fittrack.notifications.errors import (
    NotificationNotFoundError,
    NotificationPayloadError,
    RequeueNotAllowedError,
    UnknownNotificationTypeError,
)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(NotificationNotFoundError)
    async def notification_not_found_handler(request: Request, exc: NotificationNotFoundError) -> JSONResponse:  # noqa: WPS430
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(OutboxEventNotFoundError)
    async def event_not_found_handler(request: Request, exc: OutboxEventNotFoundError) -> JSONResponse:  # noqa: WPS430
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(RequeueNotAllowedError)
    async def requeue_not_allowed_handler(request: Request, exc: RequeueNotAllowedError) -> JSONResponse:  # noqa: WPS430
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    @app.exception_handler(UnknownNotificationTypeError)
    async def unknown_type_handler(request: Request, exc: UnknownNotificationTypeError) -> JSONResponse:  # noqa: WPS430
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(NotificationPayloadError)
    async def notification_payload_handler(request: Request, exc: NotificationPayloadError) -> JSONResponse:  # noqa: WPS430
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    @app.exception_handler(OutboxPayloadError)
    async def outbox_payload_handler(request: Request, exc: OutboxPayloadError) -> JSONResponse:  # noqa: WPS430
        return JSONResponse(status_code=422, content={"detail": str(exc)})
