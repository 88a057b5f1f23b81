"""Router registrations."""

from fastapi import APIRouter

from fittrack.api.routers import events, health, metrics, notifications, subscriptions


def get_api_router() -> APIRouter:
    router = APIRouter()
    router.include_router(health.router, tags=["health"])
    router.include_router(notifications.router, prefix="/api/v1/notifications", tags=["notifications"])
    router.include_router(subscriptions.router, prefix="/api/v1/subscriptions", tags=["subscriptions"])
    router.include_router(events.router, prefix="/api/v1/events", tags=["events"])
    router.include_router(metrics.router, prefix="/api/v1/metrics", tags=["metrics"])
    return router
