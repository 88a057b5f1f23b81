"""Temporal job runner for notification and outbox delivery work items."""

# Note: Don't import triggers at module level to avoid pulling SQLAlchemy
# models into the Temporal workflow sandbox. Import them explicitly when needed.


def __getattr__(name):
    """Lazy import to avoid loading SQLAlchemy in Temporal workflows."""
    if name in ("get_email_trigger", "get_outbox_delivery_trigger"):
        from fittrack.workflow_orchestration import triggers
        return getattr(triggers, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["get_email_trigger", "get_outbox_delivery_trigger"]
