"""FitTrack reliable notification and event delivery service."""

# Note: Don't import create_app at module level to avoid pulling FastAPI
# into the Temporal workflow sandbox. Import it explicitly when needed.


def __getattr__(name):
    """Lazy import to avoid loading FastAPI in Temporal workflows."""
    if name == "create_app":
        from .main import create_app
        return create_app
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
