"""Helpers for turning exceptions into audit-safe strings."""

from __future__ import annotations

MAX_ERROR_LENGTH = 400


def sanitize_error(exc: BaseException, *, max_length: int = MAX_ERROR_LENGTH) -> str:
    """Reduce an exception to a single bounded line: ``"{Type}: {message}"``."""

    text = type(exc).__name__
    message = str(exc)
    if message.strip():
        text = f"{text}: {message}"

    text = text.replace("\r", " ").replace("\n", " ")
    return text[:max_length]
