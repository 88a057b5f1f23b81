"""``python -m fittrack`` serves the delivery API with uvicorn."""

import uvicorn  # pragma: no cover

from fittrack.core.config import get_settings  # pragma: no cover

if __name__ == "__main__":  # pragma: no cover
    settings = get_settings()
    uvicorn.run("fittrack.main:app", host=settings.api_host, port=settings.api_port)
