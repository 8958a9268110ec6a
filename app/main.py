"""
Server entry point for Personal Finance Tracker.

Runs the HTTP API with uvicorn:

    python app/main.py

The port comes from the PORT environment variable (default 8000).
"""

import os

import structlog
import uvicorn

from finance_tracker.api import app
from finance_tracker.config import get_settings, validate_all_settings

logger = structlog.get_logger(__name__)


def main() -> None:
    settings = get_settings().app
    status = validate_all_settings()
    logger.info(
        "starting_server",
        environment=settings.app_environment,
        storage_backend=settings.storage_backend,
        configured=[name for name, ok in status.items() if ok is True],
    )

    port = int(os.getenv("PORT", 8000))
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=port,
        log_level="debug" if settings.debug_mode else "info",
    )


if __name__ == "__main__":
    main()
