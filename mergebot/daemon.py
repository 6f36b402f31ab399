"""Run the webhook receiver under uvicorn.

    serve(settings) — configure logging, build the app, block in uvicorn.run()

Queue state lives in the process; stopping the server drops every queue.
"""

import logging

import uvicorn

from mergebot.config import Settings
from mergebot.logging_setup import configure_logging
from mergebot.web import create_app

logger = logging.getLogger(__name__)


def serve(settings: Settings) -> None:
    """Start the server in the current process (blocking)."""
    configure_logging(settings.log_level, log_file=settings.log_file)
    app = create_app(settings)

    logger.info(
        "Starting mergebot | host=%s | port=%d | path=%s",
        settings.host, settings.port, settings.webhook_path,
    )
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        timeout_graceful_shutdown=15,
    )
    logger.info("mergebot stopped")
