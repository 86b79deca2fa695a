"""
Server startup module for the face-search service.

Loads configuration, builds the service, loads the models before the socket
is opened and then hands the FastAPI app to uvicorn.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import colorlog
import uvicorn

from .api import create_app
from .config import resolve_config
from .exceptions import ConfigError, ModelLoadingError, ResourceNotFoundError, StoreError
from .general_face.face_service import FaceSearchService

logger = logging.getLogger(__name__)

_NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpx", "asyncio")


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure the root logger for the application.

    This function clears any pre-existing handlers, sets the requested log
    level, and attaches a single colorized stream handler for console output.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = colorlog.StreamHandler()
    formatter = colorlog.ColoredFormatter(
        "%(log_color)s%(levelname)-8s%(cyan)s[%(name)s]%(reset)s %(message)s",
        reset=True,
        log_colors={
            "DEBUG": "cyan",
            "INFO": "green",
            "WARNING": "yellow",
            "ERROR": "red",
            "CRITICAL": "red,bg_white",
        },
    )
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    if logging.getLevelName(log_level) != logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


def serve(
    config_path: str | Path | None = None,
    host_override: str | None = None,
    port_override: int | None = None,
) -> None:
    """
    Initialize and start the HTTP server.

    Args:
        config_path: YAML configuration file; falls back to $FACE_SEARCH_CONFIG
            and then to built-in defaults.
        host_override: Bind address overriding the config file.
        port_override: Port overriding the config file.
    """
    try:
        config = resolve_config(config_path)
        service = FaceSearchService.from_config(config)

        logger.info("Loading face models...")
        service.initialize()

        host = host_override or config.server.host
        port = port_override or config.server.port
        app = create_app(service)

        logger.info(f"🚀 face-search listening on http://{host}:{port}")
        uvicorn.run(app, host=host, port=port, log_config=None)
        logger.info("Server shutdown complete.")

    except (
        ConfigError,
        ResourceNotFoundError,
        ModelLoadingError,
        StoreError,
        ValueError,
    ) as e:
        logger.error(f"Service startup failed: {e}")
        sys.exit(1)
