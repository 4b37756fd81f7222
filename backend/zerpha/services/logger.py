"""Logging configuration shared by the services and scripts."""
import logging
from typing import Optional

from zerpha.config import get_settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

NOISY_LOGGERS = (
    "httpx",
    "httpcore",
    "openai",
    "anthropic",
    "google_genai",
    "sqlalchemy.engine",
    "asyncio",
)


def configure_logging(level: Optional[str] = None) -> None:
    """Install a single stream handler on the root logger.

    Safe to call more than once; an existing handler set by this function is
    replaced rather than duplicated.
    """
    settings = get_settings()
    level_name = str(level or settings.log_level or "INFO").upper()
    app_level = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_zerpha_handler", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._zerpha_handler = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    root.setLevel(app_level)

    noisy_level = logging.DEBUG if settings.debug else logging.WARNING
    for logger_name in NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(noisy_level)
