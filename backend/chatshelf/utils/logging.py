"""Unified logging configuration for the chatshelf backend.

Every module logs through the ``chatshelf`` parent logger, which owns a
formatted console handler. ``setup_logging`` adds a rotating file handler
under ``{data}/logs/`` once the application starts.
"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from chatshelf.settings import settings

LOG_FORMAT = "[%(asctime)s.%(msecs)03d][%(levelname)s][%(filename)s:%(lineno)d]: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

ROOT_LOGGER_NAME = "chatshelf"


def _ensure_app_logger_configured() -> None:
    """Attach the console handler to the parent logger exactly once."""
    app_logger = logging.getLogger(ROOT_LOGGER_NAME)

    has_formatted_handler = any(
        isinstance(h, logging.StreamHandler)
        and not isinstance(h, RotatingFileHandler)
        and h.formatter is not None
        and getattr(h.formatter, "_fmt", None) == LOG_FORMAT
        for h in app_logger.handlers
    )
    if has_formatted_handler:
        return

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    app_logger.addHandler(console_handler)

    app_logger.setLevel(logging.DEBUG if settings.debug else logging.INFO)

    # Keep records out of the root logger (uvicorn configures its own)
    app_logger.propagate = False


def setup_logging(log_name: str = "chatshelf") -> logging.Logger:
    """Configure console and rotating file output.

    Log file path: {data}/logs/{log_name}.log

    Args:
        log_name: Name of the log file (without .log extension)

    Returns:
        The parent application logger
    """
    _ensure_app_logger_configured()
    app_logger = logging.getLogger(ROOT_LOGGER_NAME)

    log_dir = _get_logs_root()
    if log_dir is None:
        app_logger.warning("Log directory unavailable, logging to console only")
        return app_logger

    log_file_path = str(log_dir / f"{log_name}.log")
    if not any(
        isinstance(h, RotatingFileHandler) and h.baseFilename == log_file_path
        for h in app_logger.handlers
    ):
        file_handler = RotatingFileHandler(
            log_file_path,
            maxBytes=settings.log_max_bytes,
            backupCount=settings.log_backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
        app_logger.addHandler(file_handler)
        app_logger.info(f"File logging enabled: {log_file_path}")

    return app_logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the chatshelf namespace.

    Args:
        name: Logger name, typically __name__ of the calling module
    """
    _ensure_app_logger_configured()

    if name != ROOT_LOGGER_NAME and not name.startswith(f"{ROOT_LOGGER_NAME}."):
        name = f"{ROOT_LOGGER_NAME}.{name}"

    return logging.getLogger(name)


def _get_logs_root() -> Path | None:
    path = settings.get_logs_root()
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError:
        return None
    return path
