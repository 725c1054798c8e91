"""
Logging configuration module using Loguru.
"""

import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from loguru import logger

from .helpers import get_logger, log_error_with_context


class InterceptHandler(logging.Handler):
    """
    Intercept standard logging messages toward Loguru.
    This allows us to capture logs from libraries using standard logging.
    """

    def emit(self, record):
        # Get corresponding Loguru level if it exists
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where the logged message originated
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def _resolve_log_dir(data_dir: Optional[str]) -> Path:
    try:
        log_dir = Path(data_dir or "data") / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)
    except (PermissionError, FileNotFoundError):
        log_dir = Path.home() / ".local" / "share" / "pipeliner-asana" / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)
        logger.warning(f"Cannot write to data_dir/logs, using {log_dir} instead")
    return log_dir


def setup_logging(
    log_level: str = "INFO",
    json_logs: bool = False,
    log_to_file: bool = False,
    data_dir: Optional[str] = None,
):
    """
    Set up Loguru logging for the application.

    Args:
        log_level: Minimum log level to display
        json_logs: Whether to format logs as JSON
        log_to_file: Whether to save logs to file
        data_dir: Directory under which the logs/ folder is created
    """
    # Intercept standard logging
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    handlers: List[Dict[str, Any]] = [
        # Console handler
        {
            "sink": sys.stderr,
            "level": log_level,
            "colorize": not json_logs,
            "backtrace": True,
            "diagnose": True,
            "format": (
                "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
                "<level>{level: <8}</level> | "
                "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
                "<magenta>{extra[delivery_id]}</magenta> | "
                "<level>{message}</level>"
            ),
            "serialize": json_logs,
        }
    ]

    if log_to_file:
        log_file = _resolve_log_dir(data_dir) / "pipeliner-asana.log"

        handlers.append(
            {
                "sink": str(log_file),
                "level": log_level,
                "rotation": "10 MB",
                "retention": "1 week",
                "compression": "zip",
                "backtrace": True,
                "diagnose": True,
                "format": (
                    "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
                    "{level: <8} | "
                    "{name}:{function}:{line} | "
                    "{extra[delivery_id]} | "
                    "{message}"
                ),
                "serialize": json_logs,
            }
        )

    # delivery_id is filled in per webhook delivery via logger.contextualize()
    logger.configure(handlers=handlers, extra={"delivery_id": "-"})

    if log_to_file:
        logger.info(f"Logging to file: {handlers[-1]['sink']}")

    for name in [
        "sentry_sdk",
        "sentry_sdk.errors",
        "sentry_sdk.integrations",
        "uvicorn",
        "uvicorn.error",
        "fastapi",
    ]:
        logging.getLogger(name).handlers = [InterceptHandler()]

    for name, level in [
        ("uvicorn.access", "INFO"),
        ("uvicorn.error", "INFO"),
        ("uvicorn.asgi", "INFO"),
        ("httpcore", "WARNING"),
        ("httpx", "WARNING"),
    ]:
        logging.getLogger(name).setLevel(getattr(logging, level))

    return logger


from .middleware import setup_fastapi_logging  # noqa: E402

__all__ = [
    "setup_logging",
    "setup_fastapi_logging",
    "InterceptHandler",
    "get_logger",
    "log_error_with_context",
]
