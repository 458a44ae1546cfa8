# ============================================================
# STRUCTURED LOGGING CONFIGURATION
# ============================================================

import inspect
import logging
import sys
from pathlib import Path
from typing import Optional

from loguru import logger


class InterceptHandler(logging.Handler):
    """Intercept standard logging and redirect to loguru"""

    def emit(self, record: logging.LogRecord):
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find the caller outside the logging module so loguru reports the right origin
        frame, depth = inspect.currentframe(), 0
        while frame and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def setup_logger(
    log_level: Optional[str] = None,
    log_file: Optional[str] = None,
    json_format: Optional[bool] = None,
    rotation: str = "10 MB",
    retention: str = "7 days",
    enqueue: bool = True
) -> logger:
    """
    Configure structured logging with loguru

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Path to log file (None for console only)
        json_format: Whether to use JSON formatting
        rotation: Log file rotation size
        retention: Log file retention period
        enqueue: Route messages through loguru's background queue

    Unset arguments fall back to the PROMISE_POLICE_* environment settings.

    Returns:
        Configured logger instance
    """
    from promise_police.config.settings import settings

    log_level = log_level or settings.LOG_LEVEL
    log_file = log_file or settings.LOG_FILE
    if json_format is None:
        json_format = settings.JSON_LOGS

    # Remove default handler
    logger.remove()

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)

    # JSON output uses loguru's own record serialization
    console_format = (
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
        "<level>{message}</level>"
    )

    logger.add(
        sys.stderr,
        level=log_level,
        format=console_format,
        colorize=not json_format,
        serialize=json_format,
        enqueue=enqueue,
        backtrace=True,
        diagnose=False
    )

    if log_file:
        file_format = (
            "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | "
            "{name}:{function}:{line} | {message}"
        )

        logger.add(
            log_file,
            level=log_level,
            format=file_format,
            rotation=rotation,
            retention=retention,
            compression="zip",
            serialize=json_format,
            enqueue=enqueue,
            backtrace=True,
            diagnose=False
        )

    # asyncio reports callback exceptions through the stdlib "asyncio" logger
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    return logger


def get_logger(name: Optional[str] = None):
    """Get logger instance with optional name binding"""
    if name:
        return logger.bind(name=name)
    return logger
