import logging
import os
import sys
from contextvars import ContextVar
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from loguru import logger

from gatekeeper.core.config import Environment, Settings, settings

if TYPE_CHECKING:
    from loguru import Record

# Set by LoggingMiddleware for the duration of a request
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

LOG_DIR = Path("logs")
LOG_FILE = LOG_DIR / "gatekeeper.log"

LOG_LEVELS = {
    50: "CRITICAL",
    40: "ERROR",
    30: "WARNING",
    20: "INFO",
    10: "DEBUG",
    0: "NOTSET",
}

UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")

# Records logged outside a request (startup, shutdown) carry this ID
NO_REQUEST_ID = "-"

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<magenta>PID:{extra[process_id]}</magenta> | "
    "<yellow>ReqID:{extra[request_id]}</yellow> | "
    "<cyan>{name}:{function}:{line}</cyan> | "
    "<level>{message}</level>"
)

FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss!UTC} | {level: <8} | PID:{extra[process_id]} | "
    "ReqID:{extra[request_id]} | {name}:{function}:{line} | {message}"
)


def correlation_filter(record: "Record") -> bool:
    """
    Stamp every record with the current request ID and the worker PID.

    Never filters anything out.
    """
    record["extra"]["request_id"] = request_id_var.get() or NO_REQUEST_ID
    record["extra"]["process_id"] = os.getpid()

    return True


def resolve_level(app_settings: Settings) -> str:
    """DEV always logs at DEBUG; other environments use ``log_level``."""
    if app_settings.current_environment == Environment.DEV:
        return "DEBUG"

    return LOG_LEVELS.get(app_settings.log_level, "INFO")


class InterceptHandler(logging.Handler):
    """
    Forwards standard library records (uvicorn, starlette) to Loguru.
    """

    def emit(self, record: logging.LogRecord):
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Skip logging's own frames so Loguru reports the real caller
        frame = logging.currentframe()
        depth = 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logger(app_settings: Settings = settings, log_to_file: bool = True):
    """
    Replace Loguru's default sink with the service sinks.

    The console sink is always installed. The file sink rotates at 10 MB,
    keeps three months of gzip archives and is shared by all workers
    (``enqueue=True``). Variable values are left out of tracebacks in PRD.

    Called from the application lifespan.
    """
    logger.remove()

    level = resolve_level(app_settings)

    logger.add(
        sys.stdout,
        format=CONSOLE_FORMAT,
        level=level,
        colorize=True,
        enqueue=True,
        filter=correlation_filter,
    )

    if log_to_file:
        LOG_DIR.mkdir(exist_ok=True)
        logger.add(
            LOG_FILE,
            format=FILE_FORMAT,
            level=level,
            rotation="10 MB",
            retention="3 months",
            compression="gz",
            enqueue=True,
            filter=correlation_filter,
            backtrace=True,
            diagnose=app_settings.current_environment != Environment.PRD,
        )

    logger.info(
        f"Logger initialized | Environment: {app_settings.current_environment.value} | "
        f"Level: {level} | File: {LOG_FILE if log_to_file else 'disabled'}"
    )


def configure_uvicorn_logging(names: tuple[str, ...] = UVICORN_LOGGERS):
    """
    Route the root logger and uvicorn's loggers through InterceptHandler.

    Call after ``setup_logger``.
    """
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    for name in names:
        std_logger = logging.getLogger(name)
        std_logger.handlers = [InterceptHandler()]
        std_logger.propagate = False

    logger.debug(f"Standard logging routed to Loguru for: {', '.join(names)}")


def shutdown_logger():
    """Wait for queued records to be written. Called on application shutdown."""
    logger.info("Shutting down logger...")
    logger.complete()
