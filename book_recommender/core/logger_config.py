import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from loguru import logger

from book_recommender.core.config import settings
from book_recommender.core.exceptions import BookRecommenderException, CommunicationFailureException

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"


class InterceptHandler(logging.Handler):
    """Routes records from the standard ``logging`` module (uvicorn, SQLAlchemy) into loguru."""

    def emit(self, record):
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Walk back to the frame that actually issued the log call
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(log_file: str | None = None, level: str | None = None) -> None:
    """
    Configure loguru sinks and intercept standard logging.

    Args:
        log_file: Path of the rotating log file, ``settings.LOG_FILE`` by default
        level: Minimum level for the file sink, ``settings.LOG_LEVEL`` by default
    """
    log_path = Path(log_file or settings.LOG_FILE)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    logger.remove()
    logger.add(
        log_path,
        level=level or settings.LOG_LEVEL,
        rotation=settings.LOG_ROTATION,
        retention=settings.LOG_RETENTION,
        compression="zip",
        enqueue=True,
        backtrace=True,
        diagnose=settings.DEBUG,
        format=FILE_FORMAT,
    )
    logger.add(
        sys.stdout,
        level="DEBUG" if settings.DEBUG else (level or settings.LOG_LEVEL),
        colorize=True,
        format=CONSOLE_FORMAT,
    )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    logging.getLogger("uvicorn.access").handlers = [InterceptHandler()]
    logging.getLogger("sqlalchemy.engine").handlers = [InterceptHandler()]
    logger.debug(f"Logging configured: file={log_path}")


def log_business_error(message: str, context: dict | None = None) -> None:
    """Log a business error (application-level, not critical)."""
    logger.bind(context=context or {}).warning(f"Business error: {message}")


def log_store_error(error: Exception, operation: str, context: dict | None = None) -> None:
    """Log a persistence failure together with the operation that hit it."""
    error_msg = f"Store error: {error} Operation: {operation}"
    if context:
        error_msg += f" Context: {context}"
    logger.opt(exception=error).bind(
        error_type="store",
        error_class=error.__class__.__name__,
        operation=operation,
    ).error(error_msg)


@asynccontextmanager
async def log_operation(operation: str, **context) -> AsyncIterator[None]:
    """
    Log the intent of a service operation and how it ended.

    Domain errors are logged as business errors, store failures at error level;
    both are re-raised.
    """
    logger.info(f"Attempting {operation}: {context}")
    try:
        yield
    except CommunicationFailureException as e:
        logger.error(f"{operation} failed: {e}")
        raise
    except BookRecommenderException as e:
        log_business_error(f"{operation} rejected: {e}", context)
        raise
    logger.debug(f"{operation} completed")


__all__ = [
    "logger",
    "setup_logging",
    "log_business_error",
    "log_store_error",
    "log_operation",
    "InterceptHandler",
]
