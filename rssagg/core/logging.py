import logging
import sys
from typing import Any

from loguru import logger

from rssagg.config import get_settings


class InterceptHandler(logging.Handler):
    """Intercept stdlib logging and redirect to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        # Get corresponding Loguru level if it exists
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where originated the logged message
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back  # type: ignore[assignment]
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def _health_log_filter(record: dict[str, Any]) -> bool:
    """Filter health and readiness check logs - only show at DEBUG level."""
    message = record.get("message", "")
    if "/health" in message or "/readiness" in message:
        return bool(record["level"].no <= 10)  # DEBUG level
    return True


def _format_extra(record: dict[str, Any]) -> str:
    """Render bound context (feed_url=..., error=...) after the message."""
    extra = {k: v for k, v in record["extra"].items() if k != "name"}
    if not extra:
        return ""
    return " | " + " ".join(f"{k}={v}" for k, v in extra.items())


def setup_logging() -> None:
    """Configure loguru for the application."""
    settings = get_settings()

    # Remove default handler
    logger.remove()

    if settings.debug:
        logger.add(
            sys.stderr,
            level="DEBUG",
            format=lambda record: (
                "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
                "<level>{level: <8}</level> | "
                "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
                "<level>{message}</level>"
                + _format_extra(record).replace("{", "{{").replace("}", "}}")
                + "\n{exception}"
            ),
            backtrace=True,
            diagnose=True,
        )
    else:
        # Human-readable format for production - logs go to stderr (docker logs)
        logger.add(
            sys.stderr,
            level="INFO",
            format=lambda record: (
                "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | {message}"
                + _format_extra(record).replace("{", "{{").replace("}", "}}")
                + "\n{exception}"
            ),
            filter=_health_log_filter,
            backtrace=True,
            diagnose=False,
        )

    # Intercept stdlib logging (uvicorn, sqlalchemy, aiohttp, etc.)
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in [
        "uvicorn",
        "uvicorn.error",
        "uvicorn.access",
        "sqlalchemy.engine",
        "aiohttp",
    ]:
        logging.getLogger(name).handlers = [InterceptHandler()]

    # APScheduler logs every job run at INFO; scrape_job logs its own summary
    logging.getLogger("apscheduler").setLevel(logging.WARNING)


def get_logger(name: str) -> Any:
    """Get a logger bound to a name."""
    return logger.bind(name=name)
