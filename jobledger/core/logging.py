"""loguru setup for the ledger, its CLI and the database libraries it drives."""

import logging
import sys
from typing import Any

from loguru import logger

# stdlib loggers routed into loguru, with the level they run at outside debug mode
DRIVER_LOGGERS = {
    "sqlalchemy.engine": logging.WARNING,
    "sqlalchemy.pool": logging.WARNING,
    "aiomysql": logging.INFO,
    "aiosqlite": logging.WARNING,
}

DEBUG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[name]}</cyan> | "
    "<level>{message}</level> {extra}"
)
PLAIN_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra[name]} | {message} {extra}"


class InterceptHandler(logging.Handler):
    """Forward stdlib log records to loguru, keeping the original caller."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Skip logging's own frames so loguru reports the real call site
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back  # type: ignore[assignment]
            depth += 1

        logger.bind(name=record.name).opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def setup_logging(debug: bool = False) -> None:
    """Send ledger and driver logs to stderr, verbose when `debug` is set."""
    logger.remove()
    logger.configure(extra={"name": "jobledger"})
    logger.add(
        sys.stderr,
        level="DEBUG" if debug else "INFO",
        format=DEBUG_FORMAT if debug else PLAIN_FORMAT,
        colorize=debug,
        backtrace=debug,
        diagnose=debug,
    )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name, level in DRIVER_LOGGERS.items():
        driver_logger = logging.getLogger(name)
        driver_logger.handlers = [InterceptHandler()]
        driver_logger.propagate = False
        driver_logger.setLevel(logging.DEBUG if debug else level)


def get_logger(name: str) -> Any:
    """Logger whose records carry the module name."""
    return logger.bind(name=name)
