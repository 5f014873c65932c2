"""
Shared helpers: logger factory and access log setup.
"""
import logging
import os

from app.core import config

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

_configured = False


def configure_logging(level: str = config.LOG_LEVEL) -> None:
    """Configure the root logger once for the whole process."""
    global _configured
    if _configured:
        return
    logging.basicConfig(level=level, format=LOG_FORMAT)
    # SQL echo is handled by the engine, keep the driver quiet
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    _configured = True


def get_logger(name: str | None = None) -> logging.Logger:
    configure_logging()
    return logging.getLogger(name)


def get_access_logger() -> logging.Logger:
    """
    Logger for HTTP access lines.

    In production lines are appended to LOG_DIR/access.log in combined format,
    otherwise they go through the console handler like everything else.
    """
    access_log = get_logger("app.access")
    if config.IS_PRODUCTION and not access_log.handlers:
        os.makedirs(config.LOG_DIR, exist_ok=True)
        handler = logging.FileHandler(os.path.join(config.LOG_DIR, "access.log"), mode="a")
        handler.setFormatter(logging.Formatter("%(message)s"))
        access_log.addHandler(handler)
        access_log.propagate = False
        access_log.setLevel(logging.INFO)
    return access_log
