"""Logging setup: one root configuration driven by LOG_LEVEL."""
import logging
import sys

from findmyestate.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"

# Third-party loggers that are too chatty at INFO
_QUIET_LOGGERS = ("apscheduler", "multipart", "passlib")


def setup_logging(level: str | None = None) -> None:
    """Configure root logging once; safe to call again (handlers are replaced)."""
    level_name = (level or settings.log_level or "INFO").upper()
    numeric_level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(numeric_level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))
