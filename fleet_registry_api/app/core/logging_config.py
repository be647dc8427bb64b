"""
Local log handlers for the API process and the export CLI.

Operation events for the remote log service are shipped by
``services.event_log_service``; this module only wires the standard
``logging`` tree from ``Settings``: the root level, a console handler
and, when ``LOG_FILE`` is set, a size-rotated file next to it.
"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .config import Settings

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# requests logs every pooled connection to the log service at DEBUG.
QUIET_LOGGERS = ("urllib3",)


def _attach(root: logging.Logger, handler: logging.Handler) -> None:
    handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    root.addHandler(handler)


def setup_logging(settings: Settings) -> None:
    """Configure the root logger from ``settings``.

    The level is always applied.  Handlers are only attached when the
    root logger has none yet, so uvicorn, pytest or an earlier
    ``create_app`` call keep the handlers they installed.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if root.handlers:
        return

    _attach(root, logging.StreamHandler())
    if settings.log_file:
        log_path = Path(settings.log_file).resolve()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        _attach(
            root,
            RotatingFileHandler(
                log_path,
                maxBytes=settings.log_max_bytes,
                backupCount=settings.log_backup_count,
                encoding="utf-8",
            ),
        )
