from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Optional

LOGGER_NAME = "incidentreview"
LOG_FORMAT = "ts=%(asctime)s level=%(levelname)s logger=%(name)s msg=%(message)s"

_HANDLER: Optional[logging.Handler] = None


def configure_logging(base_dir: Optional[Path] = None, *, level: int = logging.INFO) -> Dict[str, str]:
    """Attach a single key-value file handler to the application logger.

    Package modules log through ``logging.getLogger(__name__)``; the handler
    sits on the ``incidentreview`` logger and on the client package loggers
    so both routes land in the same file. Calling this twice is a no-op.
    """
    global _HANDLER
    root = base_dir or Path("data/roaming")
    log_dir = root / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / "incidentreview.log"

    if _HANDLER is None:
        handler = logging.FileHandler(log_path, encoding="utf-8")
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        _HANDLER = handler
        for name in (LOGGER_NAME, "session_center", "runtime_bus", "app_ui"):
            logger = logging.getLogger(name)
            logger.setLevel(level)
            logger.propagate = False
            logger.addHandler(handler)

    return {
        "log_path": str(getattr(_HANDLER, "baseFilename", log_path)),
        "format": "kv",
        "handlers": "file",
        "logger_name": LOGGER_NAME,
    }


def reset_logging() -> None:
    global _HANDLER
    if _HANDLER is None:
        return
    for name in (LOGGER_NAME, "session_center", "runtime_bus", "app_ui"):
        logger = logging.getLogger(name)
        logger.removeHandler(_HANDLER)
        logger.propagate = True
    _HANDLER.close()
    _HANDLER = None