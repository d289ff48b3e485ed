"""Logging setup for the provisioning service.

Console output at LOG_LEVEL, plus a rotating file (DEBUG and above) when
LOG_FILE is set. Call ``setup_logging()`` once at startup.
"""
from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from ..config import Settings, settings as default_settings

LOG_FORMAT = "%(asctime)s.%(msecs)03d | %(name)-28s | %(levelname)-8s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_configured = False


def get_log_level(level_str: str) -> int:
    return getattr(logging, level_str.upper(), logging.INFO)


def setup_logging(cfg: Optional[Settings] = None) -> None:
    global _configured
    if _configured:
        return
    cfg = cfg or default_settings
    log_level = get_log_level(cfg.log_level)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    root_logger = logging.getLogger("netprov")
    root_logger.setLevel(logging.DEBUG)  # handlers filter

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if cfg.log_file:
        log_file = Path(cfg.log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # Quiet noisy libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    _configured = True
    root_logger.info(f"Logging initialized: level={cfg.log_level}, file={cfg.log_file or '-'}")
