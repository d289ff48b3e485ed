from __future__ import annotations

import logging
import os
from typing import Optional

from ..config import settings


logger = logging.getLogger(__name__)

FALLBACK_DATA_DIR = "~/.netprov/data"


def _writable(path: str) -> bool:
    probe = os.path.join(path, ".wtest")
    try:
        os.makedirs(path, exist_ok=True)
        with open(probe, "w", encoding="utf-8") as f:
            f.write("ok")
        os.remove(probe)
    except OSError:
        return False
    return True


def get_app_data_dir(desired: Optional[str] = None) -> str:
    """Configured data dir, or a per-user one when it is not writable."""
    desired = desired or settings.app_data_dir
    if _writable(desired):
        return desired
    fallback = os.path.expanduser(FALLBACK_DATA_DIR)
    logger.warning(f"{desired} is not writable; using {fallback}")
    os.makedirs(fallback, exist_ok=True)
    return fallback
