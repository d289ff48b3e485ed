from __future__ import annotations

import os
from typing import List, Optional

import aiofiles

from ..models.segments import SegmentKind
from .drivers.base import DriverPaths

TAIL_BYTES = 64 * 1024

DAEMONS = {
    SegmentKind.WIRELESS: "hostapd",
    SegmentKind.HOTSPOT: "dnsmasq",
}


class DaemonLogReader:
    """Tails the per-interface hostapd/dnsmasq logs."""

    def __init__(self, paths: DriverPaths) -> None:
        self.paths = paths

    def log_path(self, kind: SegmentKind, key: str) -> Optional[str]:
        daemon = DAEMONS.get(kind)
        if daemon is None:
            return None
        return self.paths.logfile(f"{daemon}-{key}")

    async def tail(self, kind: SegmentKind, key: str, lines: int = 100) -> List[str]:
        path = self.log_path(kind, key)
        if path is None or not os.path.exists(path):
            return []
        size = os.path.getsize(path)
        async with aiofiles.open(path, "rb") as f:
            await f.seek(max(0, size - TAIL_BYTES))
            data = await f.read()
        text = data.decode("utf-8", errors="replace").splitlines()
        if size > TAIL_BYTES and text:
            text = text[1:]  # first line is likely partial
        return text[-lines:]
