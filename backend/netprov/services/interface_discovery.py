from __future__ import annotations

import logging
import os
import socket
from ipaddress import IPv4Network
from typing import Dict, List, Optional

import psutil

from ..models.interfaces import Interface, InterfaceType


logger = logging.getLogger(__name__)

ARPHRD_LOOPBACK = "772"


class InterfaceDiscovery:
    """Live view of the host's links. Takes no locks and caches nothing."""

    def __init__(self, sysfs_path: str = "/sys/class/net") -> None:
        self._sysfs = sysfs_path

    def list_interfaces(self, include_loopback: bool = False) -> List[Interface]:
        stats = psutil.net_if_stats()
        addrs = psutil.net_if_addrs()
        result: List[Interface] = []
        for name in sorted(stats):
            iface = self._describe(name, stats[name], addrs.get(name, []))
            if iface.is_loopback and not include_loopback:
                continue
            result.append(iface)
        return result

    def get(self, name: str) -> Optional[Interface]:
        stats = psutil.net_if_stats().get(name)
        if stats is None:
            return None
        return self._describe(name, stats, psutil.net_if_addrs().get(name, []))

    def snapshot(self) -> Dict[str, Interface]:
        return {i.name: i for i in self.list_interfaces(include_loopback=True)}

    def _describe(self, name: str, stats, addrs) -> Interface:
        mac: Optional[str] = None
        addresses: List[str] = []
        for addr in addrs:
            if addr.family == psutil.AF_LINK:
                mac = addr.address
            elif addr.family == socket.AF_INET:
                prefix = 32
                if addr.netmask:
                    prefix = IPv4Network(f"0.0.0.0/{addr.netmask}").prefixlen
                addresses.append(f"{addr.address}/{prefix}")
        iface_type = self._classify(name)
        return Interface(
            name=name,
            type=iface_type,
            status="up" if stats.isup else "down",
            ip=addresses[0].split("/")[0] if addresses else None,
            mac=mac,
            is_loopback=iface_type == InterfaceType.LOOPBACK,
            addresses=addresses,
            master=self._master(name),
        )

    def _read(self, name: str, leaf: str) -> str:
        try:
            with open(os.path.join(self._sysfs, name, leaf), "r", encoding="utf-8") as f:
                return f.read().strip()
        except OSError:
            # link may vanish between enumeration and this read
            return ""

    def _exists(self, name: str, leaf: str) -> bool:
        return os.path.exists(os.path.join(self._sysfs, name, leaf))

    def _master(self, name: str) -> Optional[str]:
        try:
            return os.path.basename(os.readlink(os.path.join(self._sysfs, name, "master")))
        except OSError:
            return None

    def _classify(self, name: str) -> InterfaceType:
        if name == "lo" or self._read(name, "type") == ARPHRD_LOOPBACK:
            return InterfaceType.LOOPBACK
        if self._exists(name, "wireless") or self._exists(name, "phy80211"):
            return InterfaceType.WIFI
        if self._exists(name, "bridge"):
            return InterfaceType.BRIDGE
        uevent = self._read(name, "uevent")
        if "DEVTYPE=vlan" in uevent:
            return InterfaceType.VLAN
        if "DEVTYPE=bridge" in uevent:
            return InterfaceType.BRIDGE
        if "DEVTYPE=wlan" in uevent:
            return InterfaceType.WIFI
        # Naming conventions used on the appliance images
        if name.startswith(("wlan", "wlp", "ap")):
            return InterfaceType.WIFI
        if name.startswith("br"):
            return InterfaceType.BRIDGE
        if "." in name:
            return InterfaceType.VLAN
        return InterfaceType.ETHERNET
