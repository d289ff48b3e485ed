from __future__ import annotations

from typing import Dict, List, Mapping

from ..models.interfaces import Interface
from ..models.segments import SegmentKind, SegmentRecord
from ..models.status import (
    BridgeMemberView,
    BridgeView,
    HotspotView,
    LinkState,
    NetworkOverview,
    SegmentHealth,
    VlanView,
    WirelessView,
)
from .config_store import ConfigStore
from .errors import SegmentNotFound
from .interface_discovery import InterfaceDiscovery
from .reconciler import Reconciler


Live = Mapping[str, Interface]


class StatusProjector:
    """Read models for the console. Every call re-reads store and links."""

    def __init__(self, store: ConfigStore, discovery: InterfaceDiscovery, reconciler: Reconciler) -> None:
        self.store = store
        self.discovery = discovery
        self.reconciler = reconciler

    def interfaces(self, include_loopback: bool = False) -> List[Interface]:
        return self.discovery.list_interfaces(include_loopback=include_loopback)

    def wireless(self) -> List[WirelessView]:
        return self._wireless(self.store.list(SegmentKind.WIRELESS), self.discovery.snapshot())

    def hotspots(self) -> List[HotspotView]:
        return self._hotspots(self.store.list(SegmentKind.HOTSPOT), self.discovery.snapshot())

    def vlans(self) -> List[VlanView]:
        return self._vlans(self.store.list(SegmentKind.VLAN), self.discovery.snapshot())

    def bridges(self) -> List[BridgeView]:
        return self._bridges(self.store.list(SegmentKind.BRIDGE), self.discovery.snapshot())

    def overview(self) -> NetworkOverview:
        live = self.discovery.snapshot()
        snap = self.store.snapshot()
        views = {
            "wireless": self._wireless(list(snap[SegmentKind.WIRELESS].values()), live),
            "hotspots": self._hotspots(list(snap[SegmentKind.HOTSPOT].values()), live),
            "vlans": self._vlans(list(snap[SegmentKind.VLAN].values()), live),
            "bridges": self._bridges(list(snap[SegmentKind.BRIDGE].values()), live),
        }
        degraded = [
            f"{v.kind}:{v.key}"
            for group in views.values()
            for v in group
            if v.health == SegmentHealth.DEGRADED
        ]
        return NetworkOverview(**views, degraded=degraded, incidents=self.reconciler.incidents())

    def view(self, kind: SegmentKind, key: str):
        """Read model of one stored segment."""
        record = self.store.get(kind, key)
        if record is None:
            raise SegmentNotFound(kind.value, key)
        project = {
            SegmentKind.WIRELESS: self._wireless,
            SegmentKind.HOTSPOT: self._hotspots,
            SegmentKind.VLAN: self._vlans,
            SegmentKind.BRIDGE: self._bridges,
        }[kind]
        return project([record], self.discovery.snapshot())[0]

    # -- projections ------------------------------------------------------------

    def _common(self, record: SegmentRecord, backing: str, live: Live) -> Dict:
        missing = any(name not in live for name in record.config.links())
        if self.reconciler.has_incident(record.kind, record.key):
            health = SegmentHealth.DRIFT
        elif missing:
            health = SegmentHealth.DEGRADED
        else:
            health = SegmentHealth.APPLIED
        iface = live.get(backing)
        link = LinkState(status=iface.status, ip=iface.ip) if iface is not None else None
        return {
            "kind": record.kind.value,
            "key": record.key,
            "health": health,
            "link": link,
            "applied_at": record.applied_at,
        }

    def _wireless(self, records: List[SegmentRecord], live: Live) -> List[WirelessView]:
        views = []
        for r in records:
            w = r.config
            views.append(
                WirelessView(
                    **self._common(r, w.interface, live),
                    interface=w.interface,
                    ssid=w.ssid,
                    security="open" if w.is_open else "wpa2",
                    channel=w.channel,
                    hw_mode=w.hw_mode,
                    bridge=w.bridge,
                )
            )
        return views

    def _hotspots(self, records: List[SegmentRecord], live: Live) -> List[HotspotView]:
        return [
            HotspotView(
                **self._common(r, r.config.interface, live),
                interface=r.config.interface,
                ip_address=str(r.config.ip_address),
                dhcp_range=r.config.dhcp_range,
                bandwidth_limit=r.config.bandwidth_limit,
                prefix_length=r.config.prefix_length,
            )
            for r in records
        ]

    def _vlans(self, records: List[SegmentRecord], live: Live) -> List[VlanView]:
        return [
            VlanView(
                **self._common(r, r.config.name, live),
                id=r.config.id,
                parentInterface=r.config.parent_interface,
                name=r.config.name,
            )
            for r in records
        ]

    def _bridges(self, records: List[SegmentRecord], live: Live) -> List[BridgeView]:
        views = []
        for r in records:
            b = r.config
            members = []
            for name in b.members:
                iface = live.get(name)
                members.append(
                    BridgeMemberView(
                        name=name,
                        present=iface is not None,
                        status=iface.status if iface else None,
                        master=iface.master if iface else None,
                    )
                )
            views.append(BridgeView(**self._common(r, b.name, live), name=b.name, stp=b.stp, members=members))
        return views
