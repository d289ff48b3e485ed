"""Conflict validation for proposed segments.

Pure functions over a snapshot of the config store and of the live links.
Rules run in a fixed order and the first failure wins:

1. referenced links exist and have a compatible type
2. uniqueness (one wireless/hotspot per link, unique VLAN and bridge
   names, no double enslavement, no hotspot on a bridged link)
3. hotspot address plan (DHCP range inside the subnet, no overlap)
4. bridge topology (no self membership, no bridge inside a bridge)
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Union

from ..models.interfaces import Interface, InterfaceType
from ..models.segments import (
    IFNAME_MAX,
    BridgeConfig,
    HotspotInstance,
    SegmentKind,
    VlanConfig,
    WirelessConfig,
)
from .errors import InterfaceNotFound, NetprovError, ValidationConflict

Config = Union[WirelessConfig, HotspotInstance, VlanConfig, BridgeConfig]
StoredView = Mapping[SegmentKind, Mapping[str, Config]]
LiveView = Mapping[str, Interface]


@dataclass
class Verdict:
    error: Optional[NetprovError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def raise_for_conflict(self) -> None:
        if self.error is not None:
            raise self.error


class ConflictValidator:
    def validate(self, config: Config, stored: StoredView, live: LiveView) -> Verdict:
        kind = SegmentKind(config.kind)
        checks = {
            SegmentKind.WIRELESS: self._wireless,
            SegmentKind.HOTSPOT: self._hotspot,
            SegmentKind.VLAN: self._vlan,
            SegmentKind.BRIDGE: self._bridge,
        }
        try:
            checks[kind](config, stored, live)
        except NetprovError as exc:
            return Verdict(exc)
        return Verdict()

    # -- per kind -----------------------------------------------------------

    def _wireless(self, w: WirelessConfig, stored: StoredView, live: LiveView) -> None:
        conflict = _conflict("wireless", w.key)
        # 1. references
        iface = _require(live, w.interface, "wireless", w.key)
        if iface.type != InterfaceType.WIFI:
            raise conflict(f"{w.interface} is {iface.type.value}; a wireless AP requires a wifi interface")
        if w.bridge and w.bridge not in stored.get(SegmentKind.BRIDGE, {}):
            bridge = _require(live, w.bridge, "wireless", w.key)
            if bridge.type != InterfaceType.BRIDGE:
                raise conflict(f"{w.bridge} is not a bridge")
        # 2. uniqueness
        if w.interface in stored.get(SegmentKind.WIRELESS, {}):
            raise conflict(f"A wireless AP is already deployed on {w.interface}")
        owner = _bridge_of(w.interface, stored, live)
        if owner and owner != w.bridge:
            raise conflict(f"{w.interface} is enslaved to bridge {owner}")
        if w.bridge and w.interface in stored.get(SegmentKind.HOTSPOT, {}):
            raise conflict(f"{w.interface} carries a hotspot and cannot join bridge {w.bridge}")

    def _hotspot(self, h: HotspotInstance, stored: StoredView, live: LiveView) -> None:
        conflict = _conflict("hotspot", h.key)
        # 1. references
        iface = _require(live, h.interface, "hotspot", h.key)
        if iface.type == InterfaceType.LOOPBACK:
            raise conflict("A hotspot cannot be deployed on a loopback interface")
        # 2. uniqueness
        if h.interface in stored.get(SegmentKind.HOTSPOT, {}):
            raise conflict(f"A hotspot is already deployed on {h.interface}")
        owner = _bridge_of(h.interface, stored, live)
        if owner:
            raise conflict(f"{h.interface} is enslaved to bridge {owner}; its addressing belongs to the bridge")
        # 3. address plan
        low, high = h.dhcp_bounds
        if low > high:
            raise conflict(f"DHCP range start {low} is above its end {high}")
        network = h.network
        if low not in network or high not in network:
            raise conflict(f"DHCP range {h.dhcp_range} is outside {network}")
        for other in stored.get(SegmentKind.HOTSPOT, {}).values():
            if other.interface != h.interface and other.network.overlaps(network):
                raise conflict(f"Subnet {network} overlaps hotspot {other.interface} ({other.network})")

    def _vlan(self, v: VlanConfig, stored: StoredView, live: LiveView) -> None:
        conflict = _conflict("vlan", v.key)
        # 1. references
        parent = _require(live, v.parent_interface, "vlan", v.key)
        if parent.type not in (InterfaceType.ETHERNET, InterfaceType.WIFI):
            raise conflict(f"VLAN parent {v.parent_interface} is {parent.type.value}; expected ethernet or wifi")
        if len(v.name) > IFNAME_MAX:
            raise conflict(f"Derived VLAN name {v.name} exceeds {IFNAME_MAX} characters")
        # 2. uniqueness
        if v.name in stored.get(SegmentKind.VLAN, {}):
            raise conflict(f"VLAN {v.id} already exists on {v.parent_interface}")
        if v.name in live:
            raise conflict(f"Interface {v.name} already exists")

    def _bridge(self, b: BridgeConfig, stored: StoredView, live: LiveView) -> None:
        conflict = _conflict("bridge", b.key)
        bridges = stored.get(SegmentKind.BRIDGE, {})
        # 1. references (self membership is a topology error, reported below)
        for member in b.members:
            if member == b.name:
                continue
            iface = _require(live, member, "bridge", b.key)
            if iface.type == InterfaceType.LOOPBACK:
                raise conflict("A loopback interface cannot be bridged")
        # 2. uniqueness
        if b.name in bridges:
            raise conflict(f"Bridge {b.name} already exists")
        if b.name in live:
            raise conflict(f"Bridge name {b.name} collides with an existing interface")
        for member in b.members:
            if member == b.name:
                continue
            owner = _bridge_of(member, stored, live)
            if owner:
                raise conflict(f"{member} is already enslaved to bridge {owner}")
            if member in stored.get(SegmentKind.HOTSPOT, {}):
                raise conflict(f"{member} carries a hotspot; remove it before bridging")
        # 4. topology
        if b.name in b.members:
            raise conflict(f"Bridge {b.name} cannot be a member of itself")
        for member in b.members:
            iface = live.get(member)
            if member in bridges or (iface is not None and iface.type == InterfaceType.BRIDGE):
                raise conflict(f"{member} is a bridge; nested bridges are not supported")


def dependents_of(kind: SegmentKind, key: str, stored: StoredView) -> List[str]:
    """Segments that would break if ``kind:key`` were removed."""
    found: List[str] = []
    if kind not in (SegmentKind.VLAN, SegmentKind.BRIDGE):
        return found
    for w in stored.get(SegmentKind.WIRELESS, {}).values():
        if w.interface == key or w.bridge == key:
            found.append(f"wireless:{w.key}")
    for h in stored.get(SegmentKind.HOTSPOT, {}).values():
        if h.interface == key:
            found.append(f"hotspot:{h.key}")
    for v in stored.get(SegmentKind.VLAN, {}).values():
        if v.parent_interface == key:
            found.append(f"vlan:{v.key}")
    if kind == SegmentKind.VLAN:
        for b in stored.get(SegmentKind.BRIDGE, {}).values():
            if key in b.members:
                found.append(f"bridge:{b.key}")
    return found


def _conflict(kind: str, key: str):
    def build(detail: str) -> ValidationConflict:
        return ValidationConflict(detail, kind=kind, key=key)
    return build


def _require(live: LiveView, name: str, kind: str, key: str) -> Interface:
    iface = live.get(name)
    if iface is None:
        raise InterfaceNotFound(name, kind=kind, key=key)
    return iface


def _bridge_of(name: str, stored: StoredView, live: LiveView) -> Optional[str]:
    for bridge in stored.get(SegmentKind.BRIDGE, {}).values():
        if name in bridge.members:
            return bridge.name
    for w in stored.get(SegmentKind.WIRELESS, {}).values():
        if w.interface == name and w.bridge:
            return w.bridge
    iface = live.get(name)
    return iface.master if iface is not None else None


def configs_view(snapshot: Mapping[SegmentKind, Mapping[str, object]]) -> Dict[SegmentKind, Dict[str, Config]]:
    """Turn a store snapshot of records into the config view used here."""
    return {kind: {key: rec.config for key, rec in recs.items()} for kind, recs in snapshot.items()}
