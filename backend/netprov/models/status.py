from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class SegmentHealth(str, Enum):
    APPLIED = "applied"
    DEGRADED = "degraded"  # backing link missing
    DRIFT = "drift"  # last rollback did not complete


class LinkState(BaseModel):
    status: str
    ip: Optional[str] = None


class SegmentView(BaseModel):
    kind: str
    key: str
    health: SegmentHealth
    link: Optional[LinkState] = None
    applied_at: Optional[datetime] = None


class WirelessView(SegmentView):
    interface: str
    ssid: str
    security: str  # "open" or "wpa2"
    channel: int
    hw_mode: str
    bridge: Optional[str] = None


class HotspotView(SegmentView):
    interface: str
    ip_address: str
    dhcp_range: str
    bandwidth_limit: Optional[int] = None
    prefix_length: int = 24


class VlanView(SegmentView):
    id: int
    parentInterface: str
    name: str


class BridgeMemberView(BaseModel):
    name: str
    present: bool
    status: Optional[str] = None
    master: Optional[str] = None


class BridgeView(SegmentView):
    name: str
    stp: bool
    members: List[BridgeMemberView] = Field(default_factory=list)


class Incident(BaseModel):
    kind: str
    key: str
    step: Optional[str] = None
    cause: Optional[str] = None
    rollback_errors: List[str] = Field(default_factory=list)
    occurred_at: datetime


class NetworkOverview(BaseModel):
    wireless: List[WirelessView]
    hotspots: List[HotspotView]
    vlans: List[VlanView]
    bridges: List[BridgeView]
    degraded: List[str]
    incidents: List[Incident]
