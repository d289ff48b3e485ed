from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class InterfaceType(str, Enum):
    ETHERNET = "ethernet"
    WIFI = "wifi"
    BRIDGE = "bridge"
    VLAN = "vlan"
    LOOPBACK = "loopback"


class Interface(BaseModel):
    name: str
    type: InterfaceType
    status: str  # "up" or "down"
    ip: Optional[str] = None
    mac: Optional[str] = None
    is_loopback: bool = Field(False, serialization_alias="isLoopback")
    addresses: List[str] = Field(default_factory=list)  # IPv4 CIDRs
    master: Optional[str] = None  # bridge this link is enslaved to

    @property
    def is_up(self) -> bool:
        return self.status == "up"


class LinkSnapshot(BaseModel):
    """Link state captured right before a segment is activated."""

    name: str
    up: bool
    addresses: List[str] = Field(default_factory=list)
    master: Optional[str] = None

    @classmethod
    def of(cls, iface: Interface) -> "LinkSnapshot":
        return cls(name=iface.name, up=iface.is_up, addresses=list(iface.addresses), master=iface.master)
