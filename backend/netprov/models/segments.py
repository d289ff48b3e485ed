from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from ipaddress import IPv4Address, IPv4Network
from typing import Annotated, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator, model_validator

from .interfaces import LinkSnapshot


# Kernel interface names are at most 15 characters (IFNAMSIZ - 1)
IFNAME_MAX = 15
IfName = Annotated[str, StringConstraints(pattern=r"^[A-Za-z0-9][A-Za-z0-9_.:-]{0,14}$")]

TWO_GHZ_CHANNELS = frozenset(range(1, 15))
FIVE_GHZ_CHANNELS = frozenset(
    [36, 40, 44, 48, 52, 56, 60, 64]
    + list(range(100, 145, 4))
    + [149, 153, 157, 161, 165]
)


class SegmentKind(str, Enum):
    WIRELESS = "wireless"
    HOTSPOT = "hotspot"
    VLAN = "vlan"
    BRIDGE = "bridge"


class WirelessConfig(BaseModel):
    kind: Literal["wireless"] = "wireless"
    interface: IfName
    ssid: str
    password: str = ""  # empty means open network
    channel: int = 1
    hw_mode: Literal["a", "b", "g"] = "g"
    bridge: Optional[IfName] = None

    @field_validator("ssid")
    @classmethod
    def _ssid_bytes(cls, v: str) -> str:
        if not 1 <= len(v.encode("utf-8")) <= 32:
            raise ValueError("ssid must be 1-32 bytes")
        return v

    @field_validator("password", mode="before")
    @classmethod
    def _password(cls, v: Optional[str]) -> str:
        if v is None or v == "":
            return ""
        if not isinstance(v, str) or not v.isascii() or not 8 <= len(v) <= 63:
            raise ValueError("WPA passphrase must be 8-63 ASCII characters")
        return v

    @field_validator("bridge", mode="before")
    @classmethod
    def _blank_bridge(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    @model_validator(mode="after")
    def _channel_in_band(self) -> "WirelessConfig":
        allowed = FIVE_GHZ_CHANNELS if self.hw_mode == "a" else TWO_GHZ_CHANNELS
        if self.channel not in allowed:
            raise ValueError(f"channel {self.channel} is not valid for hw_mode '{self.hw_mode}'")
        return self

    @property
    def key(self) -> str:
        return self.interface

    @property
    def is_open(self) -> bool:
        return not self.password

    def links(self) -> List[str]:
        return [self.interface] + ([self.bridge] if self.bridge else [])


class HotspotInstance(BaseModel):
    kind: Literal["hotspot"] = "hotspot"
    interface: IfName
    ip_address: IPv4Address
    dhcp_range: str
    bandwidth_limit: Optional[int] = Field(None, ge=1)  # Mbps
    prefix_length: int = Field(24, ge=8, le=30)

    @field_validator("dhcp_range")
    @classmethod
    def _range_format(cls, v: str) -> str:
        parts = [p.strip() for p in v.split(",")]
        if len(parts) != 2:
            raise ValueError("dhcp_range must be 'low,high'")
        try:
            low, high = (IPv4Address(p) for p in parts)
        except ValueError as exc:
            raise ValueError(f"dhcp_range: {exc}") from exc
        return f"{low},{high}"

    @field_validator("bandwidth_limit", mode="before")
    @classmethod
    def _zero_is_unlimited(cls, v: Optional[int]) -> Optional[int]:
        return None if v in (0, "0", "") else v

    @property
    def key(self) -> str:
        return self.interface

    @property
    def dhcp_bounds(self) -> Tuple[IPv4Address, IPv4Address]:
        low, high = self.dhcp_range.split(",")
        return IPv4Address(low), IPv4Address(high)

    @property
    def network(self) -> IPv4Network:
        return IPv4Network(f"{self.ip_address}/{self.prefix_length}", strict=False)

    @property
    def gateway_cidr(self) -> str:
        return f"{self.ip_address}/{self.prefix_length}"

    def links(self) -> List[str]:
        return [self.interface]


class VlanConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    kind: Literal["vlan"] = "vlan"
    id: int = Field(ge=2, le=4094)
    parent_interface: IfName = Field(alias="parentInterface")
    name: str = ""

    @model_validator(mode="after")
    def _derive_name(self) -> "VlanConfig":
        # never taken from the client
        self.name = f"{self.parent_interface}.{self.id}"
        return self

    @property
    def key(self) -> str:
        return self.name

    def links(self) -> List[str]:
        return [self.parent_interface, self.name]


class BridgeConfig(BaseModel):
    kind: Literal["bridge"] = "bridge"
    name: IfName
    members: List[IfName] = Field(min_length=1)
    stp: bool = False

    @field_validator("members")
    @classmethod
    def _unique_members(cls, v: List[str]) -> List[str]:
        return list(dict.fromkeys(v))

    @property
    def key(self) -> str:
        return self.name

    def links(self) -> List[str]:
        return [self.name] + list(self.members)


SegmentConfig = Annotated[
    Union[WirelessConfig, HotspotInstance, VlanConfig, BridgeConfig],
    Field(discriminator="kind"),
]

CONFIG_TYPES = {
    SegmentKind.WIRELESS: WirelessConfig,
    SegmentKind.HOTSPOT: HotspotInstance,
    SegmentKind.VLAN: VlanConfig,
    SegmentKind.BRIDGE: BridgeConfig,
}


class VlanCreateRequest(BaseModel):
    id: int = Field(ge=2, le=4094)
    parentInterface: IfName

    def to_config(self) -> VlanConfig:
        return VlanConfig(id=self.id, parent_interface=self.parentInterface)


class SegmentRecord(BaseModel):
    """A segment as persisted once its driver reported it applied."""

    kind: SegmentKind
    key: str
    config: SegmentConfig
    prior: Dict[str, LinkSnapshot] = Field(default_factory=dict)
    applied_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
