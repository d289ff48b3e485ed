"""Tests for segment configuration records."""
from ipaddress import IPv4Network

import pytest
from pydantic import ValidationError

from netprov.models.segments import (
    BridgeConfig,
    HotspotInstance,
    SegmentKind,
    SegmentRecord,
    VlanConfig,
    VlanCreateRequest,
    WirelessConfig,
)


class TestWirelessConfig:
    """Tests for WirelessConfig."""

    def test_open_network(self):
        """Missing password means an open network."""
        w = WirelessConfig(interface="wlan0", ssid="TEST", password=None)
        assert w.password == ""
        assert w.is_open
        assert w.key == "wlan0"

    def test_wpa_passphrase_length(self):
        with pytest.raises(ValidationError):
            WirelessConfig(interface="wlan0", ssid="TEST", password="short")
        with pytest.raises(ValidationError):
            WirelessConfig(interface="wlan0", ssid="TEST", password="x" * 64)

    def test_ssid_limited_to_32_bytes(self):
        with pytest.raises(ValidationError):
            WirelessConfig(interface="wlan0", ssid="é" * 17)
        assert WirelessConfig(interface="wlan0", ssid="a" * 32).ssid == "a" * 32

    def test_channel_must_match_band(self):
        """5 GHz channels need hw_mode a and the reverse."""
        with pytest.raises(ValidationError):
            WirelessConfig(interface="wlan0", ssid="TEST", channel=36, hw_mode="g")
        with pytest.raises(ValidationError):
            WirelessConfig(interface="wlan0", ssid="TEST", channel=6, hw_mode="a")
        assert WirelessConfig(interface="wlan0", ssid="TEST", channel=36, hw_mode="a").channel == 36

    def test_blank_bridge_is_none(self):
        w = WirelessConfig(interface="wlan0", ssid="TEST", bridge="")
        assert w.bridge is None
        assert w.links() == ["wlan0"]

    def test_links_include_bridge(self):
        w = WirelessConfig(interface="wlan0", ssid="TEST", bridge="br0")
        assert w.links() == ["wlan0", "br0"]

    def test_interface_name_rejected(self):
        with pytest.raises(ValidationError):
            WirelessConfig(interface="wlan0; reboot", ssid="TEST")
        with pytest.raises(ValidationError):
            WirelessConfig(interface="a" * 16, ssid="TEST")


class TestHotspotInstance:
    """Tests for HotspotInstance."""

    def test_range_normalized(self):
        h = HotspotInstance(interface="eth1", ip_address="10.0.0.1", dhcp_range=" 10.0.0.10 , 10.0.0.20 ")
        assert h.dhcp_range == "10.0.0.10,10.0.0.20"
        assert h.network == IPv4Network("10.0.0.0/24")
        assert h.gateway_cidr == "10.0.0.1/24"

    def test_range_must_be_a_pair(self):
        with pytest.raises(ValidationError):
            HotspotInstance(interface="eth1", ip_address="10.0.0.1", dhcp_range="10.0.0.10")
        with pytest.raises(ValidationError):
            HotspotInstance(interface="eth1", ip_address="10.0.0.1", dhcp_range="10.0.0.10,nope")

    def test_zero_bandwidth_means_unlimited(self):
        h = HotspotInstance(interface="eth1", ip_address="10.0.0.1", dhcp_range="10.0.0.10,10.0.0.20", bandwidth_limit=0)
        assert h.bandwidth_limit is None

    def test_negative_bandwidth_rejected(self):
        with pytest.raises(ValidationError):
            HotspotInstance(
                interface="eth1", ip_address="10.0.0.1", dhcp_range="10.0.0.10,10.0.0.20", bandwidth_limit=-5
            )

    def test_invalid_gateway(self):
        with pytest.raises(ValidationError):
            HotspotInstance(interface="eth1", ip_address="10.0.0.300", dhcp_range="10.0.0.10,10.0.0.20")


class TestVlanConfig:
    """Tests for VlanConfig."""

    def test_name_derived_from_parent_and_id(self):
        v = VlanConfig(id=10, parentInterface="eth0")
        assert v.name == "eth0.10"
        assert v.key == "eth0.10"
        assert v.links() == ["eth0", "eth0.10"]

    def test_client_supplied_name_ignored(self):
        v = VlanConfig(id=10, parent_interface="eth0", name="evil")
        assert v.name == "eth0.10"

    @pytest.mark.parametrize("vid", [0, 1, 4095])
    def test_id_range(self, vid):
        with pytest.raises(ValidationError):
            VlanConfig(id=vid, parentInterface="eth0")

    def test_create_request(self):
        config = VlanCreateRequest(id=20, parentInterface="wlan0").to_config()
        assert config.name == "wlan0.20"
        assert config.parent_interface == "wlan0"


class TestBridgeConfig:
    """Tests for BridgeConfig."""

    def test_members_deduplicated(self):
        b = BridgeConfig(name="br0", members=["eth0", "eth1", "eth0"])
        assert b.members == ["eth0", "eth1"]
        assert b.links() == ["br0", "eth0", "eth1"]

    def test_members_required(self):
        with pytest.raises(ValidationError):
            BridgeConfig(name="br0", members=[])


class TestSegmentRecord:
    """Tests for the persisted envelope."""

    def test_config_discriminated_by_kind(self):
        record = SegmentRecord.model_validate(
            {
                "kind": "vlan",
                "key": "eth0.10",
                "config": {"kind": "vlan", "id": 10, "parentInterface": "eth0"},
            }
        )
        assert isinstance(record.config, VlanConfig)
        assert record.kind == SegmentKind.VLAN
        assert record.applied_at.tzinfo is not None
