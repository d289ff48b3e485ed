"""Tests for the conflict validator."""
import pytest

from netprov.models.interfaces import InterfaceType
from netprov.models.segments import (
    BridgeConfig,
    HotspotInstance,
    SegmentKind,
    VlanConfig,
    WirelessConfig,
)
from netprov.services.errors import InterfaceNotFound, ValidationConflict
from netprov.services.validator import ConflictValidator, dependents_of

from fakes import default_host


def stored(*configs):
    view = {kind: {} for kind in SegmentKind}
    for c in configs:
        view[SegmentKind(c.kind)][c.key] = c
    return view


def hotspot(iface, ip="10.0.0.1", low="10.0.0.10", high="10.0.0.100", prefix=24):
    return HotspotInstance(interface=iface, ip_address=ip, dhcp_range=f"{low},{high}", prefix_length=prefix)


@pytest.fixture
def validator():
    return ConflictValidator()


@pytest.fixture
def live():
    host = default_host()
    host.add_link("br9", InterfaceType.BRIDGE)
    host.add_link("eth2", InterfaceType.ETHERNET, master="br9")
    return host.snapshot()


class TestWirelessRules:
    """Tests for wireless AP validation."""

    def test_valid(self, validator, live):
        assert validator.validate(WirelessConfig(interface="wlan0", ssid="TEST"), stored(), live).ok

    def test_missing_interface(self, validator, live):
        verdict = validator.validate(WirelessConfig(interface="wlan7", ssid="TEST"), stored(), live)
        assert isinstance(verdict.error, InterfaceNotFound)
        assert verdict.error.interface == "wlan7"

    def test_requires_wifi(self, validator, live):
        verdict = validator.validate(WirelessConfig(interface="eth0", ssid="TEST"), stored(), live)
        assert isinstance(verdict.error, ValidationConflict)
        assert "wifi" in verdict.error.detail

    def test_one_per_interface(self, validator, live):
        first = WirelessConfig(interface="wlan0", ssid="TEST")
        second = WirelessConfig(interface="wlan0", ssid="OTHER")
        verdict = validator.validate(second, stored(first), live)
        assert isinstance(verdict.error, ValidationConflict)
        with pytest.raises(ValidationConflict):
            verdict.raise_for_conflict()

    def test_bridge_must_exist(self, validator, live):
        verdict = validator.validate(WirelessConfig(interface="wlan0", ssid="T", bridge="br5"), stored(), live)
        assert isinstance(verdict.error, InterfaceNotFound)

    def test_stored_bridge_accepted(self, validator, live):
        bridge = BridgeConfig(name="br0", members=["eth1"])
        w = WirelessConfig(interface="wlan0", ssid="T", bridge="br0")
        assert validator.validate(w, stored(bridge), live).ok

    def test_bridge_must_be_a_bridge(self, validator, live):
        verdict = validator.validate(WirelessConfig(interface="wlan0", ssid="T", bridge="eth0"), stored(), live)
        assert isinstance(verdict.error, ValidationConflict)

    def test_interface_enslaved_elsewhere(self, validator, live):
        bridge = BridgeConfig(name="br0", members=["wlan0"])
        verdict = validator.validate(WirelessConfig(interface="wlan0", ssid="T"), stored(bridge), live)
        assert "enslaved" in verdict.error.detail


class TestHotspotRules:
    """Tests for hotspot validation."""

    def test_valid(self, validator, live):
        assert validator.validate(hotspot("eth1"), stored(), live).ok

    def test_interface_bridged_by_access_point(self, validator, live):
        bridge = BridgeConfig(name="br0", members=["eth1"])
        ap = WirelessConfig(interface="wlan0", ssid="T", bridge="br0")
        verdict = validator.validate(hotspot("wlan0"), stored(bridge, ap), live)
        assert isinstance(verdict.error, ValidationConflict)
        assert "enslaved to bridge br0" in verdict.error.detail

    def test_not_on_loopback(self, validator, live):
        verdict = validator.validate(hotspot("lo"), stored(), live)
        assert isinstance(verdict.error, ValidationConflict)

    def test_one_per_interface(self, validator, live):
        verdict = validator.validate(hotspot("eth1", ip="10.9.0.1", low="10.9.0.10", high="10.9.0.20"),
                                     stored(hotspot("eth1")), live)
        assert "already deployed" in verdict.error.detail

    def test_overlapping_subnets(self, validator, live):
        verdict = validator.validate(
            hotspot("wlan1", ip="10.0.0.129", low="10.0.0.130", high="10.0.0.140", prefix=25),
            stored(hotspot("eth1")),
            live,
        )
        assert isinstance(verdict.error, ValidationConflict)
        assert "overlaps" in verdict.error.detail

    def test_disjoint_subnets(self, validator, live):
        other = hotspot("wlan1", ip="10.0.1.1", low="10.0.1.10", high="10.0.1.20")
        assert validator.validate(other, stored(hotspot("eth1")), live).ok

    def test_range_outside_subnet(self, validator, live):
        verdict = validator.validate(hotspot("eth1", low="10.0.1.10", high="10.0.1.20"), stored(), live)
        assert "outside" in verdict.error.detail

    def test_range_reversed(self, validator, live):
        verdict = validator.validate(hotspot("eth1", low="10.0.0.50", high="10.0.0.20"), stored(), live)
        assert "above" in verdict.error.detail

    def test_bridged_member_rejected(self, validator, live):
        verdict = validator.validate(hotspot("eth2"), stored(), live)
        assert "br9" in verdict.error.detail

    def test_large_bandwidth_allowed(self, validator, live):
        h = HotspotInstance(interface="eth1", ip_address="10.0.0.1", dhcp_range="10.0.0.10,10.0.0.20",
                            bandwidth_limit=100000)
        assert validator.validate(h, stored(), live).ok


class TestVlanRules:
    """Tests for VLAN validation."""

    def test_valid(self, validator, live):
        assert validator.validate(VlanConfig(id=10, parentInterface="eth0"), stored(), live).ok

    def test_parent_missing(self, validator, live):
        verdict = validator.validate(VlanConfig(id=10, parentInterface="eth9"), stored(), live)
        assert isinstance(verdict.error, InterfaceNotFound)

    def test_parent_type(self, validator, live):
        verdict = validator.validate(VlanConfig(id=10, parentInterface="br9"), stored(), live)
        assert isinstance(verdict.error, ValidationConflict)

    def test_duplicate(self, validator, live):
        v = VlanConfig(id=10, parentInterface="eth0")
        verdict = validator.validate(v, stored(v), live)
        assert isinstance(verdict.error, ValidationConflict)

    def test_name_too_long(self, validator):
        host = default_host()
        host.add_link("enp0s20f0u1u2", InterfaceType.ETHERNET)
        verdict = validator.validate(VlanConfig(id=1000, parentInterface="enp0s20f0u1u2"), stored(), host.snapshot())
        assert "exceeds" in verdict.error.detail


class TestBridgeRules:
    """Tests for bridge validation."""

    def test_valid(self, validator, live):
        assert validator.validate(BridgeConfig(name="br0", members=["eth0", "wlan1"]), stored(), live).ok

    def test_member_missing(self, validator, live):
        verdict = validator.validate(BridgeConfig(name="br0", members=["eth7"]), stored(), live)
        assert isinstance(verdict.error, InterfaceNotFound)

    def test_double_enslavement_stored(self, validator, live):
        verdict = validator.validate(
            BridgeConfig(name="br1", members=["eth0"]), stored(BridgeConfig(name="br0", members=["eth0"])), live
        )
        assert isinstance(verdict.error, ValidationConflict)
        assert "br0" in verdict.error.detail

    def test_member_bridged_by_access_point(self, validator, live):
        bridge = BridgeConfig(name="br0", members=["eth1"])
        ap = WirelessConfig(interface="wlan0", ssid="T", bridge="br0")
        verdict = validator.validate(BridgeConfig(name="br1", members=["wlan0"]), stored(bridge, ap), live)
        assert isinstance(verdict.error, ValidationConflict)
        assert "enslaved to bridge br0" in verdict.error.detail

    def test_double_enslavement_live(self, validator, live):
        verdict = validator.validate(BridgeConfig(name="br1", members=["eth2"]), stored(), live)
        assert "br9" in verdict.error.detail

    def test_self_membership(self, validator, live):
        verdict = validator.validate(BridgeConfig(name="br0", members=["br0", "eth0"]), stored(), live)
        assert "itself" in verdict.error.detail

    def test_nested_bridge(self, validator, live):
        verdict = validator.validate(BridgeConfig(name="br0", members=["br9"]), stored(), live)
        assert "nested" in verdict.error.detail

    def test_name_collides_with_link(self, validator, live):
        verdict = validator.validate(BridgeConfig(name="eth1", members=["eth0"]), stored(), live)
        assert isinstance(verdict.error, ValidationConflict)

    def test_hotspot_member_rejected(self, validator, live):
        verdict = validator.validate(BridgeConfig(name="br0", members=["eth1"]), stored(hotspot("eth1")), live)
        assert "hotspot" in verdict.error.detail


class TestDependents:
    """Tests for dependency lookup."""

    def test_hotspot_on_vlan(self):
        v = VlanConfig(id=10, parentInterface="eth0")
        deps = dependents_of(SegmentKind.VLAN, "eth0.10", stored(v, hotspot("eth0.10")))
        assert deps == ["hotspot:eth0.10"]

    def test_bridge_dependents(self):
        b = BridgeConfig(name="br0", members=["eth0"])
        w = WirelessConfig(interface="wlan0", ssid="T", bridge="br0")
        assert dependents_of(SegmentKind.BRIDGE, "br0", stored(b, w)) == ["wireless:wlan0"]

    def test_vlan_member_of_bridge(self):
        v = VlanConfig(id=10, parentInterface="eth0")
        b = BridgeConfig(name="br0", members=["eth0.10"])
        assert dependents_of(SegmentKind.VLAN, "eth0.10", stored(v, b)) == ["bridge:br0"]

    def test_leaf_segments_have_none(self):
        assert dependents_of(SegmentKind.HOTSPOT, "eth1", stored(hotspot("eth1"))) == []
