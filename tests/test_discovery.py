"""Tests for interface discovery."""
import os
import socket
from types import SimpleNamespace

import psutil
import pytest

from netprov.models.interfaces import InterfaceType
from netprov.services import interface_discovery
from netprov.services.interface_discovery import InterfaceDiscovery


def stats(up=True):
    return SimpleNamespace(isup=up, speed=1000, mtu=1500)


def inet(address, netmask):
    return SimpleNamespace(family=socket.AF_INET, address=address, netmask=netmask, broadcast=None, ptp=None)


def link(mac):
    return SimpleNamespace(family=psutil.AF_LINK, address=mac, netmask=None, broadcast=None, ptp=None)


@pytest.fixture
def sysfs(tmp_path):
    root = tmp_path / "net"
    for name in ("lo", "eth0", "wlan0", "br0", "eth0.10", "enx1"):
        (root / name).mkdir(parents=True)
    (root / "lo" / "type").write_text("772\n")
    (root / "eth0" / "type").write_text("1\n")
    (root / "wlan0" / "phy80211").mkdir()
    (root / "br0" / "bridge").mkdir()
    (root / "eth0.10" / "uevent").write_text("DEVTYPE=vlan\nINTERFACE=eth0.10\n")
    (root / "enx1" / "uevent").write_text("INTERFACE=enx1\n")
    os.symlink("../br0", root / "eth0" / "master")
    return root


@pytest.fixture
def discovery(sysfs, monkeypatch):
    names = ["lo", "eth0", "wlan0", "br0", "eth0.10", "enx1", "wlp2s0", "br-lan", "eth1.20"]
    monkeypatch.setattr(interface_discovery.psutil, "net_if_stats",
                        lambda: {n: stats(up=n != "wlan0") for n in names})
    monkeypatch.setattr(
        interface_discovery.psutil,
        "net_if_addrs",
        lambda: {
            "lo": [inet("127.0.0.1", "255.0.0.0")],
            "eth0": [link("aa:bb:cc:dd:ee:ff"), inet("192.168.1.10", "255.255.255.0")],
        },
    )
    return InterfaceDiscovery(str(sysfs))


class TestInterfaceDiscovery:
    """Tests for InterfaceDiscovery."""

    def test_loopback_excluded_by_default(self, discovery):
        names = [i.name for i in discovery.list_interfaces()]
        assert "lo" not in names
        assert names == sorted(names)

    def test_loopback_included(self, discovery):
        lo = discovery.snapshot()["lo"]
        assert lo.is_loopback
        assert lo.type == InterfaceType.LOOPBACK
        assert lo.model_dump(by_alias=True)["isLoopback"] is True

    def test_addresses_and_mac(self, discovery):
        eth0 = discovery.get("eth0")
        assert eth0.mac == "aa:bb:cc:dd:ee:ff"
        assert eth0.ip == "192.168.1.10"
        assert eth0.addresses == ["192.168.1.10/24"]
        assert eth0.status == "up"
        assert eth0.master == "br0"

    def test_status_down(self, discovery):
        assert discovery.get("wlan0").status == "down"

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("eth0", InterfaceType.ETHERNET),
            ("wlan0", InterfaceType.WIFI),
            ("br0", InterfaceType.BRIDGE),
            ("eth0.10", InterfaceType.VLAN),
            ("enx1", InterfaceType.ETHERNET),
            ("wlp2s0", InterfaceType.WIFI),
            ("br-lan", InterfaceType.BRIDGE),
            ("eth1.20", InterfaceType.VLAN),
        ],
    )
    def test_classification(self, discovery, name, expected):
        assert discovery.get(name).type == expected

    def test_unknown(self, discovery):
        assert discovery.get("eth9") is None
