"""Tests for the segment config store."""
import json
import os
import stat

import pytest
from cryptography.fernet import Fernet

from netprov.models.interfaces import LinkSnapshot
from netprov.models.segments import BridgeConfig, SegmentKind, SegmentRecord, WirelessConfig
from netprov.services.config_store import ConfigStore, load_or_create_key
from netprov.services.errors import StoreFailure


def wireless_record(password="supersecret"):
    config = WirelessConfig(interface="wlan0", ssid="Vendo", password=password)
    return SegmentRecord(
        kind=SegmentKind.WIRELESS,
        key="wlan0",
        config=config,
        prior={"wlan0": LinkSnapshot(name="wlan0", up=False)},
    )


class TestConfigStore:
    """Tests for ConfigStore."""

    @pytest.fixture
    def store(self, tmp_path):
        return ConfigStore(str(tmp_path / "store"), Fernet(Fernet.generate_key()))

    def test_directory_creation(self, tmp_path, store):
        for kind in SegmentKind:
            assert (tmp_path / "store" / kind.value).is_dir()

    def test_put_and_get(self, store):
        store.put(SegmentKind.WIRELESS, "wlan0", wireless_record())
        record = store.get(SegmentKind.WIRELESS, "wlan0")
        assert record.config.password == "supersecret"
        assert record.prior["wlan0"].up is False

    def test_password_encrypted_at_rest(self, tmp_path, store):
        store.put(SegmentKind.WIRELESS, "wlan0", wireless_record())
        path = tmp_path / "store" / "wireless" / "wlan0.json"
        raw = path.read_text()
        assert "supersecret" not in raw
        assert "password_enc" in json.loads(raw)["config"]
        assert stat.S_IMODE(os.stat(path).st_mode) == 0o600

    def test_open_network_has_no_token(self, tmp_path, store):
        store.put(SegmentKind.WIRELESS, "wlan0", wireless_record(password=""))
        data = json.loads((tmp_path / "store" / "wireless" / "wlan0.json").read_text())
        assert "password_enc" not in data["config"]
        assert store.get(SegmentKind.WIRELESS, "wlan0").config.is_open

    def test_get_missing(self, store):
        assert store.get(SegmentKind.BRIDGE, "br0") is None

    def test_delete(self, store):
        store.put(SegmentKind.WIRELESS, "wlan0", wireless_record())
        assert store.delete(SegmentKind.WIRELESS, "wlan0") is True
        assert store.delete(SegmentKind.WIRELESS, "wlan0") is False
        assert store.get(SegmentKind.WIRELESS, "wlan0") is None

    def test_key_mismatch_rejected(self, store):
        with pytest.raises(StoreFailure):
            store.put(SegmentKind.WIRELESS, "wlan1", wireless_record())

    def test_path_traversal_rejected(self, store):
        with pytest.raises(StoreFailure):
            store.get(SegmentKind.VLAN, "../secret")

    def test_list_skips_corrupt(self, tmp_path, store):
        record = SegmentRecord(
            kind=SegmentKind.BRIDGE, key="br0", config=BridgeConfig(name="br0", members=["eth0"])
        )
        store.put(SegmentKind.BRIDGE, "br0", record)
        (tmp_path / "store" / "bridge" / "br1.json").write_text("{not json")
        assert [r.key for r in store.list(SegmentKind.BRIDGE)] == ["br0"]

    def test_get_corrupt_raises(self, tmp_path, store):
        (tmp_path / "store" / "bridge" / "br1.json").write_text("{not json")
        with pytest.raises(StoreFailure):
            store.get(SegmentKind.BRIDGE, "br1")

    def test_wrong_key_cannot_decrypt(self, tmp_path, store):
        store.put(SegmentKind.WIRELESS, "wlan0", wireless_record())
        other = ConfigStore(str(tmp_path / "store"), Fernet(Fernet.generate_key()))
        with pytest.raises(StoreFailure):
            other.get(SegmentKind.WIRELESS, "wlan0")

    def test_snapshot(self, store):
        store.put(SegmentKind.WIRELESS, "wlan0", wireless_record())
        snap = store.snapshot()
        assert set(snap) == set(SegmentKind)
        assert list(snap[SegmentKind.WIRELESS]) == ["wlan0"]
        assert snap[SegmentKind.HOTSPOT] == {}


class TestEncryptionKey:
    """Tests for load_or_create_key."""

    def test_generated_once(self, tmp_path):
        first = load_or_create_key(str(tmp_path))
        assert load_or_create_key(str(tmp_path)) == first
        Fernet(first)

    def test_derived_from_secret(self, tmp_path):
        key = load_or_create_key(str(tmp_path), "test-secret")
        assert key == load_or_create_key(str(tmp_path), "test-secret")
        assert not (tmp_path / "secret.key").exists()
        Fernet(key)
