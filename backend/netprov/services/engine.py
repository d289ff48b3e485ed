from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict

from cryptography.fernet import Fernet

from ..config import Settings, settings
from ..models.segments import SegmentKind
from ..utils.paths import get_app_data_dir
from .config_store import ConfigStore, load_or_create_key
from .credential_store import CredentialStore
from .daemon_logs import DaemonLogReader
from .drivers.base import DriverPaths, SegmentDriver
from .drivers.bridge import BridgeDriver
from .drivers.hotspot import HotspotDriver
from .drivers.vlan import VlanDriver
from .drivers.wireless import WirelessDriver
from .events import EventBus
from .interface_discovery import InterfaceDiscovery
from .reconciler import Reconciler
from .runner import CommandRunner
from .status_projector import StatusProjector


@dataclass
class Engine:
    settings: Settings
    discovery: InterfaceDiscovery
    store: ConfigStore
    events: EventBus
    drivers: Dict[SegmentKind, SegmentDriver]
    reconciler: Reconciler
    projector: StatusProjector
    logs: DaemonLogReader
    credentials: CredentialStore


def build_engine(cfg: Settings, runner=None, discovery=None) -> Engine:
    data_dir = get_app_data_dir(cfg.app_data_dir)
    paths = DriverPaths(os.path.join(data_dir, "state")).ensure()
    runner = runner or CommandRunner(timeout=cfg.command_timeout, use_sudo=cfg.use_sudo)
    discovery = discovery or InterfaceDiscovery(cfg.sysfs_net_path)
    store = ConfigStore(os.path.join(data_dir, "store"), Fernet(load_or_create_key(data_dir, cfg.secret_key)))
    events = EventBus(history=cfg.event_history)

    timeout = cfg.activation_timeout
    drivers: Dict[SegmentKind, SegmentDriver] = {
        SegmentKind.WIRELESS: WirelessDriver(runner, paths, timeout, country=cfg.wifi_country),
        SegmentKind.HOTSPOT: HotspotDriver(
            runner,
            paths,
            timeout,
            portal_port=cfg.portal_port,
            lease_time=cfg.dhcp_lease_time,
            captive_dns=cfg.captive_dns,
        ),
        SegmentKind.VLAN: VlanDriver(runner, paths, timeout),
        SegmentKind.BRIDGE: BridgeDriver(runner, paths, timeout),
    }
    reconciler = Reconciler(store, discovery, drivers, events)
    return Engine(
        settings=cfg,
        discovery=discovery,
        store=store,
        events=events,
        drivers=drivers,
        reconciler=reconciler,
        projector=StatusProjector(store, discovery, reconciler),
        logs=DaemonLogReader(paths),
        credentials=CredentialStore(data_dir, cfg.admin_username, cfg.admin_password_hash),
    )


@lru_cache
def get_engine() -> Engine:
    return build_engine(settings)
