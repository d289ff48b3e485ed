from __future__ import annotations

import os
from typing import Dict, List, Optional

from ...models.interfaces import LinkSnapshot
from ...models.segments import SegmentKind, WirelessConfig
from .base import DriverPaths, SegmentDriver, Step, link_up
from ..runner import CommandRunner


def render_hostapd(w: WirelessConfig, ctrl_dir: str, country: Optional[str] = None) -> str:
    lines = [
        f"interface={w.interface}",
        "driver=nl80211",
        f"ctrl_interface={ctrl_dir}",
        f"ssid={w.ssid}",
        "utf8_ssid=1",
        f"hw_mode={w.hw_mode}",
        f"channel={w.channel}",
        "wmm_enabled=1",
        "macaddr_acl=0",
        "auth_algs=1",
        "ignore_broadcast_ssid=0",
    ]
    if w.bridge:
        lines.insert(1, f"bridge={w.bridge}")
    if country:
        lines += [f"country_code={country}", "ieee80211d=1"]
    if w.hw_mode == "a":
        lines.append("ieee80211n=1")
    if not w.is_open:
        lines += [
            "wpa=2",
            f"wpa_passphrase={w.password}",
            "wpa_key_mgmt=WPA-PSK",
            "rsn_pairwise=CCMP",
        ]
    return "\n".join(lines) + "\n"


class WirelessDriver(SegmentDriver):
    """One hostapd instance per interface, each with its own conf/pid/log."""

    kind = SegmentKind.WIRELESS

    def __init__(
        self,
        runner: CommandRunner,
        paths: DriverPaths,
        activation_timeout: float = 30.0,
        country: Optional[str] = None,
    ) -> None:
        super().__init__(runner, paths, activation_timeout)
        self.country = country

    def instance(self, iface: str) -> str:
        return f"hostapd-{iface}"

    def render(self, w: WirelessConfig) -> Dict[str, str]:
        ctrl_dir = os.path.join(self.paths.state_dir, "run", "hostapd")
        return {self.paths.conf(f"{self.instance(w.interface)}.conf"): render_hostapd(w, ctrl_dir, self.country)}

    def plan(self, w: WirelessConfig, prior: Dict[str, LinkSnapshot]) -> List[Step]:
        name = self.instance(w.interface)
        conf = self.paths.conf(f"{name}.conf")
        pidfile = self.paths.pidfile(name)
        stop = ["pkill", "-F", pidfile]
        steps = [link_up(w.interface, prior)]
        if os.path.exists(pidfile):
            # leftover instance for this interface only; other APs untouched
            steps.append(Step("stop-stale-hostapd", stop, teardown=[], tolerate=True))
        steps += [
            Step("install-hostapd-conf", install=conf),
            Step(
                "start-hostapd",
                ["hostapd", "-B", "-P", pidfile, "-f", self.paths.logfile(name), conf],
                undo=[stop],
            ),
        ]
        return steps
