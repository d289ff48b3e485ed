from __future__ import annotations

from typing import Dict, List

from ...models.interfaces import LinkSnapshot
from ...models.segments import HotspotInstance, SegmentKind
from .base import DriverPaths, SegmentDriver, Step, link_up
from ..runner import CommandRunner


def shaping_burst_kbit(mbps: int) -> int:
    # tbf needs at least rate/HZ bytes of burst; HZ=250 gives mbps/2 KB
    return max(32, mbps * 4)


class HotspotDriver(SegmentDriver):
    """Gateway address, NAT, captive redirect, shaping and a DHCP scope."""

    kind = SegmentKind.HOTSPOT

    def __init__(
        self,
        runner: CommandRunner,
        paths: DriverPaths,
        activation_timeout: float = 30.0,
        portal_port: int = 80,
        lease_time: str = "12h",
        captive_dns: bool = False,
    ) -> None:
        super().__init__(runner, paths, activation_timeout)
        self.portal_port = portal_port
        self.lease_time = lease_time
        self.captive_dns = captive_dns

    def instance(self, iface: str) -> str:
        return f"dnsmasq-{iface}"

    def render(self, h: HotspotInstance) -> Dict[str, str]:
        name = self.instance(h.interface)
        low, high = h.dhcp_bounds
        gw = str(h.ip_address)
        lines = [
            f"interface={h.interface}",
            "bind-interfaces",
            "except-interface=lo",
            f"listen-address={gw}",
            f"dhcp-range={low},{high},{h.network.netmask},{self.lease_time}",
            f"dhcp-option=3,{gw}",
            f"dhcp-option=6,{gw}",
            "dhcp-authoritative",
            f"dhcp-leasefile={self.paths.state_dir}/run/{name}.leases",
            f"log-facility={self.paths.logfile(name)}",
            "log-dhcp",
        ]
        if self.captive_dns:
            # every name resolves to the gateway until the client is let through
            lines.append(f"address=/#/{gw}")
        return {self.paths.conf(f"{name}.conf"): "\n".join(lines) + "\n"}

    def plan(self, h: HotspotInstance, prior: Dict[str, LinkSnapshot]) -> List[Step]:
        iface = h.interface
        subnet = str(h.network)
        name = self.instance(iface)
        conf = self.paths.conf(f"{name}.conf")
        pidfile = self.paths.pidfile(name)

        masquerade = ["-t", "nat", "POSTROUTING", "-s", subnet, "!", "-o", iface, "-j", "MASQUERADE"]
        redirect = [
            "-t", "nat", "PREROUTING", "-i", iface, "-p", "tcp", "--dport", "80",
            "-j", "REDIRECT", "--to-ports", str(self.portal_port),
        ]

        steps = [
            link_up(iface, prior),
            Step("enable-forwarding", ["sysctl", "-w", "net.ipv4.ip_forward=1"]),
            Step(
                "assign-gateway",
                ["ip", "addr", "add", h.gateway_cidr, "dev", iface],
                undo=[["ip", "addr", "del", h.gateway_cidr, "dev", iface]],
            ),
            Step("nat", _iptables("-A", masquerade), undo=[_iptables("-D", masquerade)]),
            Step("captive-redirect", _iptables("-A", redirect), undo=[_iptables("-D", redirect)]),
        ]
        if h.bandwidth_limit:
            steps.append(
                Step(
                    "shaping",
                    [
                        "tc", "qdisc", "add", "dev", iface, "root", "tbf",
                        "rate", f"{h.bandwidth_limit}mbit",
                        "burst", f"{shaping_burst_kbit(h.bandwidth_limit)}kbit",
                        "latency", "400ms",
                    ],
                    undo=[["tc", "qdisc", "del", "dev", iface, "root"]],
                )
            )
        steps += [
            Step("install-dhcp-scope", install=conf),
            Step(
                "start-dnsmasq",
                ["dnsmasq", f"--conf-file={conf}", f"--pid-file={pidfile}"],
                undo=[["pkill", "-F", pidfile]],
            ),
        ]
        return steps


def _iptables(action: str, rule: List[str]) -> List[str]:
    # rule is [-t table, chain, match...]
    return ["iptables", rule[0], rule[1], action] + rule[2:]
