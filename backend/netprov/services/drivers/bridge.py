from __future__ import annotations

from typing import Dict, List

from ...models.interfaces import LinkSnapshot
from ...models.segments import BridgeConfig, SegmentKind
from .base import SegmentDriver, Step, link_up


class BridgeDriver(SegmentDriver):
    kind = SegmentKind.BRIDGE

    def render(self, b: BridgeConfig) -> Dict[str, str]:
        return {}

    def plan(self, b: BridgeConfig, prior: Dict[str, LinkSnapshot]) -> List[Step]:
        steps = [
            Step(
                "create-bridge",
                ["ip", "link", "add", "name", b.name, "type", "bridge"],
                undo=[["ip", "link", "delete", "dev", b.name]],
            ),
            Step("stp", ["ip", "link", "set", "dev", b.name, "type", "bridge", "stp_state", "1" if b.stp else "0"]),
        ]
        for member in b.members:
            snap = prior.get(member)
            readd = [["ip", "addr", "add", cidr, "dev", member] for cidr in (snap.addresses if snap else [])]
            member_up = link_up(member, prior)
            # members stay present and unconfigured after teardown
            member_up.teardown = []
            steps += [
                Step(f"flush {member}", ["ip", "addr", "flush", "dev", member], undo=readd, teardown=[]),
                Step(
                    f"enslave {member}",
                    ["ip", "link", "set", "dev", member, "master", b.name],
                    undo=[["ip", "link", "set", "dev", member, "nomaster"]],
                ),
                member_up,
            ]
        steps.append(Step(f"link-up {b.name}", ["ip", "link", "set", "dev", b.name, "up"]))
        return steps
