from __future__ import annotations

from typing import Dict, List

from ...models.interfaces import LinkSnapshot
from ...models.segments import SegmentKind, VlanConfig
from .base import SegmentDriver, Step, link_up


class VlanDriver(SegmentDriver):
    kind = SegmentKind.VLAN

    def render(self, v: VlanConfig) -> Dict[str, str]:
        return {}

    def plan(self, v: VlanConfig, prior: Dict[str, LinkSnapshot]) -> List[Step]:
        parent = link_up(v.parent_interface, prior)
        # other VLANs may share the parent; teardown leaves it alone
        parent.teardown = []
        return [
            parent,
            Step(
                "create-vlan",
                ["ip", "link", "add", "link", v.parent_interface, "name", v.name, "type", "vlan", "id", str(v.id)],
                undo=[["ip", "link", "delete", "dev", v.name]],
            ),
            Step("link-up " + v.name, ["ip", "link", "set", "dev", v.name, "up"]),
        ]
