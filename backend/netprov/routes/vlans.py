from fastapi import APIRouter, Depends
from typing import List

from ..models.segments import SegmentKind, VlanCreateRequest
from ..models.status import VlanView
from ..security.auth import require_auth
from ..services.engine import Engine, get_engine


router = APIRouter(dependencies=[Depends(require_auth)])


@router.get("", response_model=List[VlanView])
async def list_vlans(engine: Engine = Depends(get_engine)) -> List[VlanView]:
    return engine.projector.vlans()


@router.post("", response_model=VlanView, status_code=201)
async def create_vlan(req: VlanCreateRequest, engine: Engine = Depends(get_engine)) -> VlanView:
    # name is always derived as <parent>.<id>
    config = await engine.reconciler.create(req.to_config())
    return engine.projector.view(SegmentKind.VLAN, config.key)


@router.delete("/{name}")
async def remove_vlan(name: str, engine: Engine = Depends(get_engine)) -> dict:
    await engine.reconciler.destroy(SegmentKind.VLAN, name)
    return {"ok": True}
