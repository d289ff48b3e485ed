from fastapi import APIRouter, Depends
from typing import List

from ..models.segments import BridgeConfig, SegmentKind
from ..models.status import BridgeView
from ..security.auth import require_auth
from ..services.engine import Engine, get_engine


router = APIRouter(dependencies=[Depends(require_auth)])


@router.get("", response_model=List[BridgeView])
async def list_bridges(engine: Engine = Depends(get_engine)) -> List[BridgeView]:
    return engine.projector.bridges()


@router.post("", response_model=BridgeView, status_code=201)
async def create_bridge(req: BridgeConfig, engine: Engine = Depends(get_engine)) -> BridgeView:
    config = await engine.reconciler.create(req)
    return engine.projector.view(SegmentKind.BRIDGE, config.key)


@router.delete("/{name}")
async def remove_bridge(name: str, engine: Engine = Depends(get_engine)) -> dict:
    await engine.reconciler.destroy(SegmentKind.BRIDGE, name)
    return {"ok": True}
