from fastapi import APIRouter, Depends
from typing import List

from ..models.segments import HotspotInstance, SegmentKind
from ..models.status import HotspotView
from ..security.auth import require_auth
from ..services.engine import Engine, get_engine


router = APIRouter(dependencies=[Depends(require_auth)])


@router.get("", response_model=List[HotspotView])
async def list_hotspots(engine: Engine = Depends(get_engine)) -> List[HotspotView]:
    return engine.projector.hotspots()


@router.post("", response_model=HotspotView, status_code=201)
async def create_hotspot(req: HotspotInstance, engine: Engine = Depends(get_engine)) -> HotspotView:
    config = await engine.reconciler.create(req)
    return engine.projector.view(SegmentKind.HOTSPOT, config.key)


@router.delete("/{interface}")
async def remove_hotspot(interface: str, engine: Engine = Depends(get_engine)) -> dict:
    await engine.reconciler.destroy(SegmentKind.HOTSPOT, interface)
    return {"ok": True}
