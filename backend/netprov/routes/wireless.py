from fastapi import APIRouter, Depends
from typing import List

from ..models.segments import SegmentKind, WirelessConfig
from ..models.status import WirelessView
from ..security.auth import require_auth
from ..services.engine import Engine, get_engine


router = APIRouter(dependencies=[Depends(require_auth)])


@router.get("", response_model=List[WirelessView])
async def list_wireless(engine: Engine = Depends(get_engine)) -> List[WirelessView]:
    return engine.projector.wireless()


@router.post("", response_model=WirelessView, status_code=201)
async def configure_wireless(req: WirelessConfig, engine: Engine = Depends(get_engine)) -> WirelessView:
    config = await engine.reconciler.create(req)
    return engine.projector.view(SegmentKind.WIRELESS, config.key)


@router.delete("/{interface}")
async def remove_wireless(interface: str, engine: Engine = Depends(get_engine)) -> dict:
    await engine.reconciler.destroy(SegmentKind.WIRELESS, interface)
    return {"ok": True}
