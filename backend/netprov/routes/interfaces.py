from fastapi import APIRouter, Depends
from typing import List

from ..models.interfaces import Interface
from ..security.auth import require_auth
from ..services.engine import Engine, get_engine


router = APIRouter(dependencies=[Depends(require_auth)])


@router.get("", response_model=List[Interface])
async def list_interfaces(engine: Engine = Depends(get_engine)) -> List[Interface]:
    return engine.projector.interfaces()


@router.get("/all", response_model=List[Interface])
async def list_all_interfaces(engine: Engine = Depends(get_engine)) -> List[Interface]:
    return engine.projector.interfaces(include_loopback=True)
