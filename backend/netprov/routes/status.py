from fastapi import APIRouter, Depends

from ..models.status import NetworkOverview
from ..security.auth import require_auth
from ..services.engine import Engine, get_engine


router = APIRouter(dependencies=[Depends(require_auth)])


@router.get("", response_model=NetworkOverview)
async def overview(engine: Engine = Depends(get_engine)) -> NetworkOverview:
    return engine.projector.overview()
