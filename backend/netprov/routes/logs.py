from fastapi import APIRouter, Depends, HTTPException, Query

from ..models.segments import SegmentKind
from ..security.auth import require_auth
from ..services.daemon_logs import DAEMONS
from ..services.engine import Engine, get_engine


router = APIRouter(dependencies=[Depends(require_auth)])


@router.get("/{kind}/{key}")
async def daemon_log(
    kind: SegmentKind,
    key: str,
    lines: int = Query(default=100, ge=1, le=2000),
    engine: Engine = Depends(get_engine),
) -> dict:
    if kind not in DAEMONS:
        raise HTTPException(status_code=404, detail=f"{kind.value} segments have no daemon log")
    engine.projector.view(kind, key)  # 404 when not configured
    return {"kind": kind.value, "key": key, "daemon": DAEMONS[kind], "lines": await engine.logs.tail(kind, key, lines)}
