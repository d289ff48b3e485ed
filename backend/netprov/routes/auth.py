from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel

from ..security.auth import clear_session, create_session, require_auth
from ..services.engine import Engine, get_engine


router = APIRouter()


class LoginRequest(BaseModel):
    username: str
    password: str


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str


@router.get("/state")
async def state(user: str = Depends(require_auth)) -> dict:
    return {"authenticated": True, "user": user}


@router.post("/login")
async def login(req: LoginRequest, response: Response, engine: Engine = Depends(get_engine)) -> dict:
    credentials = engine.credentials
    if not credentials.initialized():
        raise HTTPException(status_code=503, detail="Operator account not initialized")
    if not credentials.authenticate(req.username, req.password):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    create_session(response, req.username)
    return {"ok": True}


@router.post("/logout")
async def logout(response: Response) -> dict:
    clear_session(response)
    return {"ok": True}


@router.post("/change-password")
async def change_password(
    req: ChangePasswordRequest,
    user: str = Depends(require_auth),
    engine: Engine = Depends(get_engine),
) -> dict:
    try:
        engine.credentials.change_password(req.current_password, req.new_password)
    except PermissionError as e:
        raise HTTPException(status_code=401, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"ok": True}


@router.post("/bootstrap")
async def bootstrap(req: LoginRequest, engine: Engine = Depends(get_engine)) -> dict:
    try:
        engine.credentials.initialize(req.username, req.password)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"ok": True}


@router.get("/bootstrap-allowed")
async def bootstrap_allowed(engine: Engine = Depends(get_engine)) -> dict:
    return {"allowed": not engine.credentials.initialized()}
