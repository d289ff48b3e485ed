from __future__ import annotations

import hmac
from datetime import timedelta
from typing import Optional

from fastapi import Cookie, Header, HTTPException, Response, WebSocket, status
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from ..config import settings


SESSION_COOKIE = "np_session"
SESSION_TTL = timedelta(hours=12)
TOKEN_USER = "token"

serializer = URLSafeTimedSerializer(settings.secret_key or "netprov-dev-key", salt="netprov-session")


def create_session(response: Response, username: str) -> None:
    token = serializer.dumps({"u": username})
    response.set_cookie(
        key=SESSION_COOKIE,
        value=token,
        max_age=int(SESSION_TTL.total_seconds()),
        httponly=True,
        secure=False,
        samesite="Lax",
        path="/",
    )


def clear_session(response: Response) -> None:
    response.delete_cookie(SESSION_COOKIE, path="/")


def _bearer_ok(authorization: Optional[str]) -> bool:
    if not settings.admin_token or not authorization:
        return False
    scheme, _, token = authorization.partition(" ")
    return scheme.lower() == "bearer" and hmac.compare_digest(token.strip(), settings.admin_token)


def _session_user(cookie: Optional[str]) -> str:
    if not cookie:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    try:
        data = serializer.loads(cookie, max_age=int(SESSION_TTL.total_seconds()))
    except SignatureExpired:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Session expired")
    except BadSignature:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid session")
    return data.get("u")


def require_auth(
    np_session: Optional[str] = Cookie(default=None, alias=SESSION_COOKIE),
    authorization: Optional[str] = Header(default=None),
) -> str:
    if _bearer_ok(authorization):
        return TOKEN_USER
    return _session_user(np_session)


def websocket_user(websocket: WebSocket) -> Optional[str]:
    """Same checks as require_auth; None when the socket should be refused."""
    if _bearer_ok(websocket.headers.get("authorization")):
        return TOKEN_USER
    try:
        return _session_user(websocket.cookies.get(SESSION_COOKIE))
    except HTTPException:
        return None
