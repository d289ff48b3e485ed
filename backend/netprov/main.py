import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse

from .config import settings
from .routes.auth import router as auth_router
from .routes.bridges import router as bridges_router
from .routes.events import router as events_router
from .routes.hotspots import router as hotspots_router
from .routes.interfaces import router as interfaces_router
from .routes.logs import router as logs_router
from .routes.status import router as status_router
from .routes.vlans import router as vlans_router
from .routes.wireless import router as wireless_router
from .services.engine import get_engine
from .services.errors import NetprovError
from .utils.logging_config import setup_logging


logger = logging.getLogger(__name__)

app = FastAPI(title="Network Provisioning Engine")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"]
)


@app.exception_handler(NetprovError)
async def netprov_error_handler(request: Request, exc: NetprovError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.on_event("startup")
async def on_startup() -> None:
    setup_logging(settings)
    engine = app.dependency_overrides.get(get_engine, get_engine)()
    # Stored segments are not re-applied; degraded ones are only reported
    await engine.reconciler.startup()


app.include_router(auth_router, prefix="/api/auth", tags=["auth"])
app.include_router(interfaces_router, prefix="/api/interfaces", tags=["interfaces"])
app.include_router(wireless_router, prefix="/api/wireless", tags=["wireless"])
app.include_router(hotspots_router, prefix="/api/hotspots", tags=["hotspots"])
app.include_router(vlans_router, prefix="/api/vlans", tags=["vlans"])
app.include_router(bridges_router, prefix="/api/bridges", tags=["bridges"])
app.include_router(status_router, prefix="/api/status", tags=["status"])
app.include_router(events_router, prefix="/api/events", tags=["events"])
app.include_router(logs_router, prefix="/api/logs", tags=["logs"])


def run() -> None:
    import uvicorn

    uvicorn.run("netprov.main:app", host=settings.host, port=settings.port)
