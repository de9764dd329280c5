"""
Collective Model Hub - FastAPI Backend

Run with:
    uvicorn main:app --reload
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api import activities, auth, compute, contributions, datasets, ipfs, models, realtime, stats
from config import Settings, get_settings
from repositories import MemoryStore
from services.broadcaster import Broadcaster
from services.contribution_engine import ContributionEngine
from services.ipfs_client import IpfsClient

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s [%(name)s] %(levelname)s: %(message)s'


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    """Every error body carries an `error` field"""
    if isinstance(exc.detail, dict):
        content = exc.detail
    else:
        content = {"error": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


async def validation_error_handler(request: Request, exc: RequestValidationError):
    details = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"error": "Invalid request", "details": details})


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[MemoryStore] = None,
    ipfs_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """
    Build the application with its shared services on app.state.

    Args:
        settings: Defaults to get_settings()
        store: Defaults to a freshly seeded MemoryStore
        ipfs_transport: Optional httpx transport for the IPFS client (tests)
    """
    settings = settings or get_settings()
    store = store or MemoryStore()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        # Shutdown
        await app.state.broadcaster.close()

    app = FastAPI(
        title="Collective Model Hub",
        description="Collaborative model improvement with real-time updates",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.store = store
    app.state.engine = ContributionEngine(store, step_delay=settings.compute_step_delay_seconds)
    app.state.broadcaster = Broadcaster(
        store,
        send_timeout=settings.websocket_send_timeout_seconds,
        queue_size=settings.websocket_queue_size,
    )
    app.state.ipfs = IpfsClient.from_settings(settings, transport=ipfs_transport)

    # Credentials (cookies) cannot be combined with a wildcard origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials="*" not in settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    for module in (auth, models, contributions, activities, compute, stats, ipfs, datasets, realtime):
        app.include_router(module.router)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    logger.info(f"Application created (environment={settings.environment})")
    return app


logging.basicConfig(level=get_settings().log_level.upper(), format=LOG_FORMAT)

app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
