import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from assetmarket.config import settings
from assetmarket.core.exceptions import MarketError
from assetmarket.database import dispose_engine, init_db
from assetmarket.models import *  # noqa: F403
from assetmarket.schemas.event import MarketNotification
from assetmarket.services import event_service

APP_VERSION = "0.1.0"

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# WebSocket connection manager for the live market feed
class ConnectionManager:
    """Tracks feed subscribers and pushes market events to them in the background.

    Delivery is best effort: a slow or broken socket is dropped, and a failed
    broadcast is logged without reaching the operation that produced the event.
    """

    MAX_CONNECTIONS = 1000

    def __init__(self):
        self.active: set[WebSocket] = set()
        self._pending: set[asyncio.Task] = set()

    async def connect(self, ws: WebSocket) -> bool:
        if len(self.active) >= self.MAX_CONNECTIONS:
            await ws.close(code=4029, reason="Too many connections")
            return False
        await ws.accept()
        self.active.add(ws)
        return True

    def disconnect(self, ws: WebSocket) -> None:
        self.active.discard(ws)

    async def broadcast(self, message: dict) -> None:
        data = json.dumps(message)
        dead: list[WebSocket] = []
        for ws in list(self.active):
            try:
                await ws.send_text(data)
            except Exception:
                logger.debug("Dropping dead WebSocket connection", exc_info=True)
                dead.append(ws)
        for ws in dead:
            self.active.discard(ws)

    def schedule(self, message: dict) -> asyncio.Task | None:
        """Broadcast ``message`` without waiting for delivery."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop, dropping %s broadcast", message.get("type"))
            return None
        task = loop.create_task(self.broadcast(message), name=f"ws-{message.get('type')}")
        self._pending.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("WebSocket broadcast %s failed", task.get_name(), exc_info=exc)

    async def drain(self, timeout_seconds: float = 1.0) -> None:
        """Wait for scheduled broadcasts, cancelling any that overrun the timeout."""
        pending = {task for task in self._pending if not task.done()}
        if not pending:
            return
        _, overrun = await asyncio.wait(pending, timeout=timeout_seconds)
        for task in overrun:
            task.cancel()
        if overrun:
            await asyncio.gather(*overrun, return_exceptions=True)


ws_manager = ConnectionManager()


def broadcast_notification(notification: MarketNotification) -> None:
    """Event subscriber: push a committed market event to WebSocket clients."""
    if not ws_manager.active:
        return
    ws_manager.schedule({
        "type": notification.event_type,
        "data": notification.model_dump(mode="json"),
    })


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Startup: create tables and start fanning events out to the live feed
    await init_db()
    event_service.subscribe(broadcast_notification)
    logger.info("Asset market %s started (%s)", APP_VERSION, settings.environment)

    yield

    # Shutdown: detach the feed, flush pending broadcasts and dispose connection pool
    event_service.unsubscribe(broadcast_notification)
    await ws_manager.drain()
    await dispose_engine()


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response: Response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        response.headers["Permissions-Policy"] = (
            "camera=(), microphone=(), geolocation=(), payment=(), usb=()"
        )
        return response


async def market_error_handler(request: Request, exc: MarketError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "code": exc.code},
        headers=getattr(exc, "headers", None),
    )


def create_app() -> FastAPI:
    app = FastAPI(
        title="Asset Market",
        description="Fixed-price marketplace ledger for non-fungible assets",
        version=APP_VERSION,
        lifespan=lifespan,
    )

    # CORS configurable via CORS_ORIGINS env var
    allowed_origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Security headers
    app.add_middleware(SecurityHeadersMiddleware)

    app.add_exception_handler(MarketError, market_error_handler)

    # Register REST routers
    from assetmarket.api import API_PREFIX, API_ROUTERS

    for router in API_ROUTERS:
        app.include_router(router, prefix=API_PREFIX)

    # WebSocket for the public market feed
    @app.websocket("/ws/events")
    async def live_events(ws: WebSocket) -> None:
        connected = await ws_manager.connect(ws)
        if not connected:
            return
        try:
            while True:
                # Keep connection alive, receive pings
                await ws.receive_text()
        except WebSocketDisconnect:
            ws_manager.disconnect(ws)

    @app.get("/")
    async def root() -> dict[str, str]:
        return {
            "name": "Asset Market",
            "version": APP_VERSION,
            "docs": "/docs",
            "health": f"{API_PREFIX}/health",
            "events": "/ws/events",
        }

    return app


app = create_app()
