"""
Diagram Controller Backend - FastAPI Application

This is the main entry point for the controller's HTTP shell.
It provides:
- One catch-all route per verb forwarding to the compiled router
- WebSocket endpoint for model_updated notifications
- Health check
- CORS configuration for local clients

Requests are dispatched one at a time: the router and its handlers assume
exclusive access to the model graph while they run, deferred ones included.
"""
import asyncio
import inspect
import json
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__, config
from ..api import ApiContext, Router, build_router, status_for
from ..host import ModelEngine
from ..utils import get_logger
from .websocket_manager import ws_manager

logger = get_logger("server")

METHODS = ["GET", "POST", "PUT", "DELETE"]


def _raw_url(request: Request) -> str:
    """Path and query exactly as sent, still percent-encoded."""
    raw_path = request.scope.get("raw_path")
    path = raw_path.decode("latin-1") if raw_path else request.scope["path"]
    query = request.scope.get("query_string", b"").decode("latin-1")
    return f"{path}?{query}" if query else path


def _error(request: Request, status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": message,
            "request": {"method": request.method, "path": request.url.path},
        },
    )


def create_app(engine: Optional[ModelEngine] = None, router: Optional[Router] = None) -> FastAPI:
    """Build the application around one engine and one router."""
    engine = engine or ModelEngine(max_history=config.MAX_HISTORY, project_name=config.PROJECT_NAME)
    router = router or build_router()
    ctx = ApiContext.create(engine, frame_margin=config.FRAME_MARGIN)
    dispatch_lock = asyncio.Lock()

    # --- Async change notification ---
    # Bridge between sync engine callbacks and async WebSocket broadcasts

    state: dict = {"loop": None, "changed": None}

    def on_model_change():
        """Engine callback; may run on a worker thread during deferred handlers."""
        loop, changed = state["loop"], state["changed"]
        if loop is not None and changed is not None:
            loop.call_soon_threadsafe(changed.set)

    async def change_broadcaster(changed: asyncio.Event):
        """Background task that broadcasts changes to WebSocket clients."""
        while True:
            await changed.wait()
            changed.clear()
            await ws_manager.notify_model_updated(
                engine.project.name, engine.can_undo, engine.can_redo
            )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifespan handler for startup/shutdown tasks."""
        state["loop"] = asyncio.get_running_loop()
        state["changed"] = asyncio.Event()
        broadcaster_task = asyncio.create_task(change_broadcaster(state["changed"]))
        logger.info("Diagram controller ready: %d routes", len(router.routes))

        yield

        broadcaster_task.cancel()
        try:
            await broadcaster_task
        except asyncio.CancelledError:
            pass
        state["loop"] = state["changed"] = None

    engine.on_change(on_model_change)

    app = FastAPI(
        title="Diagram Controller API",
        description="REST remote control for a diagram modeling graph",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.ctx = ctx
    app.state.router = router

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- Health Check ---

    @app.get("/api/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "ok", "connections": ws_manager.connection_count}

    # --- WebSocket ---

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        """
        WebSocket endpoint for real-time updates.

        Clients connect here to receive model_updated events.
        """
        await ws_manager.connect(websocket)
        try:
            while True:
                data = await websocket.receive_text()
                if data == "ping":
                    await websocket.send_text('{"type": "pong"}')
        except WebSocketDisconnect:
            await ws_manager.disconnect(websocket)

    # --- Everything else goes through the router ---

    @app.api_route("/{path:path}", methods=METHODS)
    async def dispatch(request: Request, path: str):
        raw = await request.body()
        if len(raw) > config.MAX_BODY_BYTES:
            limit_mb = config.MAX_BODY_BYTES // (1024 * 1024)
            return _error(request, 413, f"Request body too large (max {limit_mb}MB)")

        body: dict = {}
        if raw.strip():
            try:
                body = json.loads(raw)
            except (json.JSONDecodeError, UnicodeDecodeError):
                return _error(request, 400, "Invalid JSON in request body")
            if not isinstance(body, dict):
                return _error(request, 400, "Request body must be a JSON object")

        url = _raw_url(request)
        try:
            async with dispatch_lock:
                result = router.dispatch(ctx, request.method, url, body)
                if inspect.isawaitable(result):
                    result = await result
        except Exception as e:
            logger.exception("Unhandled error for %s %s", request.method, url)
            return _error(request, 500, f"Internal server error: {e}")

        return JSONResponse(status_code=status_for(result), content=result)

    return app


app = create_app()


def main():
    import uvicorn
    logger.info("Starting diagram controller on %s:%d", config.HOST, config.PORT)
    uvicorn.run(app, host=config.HOST, port=config.PORT)


# --- Run with uvicorn ---

if __name__ == "__main__":
    main()
