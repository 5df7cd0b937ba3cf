"""
Workflow Flow Backend - FastAPI + Socket.io entry point.
Serves the workflow tree layout and hover highlights; pushes flow-update on every change.
"""

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import socketio
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

from api import FlowRunState, register_routes
from api import state as api_state
from db import get_effective_config
from flow.session import FlowSession
from flow.store import FlowStore
from planner import MockDecomposer

# Frontend static files
FRONTEND_DIR = Path(__file__).parent.parent / "frontend"

# Disable cache for static files (dev: always fetch latest)
NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


class NoCacheMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        response = await call_next(request)
        path = request.url.path
        if path == "/" or path.endswith((".html", ".css", ".js")):
            for k, v in NO_CACHE_HEADERS.items():
                response.headers[k] = v
        return response


def create_app(session: Optional[FlowSession] = None, load_settings: bool = True):
    """Build (fastapi_app, sio, session). The session is the one live flow for this process."""
    sio = socketio.AsyncServer(async_mode="asgi", cors_allowed_origins="*")
    if session is None:
        session = FlowSession(FlowStore(), MockDecomposer(on_thinking=api_state.on_thinking))
    run_state = FlowRunState()
    run_state.lock = asyncio.Lock()

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        if load_settings:
            api_state.apply_config(session, await get_effective_config())
        unsubscribe = session.store.subscribe(
            lambda snap: api_state.emit_soon("flow-update", snap.to_payload())
        )
        try:
            yield
        finally:
            unsubscribe()

    app = FastAPI(title="Workflow Flow Backend", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(NoCacheMiddleware)

    # API routes must come before static file serving
    register_routes(app, sio, session, run_state)

    @app.get("/api/health")
    async def health():
        return {"ok": True}

    if FRONTEND_DIR.exists():
        app.mount("/", StaticFiles(directory=str(FRONTEND_DIR), html=True), name="static")

    @sio.event
    async def connect(sid, environ, auth):
        logger.info("Client connected: {}", sid)
        await sio.emit("flow-update", session.snapshot().to_payload(), to=sid)

    @sio.event
    def disconnect(sid):
        logger.info("Client disconnected: {}", sid)

    return app, sio, session


app, sio, flow_session = create_app()

# ASGI app for uvicorn (Socket.io + FastAPI)
asgi_app = socketio.ASGIApp(sio, app)
