"""API route modules."""

from fastapi import FastAPI

from . import flow, settings
from ..state import FlowRunState, init_api_state


def register_routes(app: FastAPI, sio, session, run_state: FlowRunState):
    """Register all API routers. Call after app, sio and the flow session are created."""
    init_api_state(sio, session, run_state)

    app.include_router(flow.router, prefix="/api/flow", tags=["flow"])
    app.include_router(settings.router, prefix="/api/settings", tags=["settings"])
