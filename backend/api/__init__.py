"""
API module - routes and schemas.
Routes are split by domain: flow, settings.
"""

from .routes import register_routes
from .state import FlowRunState

__all__ = ["FlowRunState", "register_routes"]
