"""
API package for Quill.

FastAPI routers forming the transport bridge.
"""

from .agent import router as agent_router
from .health import router as health_router

__all__ = ["agent_router", "health_router"]
