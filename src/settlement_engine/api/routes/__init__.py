"""API routes."""

from settlement_engine.api.routes.health import router as health_router
from settlement_engine.api.routes.terminations import router as terminations_router

__all__ = ["terminations_router", "health_router"]
