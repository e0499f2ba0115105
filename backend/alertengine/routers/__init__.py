# API routers
from .alerts import router as alerts_router
from .diagnostics import router as diagnostics_router

__all__ = ["alerts_router", "diagnostics_router"]
