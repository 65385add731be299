"""API routers."""

from keygate.routers.api_keys import router as api_keys_router
from keygate.routers.health import router as health_router

__all__ = [
    "health_router",
    "api_keys_router",
]
