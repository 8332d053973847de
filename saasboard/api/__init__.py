"""API routers."""

from fastapi import APIRouter

from saasboard.api.auth import router as auth_router
from saasboard.api.chat import router as chat_router
from saasboard.api.dashboard import router as dashboard_router
from saasboard.api.health import router as health_router

api_router = APIRouter(prefix="/api")
api_router.include_router(auth_router)
api_router.include_router(dashboard_router)
api_router.include_router(chat_router)

__all__ = ["api_router", "health_router"]
