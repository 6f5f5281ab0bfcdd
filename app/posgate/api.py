from fastapi import APIRouter

from app.posgate.routers.auth import router as auth_router
from app.posgate.routers.health import router as health_router
from app.posgate.routers.navigation import router as navigation_router

api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(auth_router, prefix="/posgate/auth", tags=["auth"])
api_router.include_router(navigation_router, prefix="/posgate/navigation", tags=["navigation"])
