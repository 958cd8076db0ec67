from fastapi import APIRouter

from app.api.routes.health import router as health_router
from app.api.routes.maintenance import router as maintenance_router

api_router = APIRouter()
v1_router = APIRouter(prefix="/v1")

api_router.include_router(health_router)

# Transitional unversioned routes used by current frontend.
api_router.include_router(maintenance_router)

# Versioned routes for long-term API evolution.
v1_router.include_router(maintenance_router)
api_router.include_router(v1_router)
