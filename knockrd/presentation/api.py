from fastapi import APIRouter

from knockrd.presentation.routers.knock import router as knock_router
from knockrd.presentation.routes.health import router as health_router

api = APIRouter()

# Add all routers here
routers = (health_router, knock_router)
for router in routers:
    api.include_router(router)
