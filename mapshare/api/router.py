from fastapi import APIRouter

from mapshare.api.routes import auth
from mapshare.api.routes import live_locations
from mapshare.api.routes import locations

api_router = APIRouter(prefix="/v1")

api_router.include_router(auth.router)
api_router.include_router(locations.router)
api_router.include_router(live_locations.router)
