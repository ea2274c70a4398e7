"""Master API router — includes all sub-routers."""

from fastapi import APIRouter

from .routes.columns import router as columns_router
from .routes.grid_view import router as grid_view_router
from .routes.layouts import router as layouts_router
from .routes.rows import router as rows_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(rows_router)
api_router.include_router(columns_router)
api_router.include_router(layouts_router)
api_router.include_router(grid_view_router)
