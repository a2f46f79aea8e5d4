"""Top-level API router."""

from fastapi import APIRouter

from staffsync.api.routes.assignments import router as assignments_router
from staffsync.api.routes.health import router as health_router
from staffsync.api.routes.projects import router as projects_router
from staffsync.api.routes.status_entries import router as status_entries_router

api_router = APIRouter()
api_router.include_router(health_router, tags=["health"])
api_router.include_router(assignments_router)
api_router.include_router(projects_router)
api_router.include_router(status_entries_router)
