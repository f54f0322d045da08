"""API v1 router - includes all v1 endpoints."""

from fastapi import APIRouter

from lms.api.v1.endpoints import activities, attempts, health

api_router = APIRouter()

api_router.include_router(health.router, prefix="", tags=["Health"])
api_router.include_router(activities.router, prefix="/activities", tags=["Activities"])
api_router.include_router(attempts.router, prefix="/attempts", tags=["Attempts"])
