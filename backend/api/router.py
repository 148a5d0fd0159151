"""
Main API router
"""

from fastapi import APIRouter

from api.endpoints import analyze, health

api_router = APIRouter()

# Include endpoint routers
api_router.include_router(
    health.router,
    tags=["health"]
)

api_router.include_router(
    analyze.router,
    tags=["analyze"]
)
