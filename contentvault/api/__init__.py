"""
API routes initialization.

Aggregates all API routers into a single router to include in the
main application.
"""

from fastapi import APIRouter

from contentvault.api.routes import content, search

api_router = APIRouter()

api_router.include_router(content.router)
api_router.include_router(search.router)
