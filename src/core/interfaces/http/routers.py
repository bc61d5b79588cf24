"""API router configuration."""

from fastapi import APIRouter

from src.modules.sources.interfaces.router import router as sources_router

api_router = APIRouter()

# Sources
api_router.include_router(sources_router)
