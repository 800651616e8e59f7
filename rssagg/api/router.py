from fastapi import APIRouter

from rssagg.api.health import router as health_router
from rssagg.api.scraper import router as scraper_router

api_router = APIRouter()

# API routes at /v1/*
api_router.include_router(health_router, prefix="/v1", tags=["health"])
api_router.include_router(scraper_router, prefix="/v1", tags=["scraper"])
