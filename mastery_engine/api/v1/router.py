"""API v1 router - includes all v1 endpoints."""

from fastapi import APIRouter

from mastery_engine.api.v1.endpoints import bkt, health, test

api_router = APIRouter()

# Include all endpoint routers
api_router.include_router(health.router, prefix="", tags=["Health"])
api_router.include_router(test.router, prefix="/test", tags=["Adaptive Test"])
api_router.include_router(bkt.router, prefix="/bkt", tags=["BKT"])
