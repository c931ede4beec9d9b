"""
API v1 router combining all v1 endpoints.
"""
from fastapi import APIRouter

from examhub.api.v1 import executions, health, plans

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(plans.router, prefix="/plans", tags=["plans"])
api_router.include_router(executions.router, prefix="/executions", tags=["executions"])
