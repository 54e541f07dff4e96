"""
Flow Analytics API package.

Router modules:
- flows: flow row aggregation and per-step analysis
"""

from fastapi import APIRouter

from flow_analytics.api.flows import router as flows_router

api_router = APIRouter()

api_router.include_router(flows_router, prefix="/flows", tags=["flows"])

__all__ = [
    "api_router",
    "flows_router",
]
