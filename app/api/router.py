"""
Main API router
"""
from fastapi import APIRouter

from app.api.v1 import (
    health,
    leave_requests,
    approvals,
    balances,
    hr,
)
from app.api.v1.admin import admin_router

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(leave_requests.router, prefix="/leave-requests", tags=["leave-requests"])
api_router.include_router(approvals.router, prefix="/approvals", tags=["approvals"])
api_router.include_router(balances.router, prefix="/balances", tags=["balances"])
api_router.include_router(hr.router, prefix="/hr", tags=["hr"])
api_router.include_router(admin_router)
