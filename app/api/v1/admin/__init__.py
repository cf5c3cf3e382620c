"""Admin API (HR/ADMIN capabilities)."""
from fastapi import APIRouter
from app.api.v1.admin import balances as admin_balances
from app.api.v1.admin import documents as admin_documents
from app.api.v1.admin import leaves as admin_leaves
from app.api.v1.admin import scheduler as admin_scheduler

admin_router = APIRouter(prefix="/admin", tags=["admin"])
admin_router.include_router(admin_leaves.router, prefix="/leave-requests", tags=["admin-leave-requests"])
admin_router.include_router(admin_balances.router, prefix="/balances", tags=["admin-balances"])
admin_router.include_router(admin_scheduler.router, prefix="/scheduler", tags=["admin-scheduler"])
admin_router.include_router(admin_documents.router, prefix="/documents", tags=["admin-documents"])
