from fastapi import APIRouter

from .approvals import approvals_router

admin_router = APIRouter()

admin_router.include_router(approvals_router, tags=["Admin - Approvals"])
