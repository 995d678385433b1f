from fastapi import APIRouter

from .notifications import notifications_router

shared_router = APIRouter()

shared_router.include_router(
    notifications_router, prefix="/notifications", tags=["Shared - Notifications"]
)
