from fastapi import APIRouter

from .admin import admin_router
from .company import company_router
from .health import health_router
from .institution import institution_router
from .shared import shared_router
from .student import student_router

main_router = APIRouter()
main_router.include_router(student_router, prefix="/student", tags=["student"])
main_router.include_router(institution_router, prefix="/institution", tags=["institution"])
main_router.include_router(company_router, prefix="/company", tags=["company"])
main_router.include_router(admin_router, prefix="/admin", tags=["admin"])
main_router.include_router(shared_router, prefix="/shared", tags=["shared"])

__all__ = ["main_router", "health_router"]
