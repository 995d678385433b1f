from fastapi import APIRouter

from .applicants import applicants_router

company_router = APIRouter()

company_router.include_router(applicants_router, tags=["Company - Applicants"])
