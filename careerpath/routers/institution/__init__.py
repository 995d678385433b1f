from fastapi import APIRouter

from .admissions import admissions_router

institution_router = APIRouter()

institution_router.include_router(admissions_router, tags=["Institution - Admissions"])
