from fastapi import APIRouter

from .profile import profile_router
from .applications import applications_router

student_router = APIRouter()

student_router.include_router(profile_router, tags=["Student - Profile"])
student_router.include_router(applications_router, tags=["Student - Applications"])
