from fastapi import APIRouter, Request

from careerpath.config.settings import settings
from careerpath.utils.responses import ResponseBuilder

health_router = APIRouter()


@health_router.get("/health")
async def health_check(request: Request):
    """Basic health check endpoint"""
    return ResponseBuilder.success(
        request=request,
        data={"status": "healthy", "service": settings.NAME, "version": settings.VERSION},
        message="Service is running",
    )
