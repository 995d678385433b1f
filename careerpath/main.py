from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from careerpath.config.settings import settings
from careerpath.db.db import create_tables
from careerpath.utils.logging import get_logger
from careerpath.routers import main_router, health_router
from careerpath.utils.errors import setup_error_handlers
from careerpath.middlewares import (
    RequestIDMiddleware,
    SecurityHeadersMiddleware,
    IdentityMiddleware,
)

# Initialize the logger
logger = get_logger()


@asynccontextmanager
async def lifespan(_: FastAPI):
    logger.info("CareerPath Portal is starting up...")
    create_tables()
    yield
    logger.info("CareerPath Portal is shutting down...")


def create_application() -> FastAPI:
    """Initialize the FastAPI application with settings and lifespan events."""
    application = FastAPI(
        title=settings.NAME, version=settings.VERSION, lifespan=lifespan
    )

    # Setup error handlers
    setup_error_handlers(application)

    # Add CORS middleware
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_HOSTS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "authorization", "X-Request-ID"],
    )

    # Add custom middlewares; the last one added runs first
    application.add_middleware(
        SecurityHeadersMiddleware, environment=settings.ENVIRONMENT
    )
    application.add_middleware(IdentityMiddleware)
    application.add_middleware(RequestIDMiddleware)

    # Routers
    application.include_router(health_router, tags=["Health"])
    application.include_router(main_router, prefix=settings.API_PREFIX, tags=["APIs"])

    return application


app = create_application()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "careerpath.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_config=None,
        log_level=None,
    )
