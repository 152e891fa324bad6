"""
FastAPI Main Application
Entry point for the VitalVida sync API.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from ..config.settings import get_settings
from .errors import setup_error_handlers
from .middleware import RequestLoggingMiddleware
from .routers import (
    admin_router,
    agents_router,
    allocations_router,
    compliance_router,
    deductions_router,
    health_router,
    thresholds_router,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Runs on startup and shutdown.
    """
    settings = get_settings()
    logger.info(f"Starting {settings.app_name} ({settings.environment})...")

    yield

    logger.info(f"Shutting down {settings.app_name}...")


def create_app() -> FastAPI:
    """
    Create and configure FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description=settings.description,
        version=settings.version,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # Set up CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    # Add GZip compression
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    app.add_middleware(RequestLoggingMiddleware)

    setup_error_handlers(app)

    app.include_router(health_router)
    app.include_router(agents_router)
    app.include_router(allocations_router)
    app.include_router(compliance_router)
    app.include_router(thresholds_router)
    app.include_router(deductions_router)
    app.include_router(admin_router)

    @app.get("/")
    async def root():
        """API information."""
        return {
            "name": settings.app_name,
            "version": settings.version,
            "description": settings.description,
            "endpoints": {
                "health": "/health",
                "status": "/status",
                "docs": "/docs",
                "redoc": "/redoc",
            },
        }

    return app


# Create app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "vitalvida.api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        log_level=settings.log_level.lower(),
    )
