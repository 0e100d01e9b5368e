"""
FastAPI Application Entry Point

This module creates and configures the FastAPI application for the
Face Authentication API.

The application provides:
- REST endpoints for enrollment and re-enrollment
- REST endpoint for authentication
- REST endpoints for status, disable and audit logs
- Health check endpoint

Every core failure is a FaceAuthError and is turned into a JSON body
{"error", "code", "details"} with the status code of the error class.

Usage:
    # From project root:
    uvicorn api.app:app --host 0.0.0.0 --port 8000 --reload

    # Or run directly:
    python -m api.app
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.routes import authentication_router, enrollment_router, management_router
from api.schemas import HealthResponse
from core.config import (
    get_api_config,
    get_face_extraction_config,
    get_logging_config,
    get_server_config,
)
from core.errors import FaceAuthError
from core.face_extractor import get_extractor
from core.template_manager import get_template_manager


# Configure logging
_logging_config = get_logging_config()
logging.basicConfig(
    level=getattr(logging, str(_logging_config.get("level", "INFO")).upper(), logging.INFO),
    format=_logging_config.get("format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"),
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Runs on startup:
    - Initialize template manager
    - Create the face extractor (optionally pre-load its model)

    Runs on shutdown:
    - Close the database connection
    """
    logger.info("=" * 60)
    logger.info("Starting Face Authentication API")
    logger.info("=" * 60)

    # Initialize template manager (singleton)
    logger.info("Initializing template manager...")
    template_manager = get_template_manager()
    stats = template_manager.get_stats()
    logger.info(
        f"Template manager ready: {stats['total_users']} users enrolled, "
        f"{stats['total_auth_attempts']} logged attempts"
    )

    # Initialize extractor (singleton)
    extractor = get_extractor()
    if get_face_extraction_config().get("preload_model", False):
        logger.info("Pre-loading face model...")
        extractor.load_model()
        logger.info("Model loaded successfully!")
    else:
        logger.info("Face model will be loaded on first request")

    logger.info("API startup complete!")
    logger.info("=" * 60)

    yield

    # Cleanup on shutdown
    logger.info("Shutting down API...")
    template_manager.close()
    logger.info("Shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="Face Authentication API",
    description="""
API for face authentication as a second factor.

## Features
- **Enrollment**: Register a user's face from 3-6 still captures
- **Re-enrollment**: Replace the template without an unprotected window
- **Authentication**: Verify one live capture against the enrolled template
- **Management**: Status, disable and audit log of attempts

Images are sent as base64-encoded JPEG/PNG. Templates never leave the server.
    """,
    version="0.2.0",
    lifespan=lifespan,
)

# Configure CORS for frontend access
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_api_config().get("cors_origins", ["*"]),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(enrollment_router)
app.include_router(authentication_router)
app.include_router(management_router)


@app.exception_handler(FaceAuthError)
async def face_auth_error_handler(request: Request, exc: FaceAuthError):
    """Map core errors to their HTTP status and a stable error body."""
    if exc.http_status >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.code} ({exc.message})")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.code}")

    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())


# ============================================================
# Health Check Endpoint
# ============================================================

@app.get("/health", response_model=HealthResponse, tags=["system"])
async def health_check():
    """
    Check the health of the API and its dependencies.

    Returns status of:
    - Face model (loaded/not loaded)
    - Number of enrolled users
    - Number of logged authentication attempts
    """
    extractor = get_extractor()
    stats = get_template_manager().get_stats()

    model_loaded = extractor.is_loaded

    return HealthResponse(
        status="healthy" if model_loaded else "degraded",
        model_loaded=model_loaded,
        enrolled_users=stats["total_users"],
        total_auth_attempts=stats["total_auth_attempts"],
    )


@app.get("/", tags=["system"])
async def root():
    """Root endpoint with API information."""
    return {
        "name": "Face Authentication API",
        "version": "0.2.0",
        "docs": "/docs",
        "health": "/health",
    }


if __name__ == "__main__":
    import uvicorn

    server = get_server_config()

    logger.info(f"Starting server on {server['host']}:{server['port']}")
    uvicorn.run(
        "api.app:app",
        host=server["host"],
        port=server["port"],
        reload=True,
        log_level="info",
    )
