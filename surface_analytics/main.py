"""
FastAPI Application

Main entry point for the Surface Analytics API.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from surface_analytics.config import get_settings
from surface_analytics.config.logging import configure_logging
from surface_analytics.database.connection import close_database, init_database
from surface_analytics.exceptions import DataUnavailable, ValidationError
from surface_analytics.serving.api.middleware import RequestLoggingMiddleware
from surface_analytics.serving.api.routes import analytics_router, health_router

settings = get_settings()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    configure_logging()

    logger.info("Starting Surface Analytics API", environment=settings.app_env)

    try:
        await init_database()
    except Exception as e:
        # Health endpoints report the outage; analytics requests fail with 500
        logger.warning("Database init failed", error=str(e))

    yield

    logger.info("Shutting down...")
    await close_database()


app = FastAPI(
    title="Surface Analytics API",
    description="Behavioral analytics over image-upload search sessions",
    version=settings.version,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Compression
app.add_middleware(GZipMiddleware, minimum_size=1000)

app.add_middleware(RequestLoggingMiddleware)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    logger.info("Rejected report request", error=exc.message, field=exc.field)
    return JSONResponse(status_code=400, content={"error": exc.message, "field": exc.field})


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return JSONResponse(status_code=400, content={"error": message})


@app.exception_handler(DataUnavailable)
async def data_unavailable_handler(request: Request, exc: DataUnavailable) -> JSONResponse:
    logger.error("Event store unavailable", error=str(exc), path=request.url.path)
    return JSONResponse(status_code=500, content={"error": "Event store unavailable"})


# API routes
app.include_router(health_router, prefix="/api/v1", tags=["Health"])
app.include_router(analytics_router, prefix="/api/v1/analytics", tags=["Analytics"])


@app.get("/api/v1/info")
async def api_info():
    """API information endpoint."""
    return {
        "name": "Surface Analytics API",
        "version": settings.version,
        "environment": settings.app_env,
        "documentation": "/docs",
    }
