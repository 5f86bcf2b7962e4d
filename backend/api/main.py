"""
MERIDIAN: Payee Mapping, Classification Reconciliation & Duplicate Detection

REST API over the meridian engines.

Run with: uvicorn api.main:app --port 8001 --reload
"""
import os
import time as _time_module
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.gzip import GZipMiddleware

from meridian import __version__
from meridian.config import get_settings

# Configure structured logging FIRST (before any logger calls)
from meridian.logging_config import configure as configure_logging
configure_logging(get_settings().log_level, get_settings().log_format)

import structlog

from .dependencies import get_classification_cache
from .middleware import RequestLoggingMiddleware, register_error_handlers
from .routers import duplicates_router, payees_router

logger = structlog.get_logger("meridian.api")

# Track server start time for uptime reporting
_server_start_time = _time_module.time()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: report which collaborators are configured."""
    settings = get_settings()
    logger.info(
        "startup",
        version=__version__,
        oracle_configured=bool(settings.openai_api_key),
        ai_judgment_enabled=settings.ai_judgment_enabled,
        classification_chunk_size=settings.classification_chunk_size,
    )
    yield
    logger.info("Shutting down.")


# API metadata
API_TITLE = "MERIDIAN - Payee Classification API"
API_DESCRIPTION = """
Payee mapping, classification reconciliation and duplicate detection.

### Core Endpoints

- **Payees** - Standardize names, map rows to unique payees, plan oracle chunks,
  reconcile classification results onto every original row
- **Duplicates** - Tiered near-duplicate detection with AI judgment for ambiguous pairs
"""
API_VERSION = __version__

# Create FastAPI app
_docs_enabled = os.environ.get("ENABLE_DOCS", "true").lower() == "true"
app = FastAPI(
    title=API_TITLE,
    description=API_DESCRIPTION,
    version=API_VERSION,
    docs_url="/docs" if _docs_enabled else None,
    redoc_url="/redoc" if _docs_enabled else None,
    lifespan=lifespan,
)

# Register global error handlers
register_error_handlers(app)

# Request logging middleware (must be added before CORS/GZip so it wraps them)
app.add_middleware(RequestLoggingMiddleware)

# CORS middleware for frontend access
cors_origins = os.environ.get(
    "CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000"
).split(",")
if "*" in cors_origins:
    logger.warning("Wildcard CORS origin rejected for security; falling back to localhost defaults")
    cors_origins = ["http://localhost:3000", "http://127.0.0.1:3000"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization", "Accept", "X-Request-ID"],
)


# Security headers middleware
@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    return response

# Mapped row payloads are large and repetitive
app.add_middleware(GZipMiddleware, minimum_size=1000)

# Include routers
app.include_router(payees_router, prefix="/api/v1")
app.include_router(duplicates_router, prefix="/api/v1")


@app.get("/", tags=["root"])
async def root():
    """API root - returns basic info and links."""
    return {
        "name": API_TITLE,
        "version": API_VERSION,
        "docs": "/docs",
        "endpoints": {
            "standardize": "/api/v1/payees/standardize",
            "mapping": "/api/v1/payees/mapping",
            "chunks": "/api/v1/payees/chunks",
            "reconcile": "/api/v1/payees/reconcile",
            "classify": "/api/v1/payees/classify",
            "duplicates_detect": "/api/v1/duplicates/detect",
        },
    }


@app.get("/health", tags=["root"])
async def health_check():
    """Health check with collaborator configuration and uptime."""
    settings = get_settings()
    return {
        "status": "healthy",
        "version": API_VERSION,
        "oracle": "configured" if settings.openai_api_key else "not configured",
        "ai_judgment": "enabled" if settings.ai_judgment_enabled and settings.openai_api_key else "disabled",
        "uptime_seconds": round(_time_module.time() - _server_start_time),
    }


@app.get("/metrics", tags=["root"])
async def metrics():
    """Application metrics for monitoring."""
    return {
        "uptime_seconds": round(_time_module.time() - _server_start_time),
        "cache": get_classification_cache().stats(),
    }


# Main entry point
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
