"""
Mira Oracle - FastAPI Application

Main entry point for the backend API.
Provides endpoints for accounts, questionnaires, readings, daily
insights, Stripe payments and the admin dashboard.
"""

import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from mira_oracle.config.settings import settings
from mira_oracle.infrastructure.exceptions import MiraOracleError

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    from mira_oracle.domain.seed import seed_sample_data
    from mira_oracle.infrastructure.storage import close_storage, get_storage

    # Startup
    logger.info(f"Mira Oracle Backend starting in {settings.environment} mode...")

    if settings.storage_backend == "sql":
        from mira_oracle.infrastructure.db.database import init_db
        await init_db(create_tables=not settings.is_production)
        logger.info("SQLModel database connection pool initialized")

    storage = get_storage()
    purged = await storage.delete_expired_sessions(datetime.now(timezone.utc))
    if purged:
        logger.info(f"Purged {purged} expired sessions")

    if settings.seed_sample_data:
        await seed_sample_data(storage, settings)

    yield

    # Shutdown
    await close_storage()
    logger.info("Mira Oracle Backend shutting down...")


app = FastAPI(
    title="Mira Oracle",
    description="Personalized astrology readings, daily insights and subscriptions",
    version="1.0.0",
    lifespan=lifespan,
    debug=settings.debug,
)

# CORS configuration from Settings
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# Middleware
# ============================================================================

@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log API calls with status and duration."""
    start = time.perf_counter()
    response = await call_next(request)
    if request.url.path.startswith("/api"):
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            f"{request.method} {request.url.path} {response.status_code} in {elapsed_ms:.0f}ms"
        )
    return response


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    return response


# ============================================================================
# Exception Handlers
# ============================================================================

def _field_name(loc) -> str:
    parts = [str(part) for part in loc if part not in ("body", "query", "path")]
    return ".".join(parts) or "body"


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    """Reshape FastAPI validation failures into the 400 error body."""
    errors = [
        {"field": _field_name(error.get("loc", ())), "message": error.get("msg", "Invalid value")}
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"message": "Invalid input data", "errors": errors},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(MiraOracleError)
async def application_error_handler(request: Request, exc: MiraOracleError):
    """Handle all application errors with the status each class declares."""
    if exc.status_code >= 500:
        logger.error(
            f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}",
            exc_info=exc.original_error or exc,
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    """Last resort. Hides internals in production."""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    message = "Internal server error" if settings.is_production else str(exc)
    return JSONResponse(
        status_code=500,
        content={"message": message or "Internal server error"},
    )


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "mira-oracle"}


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Mira Oracle API",
        "version": "1.0.0",
        "docs": "/docs",
    }


# ============================================================================
# Import and register routers
# ============================================================================

from mira_oracle.api.routes import (  # noqa: E402
    admin,
    auth,
    insights,
    payments,
    questionnaires,
    readings,
    webhooks,
)

app.include_router(auth.router)
app.include_router(questionnaires.router)
app.include_router(readings.router)
app.include_router(insights.router)
app.include_router(payments.router)
app.include_router(webhooks.router)
app.include_router(admin.router)
