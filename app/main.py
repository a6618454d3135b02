"""
TableBook - FastAPI Backend Application
"""

import asyncio
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
import structlog

from app.config import settings
from app.api import analytics, auth, bookings, branches, customers
from app.errors import AppError
from app.database import SessionLocal
from app.services.runtime import get_runtime, run_overdue_sweeps, sweep_runs_in_process

logging.basicConfig(format="%(message)s", level=settings.log_level.upper())

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
        if settings.log_format == "json"
        else structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    logger.info("Starting TableBook API", version="1.0.0")
    runtime = get_runtime()
    sweeper = None
    if sweep_runs_in_process():
        sweeper = asyncio.create_task(
            run_overdue_sweeps(runtime, SessionLocal, settings.auto_cancel_interval_seconds)
        )
    yield
    if sweeper is not None:
        sweeper.cancel()
        await asyncio.gather(sweeper, return_exceptions=True)
    await runtime.scheduler.shutdown()
    logger.info("Shutting down TableBook API")


# Create FastAPI application
app = FastAPI(
    title="TableBook",
    description="Restaurant table booking and availability engine",
    version="1.0.0",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("Request failed", path=request.url.path, code=exc.error_code, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error", path=request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "code": "INTERNAL_ERROR", "details": {}},
    )


# Health check endpoints
@app.get("/health")
async def health():
    """Basic health check"""
    return {"status": "healthy", "service": "api", "version": "1.0.0"}


@app.get("/health/ready")
async def ready():
    """Readiness check with dependency verification"""
    checks = {}

    # Check database
    try:
        async with SessionLocal() as db:
            await db.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"failed: {str(e)}"

    # Check Redis
    try:
        from app.jobs.celery_app import celery_app
        celery_app.control.ping(timeout=1)
        checks["redis"] = "ok"
    except Exception as e:
        checks["redis"] = f"failed: {str(e)}"

    all_ok = all(v == "ok" for v in checks.values())

    return {
        "status": "ready" if all_ok else "not_ready",
        "checks": checks,
    }


# Include API routers
app.include_router(auth.router, prefix="/auth", tags=["Authentication"])
app.include_router(bookings.router, prefix="/bookings", tags=["Bookings"])
app.include_router(customers.router, prefix="/customers", tags=["Customers"])
app.include_router(branches.router, prefix="/branches", tags=["Branches"])
app.include_router(analytics.router, prefix="/analytics", tags=["Analytics"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_debug,
    )
