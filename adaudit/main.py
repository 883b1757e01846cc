"""FastAPI main application entry point."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from adaudit.core.config import settings
from adaudit.core.middleware import setup_middleware
from adaudit.core.exceptions import AdAuditError

from adaudit.api.auth import router as auth_router
from adaudit.api.connections import router as connections_router
from adaudit.api.audits import router as audits_router
from adaudit.schemas.schemas import HealthResponse

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("adaudit")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("Starting %s API", settings.APP_NAME)
    from adaudit.db.session import SessionLocal, init_db
    from adaudit.services.audit_service import audit_service
    from adaudit.services.cache_service import cache_service

    init_db()

    # Audits orphaned by a previous process never finish on their own
    db = SessionLocal()
    try:
        failed = audit_service.reconcile_stale_audits(db)
        logger.info("Startup reconciliation failed %s stale audit(s)", failed)
    finally:
        db.close()

    if cache_service.health_check():
        logger.info("Redis connected")
    else:
        logger.warning("Redis not available; audit status events will not be published")

    if not settings.OPENAI_API_KEY:
        logger.warning("OPENAI_API_KEY not set; audits will fail until it is configured")

    yield

    logger.info("Shutting down %s API", settings.APP_NAME)


app = FastAPI(
    title="Ad Account Auditor API",
    description="Connect ad platform accounts and run LLM-backed performance audits",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Middleware
setup_middleware(app)


@app.exception_handler(AdAuditError)
async def adaudit_exception_handler(request: Request, exc: AdAuditError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


# Register routers; static /auth routes must precede /auth/{platform}
app.include_router(auth_router, prefix="/api")
app.include_router(connections_router, prefix="/api")
app.include_router(audits_router, prefix="/api")


@app.get("/")
async def root():
    return {
        "name": settings.APP_NAME,
        "version": "0.1.0",
        "docs": "/docs",
    }


@app.get("/api/health", response_model=HealthResponse)
async def health():
    """Liveness probe."""
    return HealthResponse(status="ok", timestamp=datetime.now(timezone.utc))
