"""
FastAPI Application Entry Point

This module initializes the FastAPI application with:
- CORS configuration
- Notification backend startup/shutdown
- Route registration
- Health check endpoints
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from legalpro_notifications.core.config import settings
from legalpro_notifications.db.redis import check_redis_connection, close_redis_pool
from legalpro_notifications.gateways import get_gateway, close_gateway
from legalpro_notifications.services.broker import shutdown_broker
from legalpro_notifications.services.session_registry import (
    get_session_registry,
    shutdown_session_registry,
)
from legalpro_notifications.api.v1.router import api_router

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


async def check_backend() -> dict:
    """Reachability of the configured database / Redis, if any."""
    checks = {"backend": settings.NOTIFICATION_BACKEND, "broker": settings.NOTIFICATION_BROKER}

    if settings.NOTIFICATION_BACKEND == "sql":
        from legalpro_notifications.db.database import check_db_connection
        checks["database"] = "connected" if await check_db_connection() else "disconnected"

    if settings.NOTIFICATION_BROKER == "redis":
        checks["redis"] = "connected" if await check_redis_connection() else "disconnected"

    return checks


# ============================================================
# Application Lifespan Events
# ============================================================
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup:
    - Build the configured gateway and broker
    - Check backing store reachability

    Shutdown:
    - Tear down every open notification session
    - Close gateway, broker and connection pools
    """
    # ========== STARTUP ==========
    logger.info(f"Starting {settings.PROJECT_NAME}...")
    logger.info(f"Debug mode: {settings.DEBUG}")

    try:
        await get_gateway()
        await get_session_registry()
        checks = await check_backend()
        logger.info(f"Notification backend ready: {checks}")
    except Exception as e:
        # Don't fail startup - sessions degrade to empty snapshots
        logger.error(f"Notification backend error on startup: {e}")

    yield  # Application runs here

    # ========== SHUTDOWN ==========
    logger.info(f"Shutting down {settings.PROJECT_NAME}...")

    await shutdown_session_registry()
    await close_gateway()
    await shutdown_broker()
    await close_redis_pool()

    if settings.NOTIFICATION_BACKEND == "sql":
        from legalpro_notifications.db.database import close_engine
        await close_engine()

    logger.info("Shutdown complete")


# ============================================================
# Create FastAPI Application
# ============================================================
app = FastAPI(
    title=settings.PROJECT_NAME,
    description="""
    LegalPro real-time notifications

    Features:
    - Per-session notification snapshot with unread counter
    - Optimistic mark-read / mark-all-read / delete
    - Live push over SSE
    """,
    version="1.0.0",
    openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# ----------------------------------------------------
# Middleware Configuration
# ----------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.DEBUG else settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)


# ----------------------------------------------------
# Health Check Endpoints
# ----------------------------------------------------
@app.get("/", tags=["Health"])
async def root():
    """Root endpoint with API information."""
    return {
        "name": settings.PROJECT_NAME,
        "version": "1.0.0",
        "status": "running",
        "docs": "/docs" if settings.DEBUG else "disabled"
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for monitoring."""
    try:
        checks = await check_backend()
        degraded = any(v == "disconnected" for v in checks.values())
        return {"status": "degraded" if degraded else "healthy", **checks}
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={
                "status": "unhealthy",
                "error": str(e)
            }
        )

# ============================================================
# Include API Router
# ============================================================
app.include_router(
    api_router,
    prefix=settings.API_V1_PREFIX
)
