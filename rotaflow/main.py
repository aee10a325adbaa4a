"""Rotaflow — FastAPI Application Factory."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from rotaflow.approvals.router import admin_router as approvals_admin_router
from rotaflow.approvals.router import manager_router
from rotaflow.common.exceptions import register_exception_handlers
from rotaflow.common.logging_config import setup_logging
from rotaflow.common.rate_limit import limiter
from rotaflow.config import settings
from rotaflow.core_hr.router import settings_router
from rotaflow.dashboard.router import router as dashboard_router
from rotaflow.database import engine
from rotaflow.leave.router import router as leave_router
from rotaflow.notifications.router import router as notifications_router
from rotaflow.scheduling.router import router as scheduling_router
from rotaflow.swaps.router import router as swaps_router
from rotaflow.timekeeping.router import admin_router as timesheet_router
from rotaflow.timekeeping.router import router as time_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown events."""
    setup_logging()
    logger.info("Rotaflow starting (environment=%s)", settings.ENVIRONMENT)
    yield
    await engine.dispose()
    logger.info("Rotaflow stopped; connection pool disposed")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Rotaflow",
        description="Multi-tenant shift scheduling, time accounting and approvals",
        version="1.0.0",
        docs_url="/api/docs" if settings.ENVIRONMENT != "production" else None,
        redoc_url="/api/redoc" if settings.ENVIRONMENT != "production" else None,
        lifespan=lifespan,
    )

    # Exception handlers ({success, error, details} envelope)
    register_exception_handlers(app)

    # Rate limiting (slowapi)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Health check (no auth)
    @app.get("/api/v1/health", tags=["system"])
    @limiter.exempt
    async def health_check():
        return {
            "status": "healthy",
            "version": "1.0.0",
            "environment": settings.ENVIRONMENT,
        }

    # Register routers
    app.include_router(scheduling_router, prefix="/api/v1/scheduling", tags=["scheduling"])
    app.include_router(time_router, prefix="/api/v1/time", tags=["time"])
    app.include_router(timesheet_router, prefix="/api/v1/admin", tags=["admin"])
    app.include_router(approvals_admin_router, prefix="/api/v1/admin", tags=["admin"])
    app.include_router(settings_router, prefix="/api/v1/admin", tags=["admin"])
    app.include_router(manager_router, prefix="/api/v1/manager", tags=["manager"])
    app.include_router(leave_router, prefix="/api/v1/leave-requests", tags=["leave"])
    app.include_router(swaps_router, prefix="/api/v1/shift-swaps", tags=["shift-swaps"])
    app.include_router(notifications_router, prefix="/api/v1/notifications", tags=["notifications"])
    app.include_router(dashboard_router, prefix="/api/v1/dashboard", tags=["dashboard"])

    return app


app = create_app()
