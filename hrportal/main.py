"""HR Portal — FastAPI Application Factory."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from hrportal.admin.router import router as admin_router
from hrportal.attendance.router import router as attendance_router
from hrportal.auth.permissions import DEFAULT_CATALOG, PermissionCatalog
from hrportal.auth.router import router as auth_router
from hrportal.common.exceptions import register_exception_handlers
from hrportal.common.rate_limit import limiter
from hrportal.config import settings
from hrportal.core_hr.router import (
    branches_router,
    departments_router,
    designations_router,
    employees_router,
)
from hrportal.dashboard.router import router as dashboard_router
from hrportal.database import engine
from hrportal.holidays.router import router as holidays_router
from hrportal.leave.router import router as leave_router
from hrportal.movement.router import router as movement_router
from hrportal.transfer.router import router as transfer_router

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown events."""
    logger.info("HR Portal starting (environment=%s)", settings.ENVIRONMENT)
    yield
    await engine.dispose()
    logger.info("HR Portal stopped")


def create_app(catalog: PermissionCatalog = DEFAULT_CATALOG) -> FastAPI:
    """Create and configure the FastAPI application.

    *catalog* is the permission catalog roles are validated against; it is
    exposed to handlers as ``app.state.permission_catalog``.
    """
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = FastAPI(
        title="HR Portal",
        description="Employees, attendance, leave, movements and transfers with branch-scoped access",
        version=API_VERSION,
        docs_url="/api/docs" if settings.ENVIRONMENT != "production" else None,
        redoc_url="/api/redoc" if settings.ENVIRONMENT != "production" else None,
        lifespan=lifespan,
    )
    app.state.permission_catalog = catalog

    # Exception handlers (RFC 7807)
    register_exception_handlers(app)

    # Rate limiting (slowapi)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

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
    async def health_check():
        return {
            "status": "healthy",
            "version": API_VERSION,
            "environment": settings.ENVIRONMENT,
        }

    # Register routers
    app.include_router(auth_router, prefix="/api/v1/auth", tags=["auth"])
    app.include_router(admin_router, prefix="/api/v1/admin", tags=["admin"])
    app.include_router(branches_router, prefix="/api/v1/branches", tags=["branches"])
    app.include_router(departments_router, prefix="/api/v1/departments", tags=["departments"])
    app.include_router(designations_router, prefix="/api/v1/designations", tags=["designations"])
    app.include_router(employees_router, prefix="/api/v1/employees", tags=["employees"])
    app.include_router(holidays_router, prefix="/api/v1/holidays", tags=["holidays"])
    app.include_router(attendance_router, prefix="/api/v1/attendance", tags=["attendance"])
    app.include_router(leave_router, prefix="/api/v1/leave", tags=["leave"])
    app.include_router(movement_router, prefix="/api/v1/movements", tags=["movements"])
    app.include_router(transfer_router, prefix="/api/v1/transfers", tags=["transfers"])
    app.include_router(dashboard_router, prefix="/api/v1/dashboard", tags=["dashboard"])

    return app


app = create_app()
