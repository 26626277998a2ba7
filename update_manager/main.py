"""
Update Manager - Main Application Entry Point
Control plane for product versions, customer deployments and license seats
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import structlog

from update_manager.core.config import get_settings
from update_manager.core.events import event_bus
from update_manager.core.logging import configure_logging
from update_manager.api.errors import register_exception_handlers
from update_manager.api import (
    products, upgrade_paths, compatibility, versions,
    customers, tenants, pending_updates, deployments,
    subscriptions, licenses, allocations,
    update_detections, update_rollouts, audit_logs
)
from update_manager.services.cache_invalidator import cache_invalidator

settings = get_settings()
configure_logging(settings.LOG_LEVEL)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    # Startup
    logger.info("Initializing Update Manager backend")
    # Tables are created by Alembic migrations, not auto-generated
    logger.info("Database managed by Alembic migrations")
    # Releases and deployment changes evict the pending updates cache
    cache_invalidator.register(event_bus)

    yield

    # Shutdown
    cache_invalidator.unregister(event_bus)
    logger.info("Shutting down Update Manager backend")


# Create FastAPI application
app = FastAPI(
    title="Update Manager API",
    description="Version lifecycle, pending updates and license seat accounting",
    version="1.0.0",
    lifespan=lifespan,
)

# Configure middleware stack
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "X-Checksum-SHA256"],
)

register_exception_handlers(app)

# Include routers
prefix = settings.API_V1_PREFIX
app.include_router(products.router, prefix=f"{prefix}/products", tags=["products"])
app.include_router(upgrade_paths.router, prefix=f"{prefix}/products", tags=["upgrade-paths"])
app.include_router(compatibility.router, prefix=prefix, tags=["compatibility"])
app.include_router(versions.router, prefix=f"{prefix}/versions", tags=["versions"])
app.include_router(customers.router, prefix=f"{prefix}/customers", tags=["customers"])
app.include_router(tenants.router, prefix=f"{prefix}/customers", tags=["tenants"])
# Must precede deployments so "pending-updates" is not taken for a deployment id
app.include_router(pending_updates.router, prefix=prefix, tags=["pending-updates"])
app.include_router(deployments.router, prefix=f"{prefix}/customers", tags=["deployments"])
app.include_router(subscriptions.router, prefix=f"{prefix}/customers", tags=["subscriptions"])
app.include_router(licenses.router, prefix=f"{prefix}/customers", tags=["licenses"])
app.include_router(allocations.router, prefix=f"{prefix}/customers", tags=["allocations"])
app.include_router(update_detections.router, prefix=f"{prefix}/update-detections", tags=["update-detections"])
app.include_router(update_rollouts.router, prefix=f"{prefix}/update-rollouts", tags=["update-rollouts"])
app.include_router(audit_logs.router, prefix=f"{prefix}/audit-logs", tags=["audit-logs"])


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "environment": settings.ENVIRONMENT,
    }


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Update Manager API",
        "version": "1.0.0",
        "docs": "/docs",
    }
