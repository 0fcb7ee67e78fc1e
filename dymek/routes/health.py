"""
Health check endpoints.
Used for monitoring, deployment readiness checks, and basic connectivity tests.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException

from dymek.core.exceptions import StoreUnavailableError
from dymek.core.settings import settings
from dymek.services.registry import ServiceRegistry, get_registry

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
async def health_check():
    """
    Basic health check endpoint.
    Returns 200 if service is running.
    """
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/db")
async def database_health(registry: ServiceRegistry = Depends(get_registry)):
    """
    Record store connectivity check: one cheap read per collection.
    """
    try:
        for store in registry.record_stores.values():
            await store.ping()
    except StoreUnavailableError as e:
        raise HTTPException(status_code=503, detail=f"Database connection failed: {e.detail}")

    return {
        "status": "healthy",
        "database": "memory" if settings.USE_MOCK_DB else "firestore",
        "connected": True,
        "collections": sorted(store.name for store in registry.record_stores.values()),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
