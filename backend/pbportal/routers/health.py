"""Health-check router."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from pbportal import __version__, config
from pbportal.deps import get_data_service
from pbportal.services.data_service import DataService

logger = logging.getLogger(__name__)
router = APIRouter(tags=["health"])


@router.get("/")
async def root():
    """Health check"""
    return {"status": "ok", "message": "PB Portal API is running"}


@router.get("/api/v1/health")
async def health_check(service: DataService = Depends(get_data_service)):
    """Report the active data backend and whether the admin-only auth path is available."""
    capabilities = ["applications", "scoring", "csv_export"]
    degraded = []

    if service.backend_name == "local" or config.SUPABASE_SERVICE_KEY:
        capabilities.append("admin_create_user")
    else:
        degraded.append("admin_create_user")

    return {
        "status": "degraded" if degraded else "healthy",
        "version": __version__,
        "environment": config.ENVIRONMENT,
        "data_backend": service.backend_name,
        "capabilities": capabilities,
        "degraded": degraded,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
