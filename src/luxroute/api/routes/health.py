"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

from ...services.pricing.osrm_client import check_health as osrm_health_check

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


@router.get("/health/osrm", status_code=status.HTTP_200_OK)
def health_osrm() -> dict:
    """Check the ground-pricing OSRM service."""
    return {"service": "osrm", "healthy": osrm_health_check()}
