"""Route calculation endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request, status

from ...errors import HubUnavailableError
from ...schemas.routing import (
    CacheRefreshRequest,
    CacheRefreshResponse,
    RouteCalculationRequest,
    RouteCalculationResponse,
)
from ...services.outputs.routing_formatter import route_result_to_json, shipment_from_request, snapshot_from_request
from ...services.pricing import ServiceType
from ...services.routing.service import RouteCalculationEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/routes", tags=["routes"])


def _engine(request: Request) -> RouteCalculationEngine:
    return request.app.state.engine


@router.post("/calculate", response_model=RouteCalculationResponse, status_code=status.HTTP_200_OK)
def calculate(payload: RouteCalculationRequest, request: Request) -> dict:
    engine = _engine(request)
    try:
        result = engine.calculate_route_options(
            shipment_from_request(payload.shipment),
            hub_snapshot=snapshot_from_request(payload.hub_snapshot),
            session_id=payload.session_id,
            force_refresh=payload.force_refresh,
            allow_margin_override=payload.allow_margin_override,
        )
    except HubUnavailableError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"message": str(exc), "constraint": exc.constraint},
        ) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except Exception as exc:
        logger.exception(f"Error calculating route options: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to calculate route options: {str(exc)}",
        ) from exc
    return route_result_to_json(result)


@router.get("/sessions/{session_id}/cost-report", status_code=status.HTTP_200_OK)
def cost_report(session_id: str, request: Request) -> dict:
    try:
        return _engine(request).cost_report(session_id)
    except KeyError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Pricing session '{session_id}' not found",
        ) from exc


@router.delete("/sessions/{session_id}", status_code=status.HTTP_200_OK)
def end_session(session_id: str, request: Request) -> dict:
    """Return the session's final cost report and discard it."""
    report = _engine(request).end_session(session_id)
    if report is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Pricing session '{session_id}' not found",
        )
    return report


@router.post("/cache/refresh", response_model=CacheRefreshResponse, status_code=status.HTTP_200_OK)
def refresh_cache(payload: CacheRefreshRequest, request: Request) -> CacheRefreshResponse:
    services = [ServiceType(name) for name in payload.services] if payload.services else list(ServiceType)
    cleared = _engine(request).refresh_services(services)
    return CacheRefreshResponse(cleared=cleared, services=[service.value for service in services])
