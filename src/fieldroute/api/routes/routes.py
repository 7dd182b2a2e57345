"""Route endpoints."""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ...errors import FieldRouteError
from ...schemas.routes import OptimizeRouteRequest, OptimizeRouteResponse, RouteMetricsResponse, RouteModel
from ...services.routing.constraints import RouteConstraint
from ...services.visits.service import VisitService
from ..dependencies import get_current_advisor_id, get_visit_service
from ..errors import to_http_exception
from ..serializers import metrics_response, optimization_response, route_model

router = APIRouter(prefix="/routes", tags=["routes"])


@router.get("/current", response_model=RouteModel, status_code=status.HTTP_200_OK)
def current_route(
    route_date: Optional[date] = Query(None, description="Defaults to today."),
    advisor_id: str = Depends(get_current_advisor_id),
    service: VisitService = Depends(get_visit_service),
) -> RouteModel:
    """Today's route for the advisor, falling back to the day-of-week template."""
    try:
        return route_model(service.current_route(advisor_id, route_date))
    except FieldRouteError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:
        logging.exception(f"Error loading route for advisor {advisor_id}: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to load route: {str(exc)}"
        ) from exc


@router.post("/optimize", response_model=OptimizeRouteResponse, status_code=status.HTTP_200_OK)
def optimize(
    payload: OptimizeRouteRequest,
    advisor_id: str = Depends(get_current_advisor_id),
    service: VisitService = Depends(get_visit_service),
) -> OptimizeRouteResponse:
    route_date = payload.route_date or service.today()
    constraints = [RouteConstraint(type=item.type, value=dict(item.value)) for item in payload.constraints]
    try:
        result = service.optimize_route(advisor_id, route_date, constraints)
        return optimization_response(advisor_id, route_date, result)
    except FieldRouteError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:
        logging.exception(f"Error optimizing route for advisor {advisor_id}: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to optimize route: {str(exc)}"
        ) from exc


@router.get("/metrics", response_model=RouteMetricsResponse, status_code=status.HTTP_200_OK)
def metrics(
    start: date = Query(...),
    end: date = Query(...),
    advisor_id: Optional[str] = Query(None, description="Restrict to one advisor."),
    service: VisitService = Depends(get_visit_service),
) -> RouteMetricsResponse:
    if end < start:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="end must not be before start")
    try:
        return metrics_response(start, end, advisor_id, service.route_metrics(start, end, advisor_id))
    except Exception as exc:
        logging.exception(f"Error computing route metrics: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to compute metrics: {str(exc)}"
        ) from exc
