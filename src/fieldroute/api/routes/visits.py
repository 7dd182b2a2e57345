"""Visit lifecycle endpoints."""

from __future__ import annotations

import logging
from typing import Callable

from fastapi import APIRouter, Depends, HTTPException, status

from ...errors import FieldRouteError
from ...schemas.visits import (
    CompleteVisitRequest,
    DamageReportRequest,
    SkipVisitRequest,
    StartVisitRequest,
    UpdateTasksRequest,
    VisitResponse,
)
from ...services.visits.service import VisitOutcome, VisitService
from ..dependencies import get_current_advisor_id, get_visit_service
from ..errors import to_http_exception
from ..serializers import visit_response

router = APIRouter(prefix="/visits", tags=["visits"])


def _run(action: str, operation: Callable[[], VisitOutcome]) -> VisitResponse:
    try:
        return visit_response(operation())
    except FieldRouteError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:
        logging.exception(f"Error during visit {action}: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to {action} visit: {str(exc)}"
        ) from exc


@router.post("/start", response_model=VisitResponse, status_code=status.HTTP_200_OK)
def start_visit(
    payload: StartVisitRequest,
    advisor_id: str = Depends(get_current_advisor_id),
    service: VisitService = Depends(get_visit_service),
) -> VisitResponse:
    """Start (or reinstate) a visit; starting a running visit is a no-op."""
    return _run("start", lambda: service.start_visit(
        advisor_id,
        visit_id=payload.visit_id,
        store_id=payload.store_id,
        route_date=payload.route_date,
    ))


@router.post("/complete", response_model=VisitResponse, status_code=status.HTTP_200_OK)
def complete_visit(
    payload: CompleteVisitRequest,
    advisor_id: str = Depends(get_current_advisor_id),
    service: VisitService = Depends(get_visit_service),
) -> VisitResponse:
    return _run("complete", lambda: service.complete_visit(
        advisor_id,
        visit_id=payload.visit_id,
        store_id=payload.store_id,
        route_date=payload.route_date,
        duration=payload.duration,
        tasks=payload.tasks,
        notes=payload.notes,
    ))


@router.post("/skip", response_model=VisitResponse, status_code=status.HTTP_200_OK)
def skip_visit(
    payload: SkipVisitRequest,
    advisor_id: str = Depends(get_current_advisor_id),
    service: VisitService = Depends(get_visit_service),
) -> VisitResponse:
    return _run("skip", lambda: service.skip_visit(
        advisor_id,
        visit_id=payload.visit_id,
        store_id=payload.store_id,
        route_date=payload.route_date,
        reason=payload.reason,
    ))


@router.patch("/{visit_id}/tasks", response_model=VisitResponse, status_code=status.HTTP_200_OK)
def update_tasks(
    visit_id: str,
    payload: UpdateTasksRequest,
    advisor_id: str = Depends(get_current_advisor_id),
    service: VisitService = Depends(get_visit_service),
) -> VisitResponse:
    return _run("update", lambda: service.update_tasks(advisor_id, visit_id, payload.tasks))


@router.post("/{visit_id}/damage", response_model=VisitResponse, status_code=status.HTTP_200_OK)
def report_damage(
    visit_id: str,
    payload: DamageReportRequest,
    advisor_id: str = Depends(get_current_advisor_id),
    service: VisitService = Depends(get_visit_service),
) -> VisitResponse:
    return _run("report damage on", lambda: service.report_damage(advisor_id, visit_id, payload.damaged_items))
