"""Domain objects to response models."""

from __future__ import annotations

from datetime import date
from typing import Optional

from ..models.domain import RouteStatus, RouteView, Store, TemplatedRoute, Visit
from ..schemas.routes import (
    OptimizationMetricsModel,
    OptimizeRouteResponse,
    RouteMetricsResponse,
    RouteModel,
    StoreModel,
    VisitModel,
)
from ..schemas.visits import VisitResponse
from ..services.routing.models import OptimizationResult
from ..services.visits.service import RouteMetrics, VisitOutcome


def store_model(store: Store) -> StoreModel:
    return StoreModel(
        store_id=store.store_id,
        name=store.name,
        address=store.address,
        latitude=store.latitude,
        longitude=store.longitude,
        priority=store.priority.value,
        category=store.category,
        zone=store.zone,
        estimated_visit_minutes=store.estimated_visit_minutes,
    )


def visit_model(visit: Visit, store: Optional[Store] = None) -> VisitModel:
    return VisitModel(
        visit_id=visit.visit_id,
        route_id=visit.route_id,
        store_id=visit.store_id,
        visit_order=visit.visit_order,
        status=visit.status.value,
        start_time=visit.start_time,
        end_time=visit.end_time,
        skip_reason=visit.skip_reason,
        actual_duration_min=visit.actual_duration_min,
        tasks=dict(visit.tasks),
        notes=visit.notes,
        store=store_model(store) if store else None,
    )


def route_model(view: RouteView) -> RouteModel:
    visits = [visit_model(item.visit, item.store) for item in view.visits]
    if isinstance(view.source, TemplatedRoute):
        return RouteModel(
            advisor_id=view.source.advisor_id,
            route_date=view.source.route_date,
            status=RouteStatus.PENDING.value,
            total_stores=len(visits),
            completed_stores=0,
            is_template=True,
            template_id=view.source.template.template_id,
            visits=visits,
        )
    route = view.source.route
    return RouteModel(
        route_id=route.route_id,
        advisor_id=route.advisor_id,
        route_date=route.route_date,
        status=route.status.value,
        total_stores=route.total_stores,
        completed_stores=route.completed_stores,
        visits=visits,
    )


def visit_response(outcome: VisitOutcome) -> VisitResponse:
    return VisitResponse(
        route_id=outcome.route.route_id,
        route_status=outcome.route.status.value,
        total_stores=outcome.route.total_stores,
        completed_stores=outcome.route.completed_stores,
        changed=outcome.changed,
        visit=visit_model(outcome.visit),
    )


def optimization_response(advisor_id: str, route_date: date, result: OptimizationResult) -> OptimizeRouteResponse:
    metrics = result.metrics
    return OptimizeRouteResponse(
        advisor_id=advisor_id,
        route_date=route_date,
        optimized_order=[store_model(store) for store in result.ordered_stores],
        metrics=OptimizationMetricsModel(
            original_distance_km=round(metrics.original_distance_km, 3),
            optimized_distance_km=round(metrics.optimized_distance_km, 3),
            distance_saved_km=round(metrics.distance_saved_km, 3),
            time_saved_min=round(metrics.time_saved_min, 1),
            efficiency_improvement_pct=round(metrics.efficiency_improvement_pct, 1),
            constraints_applied=metrics.constraints_applied,
            factors=list(metrics.factors),
        ),
    )


def metrics_response(start: date, end: date, advisor_id: Optional[str], metrics: RouteMetrics) -> RouteMetricsResponse:
    return RouteMetricsResponse(
        start=start,
        end=end,
        advisor_id=advisor_id,
        total_routes=metrics.total_routes,
        total_stores=metrics.total_stores,
        completed_stores=metrics.completed_stores,
        skipped_stores=metrics.skipped_stores,
        average_visit_duration_min=round(metrics.average_visit_duration_min, 1),
        completion_rate_pct=round(metrics.completion_rate_pct, 1),
    )
