"""Visit orchestration: lifecycle transitions, counters, route status and telemetry."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Callable, Iterable, Mapping, Optional

from ...errors import InvalidTransition, MissingRequiredField, ResourceNotFound
from ...models.domain import Route, RouteStatus, RouteView, Visit, VisitStatus, day_code
from ...persistence.base import RouteRepository
from ..analytics import AnalyticsEmitter
from ..routing.assembler import RouteAssembler
from ..routing.constraints import RouteConstraint
from ..routing.models import OptimizationResult
from ..routing.optimizer import RouteOptimizer
from .lifecycle import VisitEvent, counter_delta, transition
from .lifecycle import update_tasks as merge_tasks

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class VisitOutcome:
    route: Route
    visit: Visit
    changed: bool = True


@dataclass(slots=True)
class RouteMetrics:
    total_routes: int = 0
    total_stores: int = 0
    completed_stores: int = 0
    skipped_stores: int = 0
    average_visit_duration_min: float = 0.0
    completion_rate_pct: float = 0.0


class VisitService:
    def __init__(
        self,
        repository: RouteRepository,
        *,
        assembler: RouteAssembler | None = None,
        optimizer: RouteOptimizer | None = None,
        analytics: AnalyticsEmitter | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.repository = repository
        self.assembler = assembler or RouteAssembler(repository)
        self.optimizer = optimizer or RouteOptimizer()
        self.analytics = analytics or AnalyticsEmitter()
        self.clock = clock or _utcnow

    def today(self) -> date:
        return self.clock().date()

    def current_route(self, advisor_id: str, route_date: date | None = None) -> RouteView:
        return self.assembler.get_effective_route(advisor_id, route_date or self.today())

    # Transitions ------------------------------------------------------------

    def start_visit(
        self,
        advisor_id: str,
        *,
        visit_id: str | None = None,
        store_id: str | None = None,
        route_date: date | None = None,
    ) -> VisitOutcome:
        route, visit = self._resolve(advisor_id, visit_id, store_id, route_date, create=True)
        return self._apply(route, visit, VisitEvent.START)

    def complete_visit(
        self,
        advisor_id: str,
        *,
        visit_id: str | None = None,
        store_id: str | None = None,
        duration: float | None = None,
        tasks: Mapping[str, Any] | None = None,
        notes: str | None = None,
        route_date: date | None = None,
    ) -> VisitOutcome:
        route, visit = self._resolve(advisor_id, visit_id, store_id, route_date, create=False)
        outcome = self._apply(
            route,
            visit,
            VisitEvent.COMPLETE,
            {"duration": duration, "tasks": dict(tasks or {}), "notes": notes},
        )
        self._record_completion(advisor_id, outcome)
        return outcome

    def _record_completion(self, advisor_id: str, outcome: VisitOutcome) -> None:
        # The visit is already saved; telemetry failures must not fail the request.
        try:
            store = self.repository.get_store(outcome.visit.store_id)
            advisor = self.repository.get_advisor(advisor_id)
            self.analytics.visit_completed(outcome.route, outcome.visit, store, advisor)
        except Exception as exc:
            logger.warning(f"Completion metrics for visit {outcome.visit.visit_id} not recorded: {exc}")

    def skip_visit(
        self,
        advisor_id: str,
        *,
        visit_id: str | None = None,
        store_id: str | None = None,
        reason: str | None = None,
        route_date: date | None = None,
    ) -> VisitOutcome:
        route, visit = self._resolve(advisor_id, visit_id, store_id, route_date, create=True)
        return self._apply(route, visit, VisitEvent.SKIP, {"reason": reason})

    def update_tasks(self, advisor_id: str, visit_id: str, tasks: Mapping[str, Any]) -> VisitOutcome:
        route, visit = self._resolve(advisor_id, visit_id, None, None, create=False)
        self._ensure_route_open(route, "update_tasks", visit)
        saved = self.repository.save_visit(merge_tasks(visit, tasks))
        return VisitOutcome(route=route, visit=saved)

    def report_damage(self, advisor_id: str, visit_id: str, damaged_items: Iterable[str]) -> VisitOutcome:
        items = [str(item) for item in damaged_items if str(item).strip()]
        if not items:
            raise MissingRequiredField("damaged_items")
        outcome = self.update_tasks(advisor_id, visit_id, {"damage_check": True, "damaged_items": items})
        logger.info(f"Damage reported on visit {visit_id}: {len(items)} item(s)")
        self.analytics.damage_reported(outcome.route, outcome.visit, items)
        return outcome

    # Resolution -------------------------------------------------------------

    def _resolve(
        self,
        advisor_id: str,
        visit_id: Optional[str],
        store_id: Optional[str],
        route_date: Optional[date],
        *,
        create: bool,
    ) -> tuple[Route, Visit]:
        if visit_id:
            visit = self.repository.get_visit(visit_id)
            route = self.repository.get_route(visit.route_id) if visit else None
            # Visits of other advisors are reported as missing.
            if visit is None or route is None or route.advisor_id != advisor_id:
                raise ResourceNotFound("Visit", visit_id)
            return route, visit

        if not store_id:
            raise MissingRequiredField("visit_id", "Either visit_id or store_id is required")

        route_date = route_date or self.today()
        if create:
            return self.assembler.ensure_route_and_visit(advisor_id, route_date, store_id)

        for route in self.repository.find_routes(advisor_id, route_date):
            for visit in self.repository.list_visits(route.route_id):
                if visit.store_id == store_id:
                    return route, visit
        raise ResourceNotFound("Visit", f"{advisor_id}/{route_date}/{store_id}")

    # Effects ----------------------------------------------------------------

    @staticmethod
    def _ensure_route_open(route: Route, event: str, visit: Visit) -> None:
        if route.status == RouteStatus.CANCELLED:
            raise InvalidTransition(visit.status.value, event, f"route {route.route_id} is cancelled")

    def _apply(
        self,
        route: Route,
        visit: Visit,
        event: VisitEvent,
        payload: Optional[Mapping[str, Any]] = None,
    ) -> VisitOutcome:
        self._ensure_route_open(route, event.value, visit)
        updated = transition(visit, event, payload, now=self.clock())
        if updated is visit:
            return VisitOutcome(route=route, visit=visit, changed=False)

        saved = self.repository.save_visit(updated, completed_delta=counter_delta(visit, updated))
        logger.info(f"Visit {saved.visit_id} ({saved.store_id}): {visit.status.value} -> {saved.status.value}")
        return VisitOutcome(route=self._sync_route_status(route.route_id, event), visit=saved)

    def _sync_route_status(self, route_id: str, event: VisitEvent) -> Route:
        route = self.repository.get_route(route_id)
        if route is None:
            raise ResourceNotFound("Route", route_id)

        target = route.status
        if event == VisitEvent.START and route.status in (RouteStatus.PENDING, RouteStatus.COMPLETED):
            target = RouteStatus.IN_PROGRESS
        elif event != VisitEvent.START and self._is_finished(route):
            target = RouteStatus.COMPLETED

        if target != route.status:
            logger.info(f"Route {route.route_id}: {route.status.value} -> {target.value}")
            route = self.repository.update_route_status(route.route_id, target)
        return route

    def _is_finished(self, route: Route) -> bool:
        visits = self.repository.list_visits(route.route_id)
        if not visits or not all(visit.status.is_done for visit in visits):
            return False
        template = self.repository.find_template(route.advisor_id, day_code(route.route_date))
        if template is None:
            return True
        present = {visit.store_id for visit in visits}
        return all(stop.store_id in present for stop in template.stops)

    # Planning and reporting -------------------------------------------------

    def optimize_route(
        self,
        advisor_id: str,
        route_date: date | None = None,
        constraints: Iterable[RouteConstraint] | None = None,
    ) -> OptimizationResult:
        """Suggest an order for the visits still open on the advisor's route.

        Stored visit orders are left as they are; the caller decides what to
        do with the suggestion.
        """
        view = self.current_route(advisor_id, route_date)
        stores = [item.store for item in view.visits if not item.visit.status.is_done]
        advisor = self.repository.get_advisor(advisor_id)
        return self.optimizer.optimize(stores, advisor, constraints)

    def route_metrics(self, start: date, end: date, advisor_id: str | None = None) -> RouteMetrics:
        routes = self.repository.list_routes(start, end, advisor_id)
        metrics = RouteMetrics(total_routes=len(routes))
        durations: list[int] = []
        for route in routes:
            for visit in self.repository.list_visits(route.route_id):
                metrics.total_stores += 1
                if visit.status == VisitStatus.COMPLETED:
                    metrics.completed_stores += 1
                    if visit.actual_duration_min is not None:
                        durations.append(visit.actual_duration_min)
                elif visit.status == VisitStatus.SKIPPED:
                    metrics.skipped_stores += 1
        if durations:
            metrics.average_visit_duration_min = sum(durations) / len(durations)
        if metrics.total_stores:
            metrics.completion_rate_pct = metrics.completed_stores / metrics.total_stores * 100
        return metrics
