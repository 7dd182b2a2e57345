"""Process-local repository used in tests and when no database is configured."""

from __future__ import annotations

import copy
import dataclasses
import logging
import threading
import uuid
from datetime import date, datetime, timezone
from typing import Optional

from ..errors import ResourceNotFound
from ..models.domain import Advisor, Route, RouteStatus, RouteTemplate, Store, Visit
from .base import RouteRepository

logger = logging.getLogger(__name__)


def _new_id() -> str:
    return uuid.uuid4().hex


class InMemoryRouteRepository(RouteRepository):
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._stores: dict[str, Store] = {}
        self._advisors: dict[str, Advisor] = {}
        self._templates: dict[tuple[str, str], RouteTemplate] = {}
        self._routes: dict[str, Route] = {}
        self._visits: dict[str, Visit] = {}

    # Reference data ---------------------------------------------------------

    def add_store(self, store: Store) -> Store:
        with self._lock:
            self._stores[store.store_id] = store
        return store

    def add_advisor(self, advisor: Advisor) -> Advisor:
        with self._lock:
            self._advisors[advisor.advisor_id] = advisor
        return advisor

    def add_template(self, template: RouteTemplate) -> RouteTemplate:
        with self._lock:
            self._templates[(template.advisor_id, template.day_of_week.upper())] = template
        return template

    def get_store(self, store_id: str) -> Optional[Store]:
        return self._stores.get(store_id)

    def get_advisor(self, advisor_id: str) -> Optional[Advisor]:
        return self._advisors.get(advisor_id)

    def find_template(self, advisor_id: str, day_of_week: str) -> Optional[RouteTemplate]:
        template = self._templates.get((advisor_id, day_of_week.upper()))
        return copy.deepcopy(template)

    # Routes -----------------------------------------------------------------

    def insert_route(self, route: Route) -> Route:
        """Store a route as-is, without the same-day uniqueness check (legacy data)."""
        with self._lock:
            stored = dataclasses.replace(route, created_at=route.created_at or datetime.now(timezone.utc))
            self._routes[stored.route_id] = stored
            return dataclasses.replace(stored)

    def find_routes(self, advisor_id: str, route_date: date) -> list[Route]:
        with self._lock:
            routes = [
                dataclasses.replace(route)
                for route in self._routes.values()
                if route.advisor_id == advisor_id and route.route_date == route_date
            ]
        return sorted(routes, key=lambda route: route.created_at or datetime.min.replace(tzinfo=timezone.utc))

    def list_routes(self, start: date, end: date, advisor_id: Optional[str] = None) -> list[Route]:
        with self._lock:
            return [
                dataclasses.replace(route)
                for route in self._routes.values()
                if start <= route.route_date <= end and (advisor_id is None or route.advisor_id == advisor_id)
            ]

    def get_route(self, route_id: str) -> Optional[Route]:
        route = self._routes.get(route_id)
        return dataclasses.replace(route) if route else None

    def find_or_create_route(self, advisor_id: str, route_date: date, status: RouteStatus) -> tuple[Route, bool]:
        with self._lock:
            existing = self.find_routes(advisor_id, route_date)
            if existing:
                return max(existing, key=lambda route: self.count_visits(route.route_id)), False
            route = Route(route_id=_new_id(), advisor_id=advisor_id, route_date=route_date, status=status)
            return self.insert_route(route), True

    def delete_route(self, route_id: str) -> None:
        with self._lock:
            self._routes.pop(route_id, None)
            for visit_id in [vid for vid, visit in self._visits.items() if visit.route_id == route_id]:
                del self._visits[visit_id]

    def _require_route(self, route_id: str) -> Route:
        route = self._routes.get(route_id)
        if route is None:
            raise ResourceNotFound("Route", route_id)
        return route

    def update_route_status(self, route_id: str, status: RouteStatus) -> Route:
        with self._lock:
            route = self._require_route(route_id)
            route.status = status
            return dataclasses.replace(route)

    def set_total_stores(self, route_id: str, total: int) -> Route:
        with self._lock:
            route = self._require_route(route_id)
            route.total_stores = total
            return dataclasses.replace(route)

    # Visits -----------------------------------------------------------------

    def list_visits(self, route_id: str) -> list[Visit]:
        with self._lock:
            visits = [copy.deepcopy(visit) for visit in self._visits.values() if visit.route_id == route_id]
        return sorted(visits, key=lambda visit: visit.visit_order)

    def count_visits(self, route_id: str) -> int:
        with self._lock:
            return sum(1 for visit in self._visits.values() if visit.route_id == route_id)

    def get_visit(self, visit_id: str) -> Optional[Visit]:
        visit = self._visits.get(visit_id)
        return copy.deepcopy(visit) if visit else None

    def add_visit(self, visit: Visit) -> Visit:
        with self._lock:
            route = self._require_route(visit.route_id)
            stored = copy.deepcopy(dataclasses.replace(visit, visit_id=visit.visit_id or _new_id()))
            self._visits[stored.visit_id] = stored
            route.total_stores += 1
            return copy.deepcopy(stored)

    def find_or_create_visit(
        self, route_id: str, store_id: str, preferred_order: Optional[int] = None
    ) -> tuple[Visit, bool]:
        with self._lock:
            siblings = [visit for visit in self._visits.values() if visit.route_id == route_id]
            for visit in siblings:
                if visit.store_id == store_id:
                    return copy.deepcopy(visit), False
            used = {visit.visit_order for visit in siblings}
            if preferred_order is None or preferred_order in used:
                preferred_order = max(used, default=0) + 1
            visit = Visit(visit_id=None, route_id=route_id, store_id=store_id, visit_order=preferred_order)
            return self.add_visit(visit), True

    def save_visit(self, visit: Visit, *, completed_delta: int = 0) -> Visit:
        with self._lock:
            if visit.visit_id not in self._visits:
                raise ResourceNotFound("Visit", visit.visit_id)
            route = self._require_route(visit.route_id)
            self._visits[visit.visit_id] = copy.deepcopy(visit)
            route.completed_stores += completed_delta
            return copy.deepcopy(visit)
