"""Reconciles a day's route from stored routes and the day-of-week template."""

from __future__ import annotations

import logging
from datetime import date
from typing import Sequence

from ...errors import NoRouteAvailable, ResourceNotFound
from ...models.domain import (
    PersistedRoute,
    Route,
    RouteSource,
    RouteStatus,
    RouteTemplate,
    RouteView,
    Store,
    TemplatedRoute,
    Visit,
    VisitView,
    day_code,
)
from ...persistence.base import RouteRepository

logger = logging.getLogger(__name__)


class RouteAssembler:
    def __init__(self, repository: RouteRepository) -> None:
        self.repository = repository

    def get_effective_route(self, advisor_id: str, route_date: date) -> RouteView:
        """Return the route to track for the advisor and date.

        With no stored route the template is projected into an unsaved route
        whose visits are all pending. Otherwise the stored route with the most
        visits wins, empty duplicates are deleted, template stops the route
        lacks are appended, and ``total_stores`` is brought in line with the
        visit rows.
        """
        template = self.repository.find_template(advisor_id, day_code(route_date))
        routes = self.repository.find_routes(advisor_id, route_date)

        if not routes:
            if template is None or not template.stops:
                raise NoRouteAvailable(advisor_id, route_date)
            visits = [
                Visit(visit_id=None, route_id=None, store_id=stop.store_id, visit_order=stop.visit_order)
                for stop in template.ordered_stops()
            ]
            source = TemplatedRoute(template=template, advisor_id=advisor_id, route_date=route_date)
            return RouteView(source=source, visits=self._resolve_stores(visits))

        canonical = self._reconcile_duplicates(routes)
        if template is not None:
            self._backfill_from_template(canonical, template)

        visits = self.repository.list_visits(canonical.route_id)
        route = self.repository.get_route(canonical.route_id) or canonical
        if route.total_stores != len(visits):
            logger.info(f"Route {route.route_id}: total_stores {route.total_stores} -> {len(visits)}")
            route = self.repository.set_total_stores(route.route_id, len(visits))
        return RouteView(source=PersistedRoute(route), visits=self._resolve_stores(visits))

    def _reconcile_duplicates(self, routes: Sequence[Route]) -> Route:
        counts = {route.route_id: self.repository.count_visits(route.route_id) for route in routes}
        canonical = max(routes, key=lambda route: counts[route.route_id])
        for route in routes:
            if route.route_id == canonical.route_id:
                continue
            if counts[route.route_id] == 0:
                logger.warning(
                    f"Deleting empty duplicate route {route.route_id} for advisor {route.advisor_id} "
                    f"on {route.route_date} (keeping {canonical.route_id})"
                )
                self.repository.delete_route(route.route_id)
            else:
                logger.warning(
                    f"Route {route.route_id} duplicates {canonical.route_id} but has "
                    f"{counts[route.route_id]} visit(s); left untouched"
                )
        return canonical

    def _backfill_from_template(self, route: Route, template: RouteTemplate) -> None:
        visits = self.repository.list_visits(route.route_id)
        if len(visits) >= len(template.stops):
            return
        present = {visit.store_id for visit in visits}
        added = 0
        for stop in template.ordered_stops():
            if stop.store_id in present:
                continue
            _, created = self.repository.find_or_create_visit(route.route_id, stop.store_id, stop.visit_order)
            added += created
        if added:
            logger.info(f"Backfilled {added} template stop(s) into route {route.route_id}")

    def materialize(self, source: RouteSource) -> Route:
        """Promote a templated route to a stored one; stored routes pass through."""
        if isinstance(source, PersistedRoute):
            return source.route
        return self._find_or_create(source.advisor_id, source.route_date, f"template {source.template.template_id}")

    def _find_or_create(self, advisor_id: str, route_date: date, label: str) -> Route:
        route, created = self.repository.find_or_create_route(advisor_id, route_date, RouteStatus.IN_PROGRESS)
        if created:
            logger.info(f"Materialized route {route.route_id} for advisor {advisor_id} on {route_date} from {label}")
        return route

    def ensure_route_and_visit(self, advisor_id: str, route_date: date, store_id: str) -> tuple[Route, Visit]:
        """Find or create today's route and the visit for ``store_id`` on it."""
        if self.repository.get_store(store_id) is None:
            raise ResourceNotFound("Store", store_id)

        template = self.repository.find_template(advisor_id, day_code(route_date))
        preferred = None
        if template is not None:
            route = self.materialize(TemplatedRoute(template=template, advisor_id=advisor_id, route_date=route_date))
            preferred = next((stop.visit_order for stop in template.stops if stop.store_id == store_id), None)
        else:
            route = self._find_or_create(advisor_id, route_date, "ad-hoc visits")
        visit, created = self.repository.find_or_create_visit(route.route_id, store_id, preferred)
        if not created:
            return route, visit
        logger.info(f"Added store {store_id} to route {route.route_id} at position {visit.visit_order}")
        return self.repository.get_route(route.route_id) or route, visit

    def _resolve_stores(self, visits: Sequence[Visit]) -> list[VisitView]:
        stores = self.repository.get_stores(visit.store_id for visit in visits)
        views: list[VisitView] = []
        for visit in visits:
            store = stores.get(visit.store_id)
            if store is None:
                logger.warning(f"Store {visit.store_id} referenced by route is missing from reference data")
                store = Store(store_id=visit.store_id, name="", latitude=None, longitude=None)
            views.append(VisitView(visit=visit, store=store))
        return views
