"""Repository contract consumed by the routing and visit services."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date
from typing import Iterable, Optional

from ..models.domain import Advisor, Route, RouteStatus, RouteTemplate, Store, Visit


class RouteRepository(ABC):
    """Synchronous data-access boundary.

    Counter changes travel with the visit write that causes them
    (``add_visit`` bumps ``total_stores``, ``save_visit`` applies
    ``completed_delta``) so the counters cannot drift from the visit rows.
    """

    @abstractmethod
    def get_store(self, store_id: str) -> Optional[Store]: ...

    def get_stores(self, store_ids: Iterable[str]) -> dict[str, Store]:
        stores: dict[str, Store] = {}
        for store_id in store_ids:
            store = self.get_store(store_id)
            if store is not None:
                stores[store_id] = store
        return stores

    @abstractmethod
    def get_advisor(self, advisor_id: str) -> Optional[Advisor]: ...

    @abstractmethod
    def find_template(self, advisor_id: str, day_of_week: str) -> Optional[RouteTemplate]: ...

    @abstractmethod
    def find_routes(self, advisor_id: str, route_date: date) -> list[Route]:
        """All routes stored for the advisor and date, oldest first."""

    @abstractmethod
    def list_routes(self, start: date, end: date, advisor_id: Optional[str] = None) -> list[Route]: ...

    @abstractmethod
    def get_route(self, route_id: str) -> Optional[Route]: ...

    @abstractmethod
    def find_or_create_route(self, advisor_id: str, route_date: date, status: RouteStatus) -> tuple[Route, bool]:
        """Return the same-day route, creating one if none exists; the flag tells whether it was created."""

    @abstractmethod
    def delete_route(self, route_id: str) -> None: ...

    @abstractmethod
    def update_route_status(self, route_id: str, status: RouteStatus) -> Route: ...

    @abstractmethod
    def set_total_stores(self, route_id: str, total: int) -> Route: ...

    @abstractmethod
    def list_visits(self, route_id: str) -> list[Visit]:
        """Visits of a route ordered by ``visit_order``."""

    def count_visits(self, route_id: str) -> int:
        return len(self.list_visits(route_id))

    @abstractmethod
    def get_visit(self, visit_id: str) -> Optional[Visit]: ...

    @abstractmethod
    def add_visit(self, visit: Visit) -> Visit:
        """Insert a visit and increment its route's ``total_stores``."""

    @abstractmethod
    def find_or_create_visit(
        self, route_id: str, store_id: str, preferred_order: Optional[int] = None
    ) -> tuple[Visit, bool]:
        """Return the route's visit for ``store_id``, inserting a pending one if absent.

        A new visit takes ``preferred_order`` when that slot is free, otherwise
        the next order after the highest in use. Check and insert are atomic per
        (route, store); an insert bumps ``total_stores`` like ``add_visit``.
        """

    @abstractmethod
    def save_visit(self, visit: Visit, *, completed_delta: int = 0) -> Visit:
        """Persist visit state and apply ``completed_delta`` to ``completed_stores``."""
