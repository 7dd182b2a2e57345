"""Supabase-backed route repository.

Tables: ``stores``, ``advisors``, ``route_templates``, ``routes`` and
``route_visits``. ``routes`` carries a unique index on
``(advisor_id, route_date)`` which ``find_or_create_route`` relies on, and
``route_visits`` one on ``(route_id, store_id)`` for ``find_or_create_visit``;
counters are changed through the ``increment_route_counter(route_id, counter,
amount)`` stored procedure so concurrent requests never overwrite each other.

Status spellings differ between tables in legacy data (``in_progress`` on
routes, ``in-progress`` on visits). The mapping lives here and nowhere else.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time
from typing import Any, Optional

from ..db.supabase import get_supabase_client
from ..errors import ResourceNotFound
from ..models.domain import (
    Advisor,
    PriorityLevel,
    Route,
    RouteStatus,
    RouteTemplate,
    Store,
    TemplateStop,
    VehicleType,
    Visit,
    VisitStatus,
)
from .base import RouteRepository

logger = logging.getLogger(__name__)

ROUTE_STATUS_TO_DB = {
    RouteStatus.PENDING: "pending",
    RouteStatus.IN_PROGRESS: "in_progress",
    RouteStatus.COMPLETED: "completed",
    RouteStatus.CANCELLED: "cancelled",
}


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def _parse_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _parse_time(value: Any) -> Optional[time]:
    if value in (None, ""):
        return None
    if isinstance(value, time):
        return value
    return time.fromisoformat(str(value))


def _optional_float(value: Any) -> Optional[float]:
    if value in (None, ""):
        return None
    return float(value)


def store_from_row(row: dict[str, Any]) -> Store:
    return Store(
        store_id=str(row["id"]),
        name=row.get("name") or "",
        address=row.get("address"),
        latitude=_optional_float(row.get("latitude")),
        longitude=_optional_float(row.get("longitude")),
        priority=PriorityLevel.parse(row.get("priority")),
        category=row.get("category"),
        zone=row.get("zone"),
        estimated_visit_minutes=int(row.get("estimated_visit_duration") or 45),
    )


def advisor_from_row(row: dict[str, Any]) -> Advisor:
    return Advisor(
        advisor_id=str(row["id"]),
        name=row.get("name") or "",
        vehicle_type=VehicleType.parse(row.get("vehicle_type")),
        work_start=_parse_time(row.get("work_start_time")),
    )


def template_from_row(row: dict[str, Any]) -> RouteTemplate:
    stops = [
        TemplateStop(store_id=str(stop["store_id"]), visit_order=int(stop["visit_order"]))
        for stop in row.get("stops") or []
    ]
    return RouteTemplate(
        template_id=str(row["id"]),
        advisor_id=str(row["advisor_id"]),
        day_of_week=str(row["day_of_week"]).upper(),
        stops=stops,
    )


def route_from_row(row: dict[str, Any]) -> Route:
    return Route(
        route_id=str(row["id"]),
        advisor_id=str(row["advisor_id"]),
        route_date=_parse_date(row["route_date"]),
        status=RouteStatus.parse(row.get("status")),
        total_stores=int(row.get("total_stores") or 0),
        completed_stores=int(row.get("completed_stores") or 0),
        total_distance_km=float(row.get("total_distance") or 0.0),
        estimated_duration_min=float(row.get("estimated_duration") or 0.0),
        created_at=_parse_datetime(row.get("created_at")),
    )


def visit_from_row(row: dict[str, Any]) -> Visit:
    duration = row.get("visit_duration")
    return Visit(
        visit_id=str(row["id"]),
        route_id=str(row["route_id"]),
        store_id=str(row["store_id"]),
        visit_order=int(row["visit_order"]),
        status=VisitStatus.parse(row.get("status")),
        start_time=_parse_datetime(row.get("start_time")),
        end_time=_parse_datetime(row.get("end_time")),
        skip_reason=row.get("skip_reason"),
        actual_duration_min=int(duration) if duration is not None else None,
        tasks=dict(row.get("tasks") or {}),
        notes=row.get("notes"),
    )


def visit_to_row(visit: Visit) -> dict[str, Any]:
    row = {
        "route_id": visit.route_id,
        "store_id": visit.store_id,
        "visit_order": visit.visit_order,
        "status": visit.status.value,
        "start_time": visit.start_time.isoformat() if visit.start_time else None,
        "end_time": visit.end_time.isoformat() if visit.end_time else None,
        "skip_reason": visit.skip_reason,
        "visit_duration": visit.actual_duration_min,
        "tasks": visit.tasks,
        "notes": visit.notes,
    }
    if visit.visit_id:
        row["id"] = visit.visit_id
    return row


class SupabaseRouteRepository(RouteRepository):
    def __init__(self, client: Any = None) -> None:
        self.client = client or get_supabase_client()
        if self.client is None:
            raise RuntimeError(
                "Supabase not configured. Set FIELDROUTE_SUPABASE_URL and FIELDROUTE_SUPABASE_KEY environment variables."
            )

    def _first(self, table: str, **filters: Any) -> Optional[dict[str, Any]]:
        query = self.client.table(table).select("*")
        for column, value in filters.items():
            query = query.eq(column, value)
        response = query.limit(1).execute()
        return response.data[0] if response.data else None

    def _increment(self, route_id: str, counter: str, amount: int) -> None:
        if amount:
            self.client.rpc(
                "increment_route_counter",
                {"route_id": route_id, "counter": counter, "amount": amount},
            ).execute()

    def get_store(self, store_id: str) -> Optional[Store]:
        row = self._first("stores", id=store_id)
        return store_from_row(row) if row else None

    def get_stores(self, store_ids) -> dict[str, Store]:
        ids = list(store_ids)
        if not ids:
            return {}
        response = self.client.table("stores").select("*").in_("id", ids).execute()
        stores = [store_from_row(row) for row in response.data or []]
        return {store.store_id: store for store in stores}

    def get_advisor(self, advisor_id: str) -> Optional[Advisor]:
        row = self._first("advisors", id=advisor_id)
        return advisor_from_row(row) if row else None

    def find_template(self, advisor_id: str, day_of_week: str) -> Optional[RouteTemplate]:
        row = self._first("route_templates", advisor_id=advisor_id, day_of_week=day_of_week.upper())
        return template_from_row(row) if row else None

    def find_routes(self, advisor_id: str, route_date: date) -> list[Route]:
        response = (
            self.client.table("routes")
            .select("*")
            .eq("advisor_id", advisor_id)
            .eq("route_date", route_date.isoformat())
            .order("created_at")
            .execute()
        )
        return [route_from_row(row) for row in response.data or []]

    def list_routes(self, start: date, end: date, advisor_id: Optional[str] = None) -> list[Route]:
        query = (
            self.client.table("routes")
            .select("*")
            .gte("route_date", start.isoformat())
            .lte("route_date", end.isoformat())
        )
        if advisor_id:
            query = query.eq("advisor_id", advisor_id)
        response = query.execute()
        return [route_from_row(row) for row in response.data or []]

    def get_route(self, route_id: str) -> Optional[Route]:
        row = self._first("routes", id=route_id)
        return route_from_row(row) if row else None

    def find_or_create_route(self, advisor_id: str, route_date: date, status: RouteStatus) -> tuple[Route, bool]:
        existing = self.find_routes(advisor_id, route_date)
        if existing:
            return self._fullest(existing), False
        row = {
            "advisor_id": advisor_id,
            "route_date": route_date.isoformat(),
            "status": ROUTE_STATUS_TO_DB[status],
            "total_stores": 0,
            "completed_stores": 0,
        }
        response = (
            self.client.table("routes")
            .upsert(row, on_conflict="advisor_id,route_date", ignore_duplicates=True)
            .execute()
        )
        if response.data:
            logger.info(f"Created route for advisor {advisor_id} on {route_date}")
            return route_from_row(response.data[0]), True
        # Another request won the race; its row is the one to use.
        existing = self.find_routes(advisor_id, route_date)
        if not existing:
            raise RuntimeError(f"Route for advisor {advisor_id} on {route_date} could not be created")
        return self._fullest(existing), False

    def _fullest(self, routes: list[Route]) -> Route:
        return max(routes, key=lambda route: self.count_visits(route.route_id))

    def delete_route(self, route_id: str) -> None:
        self.client.table("route_visits").delete().eq("route_id", route_id).execute()
        self.client.table("routes").delete().eq("id", route_id).execute()

    def _update_route(self, route_id: str, values: dict[str, Any]) -> Route:
        response = self.client.table("routes").update(values).eq("id", route_id).execute()
        if not response.data:
            raise ResourceNotFound("Route", route_id)
        return route_from_row(response.data[0])

    def update_route_status(self, route_id: str, status: RouteStatus) -> Route:
        return self._update_route(route_id, {"status": ROUTE_STATUS_TO_DB[status]})

    def set_total_stores(self, route_id: str, total: int) -> Route:
        return self._update_route(route_id, {"total_stores": total})

    def list_visits(self, route_id: str) -> list[Visit]:
        response = (
            self.client.table("route_visits")
            .select("*")
            .eq("route_id", route_id)
            .order("visit_order")
            .execute()
        )
        return [visit_from_row(row) for row in response.data or []]

    def count_visits(self, route_id: str) -> int:
        response = self.client.table("route_visits").select("id", count="exact").eq("route_id", route_id).execute()
        return response.count or 0

    def get_visit(self, visit_id: str) -> Optional[Visit]:
        row = self._first("route_visits", id=visit_id)
        return visit_from_row(row) if row else None

    def add_visit(self, visit: Visit) -> Visit:
        response = self.client.table("route_visits").insert(visit_to_row(visit)).execute()
        stored = visit_from_row(response.data[0])
        self._increment(stored.route_id, "total_stores", 1)
        return stored

    def _find_visit(self, route_id: str, store_id: str) -> Optional[Visit]:
        row = self._first("route_visits", route_id=route_id, store_id=store_id)
        return visit_from_row(row) if row else None

    def find_or_create_visit(
        self, route_id: str, store_id: str, preferred_order: Optional[int] = None
    ) -> tuple[Visit, bool]:
        existing = self._find_visit(route_id, store_id)
        if existing is not None:
            return existing, False
        used = {visit.visit_order for visit in self.list_visits(route_id)}
        if preferred_order is None or preferred_order in used:
            preferred_order = max(used, default=0) + 1
        row = visit_to_row(Visit(visit_id=None, route_id=route_id, store_id=store_id, visit_order=preferred_order))
        # Unique index on route_visits(route_id, store_id) turns a concurrent duplicate into a no-op.
        response = (
            self.client.table("route_visits")
            .upsert(row, on_conflict="route_id,store_id", ignore_duplicates=True)
            .execute()
        )
        if response.data:
            self._increment(route_id, "total_stores", 1)
            return visit_from_row(response.data[0]), True
        existing = self._find_visit(route_id, store_id)
        if existing is None:
            raise RuntimeError(f"Visit for store {store_id} on route {route_id} could not be created")
        return existing, False

    def save_visit(self, visit: Visit, *, completed_delta: int = 0) -> Visit:
        response = (
            self.client.table("route_visits")
            .update(visit_to_row(visit))
            .eq("id", visit.visit_id)
            .execute()
        )
        if not response.data:
            raise ResourceNotFound("Visit", visit.visit_id)
        self._increment(visit.route_id, "completed_stores", completed_delta)
        return visit_from_row(response.data[0])
