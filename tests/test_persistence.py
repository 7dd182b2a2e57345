from datetime import date, datetime, time, timezone
from types import SimpleNamespace

import pytest

from fieldroute.errors import ResourceNotFound
from fieldroute.models.domain import PriorityLevel, Route, RouteStatus, VehicleType, Visit, VisitStatus
from fieldroute.persistence.database import (
    SupabaseRouteRepository,
    advisor_from_row,
    route_from_row,
    store_from_row,
    template_from_row,
    visit_from_row,
    visit_to_row,
)
from fieldroute.persistence.memory import InMemoryRouteRepository

TUESDAY = date(2025, 3, 4)


class FakeQuery:
    def __init__(self, client, table):
        self.client = client
        self.table = table
        self.action = "select"
        self.payload = None
        self.filters = []
        self.conflict = ()

    def select(self, *columns, count=None):
        return self

    def eq(self, column, value):
        self.filters.append((column, value))
        return self

    def order(self, column):
        return self

    def limit(self, size):
        return self

    def insert(self, row):
        self.action, self.payload = "insert", row
        return self

    def upsert(self, row, on_conflict="", ignore_duplicates=False):
        self.action, self.payload = "upsert", row
        self.conflict = tuple(on_conflict.split(","))
        return self

    def update(self, values):
        self.action, self.payload = "update", values
        return self

    def execute(self):
        self.client.calls.append((self.table, self.action, self.payload, self.filters))
        rows = self.client.rows.get(self.table, [])
        if self.action == "upsert":
            # Rows another writer committed between our read and this write.
            rows.extend(self.client.racing.pop(self.table, []))
            self.client.rows[self.table] = rows
            if any(all(str(row.get(c)) == str(self.payload.get(c)) for c in self.conflict) for row in rows):
                return SimpleNamespace(data=[], count=None)
        if self.action in ("insert", "upsert"):
            row = {"id": f"{self.table}-{len(rows) + 1}", **self.payload}
            rows.append(row)
            self.client.rows[self.table] = rows
            return SimpleNamespace(data=[row], count=None)
        matched = [row for row in rows if all(str(row.get(c)) == str(v) for c, v in self.filters)]
        if self.action == "update":
            for row in matched:
                row.update(self.payload)
        return SimpleNamespace(data=matched, count=len(matched))


class FakeRpc:
    def __init__(self, client, name, params):
        self.client, self.name, self.params = client, name, params

    def execute(self):
        self.client.rpcs.append((self.name, self.params))
        return SimpleNamespace(data=None)


class FakeSupabase:
    def __init__(self, rows=None, racing=None):
        self.rows = rows or {}
        self.racing = racing or {}
        self.calls = []
        self.rpcs = []

    def table(self, name):
        return FakeQuery(self, name)

    def rpc(self, name, params):
        return FakeRpc(self, name, params)


def test_store_from_row_maps_ordinal_priority():
    store = store_from_row({"id": 7, "name": "Corner", "latitude": "21.5", "longitude": 39.2, "priority": 5})
    assert store.store_id == "7"
    assert store.latitude == 21.5
    assert store.priority == PriorityLevel.HIGH
    assert store.estimated_visit_minutes == 45
    assert store_from_row({"id": 1, "priority": 1}).priority == PriorityLevel.LOW
    assert store_from_row({"id": 1}).priority == PriorityLevel.MEDIUM


def test_advisor_from_row_defaults_unknown_vehicle_to_car():
    advisor = advisor_from_row({"id": "a1", "name": "Carlos", "vehicle_type": "truck", "work_start_time": "07:30:00"})
    assert advisor.vehicle_type == VehicleType.CAR
    assert advisor.work_start == time(7, 30)


def test_template_from_row():
    template = template_from_row(
        {"id": "t1", "advisor_id": "a1", "day_of_week": "tue", "stops": [{"store_id": "B", "visit_order": 2}, {"store_id": "A", "visit_order": 1}]}
    )
    assert template.day_of_week == "TUE"
    assert [stop.store_id for stop in template.ordered_stops()] == ["A", "B"]


def test_status_spellings_normalized_at_the_boundary():
    route = route_from_row({"id": "r1", "advisor_id": "a1", "route_date": "2025-03-04", "status": "in_progress"})
    visit = visit_from_row({"id": "v1", "route_id": "r1", "store_id": "s1", "visit_order": 1, "status": "in-progress"})
    assert route.status == RouteStatus.IN_PROGRESS
    assert visit.status == VisitStatus.IN_PROGRESS


def test_visit_row_codec_keeps_fields():
    visit = Visit(
        visit_id="v1",
        route_id="r1",
        store_id="s1",
        visit_order=2,
        status=VisitStatus.SKIPPED,
        end_time=datetime(2025, 3, 4, 10, 0, tzinfo=timezone.utc),
        skip_reason="closed",
    )
    row = visit_to_row(visit)
    assert row["status"] == "skipped"
    assert row["end_time"] == "2025-03-04T10:00:00+00:00"
    assert visit_from_row(row) == visit


def test_supabase_repository_requires_client(monkeypatch):
    from fieldroute.persistence import database

    monkeypatch.setattr(database, "get_supabase_client", lambda: None)
    with pytest.raises(RuntimeError):
        SupabaseRouteRepository()


def test_supabase_add_visit_increments_total_through_rpc():
    client = FakeSupabase()
    repository = SupabaseRouteRepository(client)

    stored = repository.add_visit(Visit(visit_id=None, route_id="r1", store_id="s1", visit_order=1))

    assert stored.visit_id == "route_visits-1"
    assert client.rpcs == [("increment_route_counter", {"route_id": "r1", "counter": "total_stores", "amount": 1})]


def test_supabase_save_visit_applies_completed_delta():
    client = FakeSupabase({"route_visits": [{"id": "v1", "route_id": "r1", "store_id": "s1", "visit_order": 1, "status": "in-progress"}]})
    repository = SupabaseRouteRepository(client)

    visit = repository.get_visit("v1")
    visit.status = VisitStatus.COMPLETED
    visit.actual_duration_min = 12
    saved = repository.save_visit(visit, completed_delta=1)

    assert saved.status == VisitStatus.COMPLETED
    assert client.rpcs == [("increment_route_counter", {"route_id": "r1", "counter": "completed_stores", "amount": 1})]


def test_supabase_save_missing_visit_raises():
    repository = SupabaseRouteRepository(FakeSupabase())
    with pytest.raises(ResourceNotFound):
        repository.save_visit(Visit(visit_id="nope", route_id="r1", store_id="s1", visit_order=1))


def test_supabase_update_route_status_writes_underscore_spelling():
    client = FakeSupabase({"routes": [{"id": "r1", "advisor_id": "a1", "route_date": "2025-03-04", "status": "pending"}]})
    route = SupabaseRouteRepository(client).update_route_status("r1", RouteStatus.IN_PROGRESS)

    assert client.rows["routes"][0]["status"] == "in_progress"
    assert route.status == RouteStatus.IN_PROGRESS


def test_memory_find_or_create_is_unique_per_day():
    repository = InMemoryRouteRepository()
    first, created = repository.find_or_create_route("a1", TUESDAY, RouteStatus.IN_PROGRESS)
    second, created_again = repository.find_or_create_route("a1", TUESDAY, RouteStatus.IN_PROGRESS)

    assert created and not created_again
    assert first.route_id == second.route_id


def test_memory_counters_follow_visit_writes():
    repository = InMemoryRouteRepository()
    route, _ = repository.find_or_create_route("a1", TUESDAY, RouteStatus.IN_PROGRESS)
    visit = repository.add_visit(Visit(visit_id=None, route_id=route.route_id, store_id="s1", visit_order=1))
    visit.status = VisitStatus.COMPLETED
    repository.save_visit(visit, completed_delta=1)

    stored = repository.get_route(route.route_id)
    assert stored.total_stores == 1
    assert stored.completed_stores == 1


def test_memory_returns_copies():
    repository = InMemoryRouteRepository()
    route, _ = repository.find_or_create_route("a1", TUESDAY, RouteStatus.IN_PROGRESS)
    visit = repository.add_visit(Visit(visit_id=None, route_id=route.route_id, store_id="s1", visit_order=1))
    visit.tasks["picking"] = True

    assert repository.get_visit(visit.visit_id).tasks == {}


def test_memory_delete_route_removes_its_visits():
    repository = InMemoryRouteRepository()
    repository.insert_route(Route(route_id="r1", advisor_id="a1", route_date=TUESDAY))
    visit = repository.add_visit(Visit(visit_id=None, route_id="r1", store_id="s1", visit_order=1))

    repository.delete_route("r1")

    assert repository.get_route("r1") is None
    assert repository.get_visit(visit.visit_id) is None


def test_memory_add_visit_to_missing_route_raises():
    with pytest.raises(ResourceNotFound):
        InMemoryRouteRepository().add_visit(Visit(visit_id=None, route_id="ghost", store_id="s1", visit_order=1))


def _route_row(route_id: str, created_at: str) -> dict:
    return {"id": route_id, "advisor_id": "a1", "route_date": "2025-03-04", "status": "in_progress", "created_at": created_at}


def _visit_row(visit_id: str, route_id: str, store_id: str, order: int) -> dict:
    return {"id": visit_id, "route_id": route_id, "store_id": store_id, "visit_order": order, "status": "pending"}


def test_supabase_find_or_create_route_picks_fullest_after_lost_race():
    client = FakeSupabase(
        rows={"route_visits": [_visit_row("v1", "FULL", "s1", 1), _visit_row("v2", "FULL", "s2", 2)]},
        racing={"routes": [_route_row("EMPTY", "2025-03-04T08:00:00Z"), _route_row("FULL", "2025-03-04T08:01:00Z")]},
    )

    route, created = SupabaseRouteRepository(client).find_or_create_route("a1", TUESDAY, RouteStatus.IN_PROGRESS)

    assert not created
    assert route.route_id == "FULL"


def test_supabase_find_or_create_route_prefers_fullest_existing():
    client = FakeSupabase(
        {
            "routes": [_route_row("EMPTY", "2025-03-04T08:00:00Z"), _route_row("FULL", "2025-03-04T08:01:00Z")],
            "route_visits": [_visit_row("v1", "FULL", "s1", 1)],
        }
    )

    route, created = SupabaseRouteRepository(client).find_or_create_route("a1", TUESDAY, RouteStatus.IN_PROGRESS)

    assert not created
    assert route.route_id == "FULL"
    assert all(action != "upsert" for _, action, _, _ in client.calls)


def test_supabase_find_or_create_visit_returns_existing():
    client = FakeSupabase({"route_visits": [_visit_row("v1", "r1", "s1", 1)]})

    visit, created = SupabaseRouteRepository(client).find_or_create_visit("r1", "s1", 1)

    assert not created
    assert visit.visit_id == "v1"
    assert client.rpcs == []


def test_supabase_find_or_create_visit_moves_past_taken_order():
    client = FakeSupabase({"route_visits": [_visit_row("v1", "r1", "s1", 1)]})

    visit, created = SupabaseRouteRepository(client).find_or_create_visit("r1", "s2", 1)

    assert created
    assert visit.visit_order == 2
    assert client.rpcs == [("increment_route_counter", {"route_id": "r1", "counter": "total_stores", "amount": 1})]


def test_supabase_find_or_create_visit_lost_race_does_not_count_twice():
    client = FakeSupabase(racing={"route_visits": [_visit_row("theirs", "r1", "s1", 1)]})

    visit, created = SupabaseRouteRepository(client).find_or_create_visit("r1", "s1", 1)

    assert not created
    assert visit.visit_id == "theirs"
    assert client.rpcs == []
    assert len(client.rows["route_visits"]) == 1


def test_memory_find_or_create_visit_is_unique_per_store():
    repository = InMemoryRouteRepository()
    route, _ = repository.find_or_create_route("a1", TUESDAY, RouteStatus.IN_PROGRESS)

    first, created = repository.find_or_create_visit(route.route_id, "s1", 1)
    again, created_again = repository.find_or_create_visit(route.route_id, "s1", 1)
    other, _ = repository.find_or_create_visit(route.route_id, "s2", 1)

    assert created and not created_again
    assert again.visit_id == first.visit_id
    assert other.visit_order == 2
    assert repository.get_route(route.route_id).total_stores == 2


def test_memory_find_or_create_visit_on_missing_route_raises():
    with pytest.raises(ResourceNotFound):
        InMemoryRouteRepository().find_or_create_visit("ghost", "s1")
