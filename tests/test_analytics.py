from datetime import date, datetime, timezone

import pytest

from fieldroute.models.domain import Route, Visit, VisitStatus
from fieldroute.services.analytics import AnalyticsEmitter, arrival_window, efficiency_score


def _route() -> Route:
    return Route(route_id="R1", advisor_id="carlos", route_date=date(2025, 3, 4))


def _visit(**fields) -> Visit:
    return Visit(visit_id="V1", route_id="R1", store_id="S1", visit_order=1, status=VisitStatus.COMPLETED, **fields)


@pytest.mark.parametrize(
    "hour, expected",
    [(8, "morning"), (10, "morning"), (11, "midday"), (13, "midday"), (14, "afternoon"), (18, "afternoon")],
)
def test_arrival_window(hour, expected):
    assert arrival_window(datetime(2025, 3, 4, hour, 30)) == expected


def test_efficiency_score():
    assert efficiency_score(40, 0) == pytest.approx(100.0)
    assert efficiency_score(80, 0) == pytest.approx(70.0)
    assert efficiency_score(30, 9, products_sold=1000) == pytest.approx(130.0)


def test_visit_completed_payload():
    events = []
    emitter = AnalyticsEmitter(lambda event_type, payload: events.append((event_type, payload)))
    visit = _visit(
        start_time=datetime(2025, 3, 4, 12, 0, tzinfo=timezone.utc),
        actual_duration_min=40,
        tasks={"picking": True, "pricing": True, "products_sold": 25},
    )

    assert emitter.visit_completed(_route(), visit) is True

    event_type, payload = events[0]
    assert event_type == "visit_completed"
    assert payload["day_of_week"] == "TUE"
    assert payload["arrival_window"] == "midday"
    assert payload["tasks_completed"] == 2
    assert payload["products_sold"] == 25
    assert payload["vehicle_type"] is None


def test_sink_failure_returns_false():
    def broken(event_type, payload):
        raise RuntimeError("boom")

    emitter = AnalyticsEmitter(broken)
    assert emitter.damage_reported(_route(), _visit(), ["jar"]) is False


def test_malformed_payload_is_swallowed():
    emitter = AnalyticsEmitter(lambda event_type, payload: None)
    visit = _visit(actual_duration_min=10, tasks={"products_sold": "many"})
    assert emitter.visit_completed(_route(), visit) is False
