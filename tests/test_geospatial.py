import math

import pytest

from fieldroute.errors import InvalidCoordinate
from fieldroute.models.domain import Store
from fieldroute.services.geospatial import distance, haversine_km, is_valid_coordinate, total_path_distance


def _store(sid: str, lat, lon) -> Store:
    return Store(store_id=sid, name=f"Store {sid}", latitude=lat, longitude=lon)


def test_haversine_known_distance():
    # Riyadh -> Jeddah is roughly 845 km as the crow flies
    km = haversine_km(24.7136, 46.6753, 21.4858, 39.1925)
    assert 830 < km < 860


def test_distance_is_symmetric_and_zero_for_same_point():
    a, b = (21.5, 39.2), (21.55, 39.25)
    assert distance(a, b) == pytest.approx(distance(b, a))
    assert distance(a, a) == 0.0


@pytest.mark.parametrize(
    "lat, lon",
    [(None, 39.2), (91.0, 0.0), (0.0, 181.0), (math.nan, 0.0), (0.0, math.inf), ("abc", 1.0)],
)
def test_invalid_coordinates_are_rejected(lat, lon):
    assert not is_valid_coordinate(lat, lon)
    with pytest.raises(InvalidCoordinate):
        distance((lat, lon), (21.5, 39.2), policy="reject")


def test_zero_policy_counts_invalid_legs_as_zero():
    stores = [_store("A", 21.5, 39.2), _store("B", None, None), _store("C", 21.6, 39.3)]
    assert total_path_distance(stores, policy="zero") == 0.0


def test_total_path_distance_boundaries():
    assert total_path_distance([]) == 0.0
    assert total_path_distance([_store("A", 21.5, 39.2)]) == 0.0


def test_total_path_distance_sums_legs():
    a, b, c = _store("A", 0.0, 0.0), _store("B", 0.0, 1.0), _store("C", 0.0, 2.0)
    expected = distance(a.coordinates, b.coordinates) + distance(b.coordinates, c.coordinates)
    assert total_path_distance([a, b, c]) == pytest.approx(expected)
