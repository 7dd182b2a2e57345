import itertools
import random

import pytest

from fieldroute.errors import InvalidCoordinate
from fieldroute.models.domain import Advisor, PriorityLevel, Store, VehicleType
from fieldroute.services.geospatial import total_path_distance
from fieldroute.services.routing.constraints import RouteConstraint
from fieldroute.services.routing.optimizer import (
    OptimizerConfig,
    RouteOptimizer,
    order_crossover,
    speed_for_vehicle,
    swap_mutation,
)


def _store(sid: str, lat: float, lon: float, priority: PriorityLevel = PriorityLevel.LOW, zone: str | None = None) -> Store:
    return Store(store_id=sid, name=f"Store {sid}", latitude=lat, longitude=lon, priority=priority, zone=zone)


def _optimizer(seed: int = 7, **overrides) -> RouteOptimizer:
    config = OptimizerConfig(population_size=30, generations=60, elite_size=6, **overrides)
    return RouteOptimizer(config=config, rng=random.Random(seed))


def _shuffled_line() -> list[Store]:
    # Points along a meridian visited in a zig-zag order.
    return [
        _store("S3", 21.53, 39.2),
        _store("S0", 21.50, 39.2),
        _store("S4", 21.54, 39.2),
        _store("S1", 21.51, 39.2),
        _store("S2", 21.52, 39.2),
    ]


def test_order_crossover_produces_permutation():
    rng = random.Random(1)
    parent_a = (0, 1, 2, 3, 4, 5, 6)
    parent_b = (6, 5, 4, 3, 2, 1, 0)
    for _ in range(50):
        child = order_crossover(parent_a, parent_b, rng)
        assert sorted(child) == list(range(7))


def test_swap_mutation_preserves_genes():
    rng = random.Random(2)
    mutated = swap_mutation((0, 1, 2, 3), rng)
    assert sorted(mutated) == [0, 1, 2, 3]
    assert mutated != (0, 1, 2, 3)


@pytest.mark.parametrize("count", [0, 1])
def test_zero_or_one_store_returned_unchanged(count):
    stores = [_store("S1", 21.5, 39.2)][:count]
    result = _optimizer().optimize(stores)
    assert result.ordered_stores == stores
    assert result.metrics.original_distance_km == 0.0
    assert result.metrics.optimized_distance_km == 0.0


def test_result_is_permutation_of_input():
    stores = _shuffled_line()
    result = _optimizer().optimize(stores)
    assert sorted(s.store_id for s in result.ordered_stores) == sorted(s.store_id for s in stores)


def test_never_worse_than_input_order():
    stores = _shuffled_line()
    for seed in range(5):
        result = _optimizer(seed=seed).optimize(stores)
        assert result.metrics.optimized_distance_km <= result.metrics.original_distance_km + 1e-9
        assert result.metrics.distance_saved_km >= -1e-9


def test_close_to_brute_force_optimum():
    stores = _shuffled_line()
    optimum = min(total_path_distance(list(p)) for p in itertools.permutations(stores))

    result = _optimizer().optimize(stores)

    assert result.metrics.optimized_distance_km <= optimum * 1.05
    assert result.metrics.original_distance_km == pytest.approx(total_path_distance(stores))


def test_already_optimal_input_is_kept():
    stores = sorted(_shuffled_line(), key=lambda s: s.latitude)
    result = _optimizer().optimize(stores)
    assert result.metrics.optimized_distance_km == pytest.approx(result.metrics.original_distance_km)


def test_high_priority_store_moves_to_front():
    stores = [_store(f"S{i}", 21.50 + i * 0.01, 39.2) for i in range(5)]
    stores.append(_store("VIP", 21.56, 39.2, priority=PriorityLevel.HIGH))

    result = _optimizer(priority_weight=100.0).optimize(stores)

    ids = [s.store_id for s in result.ordered_stores]
    assert ids.index("VIP") < 3


def test_vehicle_restriction_reduces_candidates():
    stores = _shuffled_line() + [_store("OLD", 21.6, 39.3, zone="OLD_TOWN")]
    constraint = RouteConstraint("vehicle_restriction", {"vehicle_types": ["car"], "zones": ["OLD_TOWN"]})
    advisor = Advisor(advisor_id="A1", name="Carlos", vehicle_type=VehicleType.CAR)

    result = _optimizer().optimize(stores, advisor, [constraint])

    assert "OLD" not in {s.store_id for s in result.ordered_stores}
    assert len(result.ordered_stores) == 5
    assert result.metrics.constraints_applied == 1


def test_time_saved_uses_vehicle_speed():
    stores = _shuffled_line()
    advisor = Advisor(advisor_id="A1", name="Carlos", vehicle_type=VehicleType.MOTORCYCLE)

    result = _optimizer().optimize(stores, advisor)

    expected = result.metrics.distance_saved_km / speed_for_vehicle("motorcycle") * 60
    assert result.metrics.time_saved_min == pytest.approx(expected)


def test_unknown_vehicle_type_uses_car_speed():
    assert speed_for_vehicle("hovercraft") == speed_for_vehicle(VehicleType.CAR)


def test_invalid_coordinate_propagates():
    stores = _shuffled_line() + [_store("BAD", 123.0, 39.2)]
    with pytest.raises(InvalidCoordinate):
        _optimizer().optimize(stores)


def test_default_config_reads_current_settings(monkeypatch):
    from fieldroute.config import settings

    monkeypatch.setattr(settings, "optimizer_population_size", 12)
    monkeypatch.setattr(settings, "optimizer_generations", 7)
    monkeypatch.setattr(settings, "priority_weight", 0.9)

    config = OptimizerConfig()

    assert config.population_size == 12
    assert config.generations == 7
    assert config.priority_weight == 0.9
    assert RouteOptimizer().config.population_size == 12
    assert OptimizerConfig(population_size=40).population_size == 40
