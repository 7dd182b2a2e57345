"""Population-based visit order search.

Candidates are permutations of the constrained store list, encoded as index
tuples. Each generation keeps the best ``elite_size`` candidates and refills
the population with order-crossover children of two elite parents, so every
candidate stays a valid permutation.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from ...config import settings
from ...models.domain import Advisor, PriorityLevel, Store, VehicleType
from ..geospatial import total_path_distance, validate_coordinate
from .constraints import RouteConstraint, apply_constraints
from .models import OptimizationMetrics, OptimizationResult

logger = logging.getLogger(__name__)

MIN_DISTANCE_KM = 1e-3
HIGH_PRIORITY_POSITIONS = 3
MEDIUM_PRIORITY_POSITIONS = 5

Candidate = tuple[int, ...]


@dataclass(slots=True)
class OptimizerConfig:
    population_size: int = field(default_factory=lambda: settings.optimizer_population_size)
    generations: int = field(default_factory=lambda: settings.optimizer_generations)
    elite_size: int = field(default_factory=lambda: settings.optimizer_elite_size)
    mutation_rate: float = field(default_factory=lambda: settings.optimizer_mutation_rate)
    average_visit_minutes: float = field(default_factory=lambda: settings.average_visit_minutes)
    workday_start_hour: int = field(default_factory=lambda: settings.workday_start_hour)
    time_window_weight: float = field(default_factory=lambda: settings.time_window_weight)
    priority_weight: float = field(default_factory=lambda: settings.priority_weight)


def speed_for_vehicle(vehicle_type: VehicleType | str | None) -> float:
    vehicle = VehicleType.parse(vehicle_type)
    if vehicle == VehicleType.MOTORCYCLE:
        return settings.motorcycle_speed_kmh
    if vehicle == VehicleType.BICYCLE:
        return settings.bicycle_speed_kmh
    return settings.car_speed_kmh


def order_crossover(parent_a: Candidate, parent_b: Candidate, rng: random.Random) -> Candidate:
    """OX: keep a slice of ``parent_a`` and fill the rest in ``parent_b`` order."""

    size = len(parent_a)
    if size < 2:
        return tuple(parent_a)
    start, end = sorted(rng.sample(range(size + 1), 2))
    segment = parent_a[start:end]
    kept = set(segment)
    filler = [gene for gene in parent_b if gene not in kept]
    return tuple(filler[:start]) + tuple(segment) + tuple(filler[start:])


def swap_mutation(candidate: Candidate, rng: random.Random) -> Candidate:
    if len(candidate) < 2:
        return candidate
    i, j = rng.sample(range(len(candidate)), 2)
    genes = list(candidate)
    genes[i], genes[j] = genes[j], genes[i]
    return tuple(genes)


class RouteOptimizer:
    def __init__(self, config: OptimizerConfig | None = None, rng: random.Random | None = None) -> None:
        self.config = config or OptimizerConfig()
        self.rng = rng or random.Random()

    def optimize(
        self,
        stores: Sequence[Store],
        advisor: Optional[Advisor] = None,
        constraints: Iterable[RouteConstraint] | None = None,
    ) -> OptimizationResult:
        constraints = list(constraints or [])
        if len(stores) <= 1:
            return OptimizationResult(ordered_stores=list(stores))

        vehicle = advisor.vehicle_type if advisor else VehicleType.CAR
        candidates = apply_constraints(stores, constraints, vehicle)
        if settings.invalid_coordinate_policy == "reject":
            for store in candidates:
                validate_coordinate(store.latitude, store.longitude)
        if len(candidates) <= 1:
            return OptimizationResult(
                ordered_stores=candidates,
                metrics=OptimizationMetrics(constraints_applied=len(constraints)),
            )

        start_minute = self._start_minute(advisor)
        cache: dict[Candidate, float] = {}

        def fitness(candidate: Candidate) -> float:
            score = cache.get(candidate)
            if score is None:
                score = self._fitness([candidates[i] for i in candidate], start_minute)
                cache[candidate] = score
            return score

        size = len(candidates)
        population_size = self.config.population_size
        elite_size = max(1, min(self.config.elite_size, population_size))
        population: list[Candidate] = [tuple(self.rng.sample(range(size), size)) for _ in range(population_size)]

        for _ in range(self.config.generations):
            population.sort(key=fitness, reverse=True)
            elite = population[:elite_size]
            children: list[Candidate] = []
            while len(elite) + len(children) < population_size:
                parent_a = self.rng.choice(elite)
                parent_b = self.rng.choice(elite)
                child = order_crossover(parent_a, parent_b, self.rng)
                if self.rng.random() < self.config.mutation_rate:
                    child = swap_mutation(child, self.rng)
                children.append(child)
            population = elite + children

        best = max(population, key=fitness)
        identity: Candidate = tuple(range(size))
        if fitness(identity) >= fitness(best):
            best = identity

        ordered = [candidates[i] for i in best]
        metrics = self._metrics(candidates, ordered, vehicle, len(constraints))
        logger.info(
            f"Optimized {size} stores: {metrics.original_distance_km:.2f} km -> "
            f"{metrics.optimized_distance_km:.2f} km ({metrics.efficiency_improvement_pct:.1f}% better)"
        )
        return OptimizationResult(
            ordered_stores=ordered,
            metrics=metrics,
            best_fitness=fitness(best),
            generations_run=self.config.generations,
        )

    def _start_minute(self, advisor: Optional[Advisor]) -> float:
        if advisor and advisor.work_start:
            return advisor.work_start.hour * 60 + advisor.work_start.minute
        return self.config.workday_start_hour * 60

    def _fitness(self, ordered: Sequence[Store], start_minute: float) -> float:
        path_km = total_path_distance(ordered)
        return (
            1.0 / max(path_km, MIN_DISTANCE_KM)
            + self._time_window_score(ordered, start_minute)
            + self._priority_score(ordered)
        )

    def _time_window_score(self, ordered: Sequence[Store], start_minute: float) -> float:
        windowed = 0
        on_time = 0
        for position, store in enumerate(ordered):
            if store.time_window is None:
                continue
            windowed += 1
            arrival = start_minute + position * self.config.average_visit_minutes
            if store.time_window.contains(arrival):
                on_time += 1
        if not windowed:
            return 0.0
        return self.config.time_window_weight * on_time / windowed

    def _priority_score(self, ordered: Sequence[Store]) -> float:
        ranked = 0
        early = 0
        for position, store in enumerate(ordered):
            if store.priority == PriorityLevel.HIGH:
                ranked += 1
                early += position < HIGH_PRIORITY_POSITIONS
            elif store.priority == PriorityLevel.MEDIUM:
                ranked += 1
                early += position < MEDIUM_PRIORITY_POSITIONS
        if not ranked:
            return 0.0
        return self.config.priority_weight * early / ranked

    @staticmethod
    def _metrics(
        original: Sequence[Store],
        ordered: Sequence[Store],
        vehicle: VehicleType,
        constraints_applied: int,
    ) -> OptimizationMetrics:
        original_km = total_path_distance(original)
        optimized_km = total_path_distance(ordered)
        saved_km = original_km - optimized_km
        improvement = (1 - optimized_km / original_km) * 100 if original_km > 0 else 0.0
        return OptimizationMetrics(
            original_distance_km=original_km,
            optimized_distance_km=optimized_km,
            distance_saved_km=saved_km,
            time_saved_min=saved_km / speed_for_vehicle(vehicle) * 60,
            efficiency_improvement_pct=improvement,
            constraints_applied=constraints_applied,
        )
