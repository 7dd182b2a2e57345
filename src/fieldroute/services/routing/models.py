"""Routing domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from ...models.domain import Store

DEFAULT_FACTORS = ("distance", "time_windows", "vehicle_type", "store_priority")


@dataclass(slots=True)
class OptimizationMetrics:
    original_distance_km: float = 0.0
    optimized_distance_km: float = 0.0
    distance_saved_km: float = 0.0
    time_saved_min: float = 0.0
    efficiency_improvement_pct: float = 0.0
    constraints_applied: int = 0
    factors: tuple[str, ...] = DEFAULT_FACTORS


@dataclass(slots=True)
class OptimizationResult:
    ordered_stores: List[Store]
    metrics: OptimizationMetrics = field(default_factory=OptimizationMetrics)
    best_fitness: float = 0.0
    generations_run: int = 0
