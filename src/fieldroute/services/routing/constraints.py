"""Store filtering and annotation driven by externally supplied constraints."""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from itertools import groupby
from typing import Any, Iterable, Optional, Sequence

from ...models.domain import Store, TimeWindow, VehicleType
from ..geospatial import distance

logger = logging.getLogger(__name__)

VEHICLE_RESTRICTION = "vehicle_restriction"
TIME_WINDOW = "time_window"


@dataclass(slots=True)
class RouteConstraint:
    type: str
    value: dict[str, Any] = field(default_factory=dict)


def parse_clock(value: Any) -> int:
    """Convert ``HH:MM`` into minutes after midnight."""

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return int(value)
    text = str(value).strip()
    hours, _, minutes = text.partition(":")
    result = int(hours) * 60 + int(minutes or 0)
    if not 0 <= result <= 24 * 60:
        raise ValueError(f"Clock value out of range: '{value}'")
    return result


def _as_set(value: Any) -> set[str]:
    if value is None:
        return set()
    if isinstance(value, (str, int)):
        return {str(value)}
    return {str(item) for item in value}


def _has_selector(value: dict[str, Any]) -> bool:
    return any(value.get(key) for key in ("store_ids", "zones", "categories"))


def _matches(store: Store, value: dict[str, Any]) -> bool:
    if store.store_id in _as_set(value.get("store_ids")):
        return True
    if store.zone is not None and store.zone in _as_set(value.get("zones")):
        return True
    if store.category is not None and store.category in _as_set(value.get("categories")):
        return True
    return False


def _apply_vehicle_restriction(stores: list[Store], value: dict[str, Any], vehicle: VehicleType) -> list[Store]:
    restricted = {VehicleType.parse(item) for item in _as_set(value.get("vehicle_types"))}
    if restricted and vehicle not in restricted:
        return stores
    if not _has_selector(value):
        logger.warning("vehicle_restriction without store_ids/zones/categories ignored")
        return stores
    kept = [store for store in stores if not _matches(store, value)]
    if len(kept) != len(stores):
        logger.info(f"vehicle_restriction excluded {len(stores) - len(kept)} store(s) for {vehicle.value}")
    return kept


def _apply_time_window(stores: list[Store], value: dict[str, Any]) -> list[Store]:
    try:
        window = TimeWindow(start_min=parse_clock(value["start"]), end_min=parse_clock(value["end"]))
    except (KeyError, ValueError, TypeError) as exc:
        logger.warning(f"Malformed time_window constraint ignored: {value} ({exc})")
        return stores
    if window.end_min < window.start_min:
        logger.warning(f"time_window with end before start ignored: {value}")
        return stores
    select_all = not _has_selector(value)
    return [
        dataclasses.replace(store, time_window=window) if select_all or _matches(store, value) else store
        for store in stores
    ]


def apply_constraints(
    stores: Sequence[Store],
    constraints: Iterable[RouteConstraint] | None,
    vehicle_type: Any = None,
) -> list[Store]:
    """Return a new store list with constraints applied in order.

    Unknown constraint types are logged and skipped so newer clients can send
    constraints this service does not understand yet.
    """

    vehicle = VehicleType.parse(vehicle_type)
    result = list(stores)
    for constraint in constraints or ():
        if constraint.type == VEHICLE_RESTRICTION:
            result = _apply_vehicle_restriction(result, constraint.value, vehicle)
        elif constraint.type == TIME_WINDOW:
            result = _apply_time_window(result, constraint.value)
        else:
            logger.info(f"Ignoring unknown constraint type '{constraint.type}'")
    return result


def order_by_time_window(stores: Sequence[Store], origin: Optional[Store] = None) -> list[Store]:
    """Put windowed stores first by window opening; ties go to the nearest store.

    Stores without a window keep their relative order at the end.
    """

    windowed = sorted(
        (store for store in stores if store.time_window is not None),
        key=lambda store: (store.time_window.start_min, store.time_window.end_min),
    )
    unwindowed = [store for store in stores if store.time_window is None]

    ordered: list[Store] = []
    previous = origin
    for _, group in groupby(windowed, key=lambda store: (store.time_window.start_min, store.time_window.end_min)):
        remaining = list(group)
        while remaining:
            if previous is None:
                chosen = remaining[0]
            else:
                chosen = min(remaining, key=lambda store: distance(previous.coordinates, store.coordinates))
            remaining.remove(chosen)
            ordered.append(chosen)
            previous = chosen
    return ordered + unwindowed
