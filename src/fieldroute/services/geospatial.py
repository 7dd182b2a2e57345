"""Geospatial helper functions."""

from __future__ import annotations

import math
from typing import Any, Literal, Optional, Sequence

from ..config import settings
from ..errors import InvalidCoordinate
from ..models.domain import Store

EARTH_RADIUS_KM = 6371.0

CoordinatePolicy = Literal["reject", "zero"]


def is_valid_coordinate(lat: Any, lon: Any) -> bool:
    if lat is None or lon is None or isinstance(lat, bool) or isinstance(lon, bool):
        return False
    try:
        lat_f, lon_f = float(lat), float(lon)
    except (TypeError, ValueError):
        return False
    if not (math.isfinite(lat_f) and math.isfinite(lon_f)):
        return False
    return -90.0 <= lat_f <= 90.0 and -180.0 <= lon_f <= 180.0


def validate_coordinate(lat: Any, lon: Any) -> tuple[float, float]:
    if not is_valid_coordinate(lat, lon):
        raise InvalidCoordinate(lat, lon)
    return float(lat), float(lon)


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance between two coordinates using the Haversine formula."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def distance(
    point_a: tuple[Any, Any],
    point_b: tuple[Any, Any],
    *,
    policy: Optional[CoordinatePolicy] = None,
) -> float:
    """Great-circle distance in kilometers between two (lat, lon) pairs.

    Under the ``reject`` policy a malformed coordinate raises
    ``InvalidCoordinate``; under ``zero`` the leg simply counts as 0 km.
    """

    policy = policy or settings.invalid_coordinate_policy
    if policy == "zero":
        if not (is_valid_coordinate(*point_a) and is_valid_coordinate(*point_b)):
            return 0.0
    lat1, lon1 = validate_coordinate(*point_a)
    lat2, lon2 = validate_coordinate(*point_b)
    return haversine_km(lat1, lon1, lat2, lon2)


def total_path_distance(
    stops: Sequence[Store],
    *,
    policy: Optional[CoordinatePolicy] = None,
) -> float:
    """Sum of consecutive leg distances; 0 for fewer than two stops."""

    total = 0.0
    for current, following in zip(stops, stops[1:]):
        total += distance(current.coordinates, following.coordinates, policy=policy)
    return total
