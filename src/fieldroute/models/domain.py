"""Domain models for stores, advisors, routes and visits."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum
from typing import Any, Optional, Union

WEEKDAY_CODES = ("MON", "TUE", "WED", "THU", "FRI", "SAT", "SUN")


def day_code(value: date) -> str:
    """Return the template key (``MON``..``SUN``) for a calendar date."""

    return WEEKDAY_CODES[value.weekday()]


class VisitStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    SKIPPED = "skipped"

    @classmethod
    def parse(cls, value: Any) -> "VisitStatus":
        """Accept every spelling used by stored rows (``in_progress``, ``In Progress``...)."""
        if isinstance(value, cls):
            return value
        normalized = str(value or "").strip().lower().replace("_", "-").replace(" ", "-")
        if not normalized:
            return cls.PENDING
        return cls(normalized)

    @property
    def is_done(self) -> bool:
        return self in (VisitStatus.COMPLETED, VisitStatus.SKIPPED)


class RouteStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @classmethod
    def parse(cls, value: Any) -> "RouteStatus":
        if isinstance(value, cls):
            return value
        normalized = str(value or "").strip().lower().replace("_", "-").replace(" ", "-")
        if not normalized:
            return cls.PENDING
        return cls(normalized)


class VehicleType(str, Enum):
    CAR = "car"
    MOTORCYCLE = "motorcycle"
    BICYCLE = "bicycle"

    @classmethod
    def parse(cls, value: Any) -> "VehicleType":
        """Unknown or missing vehicle types fall back to a car."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            return cls.CAR


class PriorityLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def parse(cls, value: Any) -> "PriorityLevel":
        """Map categorical or ordinal (1-5, 5 highest) priorities onto three levels."""
        if isinstance(value, cls):
            return value
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            if value >= 4:
                return cls.HIGH
            if value >= 3:
                return cls.MEDIUM
            return cls.LOW
        text = str(value or "").strip().lower()
        if text.isdigit():
            return cls.parse(int(text))
        try:
            return cls(text)
        except ValueError:
            return cls.MEDIUM


@dataclass(slots=True, frozen=True)
class TimeWindow:
    """Eligible arrival interval, in minutes after midnight."""

    start_min: int
    end_min: int

    def contains(self, minute: float) -> bool:
        return self.start_min <= minute <= self.end_min


@dataclass(slots=True)
class Store:
    """Store reference data, read-only to the routing core."""

    store_id: str
    name: str
    latitude: Optional[float]
    longitude: Optional[float]
    address: Optional[str] = None
    priority: PriorityLevel = PriorityLevel.MEDIUM
    category: Optional[str] = None
    zone: Optional[str] = None
    estimated_visit_minutes: int = 45
    time_window: Optional[TimeWindow] = None

    @property
    def coordinates(self) -> tuple[Optional[float], Optional[float]]:
        return (self.latitude, self.longitude)


@dataclass(slots=True)
class Advisor:
    advisor_id: str
    name: str
    vehicle_type: VehicleType = VehicleType.CAR
    work_start: Optional[time] = None


@dataclass(slots=True)
class TemplateStop:
    store_id: str
    visit_order: int


@dataclass(slots=True)
class RouteTemplate:
    """Default plan of an advisor for one day of the week."""

    template_id: str
    advisor_id: str
    day_of_week: str
    stops: list[TemplateStop] = field(default_factory=list)

    def ordered_stops(self) -> list[TemplateStop]:
        return sorted(self.stops, key=lambda stop: stop.visit_order)


@dataclass(slots=True)
class Route:
    route_id: str
    advisor_id: str
    route_date: date
    status: RouteStatus = RouteStatus.PENDING
    total_stores: int = 0
    completed_stores: int = 0
    total_distance_km: float = 0.0
    estimated_duration_min: float = 0.0
    created_at: Optional[datetime] = None


@dataclass(slots=True)
class Visit:
    """One store's entry within a route. ``visit_id`` is None until persisted."""

    visit_id: Optional[str]
    route_id: Optional[str]
    store_id: str
    visit_order: int
    status: VisitStatus = VisitStatus.PENDING
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    skip_reason: Optional[str] = None
    actual_duration_min: Optional[int] = None
    tasks: dict[str, Any] = field(default_factory=dict)
    notes: Optional[str] = None


@dataclass(slots=True)
class PersistedRoute:
    route: Route


@dataclass(slots=True)
class TemplatedRoute:
    """Ephemeral projection of a template for a date that has no stored route yet."""

    template: RouteTemplate
    advisor_id: str
    route_date: date


RouteSource = Union[PersistedRoute, TemplatedRoute]


@dataclass(slots=True)
class VisitView:
    visit: Visit
    store: Store


@dataclass(slots=True)
class RouteView:
    """Route plus ordered visits with resolved store fields, for presentation."""

    source: RouteSource
    visits: list[VisitView]

    @property
    def is_persisted(self) -> bool:
        return isinstance(self.source, PersistedRoute)

    @property
    def route(self) -> Optional[Route]:
        return self.source.route if isinstance(self.source, PersistedRoute) else None
