"""Route request/response schemas."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class StoreModel(BaseModel):
    store_id: str
    name: str
    address: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    priority: str
    category: Optional[str] = None
    zone: Optional[str] = None
    estimated_visit_minutes: int


class VisitModel(BaseModel):
    visit_id: Optional[str] = Field(None, description="Empty while the route is still a template projection.")
    route_id: Optional[str] = None
    store_id: str
    visit_order: int
    status: str
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    skip_reason: Optional[str] = None
    actual_duration_min: Optional[int] = None
    tasks: Dict[str, Any] = Field(default_factory=dict)
    notes: Optional[str] = None
    store: Optional[StoreModel] = None


class RouteModel(BaseModel):
    route_id: Optional[str] = None
    advisor_id: str
    route_date: date
    status: str
    total_stores: int
    completed_stores: int
    is_template: bool = Field(False, description="True when no route is stored yet and the day template is shown.")
    template_id: Optional[str] = None
    visits: List[VisitModel]


class ConstraintModel(BaseModel):
    type: str = Field(..., description="'vehicle_restriction' or 'time_window'")
    value: Dict[str, Any] = Field(default_factory=dict)


class OptimizeRouteRequest(BaseModel):
    route_date: Optional[date] = None
    constraints: List[ConstraintModel] = Field(default_factory=list)


class OptimizationMetricsModel(BaseModel):
    original_distance_km: float
    optimized_distance_km: float
    distance_saved_km: float
    time_saved_min: float
    efficiency_improvement_pct: float
    constraints_applied: int
    factors: List[str]


class OptimizeRouteResponse(BaseModel):
    advisor_id: str
    route_date: date
    optimized_order: List[StoreModel]
    metrics: OptimizationMetricsModel


class RouteMetricsResponse(BaseModel):
    start: date
    end: date
    advisor_id: Optional[str] = None
    total_routes: int
    total_stores: int
    completed_stores: int
    skipped_stores: int
    average_visit_duration_min: float
    completion_rate_pct: float
