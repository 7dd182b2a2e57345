"""Visit request/response schemas."""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .routes import VisitModel


class StartVisitRequest(BaseModel):
    """Either an existing visit id or a store id (the visit is created on demand)."""
    visit_id: Optional[str] = None
    store_id: Optional[str] = None
    route_date: Optional[date] = None


class CompleteVisitRequest(BaseModel):
    visit_id: Optional[str] = None
    store_id: Optional[str] = None
    route_date: Optional[date] = None
    duration: Optional[float] = Field(None, description="Minutes on site; derived from start_time when omitted.")
    tasks: Dict[str, Any] = Field(default_factory=dict)
    notes: Optional[str] = None


class SkipVisitRequest(BaseModel):
    visit_id: Optional[str] = None
    store_id: Optional[str] = None
    route_date: Optional[date] = None
    reason: Optional[str] = None


class UpdateTasksRequest(BaseModel):
    tasks: Dict[str, Any]


class DamageReportRequest(BaseModel):
    damaged_items: List[str] = Field(..., min_length=1)


class VisitResponse(BaseModel):
    route_id: str
    route_status: str
    total_stores: int
    completed_stores: int
    changed: bool
    visit: VisitModel
