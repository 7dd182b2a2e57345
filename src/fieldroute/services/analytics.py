"""Best-effort visit telemetry.

Events are fire-and-forget: a failing sink is logged and never interrupts the
visit operation that produced the event.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Optional

from ..config import settings
from ..db.supabase import get_supabase_client
from ..models.domain import Advisor, Route, Store, Visit, day_code

logger = logging.getLogger(__name__)

Sink = Callable[[str, dict[str, Any]], None]

VISIT_COMPLETED = "visit_completed"
DAMAGE_REPORTED = "damage_reported"

TARGET_VISIT_MINUTES = 40


def arrival_window(moment: Optional[datetime]) -> Optional[str]:
    if moment is None:
        return None
    if moment.hour < 11:
        return "morning"
    if moment.hour < 14:
        return "midday"
    return "afternoon"


def count_completed_tasks(tasks: dict[str, Any]) -> int:
    return sum(1 for value in tasks.values() if value is True)


def efficiency_score(duration_min: float, tasks_completed: int, products_sold: int = 0) -> float:
    """Score a visit: 100 base, penalized past 40 minutes, rewarded for tasks and sales."""

    task_total = max(1, len(settings.default_task_keys))
    time_penalty = max(0.0, (duration_min - TARGET_VISIT_MINUTES) / TARGET_VISIT_MINUTES) * 30
    task_bonus = (tasks_completed / task_total) * 20
    sales_bonus = min(products_sold / 50, 10)
    return max(0.0, 100 - time_penalty + task_bonus + sales_bonus)


def log_sink(event_type: str, payload: dict[str, Any]) -> None:
    logger.info(f"Analytics event {event_type}: {payload}")


def supabase_sink(event_type: str, payload: dict[str, Any]) -> None:
    client = get_supabase_client()
    if client is None:
        log_sink(event_type, payload)
        return
    client.table("visit_metrics").insert({"event_type": event_type, "payload": payload}).execute()


class AnalyticsEmitter:
    def __init__(self, sink: Sink | None = None) -> None:
        self.sink = sink or supabase_sink

    def emit(self, event_type: str, payload: dict[str, Any]) -> bool:
        try:
            self.sink(event_type, payload)
            return True
        except Exception as exc:
            logger.warning(f"Failed to emit analytics event '{event_type}': {exc}")
            return False

    def visit_completed(
        self,
        route: Route,
        visit: Visit,
        store: Optional[Store] = None,
        advisor: Optional[Advisor] = None,
    ) -> bool:
        try:
            payload = self._visit_payload(route, visit, store, advisor)
        except (TypeError, ValueError) as exc:
            logger.warning(f"Could not build analytics payload for visit {visit.visit_id}: {exc}")
            return False
        return self.emit(VISIT_COMPLETED, payload)

    @staticmethod
    def _visit_payload(
        route: Route,
        visit: Visit,
        store: Optional[Store],
        advisor: Optional[Advisor],
    ) -> dict[str, Any]:
        duration = visit.actual_duration_min or 0
        tasks_completed = count_completed_tasks(visit.tasks)
        products_sold = int(visit.tasks.get("products_sold") or 0)
        return {
            "route_id": route.route_id,
            "visit_id": visit.visit_id,
            "advisor_id": route.advisor_id,
            "store_id": visit.store_id,
            "visit_date": route.route_date.isoformat(),
            "day_of_week": day_code(route.route_date),
            "visit_order": visit.visit_order,
            "visit_duration": duration,
            "arrival_window": arrival_window(visit.start_time),
            "tasks_completed": tasks_completed,
            "products_sold": products_sold,
            "efficiency_score": round(efficiency_score(duration, tasks_completed, products_sold), 2),
            "vehicle_type": advisor.vehicle_type.value if advisor else None,
            "store_zone": store.zone if store else None,
            "store_category": store.category if store else None,
        }

    def damage_reported(self, route: Route, visit: Visit, damaged_items: list[str]) -> bool:
        payload = {
            "route_id": route.route_id,
            "visit_id": visit.visit_id,
            "advisor_id": route.advisor_id,
            "store_id": visit.store_id,
            "damage_count": len(damaged_items),
            "damaged_items": list(damaged_items),
        }
        return self.emit(DAMAGE_REPORTED, payload)
