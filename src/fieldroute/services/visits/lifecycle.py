"""Visit state machine.

    pending --start--> in-progress --complete--> completed
       |                   |
       +------skip---------+--skip--> skipped --start (reinstate)--> in-progress

``completed`` is terminal. Transitions never mutate the visit they receive;
they return an updated copy, so a rejected transition leaves the caller's
object untouched.
"""

from __future__ import annotations

import dataclasses
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, Optional

from ...config import settings
from ...errors import InvalidTransition, MissingRequiredField
from ...models.domain import Visit, VisitStatus


class VisitEvent(str, Enum):
    START = "start"
    COMPLETE = "complete"
    SKIP = "skip"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _initial_tasks(visit: Visit) -> dict[str, Any]:
    if visit.tasks:
        return dict(visit.tasks)
    return {key: False for key in settings.default_task_keys}


def _resolve_duration(visit: Visit, payload: Mapping[str, Any], end_time: datetime) -> int:
    explicit = payload.get("duration")
    if explicit is not None:
        try:
            minutes = int(round(float(explicit)))
        except (TypeError, ValueError) as exc:
            raise MissingRequiredField("duration", f"Invalid duration '{explicit}'") from exc
        if minutes < 0:
            raise MissingRequiredField("duration", "duration must be non-negative")
        return minutes
    if visit.start_time is None:
        raise MissingRequiredField("duration", "duration is required when the visit has no start time")
    elapsed = (end_time - visit.start_time).total_seconds() / 60
    return max(0, int(round(elapsed)))


def transition(
    visit: Visit,
    event: VisitEvent | str,
    payload: Optional[Mapping[str, Any]] = None,
    *,
    now: Optional[datetime] = None,
    default_skip_reason: Optional[str] = None,
) -> Visit:
    """Apply ``event`` to ``visit`` and return the updated visit."""

    event = VisitEvent(event)
    payload = payload or {}
    now = now or _utcnow()
    status = visit.status

    if status == VisitStatus.COMPLETED:
        raise InvalidTransition(status.value, event.value, "completed visits are immutable")

    if event == VisitEvent.START:
        if status == VisitStatus.IN_PROGRESS:
            return visit
        return dataclasses.replace(
            visit,
            status=VisitStatus.IN_PROGRESS,
            start_time=now,
            end_time=None,
            skip_reason=None,
            tasks=_initial_tasks(visit),
        )

    if event == VisitEvent.COMPLETE:
        if status != VisitStatus.IN_PROGRESS:
            raise InvalidTransition(status.value, event.value, "only in-progress visits can be completed")
        duration = _resolve_duration(visit, payload, now)
        tasks = dict(visit.tasks)
        tasks.update(payload.get("tasks") or {})
        return dataclasses.replace(
            visit,
            status=VisitStatus.COMPLETED,
            end_time=now,
            actual_duration_min=duration,
            tasks=tasks,
            notes=payload.get("notes") or visit.notes,
        )

    if status == VisitStatus.SKIPPED:
        raise InvalidTransition(status.value, event.value, "visit is already skipped")
    fallback = default_skip_reason if default_skip_reason is not None else settings.default_skip_reason
    reason = str(payload.get("reason") or "").strip() or (fallback or "").strip()
    if not reason:
        raise MissingRequiredField("skip_reason")
    return dataclasses.replace(
        visit,
        status=VisitStatus.SKIPPED,
        end_time=now,
        skip_reason=reason,
    )


def update_tasks(visit: Visit, tasks: Mapping[str, Any]) -> Visit:
    """Merge task progress into a running visit."""

    if visit.status != VisitStatus.IN_PROGRESS:
        raise InvalidTransition(visit.status.value, "update_tasks", "tasks can only change while the visit is in progress")
    merged = dict(visit.tasks)
    merged.update(tasks)
    return dataclasses.replace(visit, tasks=merged)


def counter_delta(before: Visit, after: Visit) -> int:
    """Increment owed to the parent route's ``completed_stores``."""

    return int(after.status == VisitStatus.COMPLETED and before.status != VisitStatus.COMPLETED)
