"""FastAPI dependency providers."""

from __future__ import annotations

import logging
from functools import lru_cache

from fastapi import Depends, Header, HTTPException, status

from ..db.supabase import get_supabase_client
from ..persistence.base import RouteRepository
from ..persistence.database import SupabaseRouteRepository
from ..persistence.memory import InMemoryRouteRepository
from ..services.visits.service import VisitService

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_repository() -> RouteRepository:
    """Supabase when configured, otherwise a process-local store."""
    client = get_supabase_client()
    if client is None:
        logger.warning("Supabase not configured; using in-memory route repository")
        return InMemoryRouteRepository()
    return SupabaseRouteRepository(client)


def get_visit_service(repository: RouteRepository = Depends(get_repository)) -> VisitService:
    return VisitService(repository)


def get_current_advisor_id(x_advisor_id: str | None = Header(default=None)) -> str:
    if not x_advisor_id or not x_advisor_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-Advisor-Id header is required",
        )
    return x_advisor_id.strip()
