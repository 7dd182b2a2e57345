"""Error taxonomy shared by the routing and visit services.

Every error carries a stable ``error_code`` so the HTTP layer (or any other
caller) can tell a rejected transition from a missing route or bad input
without parsing messages.
"""

from __future__ import annotations

from typing import Any, Optional


class FieldRouteError(Exception):
    """Base class for domain errors."""

    error_code = "FIELD_ROUTE_ERROR"

    def __init__(self, message: str, *, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error_code": self.error_code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class InvalidTransition(FieldRouteError):
    """A visit (or its route) cannot move from its current state."""

    error_code = "INVALID_TRANSITION"

    def __init__(self, current_status: str, event: str, reason: str | None = None) -> None:
        message = f"Cannot apply '{event}' to a visit in status '{current_status}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, details={"current_status": current_status, "event": event})
        self.current_status = current_status
        self.event = event


class NoRouteAvailable(FieldRouteError):
    """Neither a route nor a day-of-week template exists for the advisor."""

    error_code = "NO_ROUTE_AVAILABLE"

    def __init__(self, advisor_id: str, route_date: Any) -> None:
        super().__init__(
            "No route assigned today",
            details={"advisor_id": advisor_id, "route_date": str(route_date)},
        )
        self.advisor_id = advisor_id
        self.route_date = route_date


class MissingRequiredField(FieldRouteError):
    """A transition payload lacks a value that could not be defaulted."""

    error_code = "MISSING_REQUIRED_FIELD"

    def __init__(self, field: str, message: str | None = None) -> None:
        super().__init__(message or f"Field '{field}' is required", details={"field": field})
        self.field = field


class InvalidCoordinate(FieldRouteError):
    """Latitude/longitude is missing, not finite or out of range."""

    error_code = "INVALID_COORDINATE"

    def __init__(self, latitude: Any, longitude: Any) -> None:
        super().__init__(
            f"Invalid coordinates: latitude={latitude}, longitude={longitude}",
            details={"latitude": latitude, "longitude": longitude},
        )
        self.latitude = latitude
        self.longitude = longitude


class ResourceNotFound(FieldRouteError):
    """A referenced store, advisor, route or visit does not exist."""

    error_code = "RESOURCE_NOT_FOUND"

    def __init__(self, resource: str, identifier: Any) -> None:
        super().__init__(
            f"{resource} with identifier '{identifier}' not found",
            details={"resource": resource, "identifier": str(identifier)},
        )
        self.resource = resource
        self.identifier = identifier
