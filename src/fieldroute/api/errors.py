"""Translation of domain errors into HTTP responses."""

from __future__ import annotations

from fastapi import HTTPException, status

from ..errors import (
    FieldRouteError,
    InvalidCoordinate,
    InvalidTransition,
    MissingRequiredField,
    NoRouteAvailable,
    ResourceNotFound,
)

STATUS_BY_ERROR: dict[type[FieldRouteError], int] = {
    InvalidTransition: status.HTTP_409_CONFLICT,
    NoRouteAvailable: status.HTTP_404_NOT_FOUND,
    ResourceNotFound: status.HTTP_404_NOT_FOUND,
    MissingRequiredField: status.HTTP_422_UNPROCESSABLE_CONTENT,
    InvalidCoordinate: status.HTTP_422_UNPROCESSABLE_CONTENT,
}


def to_http_exception(exc: FieldRouteError) -> HTTPException:
    code = status.HTTP_400_BAD_REQUEST
    for error_type, mapped in STATUS_BY_ERROR.items():
        if isinstance(exc, error_type):
            code = mapped
            break
    return HTTPException(status_code=code, detail=exc.to_dict())
