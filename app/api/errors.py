"""FailureKind -> HTTP status translation shared by the route modules."""

from __future__ import annotations

from fastapi import HTTPException, status

from app.models.results import FailureKind

FAILURE_STATUS: dict[str, int] = {
    "validation": status.HTTP_400_BAD_REQUEST,
    "capacity": status.HTTP_400_BAD_REQUEST,
    "permission": status.HTTP_403_FORBIDDEN,
    "not_found": status.HTTP_404_NOT_FOUND,
    "conflict": status.HTTP_409_CONFLICT,
}


def failure_exception(failure: FailureKind | None, detail: object) -> HTTPException:
    # A failed result without a kind is a bug in the service layer
    code = FAILURE_STATUS.get(failure or "", status.HTTP_500_INTERNAL_SERVER_ERROR)
    return HTTPException(status_code=code, detail=detail)
