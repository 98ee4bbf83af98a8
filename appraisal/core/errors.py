"""
HTTP-aware error taxonomy shared by routers and core helpers.

    raise NotFoundError("Cycle not found")
    raise ValidationFailedError("Template validation failed", errors=[...])
"""
from __future__ import annotations

from typing import Any

from fastapi import HTTPException, status


class NotFoundError(HTTPException):
    """Unknown template / cycle / evaluation / dispute id."""

    def __init__(self, detail: str = "Resource not found") -> None:
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class ValidationFailedError(HTTPException):
    """
    Domain validation failure (weight sums, date ordering, rating bounds).

    `errors` follows the same shape as form validation errors:
      [{"field": "sections[0].weight", "code": "weight_sum", "message": "..."}]
    """

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None) -> None:
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": message, "errors": errors or []},
        )


class BadRequestError(HTTPException):
    """Illegal state transition or ownership violation."""

    def __init__(self, detail: str = "Bad request") -> None:
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class ConflictError(HTTPException):
    """Duplicate resource, open dispute already present, or stale version."""

    def __init__(self, detail: Any = "Conflict") -> None:
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)
