from __future__ import annotations

import logging

from fastapi import Response
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from appraisal.core.errors import BadRequestError, ConflictError

logger = logging.getLogger(__name__)


def parse_if_match(if_match: str | None) -> int | None:
    """
    Supports:
      If-Match: 3
      If-Match: "3"
    A missing header means the client opted out of the check.
    """
    if if_match is None:
        return None

    raw = if_match.strip()
    if raw.startswith('"') and raw.endswith('"') and len(raw) >= 2:
        raw = raw[1:-1]

    try:
        v = int(raw)
    except ValueError:
        raise BadRequestError("Invalid If-Match header (expected integer version)")

    if v <= 0:
        raise BadRequestError("Invalid If-Match header (version must be positive)")
    return v


def assert_version_matches(*, current_version: int, if_match_version: int) -> None:
    if current_version != if_match_version:
        raise ConflictError(
            {
                "message": "Stale version",
                "expected": current_version,
                "got": if_match_version,
            }
        )


def check_if_match(if_match: str | None, current_version: int) -> None:
    expected = parse_if_match(if_match)
    if expected is not None:
        assert_version_matches(current_version=current_version, if_match_version=expected)


def set_etag(response: Response, version: int) -> None:
    # Quote it to behave like a real ETag
    response.headers["ETag"] = f'"{version}"'


def commit_or_409(db: Session, *, integrity_detail: str = "Conflict") -> None:
    """
    Commit the request's unit of work.

    A concurrent writer bumping a version first surfaces as StaleDataError;
    a unique key race surfaces as IntegrityError. Both become 409.
    """
    try:
        db.commit()
    except StaleDataError:
        db.rollback()
        logger.warning("Stale write rejected")
        raise ConflictError("Stale version")
    except IntegrityError as exc:
        db.rollback()
        logger.warning("Integrity error on commit: %s", exc.orig)
        raise ConflictError(integrity_detail)
