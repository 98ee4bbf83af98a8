"""
Structural checks for appraisal templates.

Errors are collected first and raised together, shaped like:
  {"field": "sections[1].criteria", "code": "weight_sum", "message": "..."}
"""
from __future__ import annotations

from typing import Any

from appraisal.core.errors import ValidationFailedError

WEIGHT_TOLERANCE = 0.01


def _weight_sum_error(field: str, total: float) -> dict[str, Any]:
    return {
        "field": field,
        "code": "weight_sum",
        "message": f"Weights must sum to 100 (got {round(total, 4)})",
    }


def collect_rating_scale_errors(rating_scale: dict[str, Any]) -> list[dict[str, Any]]:
    errors: list[dict[str, Any]] = []
    lo = rating_scale.get("min_value")
    hi = rating_scale.get("max_value")

    if lo is None or hi is None:
        errors.append({"field": "rating_scale", "code": "required", "message": "min_value and max_value are required"})
        return errors

    if lo < 0:
        errors.append({"field": "rating_scale.min_value", "code": "min", "message": "min_value must be >= 0"})
    if hi <= lo:
        errors.append({"field": "rating_scale.max_value", "code": "range", "message": "max_value must be greater than min_value"})
    return errors


def collect_section_errors(sections: list[dict[str, Any]]) -> list[dict[str, Any]]:
    errors: list[dict[str, Any]] = []

    if not sections:
        errors.append({"field": "sections", "code": "required", "message": "At least one section is required"})
        return errors

    seen_sections: set[str] = set()
    seen_criteria: set[str] = set()
    total = 0.0

    for i, section in enumerate(sections):
        prefix = f"sections[{i}]"
        sid = section["id"]
        if sid in seen_sections:
            errors.append({"field": f"{prefix}.id", "code": "duplicate", "message": f"Duplicate section id '{sid}'"})
        seen_sections.add(sid)

        weight = float(section["weight"])
        if weight < 0:
            errors.append({"field": f"{prefix}.weight", "code": "min", "message": "Weight must be >= 0"})
        total += weight

        criteria = section.get("criteria") or []
        if not criteria:
            errors.append({"field": f"{prefix}.criteria", "code": "required", "message": "At least one criterion is required"})
            continue

        section_total = 0.0
        for j, criterion in enumerate(criteria):
            cid = criterion["id"]
            if cid in seen_criteria:
                errors.append(
                    {"field": f"{prefix}.criteria[{j}].id", "code": "duplicate", "message": f"Duplicate criterion id '{cid}'"}
                )
            seen_criteria.add(cid)

            cw = float(criterion["weight"])
            if cw < 0:
                errors.append({"field": f"{prefix}.criteria[{j}].weight", "code": "min", "message": "Weight must be >= 0"})
            section_total += cw

        if abs(section_total - 100.0) > WEIGHT_TOLERANCE:
            errors.append(_weight_sum_error(f"{prefix}.criteria", section_total))

    if abs(total - 100.0) > WEIGHT_TOLERANCE:
        errors.append(_weight_sum_error("sections", total))

    return errors


def validate_template(sections: list[dict[str, Any]], rating_scale: dict[str, Any]) -> None:
    errors = collect_rating_scale_errors(rating_scale) + collect_section_errors(sections)
    if errors:
        raise ValidationFailedError("Template validation failed", errors=errors)
