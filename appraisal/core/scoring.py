"""
Weighted scoring of submitted ratings against a template.

Scoring rules:
  - each rated criterion contributes (rating / scale max) * 100, weighted by
    the criterion weight
  - criteria without a rating are skipped, not counted as zero
  - a submitted section with no rated criteria scores 0 and keeps its weight
  - sections that are not submitted at all do not count

The final rating is a 0-100 percentage whatever the scale's min/max are.
"""
from __future__ import annotations

from typing import Any

from appraisal.core.errors import ValidationFailedError
from appraisal.core.statuses import PerformanceCategory

CATEGORY_THRESHOLDS: tuple[tuple[float, PerformanceCategory], ...] = (
    (90.0, PerformanceCategory.EXCEPTIONAL),
    (75.0, PerformanceCategory.EXCEEDS_EXPECTATIONS),
    (60.0, PerformanceCategory.MEETS_EXPECTATIONS),
    (40.0, PerformanceCategory.NEEDS_IMPROVEMENT),
)


def validate_ratings(
    submitted: list[dict[str, Any]],
    template_sections: list[dict[str, Any]],
    rating_scale: dict[str, Any],
) -> None:
    """Reject unknown section / criterion ids and out-of-scale ratings."""
    lo = float(rating_scale["min_value"])
    hi = float(rating_scale["max_value"])
    known = {s["id"]: {c["id"] for c in s.get("criteria") or []} for s in template_sections}

    errors: list[dict[str, Any]] = []
    for i, section in enumerate(submitted):
        sid = section["section_id"]
        if sid not in known:
            errors.append({"field": f"sections[{i}].section_id", "code": "unknown", "message": f"Unknown section '{sid}'"})
            continue

        for j, rating in enumerate(section.get("criteria") or []):
            field = f"sections[{i}].criteria[{j}]"
            cid = rating["criterion_id"]
            if cid not in known[sid]:
                errors.append(
                    {"field": f"{field}.criterion_id", "code": "unknown", "message": f"Unknown criterion '{cid}' in section '{sid}'"}
                )
                continue

            value = rating.get("rating")
            if value is not None and not (lo <= value <= hi):
                errors.append(
                    {"field": f"{field}.rating", "code": "range", "message": f"Rating must be between {lo:g} and {hi:g}"}
                )

    if errors:
        raise ValidationFailedError("Rating validation failed", errors=errors)


def score_section(
    ratings: list[dict[str, Any]],
    template_section: dict[str, Any],
    max_value: float,
) -> float:
    weights = {c["id"]: float(c["weight"]) for c in template_section.get("criteria") or []}

    section_score = 0.0
    weight_sum = 0.0
    for r in ratings:
        value = r.get("rating")
        if value is None:
            continue
        cw = weights.get(r["criterion_id"], 0.0)
        section_score += (float(value) / max_value) * 100.0 * (cw / 100.0)
        weight_sum += cw

    if weight_sum <= 0:
        return 0.0
    return (section_score / weight_sum) * 100.0


def compute_final_rating(
    submitted: list[dict[str, Any]],
    template_sections: list[dict[str, Any]],
    rating_scale: dict[str, Any],
) -> tuple[float, dict[str, float]]:
    """
    Returns (final_rating, {section_id: normalized section score}).
    """
    max_value = float(rating_scale["max_value"])
    by_id = {s["id"]: s for s in template_sections}

    section_scores: dict[str, float] = {}
    total_weighted = 0.0
    total_weight = 0.0

    for section in submitted:
        template_section = by_id.get(section["section_id"])
        if template_section is None:
            continue

        normalized = score_section(section.get("criteria") or [], template_section, max_value)
        sw = float(template_section["weight"])
        section_scores[section["section_id"]] = round(normalized, 2)
        total_weighted += normalized * (sw / 100.0)
        total_weight += sw

    if total_weight <= 0:
        return 0.0, section_scores

    final = (total_weighted / total_weight) * 100.0
    # float noise can push a perfect score a hair past 100
    final = min(max(final, 0.0), 100.0)
    return round(final, 2), section_scores


def performance_category(final_rating: float) -> PerformanceCategory:
    for threshold, category in CATEGORY_THRESHOLDS:
        if final_rating >= threshold:
            return category
    return PerformanceCategory.UNSATISFACTORY


def is_passed(final_rating: float, passing_score: float | None) -> bool | None:
    if passing_score is None:
        return None
    return final_rating >= passing_score


def rating_label(value: float | None, rating_scale: dict[str, Any]) -> str | None:
    """Label of the highest scale entry at or below `value`, if the scale has labels."""
    if value is None:
        return None
    labels = sorted(rating_scale.get("labels") or [], key=lambda x: x["value"])
    label = None
    for entry in labels:
        if value >= entry["value"]:
            label = entry["label"]
    return label
