"""
Status machines for cycles, assignments, evaluations and disputes.

Each machine is a `str` enum plus a transition table. All status changes go
through `transition()` so an illegal move is rejected in one place.
"""
from __future__ import annotations

from enum import Enum
from typing import TypeVar

from appraisal.core.errors import BadRequestError


class AppraisalType(str, Enum):
    ANNUAL = "ANNUAL"
    PROBATIONARY = "PROBATIONARY"
    MID_YEAR = "MID_YEAR"
    PROJECT_BASED = "PROJECT_BASED"
    AD_HOC = "AD_HOC"


class RatingScaleType(str, Enum):
    NUMERIC = "NUMERIC"
    LETTER = "LETTER"
    DESCRIPTIVE = "DESCRIPTIVE"


class CalculationMethod(str, Enum):
    WEIGHTED_AVERAGE = "WEIGHTED_AVERAGE"
    SIMPLE_AVERAGE = "SIMPLE_AVERAGE"
    CUSTOM = "CUSTOM"


class CycleStatus(str, Enum):
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    ARCHIVED = "ARCHIVED"
    CANCELLED = "CANCELLED"


class AssignmentStatus(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    SELF_ASSESSMENT_PENDING = "SELF_ASSESSMENT_PENDING"
    MANAGER_REVIEW_PENDING = "MANAGER_REVIEW_PENDING"
    HR_REVIEW_PENDING = "HR_REVIEW_PENDING"
    COMPLETED = "COMPLETED"
    DISPUTED = "DISPUTED"


class EvaluationStatus(str, Enum):
    DRAFT = "DRAFT"
    SELF_ASSESSMENT_SUBMITTED = "SELF_ASSESSMENT_SUBMITTED"
    MANAGER_REVIEW_SUBMITTED = "MANAGER_REVIEW_SUBMITTED"
    HR_REVIEWED = "HR_REVIEWED"
    PUBLISHED = "PUBLISHED"
    ACKNOWLEDGED = "ACKNOWLEDGED"
    DISPUTED = "DISPUTED"
    FINALIZED = "FINALIZED"


class PerformanceCategory(str, Enum):
    EXCEPTIONAL = "EXCEPTIONAL"
    EXCEEDS_EXPECTATIONS = "EXCEEDS_EXPECTATIONS"
    MEETS_EXPECTATIONS = "MEETS_EXPECTATIONS"
    NEEDS_IMPROVEMENT = "NEEDS_IMPROVEMENT"
    UNSATISFACTORY = "UNSATISFACTORY"


class DisputeStatus(str, Enum):
    SUBMITTED = "SUBMITTED"
    UNDER_REVIEW = "UNDER_REVIEW"
    RESOLVED = "RESOLVED"
    REJECTED = "REJECTED"
    WITHDRAWN = "WITHDRAWN"


class ResolutionType(str, Enum):
    UPHELD_ORIGINAL = "UPHELD_ORIGINAL"
    RATING_ADJUSTED = "RATING_ADJUSTED"
    REEVALUATION_ORDERED = "REEVALUATION_ORDERED"


class EmploymentStatus(str, Enum):
    ACTIVE = "ACTIVE"
    PROBATION = "PROBATION"
    ON_LEAVE = "ON_LEAVE"
    SUSPENDED = "SUSPENDED"
    TERMINATED = "TERMINATED"


CYCLE_TRANSITIONS: dict[CycleStatus, frozenset[CycleStatus]] = {
    CycleStatus.DRAFT: frozenset({CycleStatus.ACTIVE, CycleStatus.CANCELLED}),
    CycleStatus.ACTIVE: frozenset(
        {CycleStatus.IN_PROGRESS, CycleStatus.COMPLETED, CycleStatus.CANCELLED}
    ),
    CycleStatus.IN_PROGRESS: frozenset({CycleStatus.COMPLETED}),
    CycleStatus.COMPLETED: frozenset({CycleStatus.ARCHIVED}),
    CycleStatus.ARCHIVED: frozenset(),
    CycleStatus.CANCELLED: frozenset(),
}

ASSIGNMENT_TRANSITIONS: dict[AssignmentStatus, frozenset[AssignmentStatus]] = {
    AssignmentStatus.NOT_STARTED: frozenset(
        {
            AssignmentStatus.SELF_ASSESSMENT_PENDING,
            AssignmentStatus.MANAGER_REVIEW_PENDING,
            AssignmentStatus.HR_REVIEW_PENDING,
        }
    ),
    AssignmentStatus.SELF_ASSESSMENT_PENDING: frozenset(
        {AssignmentStatus.MANAGER_REVIEW_PENDING, AssignmentStatus.HR_REVIEW_PENDING}
    ),
    AssignmentStatus.MANAGER_REVIEW_PENDING: frozenset(
        {AssignmentStatus.HR_REVIEW_PENDING, AssignmentStatus.COMPLETED}
    ),
    # manager resubmission keeps HR_REVIEW_PENDING
    AssignmentStatus.HR_REVIEW_PENDING: frozenset(
        {AssignmentStatus.HR_REVIEW_PENDING, AssignmentStatus.COMPLETED}
    ),
    AssignmentStatus.COMPLETED: frozenset(
        {AssignmentStatus.COMPLETED, AssignmentStatus.DISPUTED}
    ),
    AssignmentStatus.DISPUTED: frozenset(
        {AssignmentStatus.COMPLETED, AssignmentStatus.MANAGER_REVIEW_PENDING}
    ),
}

EVALUATION_TRANSITIONS: dict[EvaluationStatus, frozenset[EvaluationStatus]] = {
    EvaluationStatus.DRAFT: frozenset(
        {EvaluationStatus.SELF_ASSESSMENT_SUBMITTED, EvaluationStatus.MANAGER_REVIEW_SUBMITTED}
    ),
    EvaluationStatus.SELF_ASSESSMENT_SUBMITTED: frozenset(
        {EvaluationStatus.SELF_ASSESSMENT_SUBMITTED, EvaluationStatus.MANAGER_REVIEW_SUBMITTED}
    ),
    EvaluationStatus.MANAGER_REVIEW_SUBMITTED: frozenset(
        {
            EvaluationStatus.MANAGER_REVIEW_SUBMITTED,
            EvaluationStatus.HR_REVIEWED,
            EvaluationStatus.PUBLISHED,
        }
    ),
    EvaluationStatus.HR_REVIEWED: frozenset(
        {
            EvaluationStatus.MANAGER_REVIEW_SUBMITTED,
            EvaluationStatus.HR_REVIEWED,
            EvaluationStatus.PUBLISHED,
        }
    ),
    EvaluationStatus.PUBLISHED: frozenset(
        {EvaluationStatus.ACKNOWLEDGED, EvaluationStatus.DISPUTED}
    ),
    EvaluationStatus.ACKNOWLEDGED: frozenset({EvaluationStatus.DISPUTED}),
    EvaluationStatus.DISPUTED: frozenset(
        {
            EvaluationStatus.FINALIZED,
            EvaluationStatus.PUBLISHED,
            EvaluationStatus.ACKNOWLEDGED,
            EvaluationStatus.DRAFT,
        }
    ),
    EvaluationStatus.FINALIZED: frozenset(),
}

DISPUTE_TRANSITIONS: dict[DisputeStatus, frozenset[DisputeStatus]] = {
    DisputeStatus.SUBMITTED: frozenset(
        {
            DisputeStatus.UNDER_REVIEW,
            DisputeStatus.RESOLVED,
            DisputeStatus.REJECTED,
            DisputeStatus.WITHDRAWN,
        }
    ),
    DisputeStatus.UNDER_REVIEW: frozenset(
        {DisputeStatus.RESOLVED, DisputeStatus.REJECTED, DisputeStatus.WITHDRAWN}
    ),
    DisputeStatus.RESOLVED: frozenset(),
    DisputeStatus.REJECTED: frozenset(),
    DisputeStatus.WITHDRAWN: frozenset(),
}

OPEN_DISPUTE_STATUSES = (DisputeStatus.SUBMITTED, DisputeStatus.UNDER_REVIEW)
OPEN_CYCLE_STATUSES = (CycleStatus.ACTIVE.value, CycleStatus.IN_PROGRESS.value)

_MACHINES = {
    CycleStatus: ("cycle", CYCLE_TRANSITIONS),
    AssignmentStatus: ("assignment", ASSIGNMENT_TRANSITIONS),
    EvaluationStatus: ("evaluation", EVALUATION_TRANSITIONS),
    DisputeStatus: ("dispute", DISPUTE_TRANSITIONS),
}

S = TypeVar("S", CycleStatus, AssignmentStatus, EvaluationStatus, DisputeStatus)


def can_transition(current: S, target: S) -> bool:
    _, table = _MACHINES[type(target)]
    return target in table[type(target)(current)]


def transition(current: str, target: S) -> S:
    """
    Validate `current -> target` against the machine of `target` and return
    the target (callers assign the return value).

    Raises BadRequestError when the move is not in the table.
    """
    kind, table = _MACHINES[type(target)]
    current_status = type(target)(current)
    if target not in table[current_status]:
        raise BadRequestError(
            f"Illegal {kind} status transition: {current_status.value} -> {target.value}"
        )
    return target


def sql_in(enum_cls: type[Enum]) -> str:
    """Values rendered for a CHECK (... IN (...)) constraint."""
    return ",".join(f"'{m.value}'" for m in enum_cls)
