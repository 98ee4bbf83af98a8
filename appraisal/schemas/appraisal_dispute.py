from datetime import date, datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

from appraisal.core.statuses import ResolutionType


class DisputeCreate(BaseModel):
    evaluation_id: UUID
    reason: str = Field(min_length=1, max_length=5000)
    disputed_section_ids: list[str] = Field(default_factory=list)
    disputed_criterion_ids: list[str] = Field(default_factory=list)
    proposed_rating: float | None = Field(default=None, ge=0, le=100)
    supporting_documents: list[str] = Field(default_factory=list)
    additional_comments: str | None = None


class DisputeReviewIn(BaseModel):
    comments: str | None = None


class DisputeEscalateIn(BaseModel):
    escalated_to_user_id: UUID


class DisputeResolveIn(BaseModel):
    status: Literal["RESOLVED", "REJECTED"]
    resolution_type: ResolutionType
    adjusted_rating: float | None = Field(default=None, ge=0, le=100)
    resolution_notes: str | None = None
    review_comments: str | None = None


class DisputeOut(BaseModel):
    id: str
    evaluation_id: str
    employee_id: str
    cycle_id: str

    reason: str
    disputed_section_ids: list[str]
    disputed_criterion_ids: list[str]
    proposed_rating: float | None
    supporting_documents: list[str]
    additional_comments: str | None

    status: str
    reviewer_user_id: str | None
    reviewed_at: datetime | None
    review_comments: str | None

    resolution_type: str | None
    adjusted_rating: float | None
    resolution_notes: str | None
    resolved_at: datetime | None

    submitted_at: datetime
    deadline: date

    is_escalated: bool
    escalated_to_user_id: str | None
    escalated_at: datetime | None
    withdrawn_at: datetime | None

    version: int
