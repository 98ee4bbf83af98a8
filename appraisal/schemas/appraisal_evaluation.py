from datetime import datetime
from pydantic import BaseModel, Field


class CriterionRating(BaseModel):
    criterion_id: str = Field(min_length=1, max_length=100)
    # None means "not rated"; the criterion is then left out of the score
    rating: float | None = None
    comments: str | None = None


class SectionRating(BaseModel):
    section_id: str = Field(min_length=1, max_length=100)
    criteria: list[CriterionRating] = Field(min_length=1)
    comments: str | None = None


class SelfAssessmentIn(BaseModel):
    sections: list[SectionRating] = Field(min_length=1)
    overall_comments: str | None = None


class ManagerEvaluationIn(BaseModel):
    sections: list[SectionRating] = Field(min_length=1)
    overall_rating: float | None = None
    strengths: str | None = None
    areas_for_improvement: str | None = None
    development_recommendations: str | None = None
    attendance_score: float | None = Field(default=None, ge=0, le=100)
    punctuality_score: float | None = Field(default=None, ge=0, le=100)
    attendance_comments: str | None = None
    # Stored only when the evaluation has no self-assessment yet
    self_assessment: SelfAssessmentIn | None = None


class HrReviewIn(BaseModel):
    adjusted_rating: float | None = Field(default=None, ge=0, le=100)
    adjustment_reason: str | None = None
    comments: str | None = None


class AcknowledgeIn(BaseModel):
    comments: str | None = None


class EvaluationOut(BaseModel):
    id: str
    cycle_id: str
    template_id: str
    employee_id: str
    reviewer_id: str

    self_assessment: dict | None
    manager_evaluation: dict | None
    hr_review: dict | None

    final_rating: float | None
    performance_category: str | None
    is_passed: bool | None
    overall_rating_label: str | None = None

    status: str
    published_at: datetime | None
    acknowledged_at: datetime | None
    acknowledged_by_user_id: str | None
    employee_comments: str | None

    created_at: datetime
    updated_at: datetime
    version: int
