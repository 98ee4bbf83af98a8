from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from appraisal.core.statuses import AppraisalType, CalculationMethod, RatingScaleType


class RatingLabel(BaseModel):
    value: float
    label: str = Field(min_length=1, max_length=100)
    description: str | None = None


class RatingScale(BaseModel):
    type: RatingScaleType = RatingScaleType.NUMERIC
    min_value: float
    max_value: float
    labels: list[RatingLabel] = Field(default_factory=list)


class Criterion(BaseModel):
    id: str = Field(min_length=1, max_length=100)
    name: str = Field(min_length=1, max_length=200)
    description: str | None = None
    weight: float
    is_required: bool = True
    allow_comments: bool = True


class Section(BaseModel):
    id: str = Field(min_length=1, max_length=100)
    name: str = Field(min_length=1, max_length=200)
    description: str | None = None
    weight: float
    order: int = 0
    criteria: list[Criterion] = Field(default_factory=list)


class TemplateCreate(BaseModel):
    code: str = Field(min_length=1, max_length=50)
    name: str = Field(min_length=1, max_length=200)
    description: str | None = None
    appraisal_type: AppraisalType
    applicable_department_ids: list[UUID] = Field(default_factory=list)
    applicable_position_ids: list[UUID] = Field(default_factory=list)
    rating_scale: RatingScale
    sections: list[Section]
    calculation_method: CalculationMethod = CalculationMethod.WEIGHTED_AVERAGE
    passing_score: float | None = Field(default=None, ge=0, le=100)
    requires_self_assessment: bool = False
    # Falls back to DEFAULT_DISPUTE_WINDOW_DAYS
    dispute_period_days: int | None = Field(default=None, ge=0, le=365)


class TemplateUpdate(BaseModel):
    """Partial update. `sections`, when given, replaces all sections."""
    code: str | None = Field(default=None, min_length=1, max_length=50)
    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    appraisal_type: AppraisalType | None = None
    applicable_department_ids: list[UUID] | None = None
    applicable_position_ids: list[UUID] | None = None
    rating_scale: RatingScale | None = None
    sections: list[Section] | None = None
    calculation_method: CalculationMethod | None = None
    passing_score: float | None = Field(default=None, ge=0, le=100)
    requires_self_assessment: bool | None = None
    dispute_period_days: int | None = Field(default=None, ge=0, le=365)
    is_active: bool | None = None


class TemplateOut(BaseModel):
    id: str
    code: str
    name: str
    description: str | None
    appraisal_type: str
    applicable_department_ids: list[str]
    applicable_position_ids: list[str]
    rating_scale: dict
    sections: list[dict]
    calculation_method: str
    passing_score: float | None
    requires_self_assessment: bool
    dispute_period_days: int
    is_active: bool
    version: int
    created_by_user_id: str | None
    updated_by_user_id: str | None
    created_at: datetime
    updated_at: datetime
