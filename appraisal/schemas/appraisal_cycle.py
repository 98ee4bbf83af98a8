from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, Field

from appraisal.core.statuses import AppraisalType


class CycleCreate(BaseModel):
    code: str = Field(min_length=1, max_length=50)
    name: str = Field(min_length=1, max_length=200)
    description: str | None = None
    # Defaults to the template's kind
    appraisal_type: AppraisalType | None = None
    template_id: UUID

    start_date: date
    end_date: date
    self_assessment_deadline: date | None = None
    manager_review_deadline: date
    hr_review_deadline: date | None = None
    dispute_deadline: date | None = None

    target_employee_ids: list[UUID] = Field(default_factory=list)
    target_department_ids: list[UUID] = Field(default_factory=list)
    target_position_ids: list[UUID] = Field(default_factory=list)
    exclude_employee_ids: list[UUID] = Field(default_factory=list)


class CycleUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    appraisal_type: AppraisalType | None = None
    template_id: UUID | None = None

    start_date: date | None = None
    end_date: date | None = None
    self_assessment_deadline: date | None = None
    manager_review_deadline: date | None = None
    hr_review_deadline: date | None = None
    dispute_deadline: date | None = None

    target_employee_ids: list[UUID] | None = None
    target_department_ids: list[UUID] | None = None
    target_position_ids: list[UUID] | None = None
    exclude_employee_ids: list[UUID] | None = None


class CycleOut(BaseModel):
    id: str
    code: str
    name: str
    description: str | None
    appraisal_type: str
    template_id: str

    start_date: date
    end_date: date
    self_assessment_deadline: date | None
    manager_review_deadline: date
    hr_review_deadline: date | None
    dispute_deadline: date | None

    target_employee_ids: list[str]
    target_department_ids: list[str]
    target_position_ids: list[str]
    exclude_employee_ids: list[str]

    status: str
    results_published: bool
    published_at: datetime | None
    published_by_user_id: str | None

    total_employees: int
    completed_evaluations: int
    completion_percentage: float

    created_by_user_id: str | None
    updated_by_user_id: str | None
    created_at: datetime
    updated_at: datetime
    version: int


class CycleProgressOut(BaseModel):
    cycle_id: str
    status: str
    total: int
    completed: int
    completion_rate: float
    by_status: dict[str, int]
