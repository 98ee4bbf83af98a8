from datetime import datetime
from pydantic import BaseModel


class AssignmentOut(BaseModel):
    id: str
    cycle_id: str
    employee_id: str
    reviewer_id: str
    self_assessment_required: bool
    status: str
    assigned_at: datetime
