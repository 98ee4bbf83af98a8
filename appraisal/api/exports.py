import csv
import io
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy import and_
from sqlalchemy.orm import Session, aliased

from appraisal.core.clock import today
from appraisal.core.rbac import require_hr
from appraisal.db.session import get_db
from appraisal.models.appraisal_cycle import AppraisalCycle
from appraisal.models.appraisal_evaluation import AppraisalEvaluation
from appraisal.models.appraisal_template import AppraisalTemplate
from appraisal.models.cycle_assignment import CycleAssignment
from appraisal.models.employee import Employee
from appraisal.models.organization import Department
from appraisal.models.user import User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/exports", tags=["exports"])

SUMMARY_FIELDS = [
    "employee_number",
    "employee_name",
    "department_code",
    "department_name",
    "cycle_code",
    "cycle_name",
    "cycle_start",
    "cycle_end",
    "template_code",
    "reviewer_number",
    "reviewer_name",
    "assignment_status",
    "assigned_at",
    "evaluation_status",
    "final_rating",
    "performance_category",
    "is_passed",
    "published_at",
    "acknowledged_at",
]


def _fmt(value) -> str:
    if value is None:
        return ""
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)


def summary_rows(
    db: Session,
    *,
    cycle_id: UUID | None = None,
    department_id: UUID | None = None,
    employee_id: UUID | None = None,
    assignment_status: str | None = None,
) -> list[dict]:
    """One row per assignment, with the evaluation result when there is one."""
    reviewer = aliased(Employee)

    query = (
        db.query(CycleAssignment, AppraisalCycle, AppraisalTemplate, Employee, reviewer, Department, AppraisalEvaluation)
        .join(AppraisalCycle, CycleAssignment.cycle_id == AppraisalCycle.id)
        .join(AppraisalTemplate, AppraisalCycle.template_id == AppraisalTemplate.id)
        .join(Employee, CycleAssignment.employee_id == Employee.id)
        .join(reviewer, CycleAssignment.reviewer_id == reviewer.id)
        .outerjoin(Department, Employee.primary_department_id == Department.id)
        .outerjoin(
            AppraisalEvaluation,
            and_(
                AppraisalEvaluation.cycle_id == CycleAssignment.cycle_id,
                AppraisalEvaluation.employee_id == CycleAssignment.employee_id,
            ),
        )
    )

    if cycle_id:
        query = query.filter(CycleAssignment.cycle_id == cycle_id)
    if department_id:
        query = query.filter(Employee.primary_department_id == department_id)
    if employee_id:
        query = query.filter(CycleAssignment.employee_id == employee_id)
    if assignment_status:
        query = query.filter(CycleAssignment.status == assignment_status)

    rows = []
    for a, c, t, emp, rev, dept, ev in query.order_by(AppraisalCycle.code, Employee.employee_number).all():
        rows.append(
            {
                "employee_number": emp.employee_number,
                "employee_name": emp.display_name,
                "department_code": dept.code if dept else "",
                "department_name": dept.name if dept else "",
                "cycle_code": c.code,
                "cycle_name": c.name,
                "cycle_start": _fmt(c.start_date),
                "cycle_end": _fmt(c.end_date),
                "template_code": t.code,
                "reviewer_number": rev.employee_number,
                "reviewer_name": rev.display_name,
                "assignment_status": a.status,
                "assigned_at": _fmt(a.assigned_at),
                "evaluation_status": ev.status if ev else "",
                "final_rating": _fmt(ev.final_rating) if ev else "",
                "performance_category": _fmt(ev.performance_category) if ev else "",
                "is_passed": _fmt(ev.is_passed) if ev else "",
                "published_at": _fmt(ev.published_at) if ev else "",
                "acknowledged_at": _fmt(ev.acknowledged_at) if ev else "",
            }
        )
    return rows


@router.get("/appraisal-summaries")
def export_appraisal_summaries(
    cycle_id: UUID | None = Query(default=None),
    department_id: UUID | None = Query(default=None),
    employee_id: UUID | None = Query(default=None),
    status: str | None = Query(default=None, description="Filter by assignment status"),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_hr),
):
    """
    CSV of per-assignment appraisal results (final rating, category and
    publication state), filtered by cycle, department, employee and status.
    """
    rows = summary_rows(
        db,
        cycle_id=cycle_id,
        department_id=department_id,
        employee_id=employee_id,
        assignment_status=status,
    )

    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=SUMMARY_FIELDS)
    writer.writeheader()
    writer.writerows(rows)
    logger.info("Exported %d appraisal summary row(s) for %s", len(rows), current_user.email)

    filename = f"appraisal_summaries_{today().isoformat()}.csv"
    return StreamingResponse(
        iter([buf.getvalue()]),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
