from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from appraisal.core.access import assert_user_is_employee, assert_user_is_employee_or_hr, get_employee_for_user, user_is_hr
from appraisal.core.audit import log_event
from appraisal.core.cycle_progress import get_assignment_or_404, move_assignment
from appraisal.core.errors import BadRequestError
from appraisal.core.loaders import get_cycle_for_update_or_404, get_cycle_or_404
from appraisal.core.optimistic_lock import commit_or_409, set_etag
from appraisal.core.rbac import require_hr
from appraisal.core.security import get_current_user
from appraisal.core.statuses import OPEN_CYCLE_STATUSES, AssignmentStatus
from appraisal.db.session import get_db
from appraisal.models.appraisal_cycle import AppraisalCycle
from appraisal.models.cycle_assignment import CycleAssignment
from appraisal.models.user import User
from appraisal.schemas.cycle_assignment import AssignmentOut

router = APIRouter(tags=["assignments"])



def to_out(a: CycleAssignment) -> AssignmentOut:
    return AssignmentOut(
        id=str(a.id),
        cycle_id=str(a.cycle_id),
        employee_id=str(a.employee_id),
        reviewer_id=str(a.reviewer_id),
        self_assessment_required=a.self_assessment_required,
        status=a.status,
        assigned_at=a.assigned_at,
    )


@router.get("/cycles/{cycle_id}/assignments", response_model=list[AssignmentOut])
def list_cycle_assignments(
    cycle_id: UUID,
    reviewer_id: UUID | None = Query(default=None),
    status_filter: str | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
    _: User = Depends(require_hr),
):
    c = get_cycle_or_404(db, cycle_id)

    rows = c.assignments
    if reviewer_id:
        rows = [a for a in rows if a.reviewer_id == reviewer_id]
    if status_filter:
        rows = [a for a in rows if a.status == status_filter]
    return [to_out(a) for a in rows]


@router.get("/managers/{manager_id}/assignments", response_model=list[AssignmentOut])
def list_manager_assignments(
    manager_id: UUID,
    cycle_id: UUID | None = Query(default=None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Assignments across cycles where `manager_id` is the reviewer."""
    if not user_is_hr(db, current_user):
        emp = get_employee_for_user(db, current_user)
        if not emp or emp.id != manager_id:
            raise HTTPException(status_code=403, detail="Only HR or that manager can list these assignments")

    q = db.query(CycleAssignment).filter(CycleAssignment.reviewer_id == manager_id)
    if cycle_id:
        q = q.filter(CycleAssignment.cycle_id == cycle_id)

    rows = q.order_by(CycleAssignment.assigned_at.desc()).all()
    return [to_out(a) for a in rows]


@router.get("/employees/{employee_id}/assignments", response_model=list[AssignmentOut])
def list_employee_assignments(
    employee_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    assert_user_is_employee_or_hr(db, current_user, employee_id)

    rows = (
        db.query(CycleAssignment)
        .join(AppraisalCycle, AppraisalCycle.id == CycleAssignment.cycle_id)
        .filter(CycleAssignment.employee_id == employee_id)
        .order_by(AppraisalCycle.start_date.desc())
        .all()
    )
    return [to_out(a) for a in rows]


@router.post("/cycles/{cycle_id}/employees/{employee_id}/start", response_model=AssignmentOut)
def start_assignment(
    cycle_id: UUID,
    employee_id: UUID,
    response: Response,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    The employee acknowledges their assignment. Moves it to the self-assessment
    step when one is required, otherwise straight to manager review.
    """
    assert_user_is_employee(db, current_user, employee_id)

    c = get_cycle_for_update_or_404(db, cycle_id)
    if c.status not in OPEN_CYCLE_STATUSES:
        raise BadRequestError(f"Cycle is not open for appraisal (status: {c.status})")

    a = get_assignment_or_404(c, employee_id)
    if a.status != AssignmentStatus.NOT_STARTED.value:
        raise BadRequestError(f"Assignment already started (status: {a.status})")

    target = (
        AssignmentStatus.SELF_ASSESSMENT_PENDING
        if a.self_assessment_required
        else AssignmentStatus.MANAGER_REVIEW_PENDING
    )
    move_assignment(c, a, target)

    log_event(
        db=db,
        actor=current_user,
        action="ASSIGNMENT_STARTED",
        entity_type="cycle_assignment",
        entity_id=a.id,
        metadata={"cycle_id": str(c.id), "to": a.status},
    )

    commit_or_409(db)
    db.refresh(a)
    set_etag(response, c.version)
    return to_out(a)
