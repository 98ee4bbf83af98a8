import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from appraisal.core.access import get_employee_for_user, user_is_hr
from appraisal.core.assignment_resolver import resolve_pairings
from appraisal.core.audit import log_event
from appraisal.core.clock import utcnow
from appraisal.core.cycle_progress import find_assignment, move_assignment, progress_summary, refresh_progress
from appraisal.core.directory import SqlDirectory
from appraisal.core.errors import BadRequestError, ConflictError, ValidationFailedError
from appraisal.core.loaders import get_cycle_for_update_or_404, get_cycle_or_404, get_template_or_404
from appraisal.core.optimistic_lock import check_if_match, commit_or_409, set_etag
from appraisal.core.rbac import require_hr
from appraisal.core.security import get_current_user
from appraisal.core.statuses import AssignmentStatus, CycleStatus, EvaluationStatus, transition
from appraisal.db.session import get_db
from appraisal.models.appraisal_cycle import AppraisalCycle
from appraisal.models.appraisal_evaluation import AppraisalEvaluation
from appraisal.models.cycle_assignment import CycleAssignment
from appraisal.models.user import User
from appraisal.schemas.appraisal_cycle import CycleCreate, CycleOut, CycleProgressOut, CycleUpdate
from appraisal.schemas.pagination import paginated

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cycles", tags=["appraisal-cycles"])

PUBLISHABLE_EVALUATION_STATUSES = (
    EvaluationStatus.MANAGER_REVIEW_SUBMITTED.value,
    EvaluationStatus.HR_REVIEWED.value,
)

DEADLINE_FIELDS = (
    "self_assessment_deadline",
    "manager_review_deadline",
    "hr_review_deadline",
    "dispute_deadline",
)

REQUIRED_FIELDS = ("name", "appraisal_type", "template_id", "start_date", "end_date", "manager_review_deadline")


def to_out(c: AppraisalCycle) -> CycleOut:
    return CycleOut(
        id=str(c.id),
        code=c.code,
        name=c.name,
        description=c.description,
        appraisal_type=c.appraisal_type,
        template_id=str(c.template_id),
        start_date=c.start_date,
        end_date=c.end_date,
        self_assessment_deadline=c.self_assessment_deadline,
        manager_review_deadline=c.manager_review_deadline,
        hr_review_deadline=c.hr_review_deadline,
        dispute_deadline=c.dispute_deadline,
        target_employee_ids=list(c.target_employee_ids or []),
        target_department_ids=list(c.target_department_ids or []),
        target_position_ids=list(c.target_position_ids or []),
        exclude_employee_ids=list(c.exclude_employee_ids or []),
        status=c.status,
        results_published=c.results_published,
        published_at=c.published_at,
        published_by_user_id=str(c.published_by_user_id) if c.published_by_user_id else None,
        total_employees=c.total_employees,
        completed_evaluations=c.completed_evaluations,
        completion_percentage=c.completion_percentage,
        created_by_user_id=str(c.created_by_user_id) if c.created_by_user_id else None,
        updated_by_user_id=str(c.updated_by_user_id) if c.updated_by_user_id else None,
        created_at=c.created_at,
        updated_at=c.updated_at,
        version=c.version,
    )


def _check_timeline(c: AppraisalCycle) -> None:
    errors = []
    if c.end_date <= c.start_date:
        errors.append({"field": "end_date", "code": "date_order", "message": "end_date must be after start_date"})
    for field in DEADLINE_FIELDS:
        value = getattr(c, field)
        if value is not None and value < c.start_date:
            errors.append({"field": field, "code": "date_order", "message": f"{field} must not precede start_date"})
    if errors:
        raise ValidationFailedError("Cycle timeline is invalid", errors=errors)


def _change_status(
    db: Session,
    c: AppraisalCycle,
    target: CycleStatus,
    actor: User,
    action: str,
) -> None:
    prev = c.status
    c.status = transition(c.status, target).value
    c.updated_by_user_id = actor.id

    log_event(
        db=db,
        actor=actor,
        action=action,
        entity_type="appraisal_cycle",
        entity_id=c.id,
        metadata={"from": prev, "to": c.status},
    )


@router.get("")
def list_cycles(
    search: str | None = Query(default=None, description="Search by code or name"),
    status: str | None = Query(default=None, description="Filter by status (DRAFT, ACTIVE, IN_PROGRESS, COMPLETED, ARCHIVED, CANCELLED)"),
    limit: int = Query(default=100, ge=1, le=500, description="Maximum number of results"),
    offset: int = Query(default=0, ge=0, description="Number of results to skip"),
    include_pagination: bool = Query(default=False, description="Include pagination metadata"),
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    """
    List appraisal cycles with optional search and filtering.

    Use ?include_pagination=true to get pagination metadata.
    """
    query = db.query(AppraisalCycle)

    if search:
        term = f"%{search.lower()}%"
        query = query.filter(AppraisalCycle.name.ilike(term) | AppraisalCycle.code.ilike(term))

    if status:
        query = query.filter(AppraisalCycle.status == status)

    total = query.count()

    cycles = query.order_by(AppraisalCycle.created_at.desc()).offset(offset).limit(limit).all()
    items = [to_out(c) for c in cycles]

    return paginated(items, total=total, limit=limit, offset=offset, include_pagination=include_pagination)


@router.get("/{cycle_id}", response_model=CycleOut)
def get_cycle(
    cycle_id: UUID,
    response: Response,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    c = get_cycle_or_404(db, cycle_id)
    set_etag(response, c.version)
    return to_out(c)


@router.post("", response_model=CycleOut, status_code=status.HTTP_201_CREATED)
def create_cycle(
    payload: CycleCreate,
    response: Response,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_hr),
):
    template = get_template_or_404(db, payload.template_id)

    if db.query(AppraisalCycle.id).filter(AppraisalCycle.code == payload.code).first():
        raise ConflictError(f"Cycle code '{payload.code}' already exists")

    c = AppraisalCycle(
        code=payload.code,
        name=payload.name,
        description=payload.description,
        appraisal_type=(payload.appraisal_type.value if payload.appraisal_type else template.appraisal_type),
        template_id=template.id,
        start_date=payload.start_date,
        end_date=payload.end_date,
        self_assessment_deadline=payload.self_assessment_deadline,
        manager_review_deadline=payload.manager_review_deadline,
        hr_review_deadline=payload.hr_review_deadline,
        dispute_deadline=payload.dispute_deadline,
        target_employee_ids=[str(i) for i in payload.target_employee_ids],
        target_department_ids=[str(i) for i in payload.target_department_ids],
        target_position_ids=[str(i) for i in payload.target_position_ids],
        exclude_employee_ids=[str(i) for i in payload.exclude_employee_ids],
        status=CycleStatus.DRAFT.value,
        created_by_user_id=current_user.id,
        updated_by_user_id=current_user.id,
    )
    _check_timeline(c)

    db.add(c)
    db.flush()  # ensures c.id exists for audit

    log_event(
        db=db,
        actor=current_user,
        action="CYCLE_CREATED",
        entity_type="appraisal_cycle",
        entity_id=c.id,
        metadata={
            "code": c.code,
            "template_id": str(template.id),
            "start_date": str(c.start_date),
            "end_date": str(c.end_date),
            "status": c.status,
        },
    )

    commit_or_409(db, integrity_detail=f"Cycle code '{payload.code}' already exists")
    db.refresh(c)
    set_etag(response, c.version)
    return to_out(c)


@router.patch("/{cycle_id}", response_model=CycleOut)
def update_cycle(
    cycle_id: UUID,
    payload: CycleUpdate,
    response: Response,
    if_match: str | None = Header(default=None, alias="If-Match"),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_hr),
):
    """Field update only; assignments are never re-resolved here."""
    c = get_cycle_for_update_or_404(db, cycle_id)
    check_if_match(if_match, c.version)

    data = payload.model_dump(exclude_unset=True)
    before = {k: getattr(c, k) for k in data}

    for field, value in data.items():
        if value is None and field in REQUIRED_FIELDS:
            raise ValidationFailedError(
                "Cycle update is invalid",
                errors=[{"field": field, "code": "required", "message": f"{field} cannot be cleared"}],
            )
        if field.endswith("_ids"):
            value = [str(i) for i in value or []]
        elif field == "template_id":
            value = get_template_or_404(db, value).id
        elif field == "appraisal_type":
            value = value.value
        setattr(c, field, value)
    _check_timeline(c)
    c.updated_by_user_id = current_user.id

    log_event(
        db=db,
        actor=current_user,
        action="CYCLE_UPDATED",
        entity_type="appraisal_cycle",
        entity_id=c.id,
        metadata={
            "before": {k: str(v) if v is not None else None for k, v in before.items()},
            "fields": sorted(data.keys()),
        },
    )

    commit_or_409(db)
    db.refresh(c)
    set_etag(response, c.version)
    return to_out(c)


@router.delete("/{cycle_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_cycle(
    cycle_id: UUID,
    if_match: str | None = Header(default=None, alias="If-Match"),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_hr),
):
    """Only a DRAFT cycle that never produced assignments or evaluations."""
    c = get_cycle_for_update_or_404(db, cycle_id)
    check_if_match(if_match, c.version)

    if c.status != CycleStatus.DRAFT.value:
        raise BadRequestError(f"Only DRAFT cycles can be deleted (current: {c.status})")
    if c.assignments:
        raise BadRequestError(f"Cycle has {len(c.assignments)} assignment(s) and cannot be deleted")
    evaluations = db.query(AppraisalEvaluation.id).filter(AppraisalEvaluation.cycle_id == c.id).count()
    if evaluations:
        raise BadRequestError(f"Cycle has {evaluations} evaluation(s) and cannot be deleted")

    log_event(
        db=db,
        actor=current_user,
        action="CYCLE_DELETED",
        entity_type="appraisal_cycle",
        entity_id=c.id,
        metadata={"code": c.code},
    )
    db.delete(c)

    commit_or_409(db)
    logger.info("Cycle %s deleted by %s", c.code, current_user.email)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{cycle_id}/activate", response_model=CycleOut)
def activate_cycle(
    cycle_id: UUID,
    response: Response,
    if_match: str | None = Header(default=None, alias="If-Match"),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_hr),
):
    c = get_cycle_for_update_or_404(db, cycle_id)
    check_if_match(if_match, c.version)

    if c.status != CycleStatus.DRAFT.value:
        raise BadRequestError(f"Only DRAFT cycles can be activated (current: {c.status})")

    template = get_template_or_404(db, c.template_id)
    if not template.is_active:
        raise BadRequestError("Cycle template is inactive")

    already = {a.employee_id for a in c.assignments}
    pairings = resolve_pairings(SqlDirectory(db), c, template, already_assigned=already)

    now = utcnow()
    for p in pairings:
        c.assignments.append(
            CycleAssignment(
                employee_id=p.employee_id,
                reviewer_id=p.reviewer_id,
                self_assessment_required=template.requires_self_assessment,
                status=AssignmentStatus.NOT_STARTED.value,
                assigned_at=now,
            )
        )
    refresh_progress(c)

    _change_status(db, c, CycleStatus.ACTIVE, current_user, "CYCLE_ACTIVATED")
    log_event(
        db=db,
        actor=current_user,
        action="CYCLE_ASSIGNMENTS_CREATED",
        entity_type="appraisal_cycle",
        entity_id=c.id,
        metadata={"created": len(pairings), "total": c.total_employees},
    )

    commit_or_409(db, integrity_detail="Cycle assignments conflict with existing rows")
    db.refresh(c)
    logger.info("Cycle %s activated with %d assignment(s)", c.code, c.total_employees)
    set_etag(response, c.version)
    return to_out(c)


@router.post("/{cycle_id}/publish", response_model=CycleOut)
def publish_cycle(
    cycle_id: UUID,
    response: Response,
    if_match: str | None = Header(default=None, alias="If-Match"),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_hr),
):
    """
    Publish every manager-reviewed evaluation of the cycle and complete the
    matching assignments. Evaluations still waiting on their manager are left
    alone; publishing again later picks them up.
    """
    c = get_cycle_for_update_or_404(db, cycle_id)
    check_if_match(if_match, c.version)

    if c.status not in (CycleStatus.ACTIVE.value, CycleStatus.IN_PROGRESS.value):
        raise BadRequestError(f"Only ACTIVE or IN_PROGRESS cycles can be published (current: {c.status})")

    evaluations = (
        db.query(AppraisalEvaluation)
        .filter(
            AppraisalEvaluation.cycle_id == c.id,
            AppraisalEvaluation.status.in_(PUBLISHABLE_EVALUATION_STATUSES),
        )
        .all()
    )

    now = utcnow()
    completed = 0
    for ev in evaluations:
        ev.status = transition(ev.status, EvaluationStatus.PUBLISHED).value
        ev.published_at = now

        a = find_assignment(c, ev.employee_id)
        if a and a.status != AssignmentStatus.COMPLETED.value:
            move_assignment(c, a, AssignmentStatus.COMPLETED)
            completed += 1

    c.results_published = True
    c.published_at = now
    c.published_by_user_id = current_user.id
    c.updated_by_user_id = current_user.id
    refresh_progress(c)

    log_event(
        db=db,
        actor=current_user,
        action="CYCLE_PUBLISHED",
        entity_type="appraisal_cycle",
        entity_id=c.id,
        metadata={"evaluations_published": len(evaluations), "assignments_completed": completed},
    )

    commit_or_409(db)
    db.refresh(c)
    logger.info("Cycle %s published %d evaluation(s)", c.code, len(evaluations))
    set_etag(response, c.version)
    return to_out(c)


@router.post("/{cycle_id}/close", response_model=CycleOut)
def close_cycle(
    cycle_id: UUID,
    response: Response,
    if_match: str | None = Header(default=None, alias="If-Match"),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_hr),
):
    c = get_cycle_for_update_or_404(db, cycle_id)
    check_if_match(if_match, c.version)

    if c.status not in (CycleStatus.ACTIVE.value, CycleStatus.IN_PROGRESS.value):
        raise BadRequestError(f"Only ACTIVE or IN_PROGRESS cycles can be closed (current: {c.status})")

    _change_status(db, c, CycleStatus.COMPLETED, current_user, "CYCLE_CLOSED")

    commit_or_409(db)
    db.refresh(c)
    set_etag(response, c.version)
    return to_out(c)


@router.post("/{cycle_id}/cancel", response_model=CycleOut)
def cancel_cycle(
    cycle_id: UUID,
    response: Response,
    if_match: str | None = Header(default=None, alias="If-Match"),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_hr),
):
    c = get_cycle_for_update_or_404(db, cycle_id)
    check_if_match(if_match, c.version)

    _change_status(db, c, CycleStatus.CANCELLED, current_user, "CYCLE_CANCELLED")

    commit_or_409(db)
    db.refresh(c)
    set_etag(response, c.version)
    return to_out(c)


@router.post("/{cycle_id}/archive", response_model=CycleOut)
def archive_cycle(
    cycle_id: UUID,
    response: Response,
    if_match: str | None = Header(default=None, alias="If-Match"),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_hr),
):
    c = get_cycle_for_update_or_404(db, cycle_id)
    check_if_match(if_match, c.version)

    _change_status(db, c, CycleStatus.ARCHIVED, current_user, "CYCLE_ARCHIVED")

    commit_or_409(db)
    db.refresh(c)
    set_etag(response, c.version)
    return to_out(c)


@router.get("/{cycle_id}/progress", response_model=CycleProgressOut)
def get_cycle_progress(
    cycle_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """HR, or any reviewer with an assignment in this cycle."""
    c = get_cycle_or_404(db, cycle_id)

    if not user_is_hr(db, current_user):
        emp = get_employee_for_user(db, current_user)
        if not emp or not any(a.reviewer_id == emp.id for a in c.assignments):
            raise HTTPException(status_code=403, detail="Only HR or a reviewer in this cycle can view progress")

    summary = progress_summary(c)
    return CycleProgressOut(cycle_id=str(c.id), status=c.status, **summary)
