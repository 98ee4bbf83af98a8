import logging
from datetime import timedelta
from uuid import UUID

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from appraisal.core.access import assert_user_is_employee_or_hr, get_employee_for_user, user_is_hr
from appraisal.core.audit import log_event
from appraisal.core.clock import today, utcnow
from appraisal.core.cycle_progress import find_assignment, move_assignment
from appraisal.core.errors import BadRequestError, ConflictError, NotFoundError
from appraisal.core.loaders import (
    get_cycle_for_update_or_404,
    get_dispute_or_404,
    get_evaluation_or_404,
    get_template_or_404,
)
from appraisal.core.optimistic_lock import check_if_match, commit_or_409, set_etag
from appraisal.core.rbac import require_hr
from appraisal.core.scoring import is_passed, performance_category
from appraisal.core.security import get_current_user
from appraisal.core.statuses import (
    OPEN_CYCLE_STATUSES,
    OPEN_DISPUTE_STATUSES,
    AssignmentStatus,
    DisputeStatus,
    EvaluationStatus,
    ResolutionType,
    transition,
)
from appraisal.db.session import get_db
from appraisal.models.appraisal_dispute import AppraisalDispute
from appraisal.models.appraisal_evaluation import AppraisalEvaluation
from appraisal.models.user import User
from appraisal.schemas.appraisal_dispute import (
    DisputeCreate,
    DisputeEscalateIn,
    DisputeOut,
    DisputeResolveIn,
    DisputeReviewIn,
)
from appraisal.schemas.pagination import paginated

logger = logging.getLogger(__name__)

router = APIRouter(tags=["disputes"])

OPEN_VALUES = tuple(s.value for s in OPEN_DISPUTE_STATUSES)
DISPUTABLE_EVALUATION_STATUSES = (
    EvaluationStatus.PUBLISHED.value,
    EvaluationStatus.ACKNOWLEDGED.value,
)


def to_out(d: AppraisalDispute) -> DisputeOut:
    return DisputeOut(
        id=str(d.id),
        evaluation_id=str(d.evaluation_id),
        employee_id=str(d.employee_id),
        cycle_id=str(d.cycle_id),
        reason=d.reason,
        disputed_section_ids=list(d.disputed_section_ids or []),
        disputed_criterion_ids=list(d.disputed_criterion_ids or []),
        proposed_rating=d.proposed_rating,
        supporting_documents=list(d.supporting_documents or []),
        additional_comments=d.additional_comments,
        status=d.status,
        reviewer_user_id=str(d.reviewer_user_id) if d.reviewer_user_id else None,
        reviewed_at=d.reviewed_at,
        review_comments=d.review_comments,
        resolution_type=d.resolution_type,
        adjusted_rating=d.adjusted_rating,
        resolution_notes=d.resolution_notes,
        resolved_at=d.resolved_at,
        submitted_at=d.submitted_at,
        deadline=d.deadline,
        is_escalated=d.is_escalated,
        escalated_to_user_id=str(d.escalated_to_user_id) if d.escalated_to_user_id else None,
        escalated_at=d.escalated_at,
        withdrawn_at=d.withdrawn_at,
        version=d.version,
    )


def _has_open_dispute(db: Session, evaluation_id: UUID) -> bool:
    return (
        db.query(AppraisalDispute.id)
        .filter(
            AppraisalDispute.evaluation_id == evaluation_id,
            AppraisalDispute.status.in_(OPEN_VALUES),
        )
        .first()
        is not None
    )


def _assert_open(d: AppraisalDispute, action: str) -> None:
    if d.status not in OPEN_VALUES:
        raise BadRequestError(f"Only open disputes can be {action} (current: {d.status})")


@router.post("/disputes", response_model=DisputeOut, status_code=status.HTTP_201_CREATED)
def create_dispute(
    payload: DisputeCreate,
    response: Response,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    The evaluated employee contests a published evaluation. The evaluation
    and its assignment move to DISPUTED until the dispute closes.
    """
    emp = get_employee_for_user(db, current_user)
    if not emp:
        raise HTTPException(status_code=403, detail="Only employees can raise disputes")

    ev = get_evaluation_or_404(db, payload.evaluation_id)
    if ev.employee_id != emp.id:
        raise BadRequestError("Evaluation does not belong to this employee")

    if _has_open_dispute(db, ev.id):
        raise ConflictError("An open dispute already exists for this evaluation")

    if ev.status not in DISPUTABLE_EVALUATION_STATUSES:
        raise BadRequestError(f"Only published evaluations can be disputed (current: {ev.status})")

    c = get_cycle_for_update_or_404(db, ev.cycle_id)
    if c.dispute_deadline is not None:
        deadline = c.dispute_deadline
    else:
        template = get_template_or_404(db, ev.template_id)
        deadline = today() + timedelta(days=template.dispute_period_days)

    d = AppraisalDispute(
        evaluation_id=ev.id,
        employee_id=emp.id,
        cycle_id=c.id,
        reason=payload.reason,
        disputed_section_ids=payload.disputed_section_ids,
        disputed_criterion_ids=payload.disputed_criterion_ids,
        proposed_rating=payload.proposed_rating,
        supporting_documents=payload.supporting_documents,
        additional_comments=payload.additional_comments,
        status=DisputeStatus.SUBMITTED.value,
        submitted_at=utcnow(),
        deadline=deadline,
    )
    db.add(d)

    ev.status = transition(ev.status, EvaluationStatus.DISPUTED).value
    a = find_assignment(c, ev.employee_id)
    if a:
        move_assignment(c, a, AssignmentStatus.DISPUTED)
    db.flush()

    log_event(
        db=db,
        actor=current_user,
        action="DISPUTE_CREATED",
        entity_type="appraisal_dispute",
        entity_id=d.id,
        metadata={"evaluation_id": str(ev.id), "deadline": str(deadline)},
    )

    commit_or_409(db, integrity_detail="An open dispute already exists for this evaluation")
    db.refresh(d)
    logger.info("Dispute %s opened on evaluation %s", d.id, ev.id)
    set_etag(response, d.version)
    return to_out(d)


@router.get("/disputes")
def list_disputes(
    status_filter: str | None = Query(default=None, alias="status"),
    cycle_id: UUID | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    include_pagination: bool = Query(default=False, description="Include pagination metadata"),
    db: Session = Depends(get_db),
    _: User = Depends(require_hr),
):
    query = db.query(AppraisalDispute)
    if status_filter:
        query = query.filter(AppraisalDispute.status == status_filter)
    if cycle_id:
        query = query.filter(AppraisalDispute.cycle_id == cycle_id)

    total = query.count()
    rows = query.order_by(AppraisalDispute.submitted_at.desc()).offset(offset).limit(limit).all()
    items = [to_out(d) for d in rows]

    return paginated(items, total=total, limit=limit, offset=offset, include_pagination=include_pagination)


@router.get("/employees/{employee_id}/disputes", response_model=list[DisputeOut])
def list_employee_disputes(
    employee_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    assert_user_is_employee_or_hr(db, current_user, employee_id)

    rows = (
        db.query(AppraisalDispute)
        .filter(AppraisalDispute.employee_id == employee_id)
        .order_by(AppraisalDispute.submitted_at.desc())
        .all()
    )
    return [to_out(d) for d in rows]


@router.get("/disputes/{dispute_id}", response_model=DisputeOut)
def get_dispute(
    dispute_id: UUID,
    response: Response,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    d = get_dispute_or_404(db, dispute_id)
    if not user_is_hr(db, current_user):
        emp = get_employee_for_user(db, current_user)
        if not emp or emp.id != d.employee_id:
            raise NotFoundError("Dispute not found")
    set_etag(response, d.version)
    return to_out(d)


@router.post("/disputes/{dispute_id}/review", response_model=DisputeOut)
def start_dispute_review(
    dispute_id: UUID,
    response: Response,
    payload: DisputeReviewIn | None = None,
    if_match: str | None = Header(default=None, alias="If-Match"),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_hr),
):
    d = get_dispute_or_404(db, dispute_id)
    check_if_match(if_match, d.version)

    d.status = transition(d.status, DisputeStatus.UNDER_REVIEW).value
    d.reviewer_user_id = current_user.id
    d.reviewed_at = utcnow()
    if payload and payload.comments is not None:
        d.review_comments = payload.comments

    log_event(
        db=db,
        actor=current_user,
        action="DISPUTE_REVIEW_STARTED",
        entity_type="appraisal_dispute",
        entity_id=d.id,
    )

    commit_or_409(db)
    db.refresh(d)
    set_etag(response, d.version)
    return to_out(d)


@router.post("/disputes/{dispute_id}/escalate", response_model=DisputeOut)
def escalate_dispute(
    dispute_id: UUID,
    payload: DisputeEscalateIn,
    response: Response,
    if_match: str | None = Header(default=None, alias="If-Match"),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_hr),
):
    d = get_dispute_or_404(db, dispute_id)
    check_if_match(if_match, d.version)
    _assert_open(d, "escalated")

    target = db.get(User, payload.escalated_to_user_id)
    if not target or not target.is_active:
        raise NotFoundError("Escalation target user not found")

    d.is_escalated = True
    d.escalated_to_user_id = target.id
    d.escalated_at = utcnow()

    log_event(
        db=db,
        actor=current_user,
        action="DISPUTE_ESCALATED",
        entity_type="appraisal_dispute",
        entity_id=d.id,
        metadata={"escalated_to_user_id": str(target.id)},
    )

    commit_or_409(db)
    db.refresh(d)
    set_etag(response, d.version)
    return to_out(d)


@router.post("/disputes/{dispute_id}/resolve", response_model=DisputeOut)
def resolve_dispute(
    dispute_id: UUID,
    payload: DisputeResolveIn,
    response: Response,
    if_match: str | None = Header(default=None, alias="If-Match"),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_hr),
):
    """
    Close the dispute as RESOLVED or REJECTED.

    RATING_ADJUSTED with an adjusted rating rewrites the evaluation's final
    rating and category. A RESOLVED dispute with REEVALUATION_ORDERED sends
    the evaluation back to the manager; every other outcome finalizes it.
    """
    d = get_dispute_or_404(db, dispute_id)
    check_if_match(if_match, d.version)

    target_status = DisputeStatus(payload.status)
    reopen = (
        target_status == DisputeStatus.RESOLVED
        and payload.resolution_type == ResolutionType.REEVALUATION_ORDERED
    )

    c = get_cycle_for_update_or_404(db, d.cycle_id)
    if reopen and c.status not in OPEN_CYCLE_STATUSES:
        raise BadRequestError(f"Re-evaluation needs an open cycle (status: {c.status})")

    d.status = transition(d.status, target_status).value

    now = utcnow()
    d.resolution_type = payload.resolution_type.value
    d.adjusted_rating = payload.adjusted_rating
    d.resolution_notes = payload.resolution_notes
    d.resolved_at = now
    d.reviewer_user_id = current_user.id
    d.reviewed_at = d.reviewed_at or now
    if payload.review_comments is not None:
        d.review_comments = payload.review_comments

    ev: AppraisalEvaluation = get_evaluation_or_404(db, d.evaluation_id)
    previous = ev.final_rating

    if payload.resolution_type == ResolutionType.RATING_ADJUSTED and payload.adjusted_rating is not None:
        template = get_template_or_404(db, ev.template_id)
        ev.final_rating = round(payload.adjusted_rating, 2)
        ev.performance_category = performance_category(ev.final_rating).value
        ev.is_passed = is_passed(ev.final_rating, template.passing_score)

    a = find_assignment(c, ev.employee_id)

    if reopen:
        ev.status = transition(ev.status, EvaluationStatus.DRAFT).value
        # The reworked result must be published and acknowledged afresh
        ev.published_at = None
        ev.acknowledged_at = None
        ev.acknowledged_by_user_id = None
        ev.employee_comments = None
        if a:
            move_assignment(c, a, AssignmentStatus.MANAGER_REVIEW_PENDING)
    else:
        ev.status = transition(ev.status, EvaluationStatus.FINALIZED).value
        if a:
            move_assignment(c, a, AssignmentStatus.COMPLETED)

    log_event(
        db=db,
        actor=current_user,
        action="DISPUTE_RESOLVED" if target_status == DisputeStatus.RESOLVED else "DISPUTE_REJECTED",
        entity_type="appraisal_dispute",
        entity_id=d.id,
        metadata={
            "resolution_type": d.resolution_type,
            "from_rating": previous,
            "to_rating": ev.final_rating,
            "evaluation_status": ev.status,
        },
    )

    commit_or_409(db)
    db.refresh(d)
    logger.info("Dispute %s closed as %s (%s)", d.id, d.status, d.resolution_type)
    set_etag(response, d.version)
    return to_out(d)


@router.post("/disputes/{dispute_id}/withdraw", response_model=DisputeOut)
def withdraw_dispute(
    dispute_id: UUID,
    response: Response,
    if_match: str | None = Header(default=None, alias="If-Match"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    d = get_dispute_or_404(db, dispute_id)

    emp = get_employee_for_user(db, current_user)
    if not emp or emp.id != d.employee_id:
        raise BadRequestError("Only the employee who raised the dispute can withdraw it")
    check_if_match(if_match, d.version)
    _assert_open(d, "withdrawn")

    d.status = transition(d.status, DisputeStatus.WITHDRAWN).value
    d.withdrawn_at = utcnow()

    ev = get_evaluation_or_404(db, d.evaluation_id)
    back_to = EvaluationStatus.ACKNOWLEDGED if ev.acknowledged_at else EvaluationStatus.PUBLISHED
    ev.status = transition(ev.status, back_to).value

    c = get_cycle_for_update_or_404(db, d.cycle_id)
    a = find_assignment(c, ev.employee_id)
    if a:
        move_assignment(c, a, AssignmentStatus.COMPLETED)

    log_event(
        db=db,
        actor=current_user,
        action="DISPUTE_WITHDRAWN",
        entity_type="appraisal_dispute",
        entity_id=d.id,
        metadata={"evaluation_status": ev.status},
    )

    commit_or_409(db)
    db.refresh(d)
    set_etag(response, d.version)
    return to_out(d)
