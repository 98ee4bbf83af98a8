import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Header, Response
from sqlalchemy.orm import Session

from appraisal.core.access import (
    assert_can_view_evaluation,
    assert_can_view_history,
    assert_user_is_employee,
    assert_user_is_reviewer_or_hr,
    get_employee_for_user,
    user_is_hr,
)
from appraisal.core.audit import log_event
from appraisal.core.clock import utcnow
from appraisal.core.cycle_progress import find_assignment, get_assignment_or_404, move_assignment
from appraisal.core.errors import BadRequestError, NotFoundError
from appraisal.core.loaders import (
    find_evaluation,
    get_cycle_for_update_or_404,
    get_evaluation_or_404,
    get_template_or_404,
)
from appraisal.core.optimistic_lock import check_if_match, commit_or_409, set_etag
from appraisal.core.rbac import require_hr
from appraisal.core.scoring import (
    compute_final_rating,
    is_passed,
    performance_category,
    rating_label,
    validate_ratings,
)
from appraisal.core.security import get_current_user
from appraisal.core.statuses import OPEN_CYCLE_STATUSES, AssignmentStatus, CycleStatus, EvaluationStatus, transition
from appraisal.db.session import get_db
from appraisal.models.appraisal_cycle import AppraisalCycle
from appraisal.models.appraisal_evaluation import AppraisalEvaluation
from appraisal.models.appraisal_template import AppraisalTemplate
from appraisal.models.cycle_assignment import CycleAssignment
from appraisal.models.user import User
from appraisal.schemas.appraisal_evaluation import (
    AcknowledgeIn,
    EvaluationOut,
    HrReviewIn,
    ManagerEvaluationIn,
    SelfAssessmentIn,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["evaluations"])

LOCKED_ASSIGNMENT_STATUSES = (AssignmentStatus.COMPLETED.value, AssignmentStatus.DISPUTED.value)
SELF_ASSESSMENT_OPEN_STATUSES = (
    AssignmentStatus.NOT_STARTED.value,
    AssignmentStatus.SELF_ASSESSMENT_PENDING.value,
)
HR_REVIEWABLE_STATUSES = (
    EvaluationStatus.MANAGER_REVIEW_SUBMITTED.value,
    EvaluationStatus.HR_REVIEWED.value,
)


def to_out(ev: AppraisalEvaluation, rating_scale: dict | None = None, hide_results: bool = False) -> EvaluationOut:
    """
    `hide_results` blanks the manager's assessment and the final rating; used
    when the employee looks at an evaluation that has not been published.
    """
    manager = ev.manager_evaluation
    label = None
    if manager and rating_scale:
        label = rating_label(manager.get("overall_rating"), rating_scale)

    return EvaluationOut(
        id=str(ev.id),
        cycle_id=str(ev.cycle_id),
        template_id=str(ev.template_id),
        employee_id=str(ev.employee_id),
        reviewer_id=str(ev.reviewer_id),
        self_assessment=ev.self_assessment,
        manager_evaluation=None if hide_results else manager,
        hr_review=None if hide_results else ev.hr_review,
        final_rating=None if hide_results else ev.final_rating,
        performance_category=None if hide_results else ev.performance_category,
        is_passed=None if hide_results else ev.is_passed,
        overall_rating_label=None if hide_results else label,
        status=ev.status,
        published_at=ev.published_at,
        acknowledged_at=ev.acknowledged_at,
        acknowledged_by_user_id=str(ev.acknowledged_by_user_id) if ev.acknowledged_by_user_id else None,
        employee_comments=ev.employee_comments,
        created_at=ev.created_at,
        updated_at=ev.updated_at,
        version=ev.version,
    )


def _viewer_out(db: Session, user: User, ev: AppraisalEvaluation) -> EvaluationOut:
    assert_can_view_evaluation(db, user, ev)
    return _present(db, user, ev)


def _present(db: Session, user: User, ev: AppraisalEvaluation) -> EvaluationOut:
    hide = False
    if ev.published_at is None and not user_is_hr(db, user):
        emp = get_employee_for_user(db, user)
        hide = emp is not None and emp.id == ev.employee_id

    template = db.get(AppraisalTemplate, ev.template_id)
    return to_out(ev, template.rating_scale if template else None, hide_results=hide)


def _new_evaluation(c: AppraisalCycle, a: CycleAssignment) -> AppraisalEvaluation:
    return AppraisalEvaluation(
        cycle_id=c.id,
        template_id=c.template_id,
        employee_id=a.employee_id,
        reviewer_id=a.reviewer_id,
        status=EvaluationStatus.DRAFT.value,
    )


@router.post("/cycles/{cycle_id}/employees/{employee_id}/self-assessment", response_model=EvaluationOut)
def submit_self_assessment(
    cycle_id: UUID,
    employee_id: UUID,
    payload: SelfAssessmentIn,
    response: Response,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    assert_user_is_employee(db, current_user, employee_id)

    c = get_cycle_for_update_or_404(db, cycle_id)
    if c.status not in OPEN_CYCLE_STATUSES:
        raise BadRequestError(f"Cycle is not open for appraisal (status: {c.status})")

    a = get_assignment_or_404(c, employee_id)
    if not a.self_assessment_required:
        raise BadRequestError("Self-assessment is not required for this assignment")
    if a.status not in SELF_ASSESSMENT_OPEN_STATUSES:
        raise BadRequestError(f"Self-assessment is closed for this assignment (status: {a.status})")

    template = get_template_or_404(db, c.template_id)
    sections = [s.model_dump(mode="json") for s in payload.sections]
    validate_ratings(sections, template.sections, template.rating_scale)

    ev = find_evaluation(db, c.id, employee_id)
    if ev is None:
        ev = _new_evaluation(c, a)
        db.add(ev)

    ev.self_assessment = {
        "submitted_at": utcnow().isoformat(),
        "sections": sections,
        "overall_comments": payload.overall_comments,
    }
    ev.status = transition(ev.status, EvaluationStatus.SELF_ASSESSMENT_SUBMITTED).value
    move_assignment(c, a, AssignmentStatus.MANAGER_REVIEW_PENDING)
    db.flush()

    log_event(
        db=db,
        actor=current_user,
        action="SELF_ASSESSMENT_SUBMITTED",
        entity_type="appraisal_evaluation",
        entity_id=ev.id,
        metadata={"cycle_id": str(c.id), "employee_id": str(employee_id)},
    )

    commit_or_409(db, integrity_detail="Evaluation already exists for this employee in the cycle")
    db.refresh(ev)
    set_etag(response, ev.version)
    return to_out(ev, template.rating_scale)


@router.put("/cycles/{cycle_id}/employees/{employee_id}/evaluation", response_model=EvaluationOut)
def submit_manager_evaluation(
    cycle_id: UUID,
    employee_id: UUID,
    payload: ManagerEvaluationIn,
    response: Response,
    if_match: str | None = Header(default=None, alias="If-Match"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Create or replace the manager's evaluation and recompute the final rating.

    The first submission in a cycle moves it from ACTIVE to IN_PROGRESS.
    """
    c = get_cycle_for_update_or_404(db, cycle_id)
    a = get_assignment_or_404(c, employee_id)
    assert_user_is_reviewer_or_hr(db, current_user, a)

    if c.status not in OPEN_CYCLE_STATUSES:
        raise BadRequestError(f"Cycle is not open for appraisal (status: {c.status})")
    if a.status in LOCKED_ASSIGNMENT_STATUSES:
        raise BadRequestError(f"Evaluation can no longer be changed (assignment status: {a.status})")

    template = get_template_or_404(db, c.template_id)
    sections = [s.model_dump(mode="json") for s in payload.sections]
    validate_ratings(sections, template.sections, template.rating_scale)

    self_sections = None
    if payload.self_assessment is not None:
        self_sections = [s.model_dump(mode="json") for s in payload.self_assessment.sections]
        validate_ratings(self_sections, template.sections, template.rating_scale)

    final_rating, section_scores = compute_final_rating(sections, template.sections, template.rating_scale)
    for s in sections:
        s["section_score"] = section_scores.get(s["section_id"], 0.0)

    ev = find_evaluation(db, c.id, employee_id)
    if ev is None:
        ev = _new_evaluation(c, a)
        db.add(ev)
    else:
        check_if_match(if_match, ev.version)

    now = utcnow()
    manager = payload.model_dump(mode="json", exclude={"sections", "self_assessment"})
    manager.update(
        sections=sections,
        submitted_at=now.isoformat(),
        submitted_by_user_id=str(current_user.id),
    )
    ev.manager_evaluation = manager

    if self_sections is not None and ev.self_assessment is None:
        ev.self_assessment = {
            "submitted_at": now.isoformat(),
            "sections": self_sections,
            "overall_comments": payload.self_assessment.overall_comments,
        }

    ev.final_rating = final_rating
    ev.performance_category = performance_category(final_rating).value
    ev.is_passed = is_passed(final_rating, template.passing_score)
    ev.status = transition(ev.status, EvaluationStatus.MANAGER_REVIEW_SUBMITTED).value

    move_assignment(c, a, AssignmentStatus.HR_REVIEW_PENDING)
    if c.status == CycleStatus.ACTIVE.value:
        c.status = transition(c.status, CycleStatus.IN_PROGRESS).value
    c.updated_by_user_id = current_user.id
    db.flush()

    log_event(
        db=db,
        actor=current_user,
        action="MANAGER_EVALUATION_SUBMITTED",
        entity_type="appraisal_evaluation",
        entity_id=ev.id,
        metadata={
            "cycle_id": str(c.id),
            "employee_id": str(employee_id),
            "final_rating": final_rating,
            "performance_category": ev.performance_category,
        },
    )

    commit_or_409(db, integrity_detail="Evaluation already exists for this employee in the cycle")
    db.refresh(ev)
    logger.info("Evaluation %s scored %.2f (%s)", ev.id, final_rating, ev.performance_category)
    set_etag(response, ev.version)
    return to_out(ev, template.rating_scale)


@router.get("/cycles/{cycle_id}/employees/{employee_id}/evaluation", response_model=EvaluationOut)
def get_cycle_employee_evaluation(
    cycle_id: UUID,
    employee_id: UUID,
    response: Response,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ev = find_evaluation(db, cycle_id, employee_id)
    if not ev:
        raise NotFoundError("Evaluation not found")
    out = _viewer_out(db, current_user, ev)
    set_etag(response, ev.version)
    return out


@router.get("/evaluations/{evaluation_id}", response_model=EvaluationOut)
def get_evaluation(
    evaluation_id: UUID,
    response: Response,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ev = get_evaluation_or_404(db, evaluation_id)
    out = _viewer_out(db, current_user, ev)
    set_etag(response, ev.version)
    return out


@router.get("/employees/{employee_id}/evaluations", response_model=list[EvaluationOut])
def list_employee_evaluations(
    employee_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Performance history, newest cycle first. Also open to the employee's reviewers."""
    assert_can_view_history(db, current_user, employee_id)

    rows = (
        db.query(AppraisalEvaluation)
        .join(AppraisalCycle, AppraisalCycle.id == AppraisalEvaluation.cycle_id)
        .filter(AppraisalEvaluation.employee_id == employee_id)
        .order_by(AppraisalCycle.start_date.desc())
        .all()
    )
    return [_present(db, current_user, ev) for ev in rows]


@router.post("/evaluations/{evaluation_id}/acknowledge", response_model=EvaluationOut)
def acknowledge_evaluation(
    evaluation_id: UUID,
    response: Response,
    payload: AcknowledgeIn | None = None,
    if_match: str | None = Header(default=None, alias="If-Match"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ev = get_evaluation_or_404(db, evaluation_id)
    assert_user_is_employee(db, current_user, ev.employee_id)
    check_if_match(if_match, ev.version)

    if ev.status != EvaluationStatus.PUBLISHED.value:
        raise BadRequestError(f"Only PUBLISHED evaluations can be acknowledged (current: {ev.status})")

    ev.status = transition(ev.status, EvaluationStatus.ACKNOWLEDGED).value
    ev.acknowledged_at = utcnow()
    ev.acknowledged_by_user_id = current_user.id
    ev.employee_comments = payload.comments if payload else None

    c = get_cycle_for_update_or_404(db, ev.cycle_id)
    a = find_assignment(c, ev.employee_id)
    if a:
        move_assignment(c, a, AssignmentStatus.COMPLETED)

    log_event(
        db=db,
        actor=current_user,
        action="EVALUATION_ACKNOWLEDGED",
        entity_type="appraisal_evaluation",
        entity_id=ev.id,
        metadata={"has_comments": bool(ev.employee_comments)},
    )

    commit_or_409(db)
    db.refresh(ev)
    set_etag(response, ev.version)
    template = db.get(AppraisalTemplate, ev.template_id)
    return to_out(ev, template.rating_scale if template else None)


@router.post("/evaluations/{evaluation_id}/hr-review", response_model=EvaluationOut)
def add_hr_review(
    evaluation_id: UUID,
    payload: HrReviewIn,
    response: Response,
    if_match: str | None = Header(default=None, alias="If-Match"),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_hr),
):
    ev = get_evaluation_or_404(db, evaluation_id)
    check_if_match(if_match, ev.version)

    if ev.status not in HR_REVIEWABLE_STATUSES:
        raise BadRequestError(f"HR review is not possible in status {ev.status}")

    template = get_template_or_404(db, ev.template_id)
    previous = ev.final_rating

    ev.hr_review = {
        "reviewed_by_user_id": str(current_user.id),
        "reviewed_at": utcnow().isoformat(),
        "adjusted_rating": payload.adjusted_rating,
        "adjustment_reason": payload.adjustment_reason,
        "comments": payload.comments,
        "previous_rating": previous,
    }

    if payload.adjusted_rating is not None:
        ev.final_rating = round(payload.adjusted_rating, 2)
        ev.performance_category = performance_category(ev.final_rating).value
        ev.is_passed = is_passed(ev.final_rating, template.passing_score)

    ev.status = transition(ev.status, EvaluationStatus.HR_REVIEWED).value

    log_event(
        db=db,
        actor=current_user,
        action="EVALUATION_HR_REVIEWED",
        entity_type="appraisal_evaluation",
        entity_id=ev.id,
        metadata={"from_rating": previous, "to_rating": ev.final_rating},
    )

    commit_or_409(db)
    db.refresh(ev)
    set_etag(response, ev.version)
    return to_out(ev, template.rating_scale)
