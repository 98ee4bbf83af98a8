from uuid import UUID

from sqlalchemy.orm import Session

from appraisal.core.errors import NotFoundError
from appraisal.models.appraisal_cycle import AppraisalCycle
from appraisal.models.appraisal_dispute import AppraisalDispute
from appraisal.models.appraisal_evaluation import AppraisalEvaluation
from appraisal.models.appraisal_template import AppraisalTemplate


def get_template_or_404(db: Session, template_id: UUID) -> AppraisalTemplate:
    t = db.get(AppraisalTemplate, template_id)
    if not t:
        raise NotFoundError("Template not found")
    return t


def get_cycle_or_404(db: Session, cycle_id: UUID) -> AppraisalCycle:
    c = db.get(AppraisalCycle, cycle_id)
    if not c:
        raise NotFoundError("Cycle not found")
    return c


def get_cycle_for_update_or_404(db: Session, cycle_id: UUID) -> AppraisalCycle:
    # Row lock serialises writers of the same cycle (no-op on SQLite)
    c = (
        db.query(AppraisalCycle)
        .filter(AppraisalCycle.id == cycle_id)
        .with_for_update()
        .one_or_none()
    )
    if not c:
        raise NotFoundError("Cycle not found")
    return c


def get_evaluation_or_404(db: Session, evaluation_id: UUID) -> AppraisalEvaluation:
    ev = db.get(AppraisalEvaluation, evaluation_id)
    if not ev:
        raise NotFoundError("Evaluation not found")
    return ev


def find_evaluation(db: Session, cycle_id: UUID, employee_id: UUID) -> AppraisalEvaluation | None:
    return (
        db.query(AppraisalEvaluation)
        .filter(
            AppraisalEvaluation.cycle_id == cycle_id,
            AppraisalEvaluation.employee_id == employee_id,
        )
        .one_or_none()
    )


def get_dispute_or_404(db: Session, dispute_id: UUID) -> AppraisalDispute:
    d = db.get(AppraisalDispute, dispute_id)
    if not d:
        raise NotFoundError("Dispute not found")
    return d
