from uuid import UUID

from fastapi import HTTPException
from sqlalchemy.orm import Session

from appraisal.core.rbac import RoleName, has_role
from appraisal.models.appraisal_evaluation import AppraisalEvaluation
from appraisal.models.cycle_assignment import CycleAssignment
from appraisal.models.employee import Employee
from appraisal.models.user import User


def get_employee_for_user(db: Session, user: User) -> Employee | None:
    return db.query(Employee).filter(Employee.user_id == user.id).one_or_none()


def user_is_hr(db: Session, user: User) -> bool:
    return has_role(db, user, RoleName.HR)


def assert_user_is_employee(db: Session, user: User, employee_id: UUID) -> Employee:
    emp = get_employee_for_user(db, user)
    if not emp or emp.id != employee_id:
        raise HTTPException(status_code=403, detail="Only the evaluated employee can perform this action")
    return emp


def assert_user_is_reviewer(db: Session, user: User, assignment: CycleAssignment):
    emp = get_employee_for_user(db, user)
    if not emp or emp.id != assignment.reviewer_id:
        raise HTTPException(status_code=403, detail="Only the assigned reviewer can perform this action")


def assert_user_is_reviewer_or_hr(db: Session, user: User, assignment: CycleAssignment):
    if user_is_hr(db, user):
        return
    assert_user_is_reviewer(db, user, assignment)


def assert_user_is_employee_or_hr(db: Session, user: User, employee_id: UUID):
    if user_is_hr(db, user):
        return
    assert_user_is_employee(db, user, employee_id)


def assert_can_view_evaluation(db: Session, user: User, ev: AppraisalEvaluation):
    """HR, the evaluated employee, or the reviewer."""
    if user_is_hr(db, user):
        return
    emp = get_employee_for_user(db, user)
    if not emp or emp.id not in (ev.employee_id, ev.reviewer_id):
        raise HTTPException(status_code=403, detail="Not allowed to view this evaluation")


def assert_can_view_history(db: Session, user: User, employee_id: UUID):
    """HR, the employee, or anyone who has reviewed them in some cycle."""
    if user_is_hr(db, user):
        return
    emp = get_employee_for_user(db, user)
    if emp and emp.id == employee_id:
        return
    reviewed = emp is not None and (
        db.query(CycleAssignment.id)
        .filter(CycleAssignment.employee_id == employee_id, CycleAssignment.reviewer_id == emp.id)
        .first()
        is not None
    )
    if not reviewed:
        raise HTTPException(status_code=403, detail="Not allowed to view this employee's appraisal history")
