"""
Read-only view of the employee directory and org hierarchy.

The assignment resolver only talks to the `Directory` protocol; `SqlDirectory`
backs it with the employees / positions / departments tables. Tests can pass
any object with the same four methods.
"""
from __future__ import annotations

from typing import Iterable, Protocol
from uuid import UUID

from sqlalchemy.orm import Session

from appraisal.core.statuses import EmploymentStatus
from appraisal.models.employee import Employee
from appraisal.models.organization import Department, Position

ELIGIBLE_STATUSES = (EmploymentStatus.ACTIVE.value, EmploymentStatus.PROBATION.value)


class Directory(Protocol):
    def list_eligible_employees(
        self,
        *,
        employee_ids: Iterable[UUID] | None = None,
        department_ids: Iterable[UUID] | None = None,
        position_ids: Iterable[UUID] | None = None,
    ) -> list[UUID]: ...

    def reports_to_position(self, employee_id: UUID) -> UUID | None: ...

    def position_holder(self, position_id: UUID) -> UUID | None: ...

    def department_head_position(self, employee_id: UUID) -> UUID | None: ...


class SqlDirectory:
    def __init__(self, db: Session):
        self.db = db

    def list_eligible_employees(
        self,
        *,
        employee_ids: Iterable[UUID] | None = None,
        department_ids: Iterable[UUID] | None = None,
        position_ids: Iterable[UUID] | None = None,
    ) -> list[UUID]:
        """
        ACTIVE / PROBATION employees, narrowed by whichever filters are given.
        With no filter at all, everyone eligible is returned.
        """
        q = self.db.query(Employee.id).filter(Employee.status.in_(ELIGIBLE_STATUSES))

        if employee_ids is not None:
            q = q.filter(Employee.id.in_(list(employee_ids)))
        if department_ids is not None:
            q = q.filter(Employee.primary_department_id.in_(list(department_ids)))
        if position_ids is not None:
            q = q.filter(Employee.primary_position_id.in_(list(position_ids)))

        rows = q.order_by(Employee.employee_number.asc()).all()
        return [r[0] for r in rows]

    def reports_to_position(self, employee_id: UUID) -> UUID | None:
        emp = self.db.get(Employee, employee_id)
        if not emp:
            return None
        if emp.supervisor_position_id:
            return emp.supervisor_position_id
        if emp.primary_position_id:
            pos = self.db.get(Position, emp.primary_position_id)
            if pos:
                return pos.reports_to_position_id
        return None

    def position_holder(self, position_id: UUID) -> UUID | None:
        row = (
            self.db.query(Employee.id)
            .filter(
                Employee.primary_position_id == position_id,
                Employee.status == EmploymentStatus.ACTIVE.value,
            )
            .order_by(Employee.employee_number.asc())
            .first()
        )
        return row[0] if row else None

    def department_head_position(self, employee_id: UUID) -> UUID | None:
        emp = self.db.get(Employee, employee_id)
        if not emp or not emp.primary_department_id:
            return None
        dept = self.db.get(Department, emp.primary_department_id)
        return dept.head_position_id if dept else None
