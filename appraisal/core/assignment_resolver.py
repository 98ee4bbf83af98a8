"""
Pairs every eligible employee in a cycle's scope with a reviewer.

Scope precedence: explicit employees, then departments, then positions, then
the template's applicable departments, else everyone eligible. Exclusions are
applied last.

Reviewer: ACTIVE holder of the position the employee reports to, falling back
to the holder of their department's head position. Employees without a
reviewer are skipped.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from appraisal.core.directory import Directory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Pairing:
    employee_id: UUID
    reviewer_id: UUID


def _ids(values: list[str] | None) -> list[UUID]:
    return [UUID(str(v)) for v in values or []]


def eligible_employees(directory: Directory, cycle, template) -> list[UUID]:
    employees = _ids(cycle.target_employee_ids)
    departments = _ids(cycle.target_department_ids)
    positions = _ids(cycle.target_position_ids)
    template_departments = _ids(template.applicable_department_ids)

    if employees:
        found = directory.list_eligible_employees(employee_ids=employees)
    elif departments:
        found = directory.list_eligible_employees(department_ids=departments)
    elif positions:
        found = directory.list_eligible_employees(position_ids=positions)
    elif template_departments:
        found = directory.list_eligible_employees(department_ids=template_departments)
    else:
        found = directory.list_eligible_employees()

    excluded = set(_ids(cycle.exclude_employee_ids))
    return [e for e in found if e not in excluded]


def find_reviewer(directory: Directory, employee_id: UUID) -> UUID | None:
    position_id = directory.reports_to_position(employee_id)
    if position_id:
        holder = directory.position_holder(position_id)
        if holder and holder != employee_id:
            return holder

    head_position_id = directory.department_head_position(employee_id)
    if head_position_id:
        holder = directory.position_holder(head_position_id)
        if holder and holder != employee_id:
            return holder

    return None


def resolve_pairings(
    directory: Directory,
    cycle,
    template,
    already_assigned: set[UUID] | None = None,
) -> list[Pairing]:
    already_assigned = already_assigned or set()
    pairings: list[Pairing] = []

    for employee_id in eligible_employees(directory, cycle, template):
        if employee_id in already_assigned:
            continue

        reviewer_id = find_reviewer(directory, employee_id)
        if reviewer_id is None:
            logger.info(
                "No reviewer resolvable for employee %s in cycle %s; skipping",
                employee_id,
                cycle.code,
            )
            continue

        pairings.append(Pairing(employee_id=employee_id, reviewer_id=reviewer_id))
        already_assigned.add(employee_id)

    logger.info("Resolved %d assignment(s) for cycle %s", len(pairings), cycle.code)
    return pairings
