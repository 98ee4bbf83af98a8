"""
Assignment status changes and the cycle progress counters derived from them.

Assignments belong to the cycle aggregate, so every move goes through here:
the transition is checked, the counters are recomputed and the cycle row is
touched (bumping its version).
"""
from uuid import UUID

from appraisal.core.clock import utcnow
from appraisal.core.errors import NotFoundError
from appraisal.core.statuses import AssignmentStatus, transition
from appraisal.models.appraisal_cycle import AppraisalCycle
from appraisal.models.cycle_assignment import CycleAssignment


def find_assignment(cycle: AppraisalCycle, employee_id: UUID) -> CycleAssignment | None:
    for a in cycle.assignments:
        if a.employee_id == employee_id:
            return a
    return None


def get_assignment_or_404(cycle: AppraisalCycle, employee_id: UUID) -> CycleAssignment:
    a = find_assignment(cycle, employee_id)
    if not a:
        raise NotFoundError("Assignment not found")
    return a


def move_assignment(cycle: AppraisalCycle, assignment: CycleAssignment, target: AssignmentStatus) -> None:
    assignment.status = transition(assignment.status, target).value
    refresh_progress(cycle)


def refresh_progress(cycle: AppraisalCycle) -> None:
    total = len(cycle.assignments)
    completed = sum(1 for a in cycle.assignments if a.status == AssignmentStatus.COMPLETED.value)

    cycle.total_employees = total
    cycle.completed_evaluations = completed
    cycle.completion_percentage = round(completed / total * 100, 2) if total else 0.0
    cycle.updated_at = utcnow()


def progress_summary(cycle: AppraisalCycle) -> dict:
    counts = {s.value: 0 for s in AssignmentStatus}
    for a in cycle.assignments:
        counts[a.status] = counts.get(a.status, 0) + 1

    total = len(cycle.assignments)
    completed = counts[AssignmentStatus.COMPLETED.value]
    return {
        "total": total,
        "by_status": counts,
        "completed": completed,
        "completion_rate": round(completed / total * 100, 2) if total else 0.0,
    }
