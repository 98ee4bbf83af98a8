from appraisal.models.appraisal_cycle import AppraisalCycle
from appraisal.models.appraisal_dispute import AppraisalDispute
from appraisal.models.appraisal_evaluation import AppraisalEvaluation
from appraisal.models.appraisal_template import AppraisalTemplate
from appraisal.models.audit_event import AuditEvent
from appraisal.models.cycle_assignment import CycleAssignment
from appraisal.models.employee import Employee
from appraisal.models.organization import Department, Position
from appraisal.models.rbac import Role, UserRole
from appraisal.models.user import User

__all__ = [ "AppraisalCycle", "AppraisalDispute", "AppraisalEvaluation",
           "AppraisalTemplate", "AuditEvent", "CycleAssignment", "Department",
           "Employee", "Position", "Role", "UserRole", "User" ]
