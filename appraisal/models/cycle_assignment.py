import uuid
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from appraisal.core.clock import utcnow
from appraisal.core.statuses import AssignmentStatus, sql_in
from appraisal.db.base import Base


class CycleAssignment(Base):
    """
    Part of the AppraisalCycle aggregate: only written through the cycle,
    which is re-versioned whenever an assignment changes.
    """

    __tablename__ = "cycle_assignments"
    __table_args__ = (
        UniqueConstraint("cycle_id", "employee_id", name="uq_cycle_assignment_employee"),
        CheckConstraint(
            f"status IN ({sql_in(AssignmentStatus)})",
            name="ck_cycle_assignments_status",
        ),
        CheckConstraint("employee_id <> reviewer_id", name="ck_cycle_assignments_not_self"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    cycle_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("appraisal_cycles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("employees.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    reviewer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("employees.id", ondelete="RESTRICT"), nullable=False, index=True
    )

    self_assessment_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status: Mapped[str] = mapped_column(String(30), nullable=False, default=AssignmentStatus.NOT_STARTED.value)

    assigned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    cycle = relationship("AppraisalCycle", back_populates="assignments")
