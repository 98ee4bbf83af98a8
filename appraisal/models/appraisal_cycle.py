import uuid
from datetime import date, datetime

import sqlalchemy as sa
from sqlalchemy import Boolean, CheckConstraint, Date, DateTime, Float, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from appraisal.core.clock import utcnow
from appraisal.core.statuses import AppraisalType, CycleStatus, sql_in
from appraisal.db.base import Base, JSONDocument


class AppraisalCycle(Base):
    __tablename__ = "appraisal_cycles"
    __table_args__ = (
        CheckConstraint(
            f"status IN ({sql_in(CycleStatus)})",
            name="ck_appraisal_cycles_status",
        ),
        CheckConstraint(
            f"appraisal_type IN ({sql_in(AppraisalType)})",
            name="ck_appraisal_cycles_type",
        ),
        CheckConstraint("end_date > start_date", name="ck_appraisal_cycles_dates"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    code: Mapped[str] = mapped_column(String(50), unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    appraisal_type: Mapped[str] = mapped_column(String(20), nullable=False)

    template_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("appraisal_templates.id", ondelete="RESTRICT"), nullable=False, index=True
    )

    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    self_assessment_deadline: Mapped[date | None] = mapped_column(Date, nullable=True)
    manager_review_deadline: Mapped[date] = mapped_column(Date, nullable=False)
    hr_review_deadline: Mapped[date | None] = mapped_column(Date, nullable=True)
    dispute_deadline: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Scope, stored as lists of id strings
    target_employee_ids: Mapped[list] = mapped_column(JSONDocument, nullable=False, default=list)
    target_department_ids: Mapped[list] = mapped_column(JSONDocument, nullable=False, default=list)
    target_position_ids: Mapped[list] = mapped_column(JSONDocument, nullable=False, default=list)
    exclude_employee_ids: Mapped[list] = mapped_column(JSONDocument, nullable=False, default=list)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default=CycleStatus.DRAFT.value)

    results_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    published_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    total_employees: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed_evaluations: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completion_percentage: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    created_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    updated_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=sa.func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=sa.func.now(), onupdate=utcnow, nullable=False
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    template = relationship("AppraisalTemplate")
    assignments = relationship(
        "CycleAssignment",
        back_populates="cycle",
        cascade="all, delete-orphan",
        order_by="CycleAssignment.assigned_at",
    )

    __mapper_args__ = {"version_id_col": version}
