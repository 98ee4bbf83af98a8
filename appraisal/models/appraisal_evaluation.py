import uuid
from datetime import datetime

import sqlalchemy as sa
from sqlalchemy import Boolean, CheckConstraint, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from appraisal.core.clock import utcnow
from appraisal.core.statuses import EvaluationStatus, PerformanceCategory, sql_in
from appraisal.db.base import Base, JSONDocument


class AppraisalEvaluation(Base):
    __tablename__ = "appraisal_evaluations"
    __table_args__ = (
        UniqueConstraint("cycle_id", "employee_id", name="uq_appraisal_evaluation_cycle_employee"),
        CheckConstraint(
            f"status IN ({sql_in(EvaluationStatus)})",
            name="ck_appraisal_evaluations_status",
        ),
        CheckConstraint(
            f"performance_category IS NULL OR performance_category IN ({sql_in(PerformanceCategory)})",
            name="ck_appraisal_evaluations_category",
        ),
        CheckConstraint(
            "final_rating IS NULL OR (final_rating >= 0 AND final_rating <= 100)",
            name="ck_appraisal_evaluations_final_rating",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    cycle_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("appraisal_cycles.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    template_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("appraisal_templates.id", ondelete="RESTRICT"), nullable=False
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("employees.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    reviewer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("employees.id", ondelete="RESTRICT"), nullable=False, index=True
    )

    # {"submitted_at", "sections": [...], "overall_comments"}
    self_assessment: Mapped[dict | None] = mapped_column(JSONDocument, nullable=True)
    # {"submitted_at", "sections": [... with "section_score"], "overall_rating", "strengths", ...}
    manager_evaluation: Mapped[dict | None] = mapped_column(JSONDocument, nullable=True)
    # {"reviewed_by_user_id", "reviewed_at", "adjusted_rating", "adjustment_reason", "comments"}
    hr_review: Mapped[dict | None] = mapped_column(JSONDocument, nullable=True)

    final_rating: Mapped[float | None] = mapped_column(Float, nullable=True)
    performance_category: Mapped[str | None] = mapped_column(String(30), nullable=True)
    is_passed: Mapped[bool | None] = mapped_column(Boolean, nullable=True)

    status: Mapped[str] = mapped_column(String(30), nullable=False, default=EvaluationStatus.DRAFT.value)

    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    acknowledged_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    acknowledged_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    employee_comments: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=sa.func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=sa.func.now(), onupdate=utcnow, nullable=False
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}
