import uuid
from datetime import date, datetime

import sqlalchemy as sa
from sqlalchemy import Boolean, CheckConstraint, Date, DateTime, Float, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from appraisal.core.clock import utcnow
from appraisal.core.statuses import DisputeStatus, ResolutionType, sql_in
from appraisal.db.base import Base, JSONDocument

_OPEN = "status IN ('SUBMITTED','UNDER_REVIEW')"


class AppraisalDispute(Base):
    __tablename__ = "appraisal_disputes"
    __table_args__ = (
        CheckConstraint(
            f"status IN ({sql_in(DisputeStatus)})",
            name="ck_appraisal_disputes_status",
        ),
        CheckConstraint(
            f"resolution_type IS NULL OR resolution_type IN ({sql_in(ResolutionType)})",
            name="ck_appraisal_disputes_resolution_type",
        ),
        # At most one open dispute per evaluation
        Index(
            "uq_appraisal_disputes_open_per_evaluation",
            "evaluation_id",
            unique=True,
            postgresql_where=sa.text(_OPEN),
            sqlite_where=sa.text(_OPEN),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    evaluation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("appraisal_evaluations.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("employees.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    cycle_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("appraisal_cycles.id", ondelete="RESTRICT"), nullable=False, index=True
    )

    reason: Mapped[str] = mapped_column(Text, nullable=False)
    disputed_section_ids: Mapped[list] = mapped_column(JSONDocument, nullable=False, default=list)
    disputed_criterion_ids: Mapped[list] = mapped_column(JSONDocument, nullable=False, default=list)
    proposed_rating: Mapped[float | None] = mapped_column(Float, nullable=True)
    supporting_documents: Mapped[list] = mapped_column(JSONDocument, nullable=False, default=list)
    additional_comments: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default=DisputeStatus.SUBMITTED.value)

    reviewer_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    review_comments: Mapped[str | None] = mapped_column(Text, nullable=True)

    resolution_type: Mapped[str | None] = mapped_column(String(30), nullable=True)
    adjusted_rating: Mapped[float | None] = mapped_column(Float, nullable=True)
    resolution_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    deadline: Mapped[date] = mapped_column(Date, nullable=False)

    is_escalated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    escalated_to_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    escalated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    withdrawn_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=sa.func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=sa.func.now(), onupdate=utcnow, nullable=False
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}
