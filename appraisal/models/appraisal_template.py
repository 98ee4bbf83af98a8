import uuid
from datetime import datetime

import sqlalchemy as sa
from sqlalchemy import Boolean, CheckConstraint, DateTime, Float, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from appraisal.core.clock import utcnow
from appraisal.core.statuses import AppraisalType, CalculationMethod, sql_in
from appraisal.db.base import Base, JSONDocument


class AppraisalTemplate(Base):
    __tablename__ = "appraisal_templates"
    __table_args__ = (
        CheckConstraint(
            f"appraisal_type IN ({sql_in(AppraisalType)})",
            name="ck_appraisal_templates_type",
        ),
        CheckConstraint(
            f"calculation_method IN ({sql_in(CalculationMethod)})",
            name="ck_appraisal_templates_calculation_method",
        ),
        CheckConstraint("dispute_period_days >= 0", name="ck_appraisal_templates_dispute_days"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    code: Mapped[str] = mapped_column(String(50), unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    appraisal_type: Mapped[str] = mapped_column(String(20), nullable=False)

    applicable_department_ids: Mapped[list] = mapped_column(JSONDocument, nullable=False, default=list)
    applicable_position_ids: Mapped[list] = mapped_column(JSONDocument, nullable=False, default=list)

    # {"type": "NUMERIC", "min_value": 1, "max_value": 5, "labels": [{"value": 5, "label": "Outstanding"}]}
    rating_scale: Mapped[dict] = mapped_column(JSONDocument, nullable=False)
    # [{"id", "name", "weight", "order", "criteria": [{"id", "name", "weight", ...}]}]
    sections: Mapped[list] = mapped_column(JSONDocument, nullable=False)

    calculation_method: Mapped[str] = mapped_column(
        String(20), nullable=False, default=CalculationMethod.WEIGHTED_AVERAGE.value
    )
    passing_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    requires_self_assessment: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    dispute_period_days: Mapped[int] = mapped_column(Integer, nullable=False, default=7)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

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

    # Template revision; starts at 1 and also guards concurrent writes
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}
