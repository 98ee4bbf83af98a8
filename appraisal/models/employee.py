import uuid
from sqlalchemy import String, ForeignKey, CheckConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from appraisal.core.statuses import EmploymentStatus, sql_in
from appraisal.db.base import Base


class Employee(Base):
    __tablename__ = "employees"
    __table_args__ = (
        CheckConstraint(
            f"status IN ({sql_in(EmploymentStatus)})",
            name="ck_employees_status",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    employee_number: Mapped[str] = mapped_column(String(50), unique=True, index=True, nullable=False)
    display_name: Mapped[str] = mapped_column(String(200), nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default=EmploymentStatus.ACTIVE.value)

    # Org placement, owned by the organization-structure subsystem
    primary_department_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("departments.id", ondelete="SET NULL"), nullable=True, index=True
    )
    primary_position_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("positions.id", ondelete="SET NULL"), nullable=True, index=True
    )
    # Explicit "reports to" override; falls back to the position's reports-to
    supervisor_position_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("positions.id", ondelete="SET NULL"), nullable=True
    )

    # Optional link to system user (not all employees will be users)
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    user = relationship("User")
