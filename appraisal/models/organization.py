import uuid

from sqlalchemy import String, ForeignKey, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from appraisal.db.base import Base


class Department(Base):
    __tablename__ = "departments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)

    head_position_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("positions.id", ondelete="SET NULL", use_alter=True, name="fk_departments_head_position"),
        nullable=True,
    )


class Position(Base):
    __tablename__ = "positions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)

    department_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("departments.id", ondelete="SET NULL"), nullable=True
    )
    reports_to_position_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("positions.id", ondelete="SET NULL"), nullable=True
    )
