"""initial appraisal schema

Revision ID: 5b1e2c7d9a01
Revises:
Create Date: 2026-10-19 09:12:40.118204
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "5b1e2c7d9a01"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


APPRAISAL_TYPES = "'ANNUAL','PROBATIONARY','MID_YEAR','PROJECT_BASED','AD_HOC'"


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("full_name", sa.String(200), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "roles",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(50), nullable=False, unique=True),
    )
    op.create_table(
        "user_roles",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("role_id", sa.Uuid(), sa.ForeignKey("roles.id", ondelete="CASCADE"), nullable=False),
        sa.UniqueConstraint("user_id", "role_id", name="uq_user_role"),
    )

    # departments <-> positions reference each other; head FK added afterwards
    op.create_table(
        "departments",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("code", sa.String(50), nullable=False, unique=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("head_position_id", sa.Uuid(), nullable=True),
    )
    op.create_table(
        "positions",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("code", sa.String(50), nullable=False, unique=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("department_id", sa.Uuid(), sa.ForeignKey("departments.id", ondelete="SET NULL"), nullable=True),
        sa.Column(
            "reports_to_position_id", sa.Uuid(), sa.ForeignKey("positions.id", ondelete="SET NULL"), nullable=True
        ),
    )
    op.create_foreign_key(
        "fk_departments_head_position",
        "departments",
        "positions",
        ["head_position_id"],
        ["id"],
        ondelete="SET NULL",
    )

    op.create_table(
        "employees",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("employee_number", sa.String(50), nullable=False),
        sa.Column("display_name", sa.String(200), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column(
            "primary_department_id", sa.Uuid(), sa.ForeignKey("departments.id", ondelete="SET NULL"), nullable=True
        ),
        sa.Column(
            "primary_position_id", sa.Uuid(), sa.ForeignKey("positions.id", ondelete="SET NULL"), nullable=True
        ),
        sa.Column(
            "supervisor_position_id", sa.Uuid(), sa.ForeignKey("positions.id", ondelete="SET NULL"), nullable=True
        ),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.CheckConstraint(
            "status IN ('ACTIVE','PROBATION','ON_LEAVE','SUSPENDED','TERMINATED')",
            name="ck_employees_status",
        ),
    )
    op.create_index("ix_employees_employee_number", "employees", ["employee_number"], unique=True)
    op.create_index("ix_employees_primary_department_id", "employees", ["primary_department_id"])
    op.create_index("ix_employees_primary_position_id", "employees", ["primary_position_id"])

    op.create_table(
        "audit_events",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("actor_user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.Uuid(), nullable=False),
        sa.Column("event_metadata", postgresql.JSONB(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_audit_events_entity_id", "audit_events", ["entity_id"])

    op.create_table(
        "appraisal_templates",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("code", sa.String(50), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("appraisal_type", sa.String(20), nullable=False),
        sa.Column("applicable_department_ids", postgresql.JSONB(), nullable=False),
        sa.Column("applicable_position_ids", postgresql.JSONB(), nullable=False),
        sa.Column("rating_scale", postgresql.JSONB(), nullable=False),
        sa.Column("sections", postgresql.JSONB(), nullable=False),
        sa.Column("calculation_method", sa.String(20), nullable=False),
        sa.Column("passing_score", sa.Float(), nullable=True),
        sa.Column("requires_self_assessment", sa.Boolean(), nullable=False),
        sa.Column("dispute_period_days", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_by_user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("updated_by_user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        *_timestamps(),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.CheckConstraint(f"appraisal_type IN ({APPRAISAL_TYPES})", name="ck_appraisal_templates_type"),
        sa.CheckConstraint(
            "calculation_method IN ('WEIGHTED_AVERAGE','SIMPLE_AVERAGE','CUSTOM')",
            name="ck_appraisal_templates_calculation_method",
        ),
        sa.CheckConstraint("dispute_period_days >= 0", name="ck_appraisal_templates_dispute_days"),
    )
    op.create_index("ix_appraisal_templates_code", "appraisal_templates", ["code"], unique=True)

    op.create_table(
        "appraisal_cycles",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("code", sa.String(50), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("appraisal_type", sa.String(20), nullable=False),
        sa.Column(
            "template_id", sa.Uuid(), sa.ForeignKey("appraisal_templates.id", ondelete="RESTRICT"), nullable=False
        ),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("self_assessment_deadline", sa.Date(), nullable=True),
        sa.Column("manager_review_deadline", sa.Date(), nullable=False),
        sa.Column("hr_review_deadline", sa.Date(), nullable=True),
        sa.Column("dispute_deadline", sa.Date(), nullable=True),
        sa.Column("target_employee_ids", postgresql.JSONB(), nullable=False),
        sa.Column("target_department_ids", postgresql.JSONB(), nullable=False),
        sa.Column("target_position_ids", postgresql.JSONB(), nullable=False),
        sa.Column("exclude_employee_ids", postgresql.JSONB(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("results_published", sa.Boolean(), nullable=False),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "published_by_user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True
        ),
        sa.Column("total_employees", sa.Integer(), nullable=False),
        sa.Column("completed_evaluations", sa.Integer(), nullable=False),
        sa.Column("completion_percentage", sa.Float(), nullable=False),
        sa.Column("created_by_user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("updated_by_user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        *_timestamps(),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.CheckConstraint(
            "status IN ('DRAFT','ACTIVE','IN_PROGRESS','COMPLETED','ARCHIVED','CANCELLED')",
            name="ck_appraisal_cycles_status",
        ),
        sa.CheckConstraint(f"appraisal_type IN ({APPRAISAL_TYPES})", name="ck_appraisal_cycles_type"),
        sa.CheckConstraint("end_date > start_date", name="ck_appraisal_cycles_dates"),
    )
    op.create_index("ix_appraisal_cycles_code", "appraisal_cycles", ["code"], unique=True)
    op.create_index("ix_appraisal_cycles_template_id", "appraisal_cycles", ["template_id"])

    op.create_table(
        "cycle_assignments",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("cycle_id", sa.Uuid(), sa.ForeignKey("appraisal_cycles.id", ondelete="CASCADE"), nullable=False),
        sa.Column("employee_id", sa.Uuid(), sa.ForeignKey("employees.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("reviewer_id", sa.Uuid(), sa.ForeignKey("employees.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("self_assessment_required", sa.Boolean(), nullable=False),
        sa.Column("status", sa.String(30), nullable=False),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("cycle_id", "employee_id", name="uq_cycle_assignment_employee"),
        sa.CheckConstraint(
            "status IN ('NOT_STARTED','SELF_ASSESSMENT_PENDING','MANAGER_REVIEW_PENDING',"
            "'HR_REVIEW_PENDING','COMPLETED','DISPUTED')",
            name="ck_cycle_assignments_status",
        ),
        sa.CheckConstraint("employee_id <> reviewer_id", name="ck_cycle_assignments_not_self"),
    )
    op.create_index("ix_cycle_assignments_cycle_id", "cycle_assignments", ["cycle_id"])
    op.create_index("ix_cycle_assignments_employee_id", "cycle_assignments", ["employee_id"])
    op.create_index("ix_cycle_assignments_reviewer_id", "cycle_assignments", ["reviewer_id"])

    op.create_table(
        "appraisal_evaluations",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("cycle_id", sa.Uuid(), sa.ForeignKey("appraisal_cycles.id", ondelete="RESTRICT"), nullable=False),
        sa.Column(
            "template_id", sa.Uuid(), sa.ForeignKey("appraisal_templates.id", ondelete="RESTRICT"), nullable=False
        ),
        sa.Column("employee_id", sa.Uuid(), sa.ForeignKey("employees.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("reviewer_id", sa.Uuid(), sa.ForeignKey("employees.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("self_assessment", postgresql.JSONB(), nullable=True),
        sa.Column("manager_evaluation", postgresql.JSONB(), nullable=True),
        sa.Column("hr_review", postgresql.JSONB(), nullable=True),
        sa.Column("final_rating", sa.Float(), nullable=True),
        sa.Column("performance_category", sa.String(30), nullable=True),
        sa.Column("is_passed", sa.Boolean(), nullable=True),
        sa.Column("status", sa.String(30), nullable=False),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("acknowledged_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "acknowledged_by_user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True
        ),
        sa.Column("employee_comments", sa.Text(), nullable=True),
        *_timestamps(),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.UniqueConstraint("cycle_id", "employee_id", name="uq_appraisal_evaluation_cycle_employee"),
        sa.CheckConstraint(
            "status IN ('DRAFT','SELF_ASSESSMENT_SUBMITTED','MANAGER_REVIEW_SUBMITTED','HR_REVIEWED',"
            "'PUBLISHED','ACKNOWLEDGED','DISPUTED','FINALIZED')",
            name="ck_appraisal_evaluations_status",
        ),
        sa.CheckConstraint(
            "performance_category IS NULL OR performance_category IN ('EXCEPTIONAL','EXCEEDS_EXPECTATIONS',"
            "'MEETS_EXPECTATIONS','NEEDS_IMPROVEMENT','UNSATISFACTORY')",
            name="ck_appraisal_evaluations_category",
        ),
        sa.CheckConstraint(
            "final_rating IS NULL OR (final_rating >= 0 AND final_rating <= 100)",
            name="ck_appraisal_evaluations_final_rating",
        ),
    )
    op.create_index("ix_appraisal_evaluations_cycle_id", "appraisal_evaluations", ["cycle_id"])
    op.create_index("ix_appraisal_evaluations_employee_id", "appraisal_evaluations", ["employee_id"])
    op.create_index("ix_appraisal_evaluations_reviewer_id", "appraisal_evaluations", ["reviewer_id"])

    op.create_table(
        "appraisal_disputes",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "evaluation_id",
            sa.Uuid(),
            sa.ForeignKey("appraisal_evaluations.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("employee_id", sa.Uuid(), sa.ForeignKey("employees.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("cycle_id", sa.Uuid(), sa.ForeignKey("appraisal_cycles.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("disputed_section_ids", postgresql.JSONB(), nullable=False),
        sa.Column("disputed_criterion_ids", postgresql.JSONB(), nullable=False),
        sa.Column("proposed_rating", sa.Float(), nullable=True),
        sa.Column("supporting_documents", postgresql.JSONB(), nullable=False),
        sa.Column("additional_comments", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("reviewer_user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("review_comments", sa.Text(), nullable=True),
        sa.Column("resolution_type", sa.String(30), nullable=True),
        sa.Column("adjusted_rating", sa.Float(), nullable=True),
        sa.Column("resolution_notes", sa.Text(), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("deadline", sa.Date(), nullable=False),
        sa.Column("is_escalated", sa.Boolean(), nullable=False),
        sa.Column(
            "escalated_to_user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True
        ),
        sa.Column("escalated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("withdrawn_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.CheckConstraint(
            "status IN ('SUBMITTED','UNDER_REVIEW','RESOLVED','REJECTED','WITHDRAWN')",
            name="ck_appraisal_disputes_status",
        ),
        sa.CheckConstraint(
            "resolution_type IS NULL OR resolution_type IN "
            "('UPHELD_ORIGINAL','RATING_ADJUSTED','REEVALUATION_ORDERED')",
            name="ck_appraisal_disputes_resolution_type",
        ),
    )
    op.create_index("ix_appraisal_disputes_evaluation_id", "appraisal_disputes", ["evaluation_id"])
    op.create_index("ix_appraisal_disputes_employee_id", "appraisal_disputes", ["employee_id"])
    op.create_index("ix_appraisal_disputes_cycle_id", "appraisal_disputes", ["cycle_id"])
    op.create_index(
        "uq_appraisal_disputes_open_per_evaluation",
        "appraisal_disputes",
        ["evaluation_id"],
        unique=True,
        postgresql_where=sa.text("status IN ('SUBMITTED','UNDER_REVIEW')"),
        sqlite_where=sa.text("status IN ('SUBMITTED','UNDER_REVIEW')"),
    )


def downgrade() -> None:
    op.drop_index("uq_appraisal_disputes_open_per_evaluation", table_name="appraisal_disputes")
    op.drop_table("appraisal_disputes")
    op.drop_table("appraisal_evaluations")
    op.drop_table("cycle_assignments")
    op.drop_table("appraisal_cycles")
    op.drop_table("appraisal_templates")
    op.drop_table("audit_events")
    op.drop_table("employees")
    op.drop_constraint("fk_departments_head_position", "departments", type_="foreignkey")
    op.drop_table("positions")
    op.drop_table("departments")
    op.drop_table("user_roles")
    op.drop_table("roles")
    op.drop_table("users")
