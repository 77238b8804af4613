"""initial_pmis_schema

Create `users`, `projects` and `progress_records`.

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade():
    bind = op.get_bind()
    existing_tables = set(sa_inspect(bind).get_table_names())

    if "users" not in existing_tables:
        op.create_table(
            "users",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("username", sa.String(length=100), nullable=False),
            sa.Column("email", sa.String(length=200), nullable=False),
            sa.Column("password_hash", sa.String(length=256), nullable=False),
            sa.Column("role", sa.String(length=30), nullable=False),
            sa.Column("institution_id", sa.String(length=200), nullable=True),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("username"),
            sa.UniqueConstraint("email"),
        )
        op.create_index("ix_users_institution_id", "users", ["institution_id"])

    if "projects" not in existing_tables:
        op.create_table(
            "projects",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("project_name", sa.String(length=300), nullable=False),
            sa.Column("department_type", sa.String(length=20), nullable=False, server_default="Local"),
            sa.Column("department_category", sa.String(length=20), nullable=True),
            sa.Column("institution", sa.String(length=200), nullable=True),
            sa.Column("department", sa.String(length=200), nullable=True),
            sa.Column("duration_start", sa.Date(), nullable=True),
            sa.Column("duration_end", sa.Date(), nullable=True),
            sa.Column("start_date", sa.Date(), nullable=False),
            sa.Column("estimated_end_date", sa.Date(), nullable=False),
            sa.Column("project_extended", sa.String(length=3), nullable=False, server_default="No"),
            sa.Column("extended_date", sa.Date(), nullable=True),
            sa.Column("return_periods_start", sa.Date(), nullable=True),
            sa.Column("return_periods_end", sa.Date(), nullable=True),
            sa.Column("tec", sa.Float(), nullable=True),
            sa.Column("tec_currency", sa.String(length=3), nullable=False, server_default="LKR"),
            sa.Column("awarded_amount", sa.Float(), nullable=True),
            sa.Column("revised_date", sa.Date(), nullable=True),
            sa.Column("funding_source", sa.String(length=200), nullable=True),
            sa.Column("capital_works", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("location", sa.String(length=300), nullable=True),
            sa.Column("land_location", sa.String(length=300), nullable=True),
            sa.Column("responsible_dept", sa.String(length=200), nullable=True),
            sa.Column("project_image", sa.String(length=255), nullable=True),
            sa.Column("project_pdf", sa.String(length=255), nullable=True),
            sa.Column("extension_pdf", sa.String(length=255), nullable=True),
            sa.Column("npd_date", sa.Date(), nullable=True),
            sa.Column("cabinet_papers_no", sa.String(length=100), nullable=True),
            sa.Column("cabinet_papers_date", sa.Date(), nullable=True),
            sa.Column("remarks", sa.Text(), nullable=True),
            sa.Column("is_draft", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("created_by", sa.String(length=36), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["created_by"], ["users.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_projects_project_name", "projects", ["project_name"])
        op.create_index("ix_projects_institution", "projects", ["institution"])
        op.create_index("ix_projects_created_by", "projects", ["created_by"])
        op.create_index("ix_projects_creator_institution", "projects", ["created_by", "institution"])

    if "progress_records" not in existing_tables:
        text_cols = (
            "main_objective", "overall_target", "current_year_descriptive_target",
            "year_end_progress_description", "cumulative_target_at_year_end",
            "cumulative_progress_description_at_year_end", "physical_target_failure_reasons",
            "contractors", "consultants", "financial_target_failure_reasons",
        )
        float_cols = (
            "total_cost_original", "total_cost_current", "awarded_amount",
            "progress_as_of_prev_dec_percentage",
            "quarter1_target_percentage", "quarter2_target_percentage",
            "quarter3_target_percentage", "quarter4_target_percentage",
            "year_end_progress_percentage", "cumulative_progress_percentage_of_overall_target",
            "allocation_current_year", "expenditure_target", "imprest_requested",
            "imprest_received", "actual_expenditure", "bills_in_hand", "price_escalation",
            "cumulative_expenditure_at_year_end",
        )
        op.create_table(
            "progress_records",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("project_id", sa.String(length=36), nullable=False),
            sa.Column("progress_name", sa.String(length=300), nullable=True),
            sa.Column("location", sa.String(length=300), nullable=True),
            sa.Column("funding_source", sa.String(length=200), nullable=True),
            sa.Column("revised_end_date", sa.Date(), nullable=True),
            sa.Column("target_year", sa.Integer(), nullable=True),
            sa.Column("target_month", sa.String(length=20), nullable=True),
            sa.Column("progress_date", sa.Date(), nullable=True),
            sa.Column("physical_progress_image1", sa.String(length=255), nullable=True),
            sa.Column("physical_progress_image2", sa.String(length=255), nullable=True),
            sa.Column("physical_progress_image3", sa.String(length=255), nullable=True),
            *[sa.Column(name, sa.Text(), nullable=True) for name in text_cols],
            *[sa.Column(name, sa.Float(), nullable=True) for name in float_cols],
            sa.Column("status", sa.String(length=20), nullable=False, server_default="draft"),
            sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("submitted_by", sa.String(length=36), nullable=True),
            sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
            *_timestamps(),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["submitted_by"], ["users.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_progress_records_project_id", "progress_records", ["project_id"])
        op.create_index("ix_progress_project_status", "progress_records", ["project_id", "status"])


def downgrade():
    existing_tables = set(sa_inspect(op.get_bind()).get_table_names())

    if "progress_records" in existing_tables:
        op.drop_index("ix_progress_project_status", table_name="progress_records")
        op.drop_index("ix_progress_records_project_id", table_name="progress_records")
        op.drop_table("progress_records")
    if "projects" in existing_tables:
        op.drop_index("ix_projects_creator_institution", table_name="projects")
        op.drop_index("ix_projects_created_by", table_name="projects")
        op.drop_index("ix_projects_institution", table_name="projects")
        op.drop_index("ix_projects_project_name", table_name="projects")
        op.drop_table("projects")
    if "users" in existing_tables:
        op.drop_index("ix_users_institution_id", table_name="users")
        op.drop_table("users")
