"""initial schema

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


assignment_status = postgresql.ENUM(
    "prospect", "planned", "active", "onHold", "closed", name="assignment_status", create_type=False
)
status_source = postgresql.ENUM("manual", "rule", "default", name="status_source", create_type=False)


def upgrade() -> None:
    assignment_status.create(op.get_bind(), checkfirst=True)
    status_source.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "projects",
        sa.Column("key", sa.String(length=128), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("customer", sa.String(length=255), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "assignments",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("person_key", sa.String(length=255), nullable=False),
        sa.Column("project_key", sa.String(length=128), nullable=False),
        sa.Column("status", assignment_status, nullable=False),
        sa.Column("allocation_pct", sa.Integer(), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("probability", sa.Integer(), nullable=True),
        sa.Column("role", sa.String(length=255), nullable=True),
        sa.Column("offered_skill", sa.String(length=255), nullable=True),
        sa.Column("comment", sa.String(length=2000), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "allocation_pct IS NULL OR (allocation_pct >= 0 AND allocation_pct <= 100)",
            name="ck_assignments_allocation_pct_range",
        ),
        sa.CheckConstraint(
            "probability IS NULL OR (probability >= 0 AND probability <= 100)",
            name="ck_assignments_probability_range",
        ),
        sa.CheckConstraint(
            "start_date IS NULL OR end_date IS NULL OR end_date >= start_date",
            name="ck_assignments_date_order",
        ),
    )
    op.create_index("ix_assignments_person_key", "assignments", ["person_key"])
    op.create_index("ix_assignments_project_key", "assignments", ["project_key"])
    op.execute(
        """
        CREATE UNIQUE INDEX uq_assignments_person_project_open
        ON assignments (person_key, project_key)
        WHERE status <> 'closed'
        """
    )

    op.create_table(
        "status_entries",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("attribute", sa.String(length=64), nullable=False),
        sa.Column("entity_key", sa.String(length=255), nullable=False),
        sa.Column("value", postgresql.JSONB(), nullable=True),
        sa.Column("source", status_source, nullable=False),
        sa.Column("updated_by", sa.String(length=255), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_status_entries_attribute", "status_entries", ["attribute"])
    op.create_unique_constraint(
        "uq_status_entries_attribute_entity", "status_entries", ["attribute", "entity_key"]
    )


def downgrade() -> None:
    op.drop_constraint("uq_status_entries_attribute_entity", "status_entries", type_="unique")
    op.drop_index("ix_status_entries_attribute", table_name="status_entries")
    op.drop_table("status_entries")

    op.execute("DROP INDEX IF EXISTS uq_assignments_person_project_open")
    op.drop_index("ix_assignments_project_key", table_name="assignments")
    op.drop_index("ix_assignments_person_key", table_name="assignments")
    op.drop_table("assignments")

    op.drop_table("projects")

    status_source.drop(op.get_bind(), checkfirst=True)
    assignment_status.drop(op.get_bind(), checkfirst=True)
