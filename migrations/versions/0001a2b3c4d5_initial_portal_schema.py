"""initial_portal_schema

Create users, reference taxonomy, proposals, projects, project code
sequences and the audit log.

Revision ID: 0001a2b3c4d5
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0001a2b3c4d5"
down_revision = None
branch_labels = None
depends_on = None

_USER_ROLES = (
    "ADMIN", "SYS_ADMIN", "DIRECTOR", "SUPERVISOR", "BKMD",
    "PROJECT_HEAD", "EMPLOYEE", "EXTERNAL_OWNER",
)
_PROPOSAL_STATUSES = (
    "DRAFT", "SUBMITTED", "BKMD_REVIEW", "DIRECTOR_REVIEW", "DIRECTOR_APPROVED",
    "DIRECTOR_REJECTED", "RC_PENDING", "RC_APPROVED", "RC_REJECTED", "CONVERTED",
)


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("email", sa.String(length=200), nullable=False),
        sa.Column("password_hash", sa.String(length=256), nullable=True),
        sa.Column("first_name", sa.String(length=100), nullable=False),
        sa.Column("last_name", sa.String(length=100), nullable=False),
        sa.Column("designation", sa.String(length=150), nullable=True),
        sa.Column("department", sa.String(length=150), nullable=True),
        sa.Column(
            "role",
            sa.Enum(*_USER_ROLES, name="user_role", native_enum=False, length=20),
            nullable=False,
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )

    op.create_table(
        "verticals",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("code", sa.String(length=20), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code"),
    )

    op.create_table(
        "special_areas",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )

    op.create_table(
        "rc_meetings",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("meeting_number", sa.Integer(), nullable=True),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("date", sa.Date(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "projects",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("title", sa.String(length=300), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(length=10), nullable=False),
        sa.Column("vertical_id", sa.String(length=36), nullable=True),
        sa.Column("special_area_id", sa.String(length=36), nullable=True),
        sa.Column("project_head_id", sa.String(length=36), nullable=False),
        sa.Column("objectives", sa.Text(), nullable=True),
        sa.Column("methodology", sa.Text(), nullable=True),
        sa.Column("expected_outcome", sa.Text(), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("sanctioned_budget", sa.Numeric(14, 2), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="ACTIVE"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["vertical_id"], ["verticals.id"]),
        sa.ForeignKeyConstraint(["special_area_id"], ["special_areas.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["project_head_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code"),
    )

    op.create_table(
        "project_code_sequences",
        sa.Column("prefix", sa.String(length=40), nullable=False),
        sa.Column("last_seq", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("prefix"),
    )

    op.create_table(
        "proposals",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("title", sa.String(length=300), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(length=10), nullable=False),
        sa.Column("vertical_id", sa.String(length=36), nullable=False),
        sa.Column("special_area_id", sa.String(length=36), nullable=True),
        sa.Column("submitted_by_id", sa.String(length=36), nullable=False),
        sa.Column("objectives", sa.Text(), nullable=True),
        sa.Column("methodology", sa.Text(), nullable=True),
        sa.Column("expected_outcome", sa.Text(), nullable=True),
        sa.Column("proposed_start_date", sa.Date(), nullable=False),
        sa.Column("proposed_end_date", sa.Date(), nullable=False),
        sa.Column("estimated_budget", sa.Numeric(14, 2), nullable=True),
        sa.Column(
            "status",
            sa.Enum(*_PROPOSAL_STATUSES, name="proposal_status", native_enum=False, length=20),
            nullable=False,
        ),
        sa.Column("bkmd_reviewer_id", sa.String(length=36), nullable=True),
        sa.Column("bkmd_reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("bkmd_comments", sa.Text(), nullable=True),
        sa.Column("director_reviewer_id", sa.String(length=36), nullable=True),
        sa.Column("director_reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("director_comments", sa.Text(), nullable=True),
        sa.Column("rc_meeting_id", sa.String(length=36), nullable=True),
        sa.Column("rc_comments", sa.Text(), nullable=True),
        sa.Column("converted_project_id", sa.String(length=36), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["vertical_id"], ["verticals.id"]),
        sa.ForeignKeyConstraint(["special_area_id"], ["special_areas.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["submitted_by_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["bkmd_reviewer_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["director_reviewer_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["rc_meeting_id"], ["rc_meetings.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["converted_project_id"], ["projects.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_proposals_status", "proposals", ["status"])
    op.create_index("ix_proposals_submitted_by", "proposals", ["submitted_by_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("entity_type", sa.String(length=30), nullable=False),
        sa.Column("entity_id", sa.String(length=36), nullable=False),
        sa.Column("action", sa.String(length=60), nullable=False),
        sa.Column("actor_user_id", sa.String(length=36), nullable=True),
        sa.Column("actor_role", sa.String(length=20), nullable=True),
        sa.Column("diff_json", sa.Text(), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["actor_user_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_audit_entity", "audit_logs", ["entity_type", "entity_id"])
    op.create_index("idx_audit_actor", "audit_logs", ["actor_user_id"])
    op.create_index("idx_audit_ts", "audit_logs", ["timestamp"])


def downgrade():
    op.drop_index("idx_audit_ts", table_name="audit_logs")
    op.drop_index("idx_audit_actor", table_name="audit_logs")
    op.drop_index("idx_audit_entity", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_index("ix_proposals_submitted_by", table_name="proposals")
    op.drop_index("ix_proposals_status", table_name="proposals")
    op.drop_table("proposals")
    op.drop_table("project_code_sequences")
    op.drop_table("projects")
    op.drop_table("rc_meetings")
    op.drop_table("special_areas")
    op.drop_table("verticals")
    op.drop_table("users")
