"""create intake tables

Revision ID: 3c9e1f2a7b40
Revises:
Create Date: 2026-10-19 12:00:00.000000

This migration creates:
1. The submissions table and its enum types (form_mode, study_level,
   term_season, communication_channel)
2. The rate_limits table holding durable fixed-window counters
3. The admin_users table for staff accounts

Enum types store the wire values ("Fall", "initial"), not member names.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "3c9e1f2a7b40"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

form_mode_enum = postgresql.ENUM("initial", "partial", "full", name="form_mode", create_type=False)
study_level_enum = postgresql.ENUM(
    "Undergraduate",
    "Graduate",
    "Associate",
    "Certificate",
    "Other",
    name="study_level",
    create_type=False,
)
term_season_enum = postgresql.ENUM(
    "Spring", "Summer", "Fall", "Other", name="term_season", create_type=False
)
communication_channel_enum = postgresql.ENUM(
    "Facebook",
    "LinkedIn",
    "Whatsapp",
    "Instagram",
    "Twitter",
    "Email",
    "Phone",
    name="communication_channel",
    create_type=False,
)

ENUMS = (form_mode_enum, study_level_enum, term_season_enum, communication_channel_enum)


def upgrade() -> None:
    """Create submissions, rate_limits and admin_users."""
    bind = op.get_bind()
    for enum_type in ENUMS:
        enum_type.create(bind, checkfirst=True)

    op.create_table(
        "submissions",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("form_mode", form_mode_enum, nullable=False),
        # Personal identity & contact
        sa.Column("full_name", sa.String(length=256), nullable=True),
        sa.Column("email", sa.String(length=256), nullable=True),
        sa.Column("phone", sa.String(length=20), nullable=True),
        sa.Column("date_of_birth", sa.Date(), nullable=True),
        sa.Column("country_of_birth", sa.String(length=128), nullable=True),
        sa.Column("consent", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("address", sa.String(length=1024), nullable=True),
        # Education
        sa.Column("study_level", study_level_enum, nullable=True),
        sa.Column("previous_college", sa.String(length=256), nullable=True),
        sa.Column("previous_credit_hours", sa.Integer(), nullable=True),
        sa.Column("current_college", sa.String(length=256), nullable=True),
        sa.Column("current_credit_hours", sa.Integer(), nullable=True),
        sa.Column("intended_college", sa.String(length=256), nullable=True),
        sa.Column("planned_credit_hours", sa.Integer(), nullable=True),
        sa.Column("term_year", sa.Integer(), nullable=True),
        sa.Column("term_season", term_season_enum, nullable=True),
        sa.Column("major", sa.String(length=256), nullable=True),
        sa.Column("switching_major", sa.Boolean(), nullable=True),
        sa.Column("switch_major_details", sa.String(length=1024), nullable=True),
        # Academics & finances
        sa.Column("previous_gpa", sa.Numeric(3, 2), nullable=True),
        sa.Column("expected_gpa", sa.Numeric(3, 2), nullable=True),
        sa.Column("previous_tuition", sa.Numeric(12, 2), nullable=True),
        sa.Column("current_tuition", sa.Numeric(12, 2), nullable=True),
        sa.Column("has_scholarship", sa.Boolean(), nullable=True),
        sa.Column("scholarship_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("paying_per_semester", sa.Numeric(12, 2), nullable=True),
        # Motivation, immigration, referral
        sa.Column("transfer_reason", sa.Text(), nullable=True),
        sa.Column("institution_reason", sa.Text(), nullable=True),
        sa.Column("extracurriculars", sa.Text(), nullable=True),
        sa.Column("immigration_status", sa.String(length=256), nullable=True),
        sa.Column("special_circumstances", sa.Text(), nullable=True),
        sa.Column("referred_by", sa.String(length=256), nullable=True),
        sa.Column("how_did_you_know", sa.String(length=256), nullable=True),
        sa.Column("preferred_channel_link", sa.String(length=512), nullable=True),
        sa.Column("preferred_channel", communication_channel_enum, nullable=True),
        # Privacy-derived
        sa.Column("ip_hash", sa.String(length=64), nullable=True),
        sa.Column("user_agent", sa.String(length=512), nullable=True),
        # Audit
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_submissions_created_at", "submissions", ["created_at"], unique=False)
    op.create_index("ix_submissions_email", "submissions", ["email"], unique=False)
    op.create_index("ix_submissions_form_mode", "submissions", ["form_mode"], unique=False)
    op.create_index(
        "ix_submissions_term", "submissions", ["term_year", "term_season"], unique=False
    )

    op.create_table(
        "rate_limits",
        sa.Column("key", sa.String(length=64), nullable=False),
        sa.Column("count", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("window_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("key"),
    )
    op.create_index("ix_rate_limits_window_start", "rate_limits", ["window_start"], unique=False)

    op.create_table(
        "admin_users",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.Text(), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_admin_users_email"), "admin_users", ["email"], unique=True)


def downgrade() -> None:
    """Drop all intake tables and enum types."""
    op.drop_index(op.f("ix_admin_users_email"), table_name="admin_users")
    op.drop_table("admin_users")

    op.drop_index("ix_rate_limits_window_start", table_name="rate_limits")
    op.drop_table("rate_limits")

    op.drop_index("ix_submissions_term", table_name="submissions")
    op.drop_index("ix_submissions_form_mode", table_name="submissions")
    op.drop_index("ix_submissions_email", table_name="submissions")
    op.drop_index("ix_submissions_created_at", table_name="submissions")
    op.drop_table("submissions")

    bind = op.get_bind()
    for enum_type in reversed(ENUMS):
        enum_type.drop(bind, checkfirst=True)
