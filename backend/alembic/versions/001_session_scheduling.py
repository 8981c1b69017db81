# backend/alembic/versions/001_session_scheduling.py
"""Session scheduling - identity, enrollment, holidays, sessions and audit

Revision ID: 001_session_scheduling
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates every table the session backend reads or writes. On PostgreSQL the
migration also installs btree_gist exclusion constraints so no teacher or
student can hold two overlapping active sessions, whatever the application
does.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001_session_scheduling"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

SESSION_STATUSES = ("requested", "accepted", "rejected", "scheduled", "ongoing", "completed", "cancelled")
ACTIVE_STATUSES = ("requested", "accepted", "scheduled", "ongoing")
PROGRAM_STATUSES = ("active", "paused", "completed", "cancelled")


def _in_list(values: Sequence[str]) -> str:
    return ", ".join(f"'{v}'" for v in values)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    ]


def upgrade() -> None:
    """Create session scheduling tables."""
    bind = op.get_bind()
    dialect_name = bind.dialect.name if bind is not None else "postgresql"
    is_postgres = dialect_name == "postgresql"

    # ======== IDENTITY ========
    op.create_table(
        "users",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(200), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "roles",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("name", sa.String(50), nullable=False, unique=True),
        sa.Column("description", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_table(
        "user_roles",
        sa.Column(
            "user_id", sa.String(26), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
        ),
        sa.Column(
            "role_id", sa.String(26), sa.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True
        ),
        sa.Column("assigned_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # ======== CATALOG ========
    op.create_table(
        "subjects",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("name", sa.String(120), nullable=False, unique=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_table(
        "public_holidays",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("holiday_date", sa.Date(), nullable=False),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_public_holidays_holiday_date", "public_holidays", ["holiday_date"], unique=True)

    # ======== ENROLLMENT ========
    op.create_table(
        "focus_ones",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("student_id", sa.String(26), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(f"status IN ({_in_list(PROGRAM_STATUSES)})", name="ck_focus_ones_status"),
    )
    op.create_index("ix_focus_ones_student_id", "focus_ones", ["student_id"])

    op.create_table(
        "focus_one_teacher_subjects",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column(
            "focus_one_id",
            sa.String(26),
            sa.ForeignKey("focus_ones.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("teacher_id", sa.String(26), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("subject_id", sa.String(26), sa.ForeignKey("subjects.id"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint(
            "focus_one_id", "teacher_id", "subject_id", name="uq_focus_one_teacher_subject"
        ),
    )
    op.create_index(
        "ix_focus_one_teacher_subjects_focus_one_id", "focus_one_teacher_subjects", ["focus_one_id"]
    )
    op.create_index(
        "ix_focus_one_teacher_subjects_teacher_id", "focus_one_teacher_subjects", ["teacher_id"]
    )

    op.create_table(
        "cohorts",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.CheckConstraint(f"status IN ({_in_list(PROGRAM_STATUSES)})", name="ck_cohorts_status"),
    )
    op.create_table(
        "cohort_memberships",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column(
            "cohort_id", sa.String(26), sa.ForeignKey("cohorts.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("student_id", sa.String(26), sa.ForeignKey("users.id"), nullable=False, unique=True),
        sa.Column("joined_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_cohort_memberships_cohort_id", "cohort_memberships", ["cohort_id"])

    # ======== SESSIONS ========
    op.create_table(
        "sessions",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("session_date", sa.Date(), nullable=False),
        sa.Column("teacher_id", sa.String(26), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("student_id", sa.String(26), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("subject_id", sa.String(26), sa.ForeignKey("subjects.id"), nullable=True),
        sa.Column("focus_one_id", sa.String(26), sa.ForeignKey("focus_ones.id"), nullable=True),
        sa.Column("cohort_id", sa.String(26), sa.ForeignKey("cohorts.id"), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="requested"),
        sa.Column("meeting_link", sa.String(500), nullable=True),
        sa.Column("meeting_platform", sa.String(30), nullable=True),
        sa.Column("created_by_id", sa.String(26), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("requested_by_id", sa.String(26), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("requested_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("accepted_by_id", sa.String(26), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_by_id", sa.String(26), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("cancelled_by_id", sa.String(26), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deleted_by_id", sa.String(26), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("lock_version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint(f"status IN ({_in_list(SESSION_STATUSES)})", name="ck_sessions_status"),
        sa.CheckConstraint(
            "meeting_platform IS NULL OR meeting_platform IN ('jitsi-meet')",
            name="ck_sessions_meeting_platform",
        ),
        sa.CheckConstraint("end_time > start_time", name="ck_sessions_time_order"),
        sa.CheckConstraint(
            "(focus_one_id IS NOT NULL AND cohort_id IS NULL) "
            "OR (focus_one_id IS NULL AND cohort_id IS NOT NULL)",
            name="ck_sessions_single_program",
        ),
    )
    op.create_index("ix_sessions_session_date", "sessions", ["session_date"])
    op.create_index("ix_sessions_teacher_id", "sessions", ["teacher_id"])
    op.create_index("ix_sessions_student_id", "sessions", ["student_id"])
    op.create_index("ix_sessions_focus_one_id", "sessions", ["focus_one_id"])
    op.create_index("ix_sessions_cohort_id", "sessions", ["cohort_id"])
    op.create_index("ix_sessions_status", "sessions", ["status"])
    op.create_index("ix_sessions_deleted_at", "sessions", ["deleted_at"])
    op.create_index("ix_sessions_teacher_date", "sessions", ["teacher_id", "session_date"])
    op.create_index("ix_sessions_student_date", "sessions", ["student_id", "session_date"])

    op.create_table(
        "session_history",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column(
            "session_id", sa.String(26), sa.ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("sequence", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("action", sa.String(20), nullable=False),
        sa.Column("performed_by_id", sa.String(26), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("performed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("previous_status", sa.String(20), nullable=True),
        sa.Column("new_status", sa.String(20), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("changes", sa.JSON(), nullable=True),
    )
    op.create_index("ix_session_history_session_id", "session_history", ["session_id"])

    op.create_table(
        "session_reschedules",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column(
            "session_id", sa.String(26), sa.ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("previous_start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("previous_end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("new_start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("new_end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("rescheduled_by_id", sa.String(26), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("rescheduled_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_session_reschedules_session_id", "session_reschedules", ["session_id"])

    op.create_table(
        "participant_calendars",
        sa.Column("participant_id", sa.String(26), primary_key=True),
        sa.Column("calendar_date", sa.Date(), primary_key=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    if is_postgres:
        op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")
        active_filter = (
            f"(deleted_at IS NULL AND status IN ({_in_list(ACTIVE_STATUSES)}))"
        )
        op.execute(
            f"""
            ALTER TABLE sessions
              ADD CONSTRAINT sessions_no_overlap_per_teacher
              EXCLUDE USING gist (
                teacher_id WITH =,
                tstzrange(start_time, end_time, '[)') WITH &&
              )
              WHERE {active_filter}
            """
        )
        op.execute(
            f"""
            ALTER TABLE sessions
              ADD CONSTRAINT sessions_no_overlap_per_student
              EXCLUDE USING gist (
                student_id WITH =,
                tstzrange(start_time, end_time, '[)') WITH &&
              )
              WHERE {active_filter}
            """
        )


def downgrade() -> None:
    """Drop session scheduling tables."""
    bind = op.get_bind()
    if bind is not None and bind.dialect.name == "postgresql":
        op.execute("ALTER TABLE sessions DROP CONSTRAINT IF EXISTS sessions_no_overlap_per_student")
        op.execute("ALTER TABLE sessions DROP CONSTRAINT IF EXISTS sessions_no_overlap_per_teacher")

    op.drop_table("participant_calendars")
    op.drop_index("ix_session_reschedules_session_id", table_name="session_reschedules")
    op.drop_table("session_reschedules")
    op.drop_index("ix_session_history_session_id", table_name="session_history")
    op.drop_table("session_history")
    for index_name in (
        "ix_sessions_student_date",
        "ix_sessions_teacher_date",
        "ix_sessions_deleted_at",
        "ix_sessions_status",
        "ix_sessions_cohort_id",
        "ix_sessions_focus_one_id",
        "ix_sessions_student_id",
        "ix_sessions_teacher_id",
        "ix_sessions_session_date",
    ):
        op.drop_index(index_name, table_name="sessions")
    op.drop_table("sessions")

    op.drop_index("ix_cohort_memberships_cohort_id", table_name="cohort_memberships")
    op.drop_table("cohort_memberships")
    op.drop_table("cohorts")
    op.drop_index("ix_focus_one_teacher_subjects_teacher_id", table_name="focus_one_teacher_subjects")
    op.drop_index("ix_focus_one_teacher_subjects_focus_one_id", table_name="focus_one_teacher_subjects")
    op.drop_table("focus_one_teacher_subjects")
    op.drop_index("ix_focus_ones_student_id", table_name="focus_ones")
    op.drop_table("focus_ones")

    op.drop_index("ix_public_holidays_holiday_date", table_name="public_holidays")
    op.drop_table("public_holidays")
    op.drop_table("subjects")
    op.drop_table("user_roles")
    op.drop_table("roles")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
