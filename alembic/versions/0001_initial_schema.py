"""initial schema: people, accounts, catalogue, enrollments, attendance, payments

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-03-02 10:12:41.318204

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "0001_initial_schema"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

UUID = postgresql.UUID(as_uuid=True)

user_role = sa.Enum("admin", "teacher", "parent", "student", name="userrole")
attendance_status = sa.Enum("present", "absent", "excused", name="attendancestatus")
session_status = sa.Enum("conducted", "not_conducted", name="sessionstatus")


def _pk() -> sa.Column:
    return sa.Column("id", UUID, primary_key=True, server_default=sa.text("gen_random_uuid()"))


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now())


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "teachers",
        _pk(),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("email", sa.String()),
        sa.Column("phone", sa.String()),
        sa.Column("payout_type", sa.String(), server_default="fixed"),
        sa.Column("rate", sa.Numeric(10, 2), server_default="0"),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        sa.Column("metadata", sa.JSON()),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )
    op.create_table(
        "students",
        _pk(),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("dob", sa.Date()),
        sa.Column("phone", sa.String()),
        sa.Column("guardian_contact", sa.String()),
        sa.Column("email", sa.String()),
        sa.Column("metadata", sa.JSON()),
        sa.Column("student_type", sa.String(50), server_default="permanent"),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_students_email", "students", ["email"])
    op.create_table(
        "student_documents",
        _pk(),
        sa.Column("student_id", UUID, sa.ForeignKey("students.id"), nullable=False),
        sa.Column("filename", sa.String(), nullable=False),
        sa.Column("file_type", sa.String()),
        sa.Column("file_data", sa.Text(), nullable=False),
        sa.Column("uploaded_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # Accounts
    op.create_table(
        "users",
        _pk(),
        sa.Column("google_id", sa.String(), unique=True),
        sa.Column("email", sa.String(), nullable=False, unique=True),
        sa.Column("name", sa.String()),
        sa.Column("profile_picture", sa.String()),
        sa.Column("email_verified", sa.Boolean(), server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        sa.Column("last_login", sa.DateTime(timezone=True)),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_users_email", "users", ["email"])
    op.create_index("ix_users_google_id", "users", ["google_id"])
    op.create_table(
        "user_roles",
        _pk(),
        sa.Column("user_id", UUID, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("role", user_role, nullable=False),
        sa.Column("granted_by", UUID, sa.ForeignKey("users.id")),
        sa.Column("granted_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("revoked_at", sa.DateTime(timezone=True)),
    )
    op.create_table(
        "refresh_tokens",
        _pk(),
        sa.Column("user_id", UUID, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("token", sa.String(), nullable=False, unique=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("revoked_at", sa.DateTime(timezone=True)),
        sa.Column("revoked_reason", sa.String()),
        sa.Column("replaced_by", UUID),
        _created_at(),
    )
    op.create_index("ix_refresh_tokens_token", "refresh_tokens", ["token"])
    op.create_table(
        "login_history",
        _pk(),
        sa.Column("user_id", UUID, sa.ForeignKey("users.id")),
        sa.Column("login_method", sa.String(), nullable=False),
        sa.Column("success", sa.Boolean(), server_default=sa.true()),
        sa.Column("failure_reason", sa.Text()),
        _created_at(),
    )
    op.create_table(
        "teacher_users",
        _pk(),
        sa.Column("user_id", UUID, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("teacher_id", UUID, sa.ForeignKey("teachers.id"), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        sa.Column("linked_by", UUID, sa.ForeignKey("users.id")),
        sa.Column("linked_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", "teacher_id"),
    )
    op.create_table(
        "student_guardians",
        _pk(),
        sa.Column("user_id", UUID, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("student_id", UUID, sa.ForeignKey("students.id"), nullable=False),
        sa.Column("relationship", sa.String(), server_default="parent"),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        sa.Column("linked_by", UUID, sa.ForeignKey("users.id")),
        sa.Column("linked_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", "student_id"),
    )

    # Catalogue and enrollments
    op.create_table(
        "instruments",
        _pk(),
        sa.Column("name", sa.String(), nullable=False, unique=True),
        sa.Column("online_supported", sa.Boolean(), server_default=sa.false()),
        sa.Column("max_batch_size", sa.Integer(), server_default="8"),
    )
    op.create_table(
        "batches",
        _pk(),
        sa.Column("instrument_id", UUID, sa.ForeignKey("instruments.id"), nullable=False),
        sa.Column("teacher_id", UUID, sa.ForeignKey("teachers.id")),
        sa.Column("recurrence", sa.String(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("capacity", sa.Integer(), server_default="8"),
        sa.Column("is_makeup", sa.Boolean(), server_default=sa.false()),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )
    op.create_table(
        "packages",
        _pk(),
        sa.Column("instrument_id", UUID, sa.ForeignKey("instruments.id")),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("classes_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("price", sa.Numeric(10, 2), nullable=False, server_default="0"),
    )
    op.create_table(
        "enrollments",
        _pk(),
        sa.Column("student_id", UUID, sa.ForeignKey("students.id"), nullable=False),
        sa.Column("instrument_id", UUID, sa.ForeignKey("instruments.id")),
        sa.Column("status", sa.String(), server_default="active"),
        sa.Column("classes_remaining", sa.Integer(), server_default="0"),
        sa.Column("enrolled_on", sa.Date(), server_default=sa.text("CURRENT_DATE")),
        _created_at(),
    )
    op.create_table(
        "enrollment_batches",
        _pk(),
        sa.Column("enrollment_id", UUID, sa.ForeignKey("enrollments.id"), nullable=False),
        sa.Column("batch_id", UUID, sa.ForeignKey("batches.id"), nullable=False),
        sa.Column("payment_frequency", sa.String(), server_default="monthly"),
        sa.Column("classes_remaining", sa.Integer(), server_default="0"),
        sa.Column("enrolled_on", sa.Date()),
    )
    op.create_table(
        "attendance_records",
        _pk(),
        sa.Column("batch_id", UUID, sa.ForeignKey("batches.id"), nullable=False),
        sa.Column("student_id", UUID, sa.ForeignKey("students.id"), nullable=False),
        sa.Column("session_date", sa.Date(), nullable=False),
        sa.Column("status", attendance_status, nullable=False),
        sa.Column("source", sa.String(), server_default="manual"),
        sa.Column("finalized_at", sa.DateTime(timezone=True)),
        sa.UniqueConstraint("batch_id", "student_id", "session_date"),
    )
    op.create_table(
        "teacher_attendance",
        _pk(),
        sa.Column("teacher_id", UUID, sa.ForeignKey("teachers.id")),
        sa.Column("batch_id", UUID, sa.ForeignKey("batches.id"), nullable=False),
        sa.Column("session_date", sa.Date(), nullable=False),
        sa.Column("status", session_status, nullable=False),
        sa.Column("notes", sa.Text()),
        sa.Column("marked_by", UUID, sa.ForeignKey("users.id")),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
        sa.UniqueConstraint("batch_id", "session_date"),
    )
    op.create_table(
        "student_evaluations",
        _pk(),
        sa.Column("student_id", UUID, sa.ForeignKey("students.id"), nullable=False),
        sa.Column("teacher_id", UUID, sa.ForeignKey("teachers.id")),
        sa.Column("batch_id", UUID, sa.ForeignKey("batches.id")),
        sa.Column("feedback", sa.Text()),
        sa.Column("rating", sa.Integer()),
        sa.Column("milestone_reached", sa.String()),
        sa.Column("evaluation_date", sa.Date(), server_default=sa.text("CURRENT_DATE")),
        sa.Column("next_evaluation_date", sa.Date()),
        _created_at(),
    )
    op.create_table(
        "payments",
        _pk(),
        sa.Column("student_id", UUID, sa.ForeignKey("students.id"), nullable=False),
        sa.Column("package_id", UUID, sa.ForeignKey("packages.id")),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("method", sa.String()),
        sa.Column("transaction_id", sa.String()),
        sa.Column("metadata", sa.JSON()),
        sa.Column("timestamp", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )


def downgrade() -> None:
    """Downgrade schema."""
    for table in [
        "payments",
        "student_evaluations",
        "teacher_attendance",
        "attendance_records",
        "enrollment_batches",
        "enrollments",
        "packages",
        "batches",
        "instruments",
        "student_guardians",
        "teacher_users",
        "login_history",
        "refresh_tokens",
        "user_roles",
        "users",
        "student_documents",
        "students",
        "teachers",
    ]:
        op.drop_table(table)
    for enum in (session_status, attendance_status, user_role):
        enum.drop(op.get_bind(), checkfirst=True)
