"""create school membership schema

Revision ID: a7c41e9d2b30
Revises:
Create Date: 2026-10-19 09:00:00.000000

This migration:
1. Creates the enum types (user_role, gender, education_level, curriculum,
   module_type, join_request_status)
2. Creates users and schools, then links users.current_school_id once both
   tables exist
3. Creates classes, the three membership tables, modules and
   school_join_requests with their unique constraints
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "a7c41e9d2b30"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

ENUMS = {
    "user_role": ("STUDENT", "TEACHER", "ADMIN", "SCHOOLSTAFF"),
    "gender": ("FEMALE", "MALE", "OTHER"),
    "education_level": ("Primary", "OLevel", "ALevel", "TVET"),
    "curriculum": ("REB", "TVET"),
    "module_type": ("General", "Optional"),
    "join_request_status": ("pending", "accepted", "rejected"),
}


def _enum(name: str) -> postgresql.ENUM:
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def _base_columns() -> list[sa.Column]:
    """Primary key and timestamps (from BaseModel)."""
    return [
        sa.Column("id", postgresql.UUID(as_uuid=False), nullable=False),
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
    ]


def _membership_columns() -> list[sa.Column]:
    return [
        sa.Column("school_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("phone", sa.String(length=20), nullable=True),
        sa.Column("image", sa.String(length=500), nullable=True),
        sa.Column("age", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("gender", _enum("gender"), nullable=True),
    ]


def _create_membership_table(table: str, *extra: sa.Column) -> None:
    op.create_table(
        table,
        *_base_columns(),
        *_membership_columns(),
        *extra,
        sa.ForeignKeyConstraint(["school_id"], ["schools.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "school_id", name=f"uq_{table}_user_id_school_id"),
    )
    op.create_index(f"ix_{table}_school_id", table, ["school_id"])
    op.create_index(f"ix_{table}_user_id", table, ["user_id"])


def upgrade() -> None:
    """Create all tables for schools, memberships, academics and join requests."""
    bind = op.get_bind()
    for name, values in ENUMS.items():
        postgresql.ENUM(*values, name=name).create(bind, checkfirst=True)

    # Users (current_school_id FK is added after schools exists)
    op.create_table(
        "users",
        *_base_columns(),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("username", sa.String(length=100), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("password_hash", sa.Text(), nullable=True),
        sa.Column("role", _enum("user_role"), nullable=True),
        sa.Column("current_school_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("gender", _enum("gender"), nullable=True),
        sa.Column("age", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("address", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("phone", sa.String(length=20), nullable=True),
        sa.Column("image", sa.String(length=500), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_username", "users", ["username"], unique=True)
    op.create_index("ix_users_current_school_id", "users", ["current_school_id"])

    # Schools
    op.create_table(
        "schools",
        *_base_columns(),
        sa.Column("username", sa.String(length=100), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("school_type", sa.String(length=50), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("phone", sa.String(length=20), nullable=True),
        sa.Column("address", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("image", sa.String(length=500), nullable=True),
        sa.Column("creator_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("students_code", sa.Text(), nullable=True),
        sa.Column("teachers_code", sa.Text(), nullable=True),
        sa.Column("school_staffs_code", sa.Text(), nullable=True),
        sa.Column(
            "required_verification_to_join_by_code",
            sa.Boolean(),
            server_default=sa.text("false"),
            nullable=False,
        ),
        sa.Column(
            "academic_profile",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=True,
        ),
        sa.Column("total_classes", sa.Integer(), server_default="0", nullable=False),
        sa.Column("total_modules", sa.Integer(), server_default="0", nullable=False),
        sa.ForeignKeyConstraint(["creator_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_schools_username", "schools", ["username"], unique=True)
    op.create_index("ix_schools_name", "schools", ["name"])
    op.create_index("ix_schools_creator_id", "schools", ["creator_id"])

    op.create_foreign_key(
        "fk_users_current_school_id_schools",
        "users",
        "schools",
        ["current_school_id"],
        ["id"],
        ondelete="SET NULL",
    )

    # Classes
    op.create_table(
        "classes",
        *_base_columns(),
        sa.Column("school_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("username", sa.String(length=150), nullable=False),
        sa.Column("code", sa.String(length=20), nullable=False),
        sa.Column("education_lever", _enum("education_level"), nullable=False),
        sa.Column("curriculum", _enum("curriculum"), nullable=False),
        sa.Column(
            "class_type",
            sa.String(length=50),
            server_default="SchoolClass",
            nullable=False,
        ),
        sa.Column("academic_year", sa.String(length=9), nullable=False),
        sa.ForeignKeyConstraint(["school_id"], ["schools.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("username"),
        sa.UniqueConstraint("code"),
    )
    op.create_index("ix_classes_school_id", "classes", ["school_id"])
    op.create_index("ix_classes_school_id_name", "classes", ["school_id", "name"])

    # Memberships
    _create_membership_table("teachers")
    _create_membership_table(
        "students",
        sa.Column("class_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.ForeignKeyConstraint(["class_id"], ["classes.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_students_class_id", "students", ["class_id"])
    _create_membership_table(
        "school_staffs",
        sa.Column("role", sa.String(length=50), nullable=False),
    )

    # Modules
    op.create_table(
        "modules",
        *_base_columns(),
        sa.Column("school_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("code", sa.String(length=20), nullable=False),
        sa.Column("subject_type", _enum("module_type"), nullable=False),
        sa.Column("class_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("teacher_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.ForeignKeyConstraint(["school_id"], ["schools.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["class_id"], ["classes.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["teacher_id"], ["teachers.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code"),
    )
    op.create_index("ix_modules_school_id", "modules", ["school_id"])
    op.create_index("ix_modules_class_id", "modules", ["class_id"])
    op.create_index("ix_modules_teacher_id", "modules", ["teacher_id"])

    # Join requests
    op.create_table(
        "school_join_requests",
        *_base_columns(),
        sa.Column("school_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("role", sa.String(length=50), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("phone", sa.String(length=20), nullable=True),
        sa.Column("class_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("from_user", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column(
            "status",
            _enum("join_request_status"),
            server_default="pending",
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["school_id"], ["schools.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["class_id"], ["classes.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "email", "school_id", name="uq_school_join_requests_email_school_id"
        ),
    )
    op.create_index("ix_school_join_requests_school_id", "school_join_requests", ["school_id"])
    op.create_index("ix_school_join_requests_user_id", "school_join_requests", ["user_id"])
    op.create_index("ix_school_join_requests_status", "school_join_requests", ["status"])
    op.create_index(
        "ix_school_join_requests_school_id_status",
        "school_join_requests",
        ["school_id", "status"],
    )


def downgrade() -> None:
    """Drop all tables and enum types."""
    op.drop_table("school_join_requests")
    op.drop_table("modules")
    op.drop_table("school_staffs")
    op.drop_table("students")
    op.drop_table("teachers")
    op.drop_table("classes")
    op.drop_constraint("fk_users_current_school_id_schools", "users", type_="foreignkey")
    op.drop_table("schools")
    op.drop_table("users")

    bind = op.get_bind()
    for name in reversed(list(ENUMS)):
        postgresql.ENUM(name=name).drop(bind, checkfirst=True)
