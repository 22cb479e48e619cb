"""grading schema: problems, exams, attempts, submissions, stats

Revision ID: c0a1e2d3f4b5
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "c0a1e2d3f4b5"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id() -> sa.Column:
    return sa.Column("id", sa.String(length=36), primary_key=True, nullable=False)


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)


def _version() -> sa.Column:
    return sa.Column("version", sa.Integer(), nullable=False)


def upgrade() -> None:
    op.create_table(
        "problems",
        _id(),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        _created_at(),
    )
    op.create_table(
        "test_cases",
        _id(),
        sa.Column("problem_id", sa.String(length=36), sa.ForeignKey("problems.id", ondelete="CASCADE"), nullable=False),
        sa.Column("input", sa.Text(), nullable=False),
        sa.Column("output", sa.Text(), nullable=False),
        sa.Column("order_index", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_index("ix_test_cases_problem_id", "test_cases", ["problem_id"])
    op.create_table(
        "driver_codes",
        _id(),
        sa.Column("problem_id", sa.String(length=36), sa.ForeignKey("problems.id", ondelete="CASCADE"), nullable=False),
        sa.Column("language_id", sa.Integer(), nullable=False),
        sa.Column("header", sa.Text(), nullable=True),
        sa.Column("footer", sa.Text(), nullable=True),
        sa.UniqueConstraint("language_id", "problem_id", name="uq_driver_language_problem"),
    )
    op.create_index("ix_driver_codes_problem_id", "driver_codes", ["problem_id"])
    op.create_table(
        "complexity_probe_specs",
        _id(),
        sa.Column(
            "problem_id",
            sa.String(length=36),
            sa.ForeignKey("problems.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("sizes", sa.JSON(), nullable=False),
        sa.Column("min_value", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("max_value", sa.Integer(), nullable=False, server_default="1000"),
        sa.Column("pattern", sa.String(length=20), nullable=False, server_default="RANDOM"),
        sa.Column("expected_complexity", sa.String(length=20), nullable=False),
    )

    op.create_table(
        "exams",
        _id(),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("is_published", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
    )
    op.create_table(
        "exam_problems",
        _id(),
        sa.Column("exam_id", sa.String(length=36), sa.ForeignKey("exams.id", ondelete="CASCADE"), nullable=False),
        sa.Column("problem_id", sa.String(length=36), sa.ForeignKey("problems.id", ondelete="CASCADE"), nullable=False),
        sa.UniqueConstraint("exam_id", "problem_id", name="uq_exam_problem"),
    )
    op.create_index("ix_exam_problems_exam_id", "exam_problems", ["exam_id"])
    op.create_table(
        "groups",
        _id(),
        sa.Column("name", sa.String(length=255), nullable=False),
    )
    op.create_table(
        "group_members",
        _id(),
        sa.Column("group_id", sa.String(length=36), sa.ForeignKey("groups.id", ondelete="CASCADE"), nullable=False),
        sa.Column("student_id", sa.String(length=36), nullable=False),
        sa.UniqueConstraint("group_id", "student_id", name="uq_group_member"),
    )
    op.create_index("ix_group_members_group_id", "group_members", ["group_id"])
    op.create_index("ix_group_members_student_id", "group_members", ["student_id"])
    op.create_table(
        "exam_groups",
        _id(),
        sa.Column("exam_id", sa.String(length=36), sa.ForeignKey("exams.id", ondelete="CASCADE"), nullable=False),
        sa.Column("group_id", sa.String(length=36), sa.ForeignKey("groups.id", ondelete="CASCADE"), nullable=False),
        sa.UniqueConstraint("exam_id", "group_id", name="uq_exam_group"),
    )
    op.create_index("ix_exam_groups_exam_id", "exam_groups", ["exam_id"])
    op.create_table(
        "exam_attempts",
        _id(),
        sa.Column("exam_id", sa.String(length=36), sa.ForeignKey("exams.id", ondelete="CASCADE"), nullable=False),
        sa.Column("student_id", sa.String(length=36), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="NOT_STARTED"),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("total_score", sa.Integer(), nullable=True),
        sa.Column("last_heartbeat_at", sa.DateTime(timezone=True), nullable=True),
        _version(),
        sa.UniqueConstraint("exam_id", "student_id", name="uq_attempt_exam_student"),
    )
    op.create_index("ix_exam_attempts_exam_id", "exam_attempts", ["exam_id"])
    op.create_index("ix_exam_attempts_student_id", "exam_attempts", ["student_id"])
    op.create_table(
        "exam_results",
        _id(),
        sa.Column("exam_id", sa.String(length=36), sa.ForeignKey("exams.id", ondelete="CASCADE"), nullable=False),
        sa.Column("student_id", sa.String(length=36), nullable=False),
        sa.Column(
            "attempt_id",
            sa.String(length=36),
            sa.ForeignKey("exam_attempts.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("score", sa.Integer(), nullable=False),
        _created_at(),
    )
    op.create_index("ix_exam_results_exam_id", "exam_results", ["exam_id"])
    op.create_index("ix_exam_results_student_id", "exam_results", ["student_id"])

    op.create_table(
        "submissions",
        _id(),
        sa.Column("problem_id", sa.String(length=36), sa.ForeignKey("problems.id", ondelete="CASCADE"), nullable=False),
        sa.Column("student_id", sa.String(length=36), nullable=False),
        sa.Column("exam_id", sa.String(length=36), sa.ForeignKey("exams.id", ondelete="CASCADE"), nullable=True),
        sa.Column(
            "attempt_id",
            sa.String(length=36),
            sa.ForeignKey("exam_attempts.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("source_code", sa.Text(), nullable=False),
        sa.Column("language_id", sa.Integer(), nullable=False),
        sa.Column("language", sa.String(length=50), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("passed_testcases", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_testcases", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("execution_time", sa.Float(), nullable=False, server_default="0"),
        sa.Column("memory", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("observed_complexity", sa.String(length=20), nullable=True),
        sa.Column("expected_complexity", sa.String(length=20), nullable=True),
        sa.Column("is_final", sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
        _version(),
    )
    op.create_index("ix_submissions_triple", "submissions", ["student_id", "problem_id", "attempt_id"])
    op.create_index(
        "uq_submissions_final",
        "submissions",
        ["student_id", "problem_id", sa.text("coalesce(attempt_id, '')")],
        unique=True,
        postgresql_where=sa.text("is_final"),
        sqlite_where=sa.text("is_final = 1"),
    )

    op.create_table(
        "student_problem_stats",
        _id(),
        sa.Column("student_id", sa.String(length=36), nullable=False),
        sa.Column("problem_id", sa.String(length=36), nullable=False),
        sa.Column("group_id", sa.String(length=36), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("solved", sa.Boolean(), nullable=False, server_default=sa.false()),
        _version(),
        sa.UniqueConstraint("student_id", "problem_id", "group_id", name="uq_student_problem_group"),
    )
    op.create_index("ix_student_problem_stats_student_id", "student_problem_stats", ["student_id"])
    op.create_table(
        "group_problem_stats",
        _id(),
        sa.Column("group_id", sa.String(length=36), nullable=False),
        sa.Column("problem_id", sa.String(length=36), nullable=False),
        sa.Column("attempted_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("accepted_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("avg_runtime", sa.Float(), nullable=False, server_default="0"),
        sa.Column("avg_memory", sa.Float(), nullable=False, server_default="0"),
        _version(),
        sa.UniqueConstraint("group_id", "problem_id", name="uq_group_problem"),
    )
    op.create_index("ix_group_problem_stats_group_id", "group_problem_stats", ["group_id"])
    op.create_table(
        "student_overall_stats",
        _id(),
        sa.Column("group_id", sa.String(length=36), nullable=False),
        sa.Column("student_id", sa.String(length=36), nullable=False),
        sa.Column("total_score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_exams", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("avg_score", sa.Float(), nullable=False, server_default="0"),
        sa.Column("total_attempts", sa.Integer(), nullable=False, server_default="0"),
        _version(),
        sa.UniqueConstraint("group_id", "student_id", name="uq_overall_group_student"),
    )
    op.create_index("ix_student_overall_stats_group_id", "student_overall_stats", ["group_id"])


def downgrade() -> None:
    for table in (
        "student_overall_stats",
        "group_problem_stats",
        "student_problem_stats",
        "submissions",
        "exam_results",
        "exam_attempts",
        "exam_groups",
        "group_members",
        "groups",
        "exam_problems",
        "exams",
        "complexity_probe_specs",
        "driver_codes",
        "test_cases",
        "problems",
    ):
        op.drop_table(table)
