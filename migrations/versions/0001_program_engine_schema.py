"""program engine schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
    )


def _updated_at() -> sa.Column:
    return sa.Column(
        "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
    )


def upgrade() -> None:
    # --- ENUM types ---
    program_type_enum = sa.Enum("nutrition", "training", name="program_type_enum")
    program_type_enum.create(op.get_bind(), checkfirst=True)

    program_status_enum = sa.Enum("active", "paused", "blocked", name="program_status_enum")
    program_status_enum.create(op.get_bind(), checkfirst=True)

    session_status_enum = sa.Enum(
        "planned", "completed", "skipped", name="session_status_enum"
    )
    session_status_enum.create(op.get_bind(), checkfirst=True)

    risk_level_enum = sa.Enum("safe", "caution", "danger", name="risk_level_enum")
    risk_level_enum.create(op.get_bind(), checkfirst=True)

    # --- programs ---
    op.create_table(
        "programs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("program_type", sa.Enum(
            "nutrition", "training", name="program_type_enum", create_type=False,
        ), nullable=False),
        sa.Column("status", sa.Enum(
            "active", "paused", "blocked", name="program_status_enum", create_type=False,
        ), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("knowledge_version_ref", sa.Text(), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_programs_id", "programs", ["id"])
    op.create_index("ix_programs_user_id", "programs", ["user_id"])
    op.create_index("ix_programs_program_type", "programs", ["program_type"])

    # --- program_phases ---
    op.create_table(
        "program_phases",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("program_id", sa.Integer(), sa.ForeignKey("programs.id"), nullable=False),
        sa.Column("program_version", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(32), nullable=False),
        sa.Column("phase_type", sa.String(16), nullable=False),
        sa.Column("phase_goal", sa.String(32), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("superseded_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_program_phases_id", "program_phases", ["id"])
    op.create_index("ix_program_phases_program_id", "program_phases", ["program_id"])

    # --- program_blocks ---
    op.create_table(
        "program_blocks",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "phase_id", sa.Integer(),
            sa.ForeignKey("program_phases.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("block_type", sa.String(16), nullable=False),
        sa.Column("block_goal", sa.String(32), nullable=False),
        sa.Column("duration_days", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_program_blocks_id", "program_blocks", ["id"])
    op.create_index("ix_program_blocks_phase_id", "program_blocks", ["phase_id"])

    # --- program_days ---
    op.create_table(
        "program_days",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "block_id", sa.Integer(),
            sa.ForeignKey("program_blocks.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("program_id", sa.Integer(), sa.ForeignKey("programs.id"), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("targets", sa.Text(), nullable=True),
        sa.Column("session_plan", sa.Text(), nullable=True),
        sa.Column("constraints_applied", sa.Text(), nullable=True),
        sa.Column("superseded_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_program_days_id", "program_days", ["id"])
    op.create_index("ix_program_days_block_id", "program_days", ["block_id"])
    op.create_index("ix_program_days_program_id", "program_days", ["program_id"])
    op.create_index("ix_program_days_date", "program_days", ["date"])

    # --- program_sessions ---
    op.create_table(
        "program_sessions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("program_id", sa.Integer(), sa.ForeignKey("programs.id"), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("session_type", sa.String(32), nullable=False),
        sa.Column("plan_payload", sa.Text(), nullable=True),
        sa.Column("status", sa.Enum(
            "planned", "completed", "skipped", name="session_status_enum", create_type=False,
        ), nullable=False),
        _updated_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("program_id", "date", name="uq_program_session_date"),
    )
    op.create_index("ix_program_sessions_id", "program_sessions", ["id"])
    op.create_index("ix_program_sessions_program_id", "program_sessions", ["program_id"])
    op.create_index("ix_program_sessions_date", "program_sessions", ["date"])

    # --- program_versions (append-only) ---
    op.create_table(
        "program_versions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("program_id", sa.Integer(), sa.ForeignKey("programs.id"), nullable=False),
        sa.Column("program_type", sa.String(16), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("snapshot", sa.Text(), nullable=False),
        sa.Column("reason", sa.String(32), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("program_id", "version", name="uq_program_version"),
    )
    op.create_index("ix_program_versions_id", "program_versions", ["id"])
    op.create_index("ix_program_versions_program_id", "program_versions", ["program_id"])

    # --- program_adaptations (append-only) ---
    op.create_table(
        "program_adaptations",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("program_id", sa.Integer(), sa.ForeignKey("programs.id"), nullable=False),
        sa.Column("program_type", sa.String(16), nullable=False),
        sa.Column("from_version", sa.Integer(), nullable=False),
        sa.Column("to_version", sa.Integer(), nullable=False),
        sa.Column("trigger", sa.String(32), nullable=False),
        sa.Column("summary", sa.Text(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_program_adaptations_id", "program_adaptations", ["id"])
    op.create_index("ix_program_adaptations_program_id", "program_adaptations", ["program_id"])

    # --- program_guard_events (append-only) ---
    op.create_table(
        "program_guard_events",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("program_id", sa.Integer(), sa.ForeignKey("programs.id"), nullable=False),
        sa.Column("program_type", sa.String(16), nullable=False),
        sa.Column("risk_level", sa.Enum(
            "safe", "caution", "danger", name="risk_level_enum", create_type=False,
        ), nullable=False),
        sa.Column("flags", sa.Text(), nullable=False),
        sa.Column("blocked_actions", sa.Text(), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_program_guard_events_id", "program_guard_events", ["id"])
    op.create_index("ix_program_guard_events_program_id", "program_guard_events", ["program_id"])

    # --- program_explainability (append-only) ---
    op.create_table(
        "program_explainability",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("program_id", sa.Integer(), sa.ForeignKey("programs.id"), nullable=False),
        sa.Column("program_type", sa.String(16), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("decision_ref", sa.String(32), nullable=False),
        sa.Column("knowledge_refs", sa.Text(), nullable=True),
        sa.Column("confidence", sa.Float(), nullable=True),
        sa.Column("guard_notes", sa.Text(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_program_explainability_id", "program_explainability", ["id"])
    op.create_index(
        "ix_program_explainability_program_id", "program_explainability", ["program_id"]
    )
    op.create_index("ix_program_explainability_version", "program_explainability", ["version"])

    # --- program_generation_jobs ---
    op.create_table(
        "program_generation_jobs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("program_type", sa.String(16), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("input_context", sa.Text(), nullable=True),
        sa.Column(
            "output_program_id", sa.Integer(), sa.ForeignKey("programs.id"), nullable=True
        ),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_program_generation_jobs_id", "program_generation_jobs", ["id"])
    op.create_index("ix_program_generation_jobs_user_id", "program_generation_jobs", ["user_id"])

    # --- program_feedback ---
    op.create_table(
        "program_feedback",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("program_id", sa.Integer(), sa.ForeignKey("programs.id"), nullable=False),
        sa.Column("program_type", sa.String(16), nullable=False),
        sa.Column("program_session_id", sa.Integer(), nullable=True),
        sa.Column("energy", sa.Integer(), nullable=True),
        sa.Column("hunger", sa.Integer(), nullable=True),
        sa.Column("difficulty", sa.Integer(), nullable=True),
        sa.Column("pain", sa.Integer(), nullable=True),
        sa.Column("motivation", sa.Integer(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_program_feedback_id", "program_feedback", ["id"])
    op.create_index("ix_program_feedback_program_id", "program_feedback", ["program_id"])


def downgrade() -> None:
    op.drop_table("program_feedback")
    op.drop_table("program_generation_jobs")
    op.drop_table("program_explainability")
    op.drop_table("program_guard_events")
    op.drop_table("program_adaptations")
    op.drop_table("program_versions")
    op.drop_table("program_sessions")
    op.drop_table("program_days")
    op.drop_table("program_blocks")
    op.drop_table("program_phases")
    op.drop_table("programs")

    sa.Enum(name="risk_level_enum").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="session_status_enum").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="program_status_enum").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="program_type_enum").drop(op.get_bind(), checkfirst=True)
