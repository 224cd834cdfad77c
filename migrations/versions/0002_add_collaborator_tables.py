"""add collaborator tables

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-19

Read-mostly tables the engine consults but does not own:
goals, trust scores, aggregated user state, knowledge items,
motion-risk flags and entitlements. One row per user where noted.
"""
from alembic import op
import sqlalchemy as sa

revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None


def _ts(name: str) -> sa.Column:
    return sa.Column(
        name, sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
    )


def upgrade() -> None:
    op.create_table(
        "user_goals",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(64), nullable=False, unique=True),
        sa.Column("calories", sa.Numeric(8, 2), nullable=False),
        sa.Column("protein", sa.Numeric(8, 2), nullable=False),
        sa.Column("fat", sa.Numeric(8, 2), nullable=False),
        sa.Column("carbs", sa.Numeric(8, 2), nullable=False),
        _ts("updated_at"),
    )
    op.create_index("ix_user_goals_user_id", "user_goals", ["user_id"])

    op.create_table(
        "ai_trust_scores",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(64), nullable=False, unique=True),
        sa.Column("trust_score", sa.Integer(), nullable=False),
        _ts("updated_at"),
    )
    op.create_index("ix_ai_trust_scores_user_id", "ai_trust_scores", ["user_id"])

    op.create_table(
        "user_states",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(64), nullable=False, unique=True),
        sa.Column("current_weight", sa.Float(), nullable=True),
        sa.Column("trend_weight_7d", sa.Float(), nullable=True),
        sa.Column("trend_weight_30d", sa.Float(), nullable=True),
        sa.Column("avg_calories", sa.Float(), nullable=True),
        sa.Column("avg_protein", sa.Float(), nullable=True),
        sa.Column("training_load_index", sa.Float(), nullable=True),
        sa.Column("fatigue_index", sa.Float(), nullable=True),
        sa.Column("adherence_score", sa.Float(), nullable=True),
        sa.Column("recovery_score", sa.Float(), nullable=True),
        sa.Column("consistency_score", sa.Float(), nullable=True),
        _ts("updated_at"),
    )
    op.create_index("ix_user_states_user_id", "user_states", ["user_id"])

    op.create_table(
        "knowledge_items",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("kind", sa.String(16), nullable=False),
        sa.Column("name", sa.String(256), nullable=False),
        sa.Column("source", sa.String(32), nullable=False),
        sa.Column("confidence_score", sa.Float(), nullable=True),
        _ts("created_at"),
    )
    op.create_index("ix_knowledge_items_kind", "knowledge_items", ["kind"])
    op.create_index("ix_knowledge_items_source", "knowledge_items", ["source"])

    op.create_table(
        "motion_risk_flags",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("flag_type", sa.String(64), nullable=False),
        sa.Column("severity", sa.String(16), nullable=False),
        _ts("created_at"),
    )
    op.create_index("ix_motion_risk_flags_user_id", "motion_risk_flags", ["user_id"])

    op.create_table(
        "user_entitlements",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(64), nullable=False, unique=True),
        sa.Column("tier", sa.String(16), nullable=False, server_default="free"),
        sa.Column("can_generate", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("can_adapt", sa.Boolean(), nullable=False, server_default=sa.false()),
        _ts("updated_at"),
    )
    op.create_index("ix_user_entitlements_user_id", "user_entitlements", ["user_id"])


def downgrade() -> None:
    op.drop_table("user_entitlements")
    op.drop_table("motion_risk_flags")
    op.drop_table("knowledge_items")
    op.drop_table("user_states")
    op.drop_table("ai_trust_scores")
    op.drop_table("user_goals")
