"""Initial schema: memory bank, industry models, results, feedback, training.

Revision ID: 001
Revises: None
Create Date: 2026-10-17

Creates: memory_bank_entries, extracted_features, industry_models,
         match_results, match_feedback, weight_adjustments, training_logs
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    """Create all SmartMatch tables."""

    # -- memory_bank_entries --
    op.create_table(
        "memory_bank_entries",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("user_id", sa.String, nullable=False),
        sa.Column("industry", sa.String, nullable=False),
        sa.Column("rfp_text", sa.Text, nullable=False),
        sa.Column("proposal_text", sa.Text, nullable=False, server_default=""),
        sa.Column("outcome", sa.String, nullable=False),
        sa.Column("win_probability", sa.Float, nullable=True),
        sa.Column("key_phrases", sa.JSON, nullable=False),
        sa.Column("required_certifications", sa.JSON, nullable=False),
        sa.Column("project_value", sa.Float, nullable=True),
        sa.Column("timeline_weeks", sa.Integer, nullable=True),
        sa.Column("competitor_count", sa.Integer, nullable=True),
        sa.Column("client_size", sa.String, nullable=True),
        sa.Column("embedding", sa.JSON, nullable=True),
        sa.Column("feedback_notes", sa.Text, nullable=True),
        *_timestamps(),
    )
    op.create_index(
        "ix_memory_bank_user_industry", "memory_bank_entries", ["user_id", "industry"]
    )

    # -- extracted_features --
    op.create_table(
        "extracted_features",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column(
            "memory_bank_entry_id",
            sa.Integer,
            sa.ForeignKey("memory_bank_entries.id"),
            nullable=False,
        ),
        sa.Column("feature_type", sa.String, nullable=False),
        sa.Column("feature_value", sa.String, nullable=False),
        sa.Column("importance", sa.Float, nullable=False, server_default="0.5"),
        sa.Column("frequency", sa.Integer, nullable=False, server_default="1"),
        *_timestamps(),
    )
    op.create_index(
        "ix_extracted_features_memory_bank_entry_id",
        "extracted_features",
        ["memory_bank_entry_id"],
    )

    # -- industry_models --
    op.create_table(
        "industry_models",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("user_id", sa.String, nullable=False),
        sa.Column("industry", sa.String, nullable=False),
        sa.Column("model_version", sa.String, nullable=False, server_default="1.0"),
        sa.Column("scoring_weights", sa.JSON, nullable=False),
        sa.Column("training_data_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("last_training_date", sa.DateTime, nullable=True),
        sa.Column("performance_metrics", sa.JSON, nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default="1"),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        *_timestamps(),
    )
    # At most one active model per (user_id, industry)
    op.create_index(
        "uq_industry_models_active",
        "industry_models",
        ["user_id", "industry"],
        unique=True,
        sqlite_where=sa.text("is_active = 1"),
        postgresql_where=sa.text("is_active"),
    )

    # -- match_results --
    op.create_table(
        "match_results",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("rfp_id", sa.String, nullable=False),
        sa.Column("user_id", sa.String, nullable=False),
        sa.Column("industry", sa.String, nullable=False),
        sa.Column(
            "model_id", sa.Integer, sa.ForeignKey("industry_models.id"), nullable=False
        ),
        sa.Column("model_version", sa.String, nullable=False),
        sa.Column("overall_score", sa.Integer, nullable=False),
        sa.Column("dimension_scores", sa.JSON, nullable=False),
        sa.Column("confidence_level", sa.Float, nullable=False),
        sa.Column("verdict", sa.String, nullable=False),
        sa.Column("similar_entries", sa.JSON, nullable=False),
        sa.Column("risk_factors", sa.JSON, nullable=False),
        sa.Column("success_predictors", sa.JSON, nullable=False),
        sa.Column("recommended_strategy", sa.JSON, nullable=False),
        sa.Column("competitive_analysis", sa.JSON, nullable=False),
        sa.Column("document_type", sa.String, nullable=False),
        sa.Column("fit_score", sa.Integer, nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_match_results_user_id", "match_results", ["user_id"])

    # -- match_feedback --
    op.create_table(
        "match_feedback",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("user_id", sa.String, nullable=False),
        sa.Column(
            "match_result_id",
            sa.Integer,
            sa.ForeignKey("match_results.id"),
            nullable=False,
        ),
        sa.Column("rating", sa.Integer, nullable=False),
        sa.Column("feedback_type", sa.String, nullable=False),
        sa.Column("comments", sa.Text, nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_match_feedback_user_id", "match_feedback", ["user_id"])
    op.create_index(
        "ix_match_feedback_match_result_id", "match_feedback", ["match_result_id"]
    )

    # -- weight_adjustments --
    op.create_table(
        "weight_adjustments",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("user_id", sa.String, nullable=False),
        sa.Column(
            "industry_model_id",
            sa.Integer,
            sa.ForeignKey("industry_models.id"),
            nullable=False,
        ),
        sa.Column(
            "feedback_id", sa.Integer, sa.ForeignKey("match_feedback.id"), nullable=True
        ),
        sa.Column("dimension", sa.String, nullable=False),
        sa.Column("previous_weight", sa.Float, nullable=False),
        sa.Column("new_weight", sa.Float, nullable=False),
        sa.Column("delta", sa.Float, nullable=False),
        sa.Column("reason", sa.Text, nullable=False),
        *_timestamps(),
    )
    op.create_index(
        "ix_weight_adjustments_industry_model_id",
        "weight_adjustments",
        ["industry_model_id"],
    )

    # -- training_logs --
    op.create_table(
        "training_logs",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("user_id", sa.String, nullable=False),
        sa.Column("industry", sa.String, nullable=False),
        sa.Column(
            "model_id", sa.Integer, sa.ForeignKey("industry_models.id"), nullable=False
        ),
        sa.Column("training_type", sa.String, nullable=False),
        sa.Column("data_points_used", sa.Integer, nullable=False),
        sa.Column(
            "training_duration_seconds", sa.Float, nullable=False, server_default="0"
        ),
        sa.Column("status", sa.String, nullable=False),
        sa.Column("before_metrics", sa.JSON, nullable=False),
        sa.Column("after_metrics", sa.JSON, nullable=False),
        sa.Column("improvements", sa.JSON, nullable=False),
        sa.Column("error_detail", sa.Text, nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_training_logs_model_id", "training_logs", ["model_id"])


def downgrade() -> None:
    """Drop all SmartMatch tables in reverse dependency order."""
    op.drop_index("ix_training_logs_model_id", table_name="training_logs")
    op.drop_table("training_logs")
    op.drop_index("ix_weight_adjustments_industry_model_id", table_name="weight_adjustments")
    op.drop_table("weight_adjustments")
    op.drop_index("ix_match_feedback_match_result_id", table_name="match_feedback")
    op.drop_index("ix_match_feedback_user_id", table_name="match_feedback")
    op.drop_table("match_feedback")
    op.drop_index("ix_match_results_user_id", table_name="match_results")
    op.drop_table("match_results")
    op.drop_index("uq_industry_models_active", table_name="industry_models")
    op.drop_table("industry_models")
    op.drop_index(
        "ix_extracted_features_memory_bank_entry_id", table_name="extracted_features"
    )
    op.drop_table("extracted_features")
    op.drop_index("ix_memory_bank_user_industry", table_name="memory_bank_entries")
    op.drop_table("memory_bank_entries")
