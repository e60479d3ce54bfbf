"""MatchFeedback, WeightAdjustment and TrainingLog ORM models.

All three are append-only audit records.
"""

from typing import Optional

from sqlalchemy import JSON, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from smartmatch.db.base import AppendOnlyMixin, Base, TimestampMixin


class MatchFeedback(AppendOnlyMixin, TimestampMixin, Base):
    """User rating of one match result."""

    __tablename__ = "match_feedback"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    match_result_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("match_results.id"), nullable=False, index=True
    )
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    feedback_type: Mapped[str] = mapped_column(String, nullable=False)  # positive / neutral / negative
    comments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class WeightAdjustment(AppendOnlyMixin, TimestampMixin, Base):
    """One applied scoring-weight change, with before/after values."""

    __tablename__ = "weight_adjustments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String, nullable=False)
    industry_model_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("industry_models.id"), nullable=False, index=True
    )
    feedback_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("match_feedback.id"), nullable=True
    )
    dimension: Mapped[str] = mapped_column(String, nullable=False)
    previous_weight: Mapped[float] = mapped_column(Float, nullable=False)
    new_weight: Mapped[float] = mapped_column(Float, nullable=False)
    delta: Mapped[float] = mapped_column(Float, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)


class TrainingLog(AppendOnlyMixin, TimestampMixin, Base):
    """Outcome of one training pass."""

    __tablename__ = "training_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String, nullable=False)
    industry: Mapped[str] = mapped_column(String, nullable=False)
    model_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("industry_models.id"), nullable=False, index=True
    )
    training_type: Mapped[str] = mapped_column(String, nullable=False)  # initial / incremental / retrain
    data_points_used: Mapped[int] = mapped_column(Integer, nullable=False)
    training_duration_seconds: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    status: Mapped[str] = mapped_column(String, nullable=False)  # completed / failed
    before_metrics: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    after_metrics: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    improvements: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    error_detail: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
