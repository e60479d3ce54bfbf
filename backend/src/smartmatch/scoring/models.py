"""IndustryModel and MatchResult ORM models.

IndustryModel rows are never hard-deleted, only deactivated. A partial
unique index allows at most one active model per (user_id, industry).
`version` is the optimistic-concurrency counter: writers compare-and-set on
it (see scoring.service.compare_and_set_model).
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from smartmatch.db.base import AppendOnlyMixin, Base, TimestampMixin


class IndustryModel(TimestampMixin, Base):
    """Per-tenant scoring weights and training state."""

    __tablename__ = "industry_models"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String, nullable=False)
    industry: Mapped[str] = mapped_column(String, nullable=False)
    model_version: Mapped[str] = mapped_column(String, nullable=False, default="1.0")
    scoring_weights: Mapped[dict] = mapped_column(JSON, nullable=False)
    training_data_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_training_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    performance_metrics: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __table_args__ = (
        Index(
            "uq_industry_models_active",
            "user_id",
            "industry",
            unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active"),
        ),
    )


class MatchResult(AppendOnlyMixin, TimestampMixin, Base):
    """Persisted EnhancedMatchResult for one analysis."""

    __tablename__ = "match_results"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    rfp_id: Mapped[str] = mapped_column(String, nullable=False)
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    industry: Mapped[str] = mapped_column(String, nullable=False)
    model_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("industry_models.id"), nullable=False
    )
    model_version: Mapped[str] = mapped_column(String, nullable=False)
    overall_score: Mapped[int] = mapped_column(Integer, nullable=False)
    dimension_scores: Mapped[dict] = mapped_column(JSON, nullable=False)
    confidence_level: Mapped[float] = mapped_column(Float, nullable=False)
    verdict: Mapped[str] = mapped_column(String, nullable=False)
    similar_entries: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    risk_factors: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    success_predictors: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    recommended_strategy: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    competitive_analysis: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    document_type: Mapped[str] = mapped_column(String, nullable=False)
    fit_score: Mapped[int] = mapped_column(Integer, nullable=False)
