"""MemoryBankEntry and ExtractedFeature ORM models.

Both are append-only history: the AppendOnlyMixin guard rejects any flush
that would update or delete a row. Tenant isolation is enforced at the
service layer by always filtering on (user_id, industry).
"""

from typing import Optional

from sqlalchemy import JSON, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from smartmatch.db.base import AppendOnlyMixin, Base, TimestampMixin


class MemoryBankEntry(AppendOnlyMixin, TimestampMixin, Base):
    """One historical RFP/proposal/outcome triple."""

    __tablename__ = "memory_bank_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String, nullable=False)
    industry: Mapped[str] = mapped_column(String, nullable=False)
    rfp_text: Mapped[str] = mapped_column(Text, nullable=False)
    proposal_text: Mapped[str] = mapped_column(Text, nullable=False, default="")
    outcome: Mapped[str] = mapped_column(String, nullable=False)  # won / lost / pending
    win_probability: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    key_phrases: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    required_certifications: Mapped[list] = mapped_column(
        JSON, nullable=False, default=list
    )
    project_value: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    timeline_weeks: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    competitor_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    client_size: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    # None when stored while the embedding backend was unavailable
    embedding: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    feedback_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_memory_bank_user_industry", "user_id", "industry"),
    )


class ExtractedFeature(AppendOnlyMixin, TimestampMixin, Base):
    """Key phrase or certification extracted from a memory bank entry."""

    __tablename__ = "extracted_features"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    memory_bank_entry_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("memory_bank_entries.id"), nullable=False, index=True
    )
    feature_type: Mapped[str] = mapped_column(String, nullable=False)  # key_phrase / certification
    feature_value: Mapped[str] = mapped_column(String, nullable=False)
    importance: Mapped[float] = mapped_column(Float, nullable=False, default=0.5)
    frequency: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
