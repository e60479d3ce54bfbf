"""Pydantic schemas for the memory bank.

Provides validation for historical-data ingestion and serialization for
entries, nearest-neighbour hits, and per-user statistics.
"""

from datetime import datetime
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class Outcome(str, Enum):
    """Recorded outcome of a historical bid."""

    WON = "won"
    LOST = "lost"
    PENDING = "pending"


class HistoricalDataCreate(BaseModel):
    """Historical-data ingestion request. Maps directly to a MemoryBankEntry."""

    user_id: str = Field(..., min_length=1)
    industry: str = Field(..., min_length=1)
    rfp_text: str = Field(..., min_length=1)
    proposal_text: str = ""
    outcome: Outcome
    win_probability: Optional[float] = Field(None, ge=0, le=1)
    project_value: Optional[float] = Field(None, ge=0)
    timeline_weeks: Optional[int] = Field(None, ge=0)
    competitor_count: Optional[int] = Field(None, ge=0)
    client_size: Optional[Literal["enterprise", "mid-market", "small"]] = None
    feedback_notes: Optional[str] = None


class SimilarEntry(BaseModel):
    """One nearest-neighbour hit from the memory bank."""

    model_config = ConfigDict(frozen=True)

    id: int
    similarity: float = Field(..., ge=0, le=1)
    outcome: Outcome


class MemoryBankEntryResponse(BaseModel):
    """Memory bank entry without the raw texts and embedding."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    industry: str
    outcome: Outcome
    win_probability: Optional[float] = None
    key_phrases: list[str] = Field(default_factory=list)
    required_certifications: list[str] = Field(default_factory=list)
    project_value: Optional[float] = None
    timeline_weeks: Optional[int] = None
    competitor_count: Optional[int] = None
    client_size: Optional[str] = None
    created_at: datetime


class MemoryBankStatistics(BaseModel):
    """Summary statistics over a user's memory bank."""

    total_entries: int
    win_rate: float = Field(..., ge=0, le=100)  # percent, one decimal place
    avg_project_value: float
    industries: list[str]


class MemoryBankSummary(BaseModel):
    """Listing of memory bank entries plus statistics."""

    entries: list[MemoryBankEntryResponse]
    statistics: MemoryBankStatistics
