"""Pydantic schemas for feature extraction."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class FeatureSuggestion(BaseModel):
    """Structured output contract for the AI feature extraction call."""

    model_config = ConfigDict(extra="ignore")

    key_phrases: list[str] = Field(default_factory=list)
    certifications: list[str] = Field(default_factory=list)


class ExtractedFeatures(BaseModel):
    """Key phrases, certifications and embedding for an RFP/proposal pair.

    embedding is None when no embedding backend could produce a vector.
    """

    key_phrases: list[str]
    certifications: list[str]
    embedding: Optional[list[float]] = None
    used_fallback: bool = False
