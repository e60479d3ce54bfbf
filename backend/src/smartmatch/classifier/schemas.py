"""Pydantic schemas for document classification.

ClassifierVerdict is the strict decode target for AI backend output.
ClassificationResult is the immutable result handed to callers.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class DocumentType(str, Enum):
    """Document types the classifier can assign."""

    RFP = "RFP"
    RFQ = "RFQ"
    INVOICE = "Invoice"
    RESUME = "Resume"
    EMAIL = "Email"
    LEGAL = "Legal"
    PROPOSAL = "Proposal"
    UNKNOWN = "Unknown"


# Solicitation types that may pass validation
SOLICITATION_TYPES = frozenset({DocumentType.RFP, DocumentType.RFQ})


class ExtractedSections(BaseModel):
    """RFP sections found in the document, as short text snippets."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    scope: Optional[str] = None
    deliverables: Optional[str] = None
    deadline: Optional[str] = None
    evaluation: Optional[str] = None
    eligibility: Optional[str] = None

    def found(self) -> list[str]:
        """Names of the sections that were located."""
        return [name for name, value in self.model_dump().items() if value]


class ClassifierVerdict(BaseModel):
    """Structured output contract for the AI classification call."""

    model_config = ConfigDict(extra="ignore")

    document_type: DocumentType
    confidence: float = Field(..., ge=0, le=1)
    fit_score: int = Field(..., ge=0, le=100)
    is_valid_rfp: bool
    reason: str = Field(..., min_length=1)
    extracted_sections: ExtractedSections = ExtractedSections()
    keywords: list[str] = Field(default_factory=list)


class ClassificationResult(BaseModel):
    """Outcome of one classification call. Immutable once produced."""

    model_config = ConfigDict(frozen=True)

    is_valid_rfp: bool
    document_type: DocumentType
    confidence: float = Field(..., ge=0, le=1)
    fit_score: int = Field(..., ge=0, le=100)
    extracted_sections: ExtractedSections
    keywords: list[str] = Field(default_factory=list)
    rejection_reason: Optional[str] = None
    used_fallback: bool = False
