"""Document classifier: gates uploads before any scoring happens.

The primary path asks the ClassifierBackend for a structured verdict. Any
backend failure, timeout or schema violation drops to a deterministic
keyword scan. Both paths then pass through the same post-validation, where
invoice terms always override a positive classification.

classify() never raises. Invalid results always carry a rejection reason.
"""

from __future__ import annotations

import logging
import re

from smartmatch.ai.backends import ClassifierBackend, NullClassifierBackend, call_with_timeout
from smartmatch.classifier.schemas import (
    SOLICITATION_TYPES,
    ClassificationResult,
    ClassifierVerdict,
    DocumentType,
    ExtractedSections,
)
from smartmatch.exceptions import BackendError

logger = logging.getLogger(__name__)

MAX_CLASSIFIER_CHARS = 8000
SECTION_SNIPPET_CHARS = 240

INVOICE_TERMS = (
    "invoice number",
    "invoice no.",
    "invoice #",
    "invoice date",
    "bill to",
    "billed to",
    "payment due",
    "total due",
    "amount due",
    "remit to",
)

# Terms that only a request for proposal uses
PROPOSAL_TERMS = (
    "request for proposal",
    "request for proposals",
    "rfp",
    "proposal submission",
    "proposal deadline",
    "proposals are due",
)

QUOTATION_TERMS = (
    "request for quotation",
    "request for quote",
    "rfq",
    "quotation",
)

# Structure shared by both kinds of solicitation
SOLICITATION_TERMS = (
    "scope of work",
    "statement of work",
    "deliverables",
    "evaluation criteria",
    "submission deadline",
)

RESUME_TERMS = (
    "curriculum vitae",
    "employment history",
    "work history",
    "professional summary",
    "career objective",
    "references available upon request",
    "resume",
)

SECTION_MARKERS = {
    "scope": ("scope of work", "statement of work", "project scope", "scope"),
    "deliverables": ("deliverables", "deliverable"),
    "deadline": (
        "submission deadline",
        "proposal deadline",
        "proposals are due",
        "due date",
        "deadline",
    ),
    "evaluation": ("evaluation criteria", "selection criteria", "evaluation"),
    "eligibility": ("eligibility", "minimum qualifications", "qualifications"),
}

_PAGE_COUNTER_RE = re.compile(r"\bpage\s+\d+(?:\s+of\s+\d+)?\b", re.IGNORECASE)
_ARTIFACT_LINE_RE = re.compile(
    r"^\s*(?:confidential|proprietary|draft|watermark|do not distribute)\s*$",
    re.IGNORECASE | re.MULTILINE,
)
_WS_RE = re.compile(r"\s+")


def _term_pattern(term: str) -> re.Pattern:
    return re.compile(r"(?<!\w)" + re.escape(term) + r"(?!\w)")


_PATTERNS = {
    term: _term_pattern(term)
    for group in (
        INVOICE_TERMS,
        PROPOSAL_TERMS,
        QUOTATION_TERMS,
        SOLICITATION_TERMS,
        RESUME_TERMS,
        *SECTION_MARKERS.values(),
    )
    for term in group
}


def clean_document_text(text: str) -> str:
    """Strip page counters and watermark lines, then normalize whitespace."""
    cleaned = _ARTIFACT_LINE_RE.sub(" ", text)
    cleaned = _PAGE_COUNTER_RE.sub(" ", cleaned)
    return _WS_RE.sub(" ", cleaned).strip()


def find_terms(text: str, terms: tuple[str, ...]) -> list[str]:
    """Terms occurring in text as whole words, case-insensitive, in list order."""
    lower = text.lower()
    return [t for t in terms if _PATTERNS[t].search(lower)]


def extract_sections(text: str) -> ExtractedSections:
    """Short snippets following the first marker of each RFP section."""
    lower = text.lower()
    found: dict[str, str] = {}
    for name, markers in SECTION_MARKERS.items():
        for marker in markers:
            match = _PATTERNS[marker].search(lower)
            if not match:
                continue
            raw = text[match.end(): match.end() + SECTION_SNIPPET_CHARS]
            snippet = _WS_RE.sub(" ", raw).strip(" :-.\t\n")
            if snippet:
                found[name] = snippet
                break
    return ExtractedSections(**found)


class DocumentClassifier:
    """Classifies documents and decides whether they are valid RFPs."""

    def __init__(
        self,
        backend: ClassifierBackend | None = None,
        max_chars: int = MAX_CLASSIFIER_CHARS,
        timeout: float = 20.0,
    ) -> None:
        self.backend = backend or NullClassifierBackend()
        self.max_chars = max_chars
        self.timeout = timeout

    async def classify(self, text: str) -> ClassificationResult:
        """Classify a document. Never raises."""
        if not text.strip():
            return ClassificationResult(
                is_valid_rfp=False,
                document_type=DocumentType.UNKNOWN,
                confidence=1.0,
                fit_score=0,
                extracted_sections=ExtractedSections(),
                rejection_reason="Document contains no extractable text",
                used_fallback=True,
            )

        truncated = text[: self.max_chars]
        try:
            verdict = await call_with_timeout(
                self.backend.classify(truncated), self.timeout, "classification"
            )
        except BackendError as e:
            logger.info("Classifier backend unavailable, using keyword scan: %s", e.message)
            result = self.fallback_classify(text)
        else:
            result = self._from_verdict(text, verdict)

        # Only the backend sees the truncated text; invoice terms anywhere reject.
        return self._apply_invoice_override(text, result)

    def _from_verdict(self, text: str, verdict: ClassifierVerdict) -> ClassificationResult:
        heuristic = extract_sections(text)
        sections = ExtractedSections(
            **{
                name: getattr(verdict.extracted_sections, name) or getattr(heuristic, name)
                for name in SECTION_MARKERS
            }
        )
        is_valid = verdict.is_valid_rfp and verdict.document_type in SOLICITATION_TYPES
        rejection_reason = None
        if not is_valid:
            if verdict.document_type not in SOLICITATION_TYPES:
                rejection_reason = (
                    f"Document classified as {verdict.document_type.value}: {verdict.reason}"
                )
            else:
                rejection_reason = verdict.reason
        return ClassificationResult(
            is_valid_rfp=is_valid,
            document_type=verdict.document_type,
            confidence=verdict.confidence,
            fit_score=verdict.fit_score if is_valid else 0,
            extracted_sections=sections,
            keywords=verdict.keywords,
            rejection_reason=rejection_reason,
            used_fallback=False,
        )

    def fallback_classify(self, text: str) -> ClassificationResult:
        """Deterministic keyword classification.

        Order: invoice, solicitation, resume, generic. Solicitations are
        checked before resumes so an RFP that asks for key personnel resumes
        is not rejected.
        """
        sections = extract_sections(text)

        invoice_hits = find_terms(text, INVOICE_TERMS)
        if invoice_hits:
            return ClassificationResult(
                is_valid_rfp=False,
                document_type=DocumentType.INVOICE,
                confidence=0.8,
                fit_score=0,
                extracted_sections=sections,
                keywords=invoice_hits,
                rejection_reason=f"Invoice terms detected: {', '.join(invoice_hits)}",
                used_fallback=True,
            )

        proposal_hits = find_terms(text, PROPOSAL_TERMS)
        quotation_hits = find_terms(text, QUOTATION_TERMS)
        structure_hits = find_terms(text, SOLICITATION_TERMS)
        solicitation_hits = proposal_hits + quotation_hits + structure_hits
        if solicitation_hits:
            doc_type = (
                DocumentType.RFQ
                if quotation_hits and not proposal_hits
                else DocumentType.RFP
            )
            return ClassificationResult(
                is_valid_rfp=True,
                document_type=doc_type,
                confidence=0.6,
                fit_score=85,
                extracted_sections=sections,
                keywords=solicitation_hits,
                used_fallback=True,
            )

        resume_hits = find_terms(text, RESUME_TERMS)
        if resume_hits:
            return ClassificationResult(
                is_valid_rfp=False,
                document_type=DocumentType.RESUME,
                confidence=0.7,
                fit_score=0,
                extracted_sections=sections,
                keywords=resume_hits,
                rejection_reason=f"Resume terms detected: {', '.join(resume_hits)}",
                used_fallback=True,
            )

        return ClassificationResult(
            is_valid_rfp=True,
            document_type=DocumentType.RFP,
            confidence=0.5,
            fit_score=75,
            extracted_sections=sections,
            keywords=[],
            rejection_reason=None,
            used_fallback=True,
        )

    def _apply_invoice_override(
        self, text: str, result: ClassificationResult
    ) -> ClassificationResult:
        invoice_hits = find_terms(text, INVOICE_TERMS)
        if not invoice_hits or (
            result.document_type == DocumentType.INVOICE and not result.is_valid_rfp
        ):
            return result
        logger.info("Invoice terms override %s classification", result.document_type.value)
        return result.model_copy(
            update={
                "is_valid_rfp": False,
                "document_type": DocumentType.INVOICE,
                "fit_score": 0,
                "rejection_reason": f"Invoice terms detected: {', '.join(invoice_hits)}",
            }
        )
