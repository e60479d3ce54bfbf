"""Tests for the document classifier.

Covers the deterministic keyword fallback, the invoice override on both
paths, primary-path validation, section extraction and text cleaning.
"""

import asyncio

from conftest import FakeClassifierBackend

from smartmatch.classifier.schemas import ClassifierVerdict, DocumentType, ExtractedSections
from smartmatch.classifier.service import (
    DocumentClassifier,
    clean_document_text,
    extract_sections,
    find_terms,
)
from smartmatch.exceptions import BackendUnavailableError, MalformedBackendResponseError


def _run(coro):
    """Helper to run async functions in sync tests."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


RFP_TEXT = (
    "Request for Proposal: Cloud Migration Services. "
    "Scope of Work: migrate 40 legacy applications to a managed cloud platform. "
    "Deliverables: migration plan, runbooks, and knowledge transfer sessions. "
    "Submission deadline: March 15, 2027 at 5pm EST. "
    "Evaluation criteria: technical approach 40%, price 30%, past performance 30%."
)

INVOICE_TEXT = (
    "ACME Consulting. Invoice Number: 10442. Bill To: City of Springfield. "
    "Consulting services for March. Total Due: $12,400.00. Payment due in 30 days."
)


def _verdict(**overrides) -> ClassifierVerdict:
    data = dict(
        document_type="RFP",
        confidence=0.92,
        fit_score=88,
        is_valid_rfp=True,
        reason="Solicitation with scope and evaluation criteria",
        extracted_sections={"scope": "Migrate applications"},
        keywords=["cloud", "migration"],
    )
    data.update(overrides)
    return ClassifierVerdict(**data)


class TestFallbackClassification:
    """Keyword scan used when no AI backend is available."""

    def test_rfp_terms_yield_valid_rfp(self):
        """Request for Proposal + Scope of Work -> valid RFP, fit >= 75."""
        result = _run(DocumentClassifier().classify(RFP_TEXT))
        assert result.is_valid_rfp is True
        assert result.document_type == DocumentType.RFP
        assert result.fit_score >= 75
        assert result.rejection_reason is None
        assert result.used_fallback is True

    def test_invoice_terms_yield_invalid_invoice(self):
        result = _run(DocumentClassifier().classify(INVOICE_TEXT))
        assert result.is_valid_rfp is False
        assert result.document_type == DocumentType.INVOICE
        assert result.fit_score == 0
        assert "invoice number" in result.rejection_reason

    def test_invoice_terms_override_rfp_terms(self):
        """Invoice Number and Total Due win over any RFP-like terms."""
        text = RFP_TEXT + " Invoice Number: 1. Total Due: $5."
        result = _run(DocumentClassifier().classify(text))
        assert result.is_valid_rfp is False
        assert result.document_type == DocumentType.INVOICE
        assert result.fit_score == 0

    def test_resume_is_rejected(self):
        text = (
            "Jane Doe. Curriculum Vitae. Professional summary: data engineer. "
            "Employment history: Globex 2019-2024."
        )
        result = _run(DocumentClassifier().classify(text))
        assert result.is_valid_rfp is False
        assert result.document_type == DocumentType.RESUME
        assert result.fit_score == 0
        assert result.rejection_reason

    def test_rfp_requesting_resumes_stays_valid(self):
        text = RFP_TEXT + " Include a resume for each key personnel."
        result = _run(DocumentClassifier().classify(text))
        assert result.is_valid_rfp is True
        assert result.document_type == DocumentType.RFP

    def test_quotation_only_is_rfq(self):
        text = "Request for Quotation for 200 office chairs. Deliverables: delivery by June."
        result = _run(DocumentClassifier().classify(text))
        assert result.is_valid_rfp is True
        assert result.document_type == DocumentType.RFQ

    def test_generic_document_is_accepted(self):
        """Atypically worded documents are accepted with a moderate score."""
        text = "We are looking for a partner to help modernize our warehouse systems."
        result = _run(DocumentClassifier().classify(text))
        assert result.is_valid_rfp is True
        assert result.document_type == DocumentType.RFP
        assert result.fit_score == 75

    def test_empty_text_is_rejected(self):
        result = _run(DocumentClassifier().classify("   \n "))
        assert result.is_valid_rfp is False
        assert result.document_type == DocumentType.UNKNOWN
        assert result.rejection_reason

    def test_classify_is_deterministic(self):
        """Identical input gives an identical result on the fallback path."""
        classifier = DocumentClassifier()
        first = _run(classifier.classify(RFP_TEXT))
        second = _run(classifier.classify(RFP_TEXT))
        assert first == second
        assert first.model_dump_json() == second.model_dump_json()

    def test_terms_match_whole_words_only(self):
        assert find_terms("The RFP is attached", ("rfp",)) == ["rfp"]
        assert find_terms("rfpx tracking code", ("rfp",)) == []


class TestPrimaryPath:
    """Classification through an injected backend."""

    def test_valid_verdict_is_used(self):
        backend = FakeClassifierBackend(verdict=_verdict())
        result = _run(DocumentClassifier(backend).classify(RFP_TEXT))
        assert result.is_valid_rfp is True
        assert result.fit_score == 88
        assert result.confidence == 0.92
        assert result.used_fallback is False
        assert result.extracted_sections.scope == "Migrate applications"
        # Missing sections are filled from the keyword scan
        assert result.extracted_sections.deadline is not None

    def test_non_solicitation_type_is_invalid(self):
        backend = FakeClassifierBackend(
            verdict=_verdict(document_type="Email", is_valid_rfp=True)
        )
        result = _run(DocumentClassifier(backend).classify("Hi team, see notes below."))
        assert result.is_valid_rfp is False
        assert result.fit_score == 0
        assert result.rejection_reason.startswith("Document classified as Email")

    def test_invoice_override_applies_to_primary_verdict(self):
        backend = FakeClassifierBackend(verdict=_verdict())
        result = _run(DocumentClassifier(backend).classify(INVOICE_TEXT))
        assert result.is_valid_rfp is False
        assert result.document_type == DocumentType.INVOICE
        assert result.fit_score == 0

    def test_backend_failure_falls_back(self):
        backend = FakeClassifierBackend(exc=BackendUnavailableError(detail="HTTP 503"))
        result = _run(DocumentClassifier(backend).classify(RFP_TEXT))
        assert result.used_fallback is True
        assert result.is_valid_rfp is True

    def test_malformed_response_falls_back(self):
        backend = FakeClassifierBackend(exc=MalformedBackendResponseError())
        result = _run(DocumentClassifier(backend).classify(INVOICE_TEXT))
        assert result.used_fallback is True
        assert result.document_type == DocumentType.INVOICE

    def test_slow_backend_times_out_to_fallback(self):
        class SlowBackend(FakeClassifierBackend):
            async def classify(self, text):
                await asyncio.sleep(5)

        classifier = DocumentClassifier(SlowBackend(), timeout=0.01)
        result = _run(classifier.classify(RFP_TEXT))
        assert result.used_fallback is True

    def test_text_is_truncated_before_backend_call(self):
        backend = FakeClassifierBackend(verdict=_verdict())
        classifier = DocumentClassifier(backend, max_chars=100)
        _run(classifier.classify("x" * 500))
        assert len(backend.calls[0]) == 100


class TestSectionsAndCleaning:
    def test_extract_sections_snippets(self):
        sections = extract_sections(RFP_TEXT)
        assert sections.scope.startswith("migrate 40 legacy applications")
        assert sections.deliverables.startswith("migration plan")
        assert sections.deadline.startswith("March 15, 2027")
        assert sections.evaluation.startswith("technical approach")
        assert sections.eligibility is None
        assert set(sections.found()) == {"scope", "deliverables", "deadline", "evaluation"}

    def test_no_sections_found(self):
        assert extract_sections("nothing relevant here").found() == []
        assert ExtractedSections().found() == []

    def test_clean_document_text_strips_artifacts(self):
        raw = "CONFIDENTIAL\nRequest for Proposal\n\n\nPage 1 of 12\nScope   of work"
        cleaned = clean_document_text(raw)
        assert "Page 1 of 12" not in cleaned
        assert "CONFIDENTIAL" not in cleaned
        assert cleaned == "Request for Proposal Scope of work"


class TestInvoiceTermsPastCutoff:
    """Invoice terms beyond the backend input limit still reject the document."""

    LONG_TEXT = RFP_TEXT + " filler" * 1200 + " Invoice Number: 991. Total Due: $5,000."

    def test_fallback_path_scans_full_text(self):
        assert len(RFP_TEXT + " filler" * 1200) > 8000
        result = _run(DocumentClassifier().classify(self.LONG_TEXT))
        assert result.is_valid_rfp is False
        assert result.document_type == DocumentType.INVOICE
        assert result.fit_score == 0

    def test_primary_verdict_is_overridden(self):
        backend = FakeClassifierBackend(verdict=_verdict())
        result = _run(DocumentClassifier(backend).classify(self.LONG_TEXT))
        assert len(backend.calls[0]) == 8000
        assert result.is_valid_rfp is False
        assert result.document_type == DocumentType.INVOICE
        assert "invoice number" in result.rejection_reason
