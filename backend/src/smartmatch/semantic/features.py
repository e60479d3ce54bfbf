"""Feature extraction for memory-bank entries and analyses.

Key phrases and certifications come from the FeatureBackend when one is
available, otherwise from a fixed service vocabulary and certification
regexes. The embedding is produced separately by EmbeddingService and is
None when that backend is down.
"""

from __future__ import annotations

import logging
import re

from smartmatch.ai.backends import FeatureBackend, NullFeatureBackend, call_with_timeout
from smartmatch.exceptions import BackendError
from smartmatch.semantic.embeddings import EmbeddingService
from smartmatch.semantic.schemas import ExtractedFeatures

logger = logging.getLogger(__name__)

MAX_KEY_PHRASES = 20
FEATURE_INPUT_CHARS = 2000

SERVICE_VOCABULARY = (
    "web development",
    "mobile app",
    "data analysis",
    "data analytics",
    "cloud infrastructure",
    "cloud migration",
    "security audit",
    "cybersecurity",
    "project management",
    "consulting services",
    "software development",
    "systems integration",
    "implementation",
    "integration",
    "training",
    "support",
    "maintenance",
    "testing",
    "deployment",
)

_CERT_PATTERNS = (
    re.compile(r"\bISO[\s-]?\d{4,5}\b", re.IGNORECASE),
    re.compile(r"\bSOC[\s-]?[12]\b", re.IGNORECASE),
    re.compile(r"\bHIPAA\b", re.IGNORECASE),
    re.compile(r"\bPCI[\s-]?DSS\b", re.IGNORECASE),
    re.compile(r"\bFedRAMP\b", re.IGNORECASE),
    re.compile(r"\bCMMC\b", re.IGNORECASE),
    re.compile(r"\bNIST[\s-]?(?:SP[\s-]?)?800[\s-]?\d{2,3}\b", re.IGNORECASE),
    re.compile(r"\bGDPR\b", re.IGNORECASE),
    re.compile(r"\bAWS[\s-]?Certified\b", re.IGNORECASE),
    re.compile(r"\bMicrosoft[\s-]?Certified\b", re.IGNORECASE),
    re.compile(r"\bGoogle[\s-]?Cloud\b", re.IGNORECASE),
    re.compile(r"\bCisco[\s-]?Certified\b", re.IGNORECASE),
)


def normalize_certification(raw: str) -> str:
    """Uppercase a certification and collapse separators to single spaces.

    "iso-27001" and "ISO 27001" both become "ISO 27001".
    """
    return " ".join(re.split(r"[\s-]+", raw.strip().upper()))


def _dedupe(values: list[str]) -> list[str]:
    seen: set[str] = set()
    result = []
    for v in values:
        if v and v not in seen:
            seen.add(v)
            result.append(v)
    return result


def fallback_key_phrases(text: str) -> list[str]:
    """Service vocabulary phrases that occur in the text, in vocabulary order."""
    lower = text.lower()
    return [p for p in SERVICE_VOCABULARY if p in lower][:MAX_KEY_PHRASES]


def extract_certifications(text: str) -> list[str]:
    """Certification mentions found by regex, normalized and de-duplicated."""
    found = []
    for pattern in _CERT_PATTERNS:
        found.extend(normalize_certification(m.group(0)) for m in pattern.finditer(text))
    return _dedupe(found)


class FeatureExtractor:
    """Extracts key phrases, certifications and an embedding."""

    def __init__(
        self,
        backend: FeatureBackend | None = None,
        embeddings: EmbeddingService | None = None,
        timeout: float = 20.0,
    ) -> None:
        self.backend = backend or NullFeatureBackend()
        self.embeddings = embeddings or EmbeddingService()
        self.timeout = timeout

    async def extract_features(
        self, rfp_text: str, proposal_text: str = ""
    ) -> ExtractedFeatures:
        """Extract features for an RFP/proposal pair. Never raises on backend failure."""
        used_fallback = False
        try:
            suggestion = await call_with_timeout(
                self.backend.extract(
                    rfp_text[:FEATURE_INPUT_CHARS], proposal_text[:FEATURE_INPUT_CHARS]
                ),
                self.timeout,
                "feature extraction",
            )
            key_phrases = _dedupe(
                [p.strip().lower() for p in suggestion.key_phrases]
            )[:MAX_KEY_PHRASES]
            certifications = _dedupe(
                [normalize_certification(c) for c in suggestion.certifications if c.strip()]
            )
        except BackendError as e:
            logger.info("Feature backend unavailable, using fallback: %s", e.message)
            used_fallback = True
            key_phrases = fallback_key_phrases(f"{rfp_text} {proposal_text}")
            certifications = extract_certifications(rfp_text)

        embedding = await self.embed_or_none(rfp_text)

        return ExtractedFeatures(
            key_phrases=key_phrases,
            certifications=certifications,
            embedding=embedding,
            used_fallback=used_fallback,
        )

    async def embed_or_none(self, text: str) -> list[float] | None:
        """Embed a text, returning None when the embedding backend fails."""
        try:
            return await self.embeddings.embed(text)
        except BackendError as e:
            logger.warning("Embedding unavailable, storing without vector: %s", e.message)
            return None
