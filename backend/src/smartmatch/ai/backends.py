"""AI backend interfaces and their null implementations.

Every AI-backed component receives its backend through the constructor.
A backend either returns a schema-validated object or raises a BackendError
subclass; callers catch BackendError and switch to their deterministic
fallback path.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, TypeVar

from smartmatch.classifier.schemas import ClassifierVerdict
from smartmatch.exceptions import BackendUnavailableError
from smartmatch.scoring.schemas import InsightContext, MatchInsights
from smartmatch.semantic.schemas import FeatureSuggestion

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ClassifierBackend(ABC):
    """Classifies a document into a structured verdict."""

    @abstractmethod
    async def classify(self, text: str) -> ClassifierVerdict:
        ...


class FeatureBackend(ABC):
    """Suggests key phrases and certifications for an RFP/proposal pair."""

    @abstractmethod
    async def extract(self, rfp_text: str, proposal_text: str) -> FeatureSuggestion:
        ...


class InsightBackend(ABC):
    """Generates risk, success, strategy and competitive insights."""

    @abstractmethod
    async def generate(self, context: InsightContext) -> MatchInsights:
        ...


class EmbeddingBackend(ABC):
    """Produces a dense vector for a text."""

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        ...


# -- Null backends ------------------------------------------------------------
# Used when no AI provider is configured. Each one fails immediately so the
# caller takes its fallback path without waiting on a timeout.


class NullClassifierBackend(ClassifierBackend):
    async def classify(self, text: str) -> ClassifierVerdict:
        raise BackendUnavailableError(detail="No classifier backend configured")


class NullFeatureBackend(FeatureBackend):
    async def extract(self, rfp_text: str, proposal_text: str) -> FeatureSuggestion:
        raise BackendUnavailableError(detail="No feature backend configured")


class NullInsightBackend(InsightBackend):
    async def generate(self, context: InsightContext) -> MatchInsights:
        raise BackendUnavailableError(detail="No insight backend configured")


class NullEmbeddingBackend(EmbeddingBackend):
    async def embed(self, text: str) -> list[float]:
        raise BackendUnavailableError(detail="No embedding backend configured")


async def call_with_timeout(call: Awaitable[T], timeout: float, operation: str) -> T:
    """Await a backend call, converting a timeout into BackendUnavailableError."""
    try:
        return await asyncio.wait_for(call, timeout=timeout)
    except asyncio.TimeoutError as e:
        logger.warning("%s timed out after %.1fs", operation, timeout)
        raise BackendUnavailableError(
            message=f"{operation} timed out",
            detail=f"timeout={timeout}s",
        ) from e
