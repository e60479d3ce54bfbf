"""OpenAI-compatible generative backends over httpx.

GenerativeClient posts chat completions in JSON mode and returns the raw
message content. The LLM* backends build the prompts and decode the content
with the strict pydantic contracts; anything that fails validation raises
MalformedBackendResponseError instead of being repaired.
"""

from __future__ import annotations

import json
import logging
from typing import Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from smartmatch.ai.backends import (
    ClassifierBackend,
    EmbeddingBackend,
    FeatureBackend,
    InsightBackend,
)
from smartmatch.classifier.schemas import ClassifierVerdict
from smartmatch.config import Settings
from smartmatch.exceptions import (
    BackendUnavailableError,
    MalformedBackendResponseError,
)
from smartmatch.scoring.schemas import InsightContext, MatchInsights
from smartmatch.semantic.schemas import FeatureSuggestion

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

# Per-field input budget for feature extraction prompts
FEATURE_INPUT_CHARS = 2000


class GenerativeClient:
    """Thin async client for an OpenAI-compatible chat completions API."""

    def __init__(
        self,
        api_key: str,
        base_url: str,
        model: str,
        timeout: float = 20.0,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> Optional["GenerativeClient"]:
        """Build a client from settings, or None when no API key is set."""
        if settings.ai_api_key is None:
            return None
        return cls(
            api_key=settings.ai_api_key.get_secret_value(),
            base_url=settings.ai_base_url,
            model=settings.ai_model,
            timeout=settings.ai_timeout_seconds,
        )

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    async def _post(self, path: str, payload: dict) -> dict:
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(url, headers=self._headers(), json=payload)
                resp.raise_for_status()
                return resp.json()
        except httpx.HTTPStatusError as e:
            logger.warning(
                "AI backend returned HTTP %d for %s", e.response.status_code, path
            )
            raise BackendUnavailableError(
                detail=f"HTTP {e.response.status_code} from {path}"
            ) from e
        except httpx.HTTPError as e:
            logger.warning("AI backend request to %s failed: %s", path, e)
            raise BackendUnavailableError(detail=str(e)) from e
        except ValueError as e:
            raise MalformedBackendResponseError(
                detail=f"Response from {path} is not JSON"
            ) from e

    async def complete_json(self, system: str, user: str) -> str:
        """Run one JSON-mode chat completion and return the message content."""
        data = await self._post(
            "/chat/completions",
            {
                "model": self.model,
                "messages": [
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
                "response_format": {"type": "json_object"},
                "temperature": 0,
            },
        )
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise MalformedBackendResponseError(
                detail="Completion response has no message content"
            ) from e
        if not isinstance(content, str) or not content.strip():
            raise MalformedBackendResponseError(detail="Empty completion content")
        return content

    async def embed(self, text: str, model: str, dimensions: int) -> list[float]:
        """Request one embedding vector from the /embeddings endpoint."""
        data = await self._post(
            "/embeddings",
            {"model": model, "input": text, "dimensions": dimensions},
        )
        try:
            vector = data["data"][0]["embedding"]
        except (KeyError, IndexError, TypeError) as e:
            raise MalformedBackendResponseError(
                detail="Embedding response has no vector"
            ) from e
        if not isinstance(vector, list):
            raise MalformedBackendResponseError(detail="Embedding is not a list")
        try:
            return [float(v) for v in vector]
        except (TypeError, ValueError) as e:
            raise MalformedBackendResponseError(
                detail="Embedding has non-numeric elements"
            ) from e


def decode(content: str, model: Type[M]) -> M:
    """Validate backend JSON content against a pydantic contract."""
    try:
        return model.model_validate_json(content)
    except ValidationError as e:
        raise MalformedBackendResponseError(
            detail=f"{model.__name__}: {e.error_count()} validation error(s)"
        ) from e


# -- Backends -----------------------------------------------------------------

_CLASSIFIER_SYSTEM = (
    "You classify business documents for a proposal team. "
    "Answer with a single JSON object and nothing else."
)

_CLASSIFIER_PROMPT = """Classify the document below.

Document types: RFP, RFQ, Invoice, Resume, Email, Legal, Proposal, Unknown.
Only a request for proposal (RFP) or request for quotation (RFQ) is valid.

Return JSON with these keys:
  document_type: one of the document types
  confidence: number between 0 and 1
  fit_score: integer 0-100, how suitable the document is for proposal work
  is_valid_rfp: boolean
  reason: one sentence explaining the decision
  extracted_sections: object with optional string keys scope, deliverables,
    deadline, evaluation, eligibility (short snippets, null when absent)
  keywords: list of up to 10 short keywords

Document:
{text}"""


class LLMClassifierBackend(ClassifierBackend):
    def __init__(self, client: GenerativeClient) -> None:
        self.client = client

    async def classify(self, text: str) -> ClassifierVerdict:
        content = await self.client.complete_json(
            _CLASSIFIER_SYSTEM, _CLASSIFIER_PROMPT.format(text=text)
        )
        return decode(content, ClassifierVerdict)


_FEATURE_PROMPT = """Extract features from this RFP and proposal pair.

Return JSON with keys:
  key_phrases: list of the most important service and requirement phrases
  certifications: list of certifications or compliance standards required

RFP:
{rfp}

Proposal:
{proposal}"""


class LLMFeatureBackend(FeatureBackend):
    def __init__(self, client: GenerativeClient) -> None:
        self.client = client

    async def extract(self, rfp_text: str, proposal_text: str) -> FeatureSuggestion:
        content = await self.client.complete_json(
            "You extract structured features from procurement documents. "
            "Answer with a single JSON object.",
            _FEATURE_PROMPT.format(
                rfp=rfp_text[:FEATURE_INPUT_CHARS],
                proposal=proposal_text[:FEATURE_INPUT_CHARS],
            ),
        )
        return decode(content, FeatureSuggestion)


_INSIGHT_PROMPT = """Generate industry-specific insights for this RFP analysis.

Industry: {industry}
Company services: {services}
Historical win rate: {win_rate:.1f}%
Dimension scores: {scores}

RFP excerpt:
{excerpt}

Return JSON with keys:
  risk_factors: list of {{"factor", "impact": "high|medium|low", "mitigation"}}
  success_predictors: list of {{"predictor", "weight": "high|medium|low", "evidence"}}
  recommended_strategy: {{"approach", "key_differentiators": [..],
    "pricing_strategy", "timeline_optimization"}}
  competitive_analysis: {{"likely_competitors": [..],
    "competitive_advantages": [..], "market_position"}}"""


class LLMInsightBackend(InsightBackend):
    def __init__(self, client: GenerativeClient) -> None:
        self.client = client

    async def generate(self, context: InsightContext) -> MatchInsights:
        content = await self.client.complete_json(
            "You advise a vendor on whether and how to bid on an RFP. "
            "Answer with a single JSON object.",
            _INSIGHT_PROMPT.format(
                industry=context.industry,
                services=", ".join(context.services_offered) or "General services",
                win_rate=context.historical_win_rate * 100,
                scores=json.dumps(context.dimension_scores.model_dump()),
                excerpt=context.document_excerpt,
            ),
        )
        return decode(content, MatchInsights)


class HTTPEmbeddingBackend(EmbeddingBackend):
    """Embeddings from an OpenAI-compatible /embeddings endpoint."""

    def __init__(self, client: GenerativeClient, model: str, dim: int) -> None:
        self.client = client
        self.model = model
        self.dim = dim

    async def embed(self, text: str) -> list[float]:
        return await self.client.embed(text, self.model, self.dim)
