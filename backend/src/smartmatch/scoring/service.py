"""Industry scoring model: dimension scores, weighted total, verdict, insights.

Dimension scores are deterministic functions of the document text, the
extracted sections and features, the vendor profile, and the outcomes of
the similar historical entries. Only the narrative insights come from the
AI backend, and those fall back to a static set when it fails, so a match
result can always be produced once a model and scores exist.

IndustryModel writes go through compare_and_set_model(), which rejects a
write whose expected version no longer matches the stored row.
"""

from __future__ import annotations

import logging
import math
import re
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from smartmatch.ai.backends import InsightBackend, NullInsightBackend, call_with_timeout
from smartmatch.classifier.schemas import ClassificationResult, ExtractedSections
from smartmatch.exceptions import BackendError, StaleModelError
from smartmatch.memory.schemas import Outcome, SimilarEntry
from smartmatch.scoring.models import IndustryModel, MatchResult
from smartmatch.scoring.schemas import (
    DIMENSIONS,
    CompetitiveAnalysis,
    DimensionScores,
    EnhancedMatchResult,
    InsightContext,
    MatchInsights,
    RecommendedStrategy,
    RiskFactor,
    SuccessPredictor,
    UserProfile,
)
from smartmatch.scoring.weights import (
    INDUSTRY_BONUSES,
    INDUSTRY_CERTIFICATIONS,
    INDUSTRY_KEYWORDS,
    DEFAULT_INDUSTRY,
    default_weights,
    normalize_industry,
)
from smartmatch.semantic.embeddings import tokenize
from smartmatch.semantic.schemas import ExtractedFeatures

logger = logging.getLogger(__name__)

INITIAL_MODEL_VERSION = "1.0"
INSIGHT_EXCERPT_CHARS = 1500

TIMELINE_TERMS = (
    "timeline",
    "schedule",
    "milestone",
    "milestones",
    "due date",
    "completion date",
    "period of performance",
    "weeks",
    "months",
    "phase",
)

# Inclusive (low, high) contract value bands in dollars per company size
VALUE_BANDS = {
    "small": (0.0, 250_000.0),
    "mid-market": (100_000.0, 2_000_000.0),
    "enterprise": (500_000.0, math.inf),
}

_AMOUNT_RE = re.compile(
    r"\$\s?(\d[\d,]*(?:\.\d+)?)\s*(k|m|mm|b|thousand|million|billion)?\b",
    re.IGNORECASE,
)
_MULTIPLIERS = {
    "k": 1e3,
    "thousand": 1e3,
    "m": 1e6,
    "mm": 1e6,
    "million": 1e6,
    "b": 1e9,
    "billion": 1e9,
}

FALLBACK_INSIGHTS = MatchInsights(
    risk_factors=[
        RiskFactor(
            factor="Limited historical data",
            impact="medium",
            mitigation="Gather more industry examples",
        )
    ],
    success_predictors=[
        SuccessPredictor(
            predictor="Industry alignment",
            weight="high",
            evidence="Strong match with services offered",
        )
    ],
    recommended_strategy=RecommendedStrategy(
        approach="Focus on core competencies and industry experience",
        key_differentiators=["Industry expertise", "Proven track record"],
        pricing_strategy="Competitive pricing with value justification",
        timeline_optimization="Realistic timeline with buffer for quality",
    ),
    competitive_analysis=CompetitiveAnalysis(
        likely_competitors=["Established industry players", "Specialized consultants"],
        competitive_advantages=["Specific industry focus", "Comprehensive service offering"],
        market_position="Well-positioned based on experience and capabilities",
    ),
)


# -- Pure scoring functions ---------------------------------------------------


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _clamp_score(value: float) -> int:
    return max(0, min(100, round_half_up(value)))


def _contains(lower_text: str, term: str) -> bool:
    return re.search(r"(?<!\w)" + re.escape(term.lower()) + r"(?!\w)", lower_text) is not None


def service_match_score(text: str, services: list[str]) -> int:
    """40 + 60 x fraction of offered services the document asks for."""
    services = [s for s in services if s.strip()]
    if not services:
        return 50
    lower = text.lower()
    tokens = set(tokenize(text))
    matched = 0
    for service in services:
        if _contains(lower, service.strip()):
            matched += 1
            continue
        service_tokens = set(tokenize(service))
        if service_tokens and len(service_tokens & tokens) * 2 >= len(service_tokens):
            matched += 1
    return _clamp_score(40 + 60 * matched / len(services))


def industry_match_score(text: str, industry: str) -> int:
    lower = text.lower()
    keywords = INDUSTRY_KEYWORDS.get(industry)
    if keywords:
        hits = sum(1 for kw in keywords if _contains(lower, kw))
        return min(100, 50 + 10 * hits)
    if industry != DEFAULT_INDUSTRY and _contains(lower, industry):
        return 80
    return 60


def timeline_alignment_score(text: str, sections: ExtractedSections) -> int:
    lower = text.lower()
    score = 55
    if sections.deadline:
        score += 15
    hits = sum(1 for term in TIMELINE_TERMS if _contains(lower, term))
    score += 10 * min(3, hits)
    return min(100, score)


def certifications_score(text: str, industry: str, features: ExtractedFeatures) -> int:
    required = INDUSTRY_CERTIFICATIONS.get(industry)
    if required:
        lower = re.sub(r"[\s-]+", " ", text.lower())
        found = sum(1 for cert in required if _contains(lower, cert))
        return min(100, 60 + 15 * found)
    return min(100, 60 + 10 * len(features.certifications))


def largest_dollar_amount(text: str) -> Optional[float]:
    """Largest "$1,200", "$250k" or "$1.5 million" style amount in the text."""
    amounts = []
    for match in _AMOUNT_RE.finditer(text):
        try:
            value = float(match.group(1).replace(",", ""))
        except ValueError:
            continue
        suffix = (match.group(2) or "").lower()
        amounts.append(value * _MULTIPLIERS.get(suffix, 1.0))
    return max(amounts) if amounts else None


def value_range_score(text: str, company_size: Optional[str]) -> int:
    amount = largest_dollar_amount(text)
    if amount is None:
        return 65
    band = VALUE_BANDS.get(company_size or "")
    if band is None:
        return 70
    low, high = band
    if low <= amount <= high:
        return 90
    if low / 2 <= amount <= high * 2:
        return 70
    return 45


def decided_win_rate(similar: list[SimilarEntry]) -> Optional[float]:
    """won / (won + lost) among similar entries; None when none are decided."""
    won = sum(1 for s in similar if s.outcome == Outcome.WON)
    lost = sum(1 for s in similar if s.outcome == Outcome.LOST)
    if won + lost == 0:
        return None
    return won / (won + lost)


def past_win_similarity_score(similar: list[SimilarEntry]) -> int:
    rate = decided_win_rate(similar)
    if rate is None:
        return 50
    return _clamp_score(100 * rate)


def compute_dimension_scores(
    text: str,
    sections: ExtractedSections,
    profile: UserProfile,
    industry: str,
    features: ExtractedFeatures,
    similar: list[SimilarEntry],
) -> DimensionScores:
    """Six deterministic dimension scores with industry bonuses applied."""
    industry = normalize_industry(industry)
    scores = {
        "service_match": service_match_score(text, profile.services_offered),
        "industry_match": industry_match_score(text, industry),
        "timeline_alignment": timeline_alignment_score(text, sections),
        "certifications": certifications_score(text, industry, features),
        "value_range": value_range_score(text, profile.company_size),
        "past_win_similarity": past_win_similarity_score(similar),
    }
    for dimension, bonus in INDUSTRY_BONUSES.get(industry, {}).items():
        scores[dimension] = min(100, scores[dimension] + bonus)
    return DimensionScores(**scores)


def overall_score(scores: DimensionScores, weights: dict[str, float]) -> int:
    """Weighted sum of dimension scores, rounded half up, clamped to [0, 100]."""
    total = sum(getattr(scores, d) * float(weights.get(d, 0.0)) for d in DIMENSIONS)
    # Drop float noise so 72.5 never lands on 72.49999...
    return _clamp_score(round(total, 6))


def confidence_level(similar_count: int) -> float:
    return round(min(0.9, 0.5 + 0.1 * min(similar_count, 4)), 2)


def verdict_for(score: int) -> str:
    if score > 80:
        return "Strong Fit"
    if score >= 66:
        return "High Fit"
    if score >= 41:
        return "Medium Fit"
    return "Low Fit"


# -- Model persistence ---------------------------------------------------------


def get_active_model(db: Session, user_id: str, industry: str) -> Optional[IndustryModel]:
    # Version-checked writes bypass the identity map, so always reload rows.
    return (
        db.query(IndustryModel)
        .populate_existing()
        .filter(
            IndustryModel.user_id == user_id,
            IndustryModel.industry == normalize_industry(industry),
            IndustryModel.is_active == True,  # noqa: E712
        )
        .first()
    )


def get_or_create_model(db: Session, user_id: str, industry: str) -> IndustryModel:
    """Return the active model for (user_id, industry), seeding one if needed.

    A concurrent creator losing the unique-index race re-reads the winner.
    """
    industry = normalize_industry(industry)
    model = get_active_model(db, user_id, industry)
    if model is not None:
        return model

    model = IndustryModel(
        user_id=user_id,
        industry=industry,
        model_version=INITIAL_MODEL_VERSION,
        scoring_weights=default_weights(industry),
        training_data_count=0,
        performance_metrics={},
        is_active=True,
        version=1,
    )
    db.add(model)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info("Industry model for %s/%s created concurrently", user_id, industry)
        model = get_active_model(db, user_id, industry)
        if model is None:
            raise
        return model
    db.refresh(model)
    logger.info("Created industry model %d for user=%s industry=%s", model.id, user_id, industry)
    return model


def compare_and_set_model(
    db: Session, model_id: int, expected_version: int, **values
) -> None:
    """Version-checked IndustryModel update. Does not commit.

    Raises:
        StaleModelError: If the stored version is no longer expected_version.
    """
    stmt = (
        update(IndustryModel)
        .where(
            IndustryModel.id == model_id,
            IndustryModel.version == expected_version,
        )
        .values(version=expected_version + 1, **values)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    if result.rowcount == 0:
        raise StaleModelError(
            detail=f"industry_model id={model_id} expected version={expected_version}",
        )


def reload_model(db: Session, model_id: int) -> Optional[IndustryModel]:
    """Fetch a model and discard any stale in-session state."""
    model = db.get(IndustryModel, model_id)
    if model is not None:
        db.refresh(model)
    return model


def list_models(db: Session, user_id: str) -> list[IndustryModel]:
    return (
        db.query(IndustryModel)
        .populate_existing()
        .filter(IndustryModel.user_id == user_id)
        .order_by(IndustryModel.industry, IndustryModel.id)
        .all()
    )


def save_match_result(
    db: Session, result: EnhancedMatchResult, classification: ClassificationResult
) -> MatchResult:
    """Persist a scored result and commit."""
    row = MatchResult(
        rfp_id=result.rfp_id,
        user_id=result.user_id,
        industry=result.industry,
        model_id=result.model_id,
        model_version=result.model_version,
        overall_score=result.overall_score,
        dimension_scores=result.dimension_scores.model_dump(),
        confidence_level=result.confidence_level,
        verdict=result.verdict,
        similar_entries=[s.model_dump(mode="json") for s in result.similar_entries],
        risk_factors=[r.model_dump() for r in result.risk_factors],
        success_predictors=[p.model_dump() for p in result.success_predictors],
        recommended_strategy=result.recommended_strategy.model_dump(),
        competitive_analysis=result.competitive_analysis.model_dump(),
        document_type=classification.document_type.value,
        fit_score=classification.fit_score,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


# -- Scoring model -------------------------------------------------------------


class IndustryScoringModel:
    """Scores a classified document against a vendor profile."""

    def __init__(
        self,
        insight_backend: InsightBackend | None = None,
        timeout: float = 20.0,
    ) -> None:
        self.insight_backend = insight_backend or NullInsightBackend()
        self.timeout = timeout

    async def score(
        self,
        *,
        rfp_id: str,
        user_id: str,
        text: str,
        sections: ExtractedSections,
        profile: UserProfile,
        model: IndustryModel,
        features: ExtractedFeatures,
        similar: list[SimilarEntry],
    ) -> EnhancedMatchResult:
        """Score a document. Insight backend failures never fail the score."""
        scores = compute_dimension_scores(
            text, sections, profile, model.industry, features, similar
        )
        total = overall_score(scores, model.scoring_weights)
        win_rate = decided_win_rate(similar)

        insights, used_fallback = await self._insights(
            InsightContext(
                industry=model.industry,
                services_offered=profile.services_offered,
                dimension_scores=scores,
                historical_win_rate=win_rate if win_rate is not None else 0.0,
                document_excerpt=text[:INSIGHT_EXCERPT_CHARS],
            )
        )

        return EnhancedMatchResult(
            rfp_id=rfp_id,
            user_id=user_id,
            industry=model.industry,
            model_id=model.id,
            model_version=model.model_version,
            overall_score=total,
            dimension_scores=scores,
            confidence_level=confidence_level(len(similar)),
            verdict=verdict_for(total),
            similar_entries=similar,
            risk_factors=insights.risk_factors,
            success_predictors=insights.success_predictors,
            recommended_strategy=insights.recommended_strategy,
            competitive_analysis=insights.competitive_analysis,
            used_fallback_insights=used_fallback,
        )

    async def _insights(self, context: InsightContext) -> tuple[MatchInsights, bool]:
        try:
            insights = await call_with_timeout(
                self.insight_backend.generate(context), self.timeout, "insight generation"
            )
            return insights, False
        except BackendError as e:
            logger.info("Insight backend unavailable, using static insights: %s", e.message)
            return FALLBACK_INSIGHTS, True
