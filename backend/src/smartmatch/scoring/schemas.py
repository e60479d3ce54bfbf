"""Pydantic schemas for industry scoring, insights and analysis responses.

EnhancedMatchResult is frozen: a scored result is never mutated after the
scoring model returns it. Insight models double as the strict decode target
for the AI insight backend.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from smartmatch.classifier.schemas import DocumentType
from smartmatch.memory.schemas import SimilarEntry


DIMENSIONS = (
    "service_match",
    "industry_match",
    "timeline_alignment",
    "certifications",
    "value_range",
    "past_win_similarity",
)

Verdict = Literal["Low Fit", "Medium Fit", "High Fit", "Strong Fit"]


class UserProfile(BaseModel):
    """Vendor profile the document is scored against."""

    industry: str = ""
    company_size: Optional[Literal["small", "mid-market", "enterprise"]] = None
    services_offered: list[str] = Field(default_factory=list)
    tone_preference: Optional[str] = None


class AnalyzeRequest(BaseModel):
    """Request body for analyzing an uploaded document."""

    rfp_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    document_text: str
    filename: Optional[str] = None
    user_profile: UserProfile = UserProfile()


class ScoringWeights(BaseModel):
    """Per-dimension weights. Learned weights are kept within [0.1, 2.0]."""

    service_match: float
    industry_match: float
    timeline_alignment: float
    certifications: float
    value_range: float
    past_win_similarity: float


class DimensionScores(BaseModel):
    """Six dimension scores, each an integer in [0, 100]."""

    model_config = ConfigDict(frozen=True)

    service_match: int = Field(..., ge=0, le=100)
    industry_match: int = Field(..., ge=0, le=100)
    timeline_alignment: int = Field(..., ge=0, le=100)
    certifications: int = Field(..., ge=0, le=100)
    value_range: int = Field(..., ge=0, le=100)
    past_win_similarity: int = Field(..., ge=0, le=100)


# -- Insights -----------------------------------------------------------------


class RiskFactor(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    factor: str
    impact: Literal["high", "medium", "low"]
    mitigation: str


class SuccessPredictor(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    predictor: str
    weight: Literal["high", "medium", "low"]
    evidence: str


class RecommendedStrategy(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    approach: str
    key_differentiators: list[str] = Field(default_factory=list)
    pricing_strategy: str = ""
    timeline_optimization: str = ""


class CompetitiveAnalysis(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    likely_competitors: list[str] = Field(default_factory=list)
    competitive_advantages: list[str] = Field(default_factory=list)
    market_position: str = ""


class MatchInsights(BaseModel):
    """Structured output contract for the AI insight call."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    risk_factors: list[RiskFactor] = Field(default_factory=list)
    success_predictors: list[SuccessPredictor] = Field(default_factory=list)
    recommended_strategy: RecommendedStrategy
    competitive_analysis: CompetitiveAnalysis = CompetitiveAnalysis()


class InsightContext(BaseModel):
    """Everything the insight backend is allowed to see about one analysis."""

    industry: str
    services_offered: list[str]
    dimension_scores: DimensionScores
    historical_win_rate: float = Field(..., ge=0, le=1)
    document_excerpt: str


# -- Results ------------------------------------------------------------------


class EnhancedMatchResult(BaseModel):
    """Scored compatibility result for one document. Immutable."""

    model_config = ConfigDict(frozen=True, protected_namespaces=())

    rfp_id: str
    user_id: str
    industry: str
    model_id: int
    model_version: str
    overall_score: int = Field(..., ge=0, le=100)
    dimension_scores: DimensionScores
    confidence_level: float = Field(..., ge=0, le=1)
    verdict: Verdict
    similar_entries: list[SimilarEntry] = Field(default_factory=list)
    risk_factors: list[RiskFactor] = Field(default_factory=list)
    success_predictors: list[SuccessPredictor] = Field(default_factory=list)
    recommended_strategy: RecommendedStrategy
    competitive_analysis: CompetitiveAnalysis = CompetitiveAnalysis()
    used_fallback_insights: bool = False


class ClassificationSummary(BaseModel):
    """Classification facts surfaced alongside an analysis."""

    document_type: DocumentType
    confidence: float
    fit_score: int
    sections_found: list[str] = Field(default_factory=list)
    used_fallback: bool = False


class AnalyzeResponse(BaseModel):
    """Response for a successful analysis."""

    match_result_id: int
    result: EnhancedMatchResult
    verdict: Verdict
    classification: ClassificationSummary


class IndustryModelResponse(BaseModel):
    """Industry model state as exposed to callers."""

    model_config = ConfigDict(from_attributes=True, protected_namespaces=())

    id: int
    user_id: str
    industry: str
    model_version: str
    scoring_weights: ScoringWeights
    training_data_count: int
    last_training_date: Optional[datetime] = None
    performance_metrics: dict = Field(default_factory=dict)
    is_active: bool
    version: int
