"""Pydantic schemas for feedback, weight updates and training status."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from smartmatch.scoring.schemas import IndustryModelResponse


class FeedbackCreate(BaseModel):
    """Feedback request body for a match result."""

    user_id: str = Field(..., min_length=1)
    match_result_id: int
    rating: int = Field(..., ge=1, le=5)
    feedback_type: Literal["positive", "neutral", "negative"]
    comments: Optional[str] = None


class LearningWeightUpdate(BaseModel):
    """One weight change applied to a user's industry model."""

    model_config = ConfigDict(from_attributes=True)

    user_id: str
    industry_model_id: int
    dimension: str
    delta: float
    reason: str
    previous_weight: float
    new_weight: float = Field(..., ge=0.1, le=2.0)


class FeedbackSummary(BaseModel):
    total_feedback: int
    average_rating: float
    by_type: dict[str, int]


class TrainingTriggerRequest(BaseModel):
    """Request body for a manual training run."""

    user_id: str = Field(..., min_length=1)
    industry: str = Field(..., min_length=1)


class TrainingLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, protected_namespaces=())

    id: int
    model_id: int
    training_type: str
    data_points_used: int
    training_duration_seconds: float
    status: str
    before_metrics: dict
    after_metrics: dict
    improvements: dict
    error_detail: Optional[str] = None
    created_at: datetime


class TrainingStatusResponse(BaseModel):
    """Training history plus current model state for (user, industry)."""

    user_id: str
    industry: str
    model: Optional[IndustryModelResponse] = None
    logs: list[TrainingLogResponse] = Field(default_factory=list)
