"""Feedback and learning loop.

Feedback is committed before any weight work so the audit trail survives a
failed adjustment. The rating maps to a signed delta, (rating - 3) x 0.1.
Comment tokens are matched against per-dimension keyword lists, exactly
for short keywords and fuzzily for the rest; the matched dimensions receive the full delta, otherwise every dimension
receives half of it. Weights stay within [0.1, 2.0].

Weight writes are compare-and-set on IndustryModel.version. A lost race
re-reads the model and recomputes; once retries run out the feedback stays
stored and no weights change.
"""

from __future__ import annotations

import logging
from collections import Counter

from rapidfuzz import fuzz, process
from sqlalchemy.orm import Session

from smartmatch.exceptions import MatchResultNotFoundError, StaleModelError
from smartmatch.learning.models import MatchFeedback, WeightAdjustment
from smartmatch.learning.schemas import (
    FeedbackCreate,
    FeedbackSummary,
    LearningWeightUpdate,
)
from smartmatch.scoring.models import MatchResult
from smartmatch.scoring.schemas import DIMENSIONS
from smartmatch.scoring.service import (
    compare_and_set_model,
    get_or_create_model,
    list_models,
    reload_model,
)
from smartmatch.scoring.weights import default_weights
from smartmatch.semantic.embeddings import tokenize

logger = logging.getLogger(__name__)

MIN_WEIGHT = 0.1
MAX_WEIGHT = 2.0
DELTA_PER_RATING_STEP = 0.1
DIFFUSE_FACTOR = 0.5
FUZZY_CUTOFF = 90
MIN_TOKEN_LENGTH = 3
# Keywords this short only match exactly; "valued" is not "value"
EXACT_MATCH_MAX_LENGTH = 5

DIMENSION_KEYWORDS: dict[str, tuple[str, ...]] = {
    "industry_match": ("industry", "sector", "vertical", "domain"),
    "service_match": (
        "service", "services", "offering", "offerings", "capability", "capabilities",
    ),
    "timeline_alignment": ("timeline", "deadline", "schedule", "timing"),
    "certifications": ("certification", "certifications", "certified", "compliance"),
    "value_range": ("budget", "value", "price", "prices", "pricing", "cost", "costs"),
    "past_win_similarity": ("history", "past", "similar", "previous"),
}


def rating_delta(rating: int) -> float:
    return round((rating - 3) * DELTA_PER_RATING_STEP, 4)


def clamp_weight(value: float) -> float:
    return round(min(MAX_WEIGHT, max(MIN_WEIGHT, value)), 4)


def match_dimensions(comments: str | None) -> list[str]:
    """Dimensions a free-text comment talks about, in DIMENSIONS order."""
    if not comments:
        return []
    tokens = {t for t in tokenize(comments) if len(t) >= MIN_TOKEN_LENGTH}
    matched = []
    for dimension in DIMENSIONS:
        keywords = DIMENSION_KEYWORDS[dimension]
        exact = {k for k in keywords if len(k) <= EXACT_MATCH_MAX_LENGTH}
        fuzzy = [k for k in keywords if len(k) > EXACT_MATCH_MAX_LENGTH]
        for token in sorted(tokens):
            if token in exact or process.extractOne(
                token, fuzzy, scorer=fuzz.ratio, score_cutoff=FUZZY_CUTOFF
            ):
                matched.append(dimension)
                break
    return matched


class FeedbackLoop:
    """Applies user ratings to the rating user's own industry model."""

    def __init__(self, retry_limit: int = 3) -> None:
        self.retry_limit = retry_limit

    def submit_feedback(
        self, db: Session, data: FeedbackCreate
    ) -> list[LearningWeightUpdate]:
        """Store feedback, then adjust weights.

        Raises:
            MatchResultNotFoundError: If the match result does not exist or
                belongs to another user.
        """
        match = (
            db.query(MatchResult)
            .filter(
                MatchResult.id == data.match_result_id,
                MatchResult.user_id == data.user_id,
            )
            .first()
        )
        if match is None:
            raise MatchResultNotFoundError(
                message=f"Match result {data.match_result_id} not found",
                detail=f"match_result_id={data.match_result_id}, user_id={data.user_id}",
            )

        feedback = MatchFeedback(
            user_id=data.user_id,
            match_result_id=match.id,
            rating=data.rating,
            feedback_type=data.feedback_type,
            comments=data.comments,
        )
        db.add(feedback)
        db.commit()
        db.refresh(feedback)

        delta = rating_delta(data.rating)
        if delta == 0:
            logger.info("Neutral feedback %d stored, no weight change", feedback.id)
            return []

        dimensions = match_dimensions(data.comments)
        if dimensions:
            applied_delta = delta
            reason = (
                f"Rating {data.rating}/5 ({data.feedback_type}); "
                f"comments mention {', '.join(dimensions)}"
            )
        else:
            dimensions = list(DIMENSIONS)
            applied_delta = round(delta * DIFFUSE_FACTOR, 4)
            reason = (
                f"Rating {data.rating}/5 ({data.feedback_type}); "
                "no dimension-specific signal, diffuse adjustment"
            )

        model = get_or_create_model(db, data.user_id, match.industry)
        return self._apply(db, data.user_id, model.id, feedback.id, dimensions, applied_delta, reason)

    def _apply(
        self,
        db: Session,
        user_id: str,
        model_id: int,
        feedback_id: int,
        dimensions: list[str],
        delta: float,
        reason: str,
    ) -> list[LearningWeightUpdate]:
        for attempt in range(1, self.retry_limit + 1):
            model = reload_model(db, model_id)
            defaults = default_weights(model.industry)
            weights = dict(model.scoring_weights)
            updates = []
            for dimension in dimensions:
                previous = float(weights.get(dimension, defaults[dimension]))
                new = clamp_weight(previous + delta)
                weights[dimension] = new
                updates.append(LearningWeightUpdate(
                    user_id=user_id,
                    industry_model_id=model.id,
                    dimension=dimension,
                    delta=delta,
                    reason=reason,
                    previous_weight=previous,
                    new_weight=new,
                ))

            try:
                compare_and_set_model(db, model.id, model.version, scoring_weights=weights)
            except StaleModelError:
                db.rollback()
                logger.info(
                    "Weight update for model %d lost a version race (attempt %d/%d)",
                    model_id, attempt, self.retry_limit,
                )
                continue

            for update in updates:
                db.add(WeightAdjustment(
                    user_id=user_id,
                    industry_model_id=model.id,
                    feedback_id=feedback_id,
                    dimension=update.dimension,
                    previous_weight=update.previous_weight,
                    new_weight=update.new_weight,
                    delta=update.delta,
                    reason=update.reason,
                ))
            db.commit()
            logger.info(
                "Applied %d weight update(s) to model %d from feedback %d",
                len(updates), model.id, feedback_id,
            )
            return updates

        logger.error(
            "Gave up on weight update for model %d after %d attempts; feedback %d kept",
            model_id, self.retry_limit, feedback_id,
        )
        return []

    # -- Reporting ---------------------------------------------------------------

    @staticmethod
    def feedback_summary(db: Session, user_id: str) -> FeedbackSummary:
        rows = db.query(MatchFeedback).filter(MatchFeedback.user_id == user_id).all()
        if not rows:
            return FeedbackSummary(total_feedback=0, average_rating=0.0, by_type={})
        return FeedbackSummary(
            total_feedback=len(rows),
            average_rating=round(sum(r.rating for r in rows) / len(rows), 2),
            by_type=dict(Counter(r.feedback_type for r in rows)),
        )

    @staticmethod
    def personalized_recommendations(db: Session, user_id: str) -> list[str]:
        """Advice derived from average rating and weights that fell below default."""
        rows = db.query(MatchFeedback).filter(MatchFeedback.user_id == user_id).all()
        if not rows:
            return [
                "Continue using the system to improve personalized recommendations",
                "Provide feedback on match results to enhance accuracy",
                "Consider updating your company profile for better matching",
            ]

        recommendations = []
        avg_rating = sum(r.rating for r in rows) / len(rows)
        if avg_rating < 3:
            recommendations.append(
                "Matching accuracy could be improved: consider updating your company profile"
            )
            recommendations.append(
                "Review and adjust your service offerings to better match available RFPs"
            )
        elif avg_rating > 4:
            recommendations.append("Your profile is well-optimized for RFP matching")
            recommendations.append(
                "Consider exploring RFPs in adjacent industries for growth opportunities"
            )

        for model in list_models(db, user_id):
            if not model.is_active:
                continue
            defaults = default_weights(model.industry)
            for dimension in DIMENSIONS:
                current = float(model.scoring_weights.get(dimension, defaults[dimension]))
                if current < defaults[dimension]:
                    label = dimension.replace("_", " ")
                    recommendations.append(
                        f"Consider improving your {label} capabilities for better "
                        f"{model.industry} matches"
                    )
        return recommendations
