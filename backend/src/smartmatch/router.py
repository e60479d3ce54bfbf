"""SmartMatch REST API router.

Thin HTTP surface over MatchEngine. Sync DB sessions come from _get_db and
the engine from get_engine; tests override both via dependency_overrides.

Error handling: InvalidDocumentError -> 422, MatchResultNotFoundError -> 404,
ConcurrentTrainingConflict -> 409, other SmartMatchError -> 400.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from smartmatch.engine import MatchEngine
from smartmatch.exceptions import (
    ConcurrentTrainingConflict,
    InvalidDocumentError,
    MatchResultNotFoundError,
    SmartMatchError,
)
from smartmatch.learning.schemas import (
    FeedbackCreate,
    LearningWeightUpdate,
    TrainingLogResponse,
    TrainingStatusResponse,
    TrainingTriggerRequest,
)
from smartmatch.memory.schemas import (
    HistoricalDataCreate,
    MemoryBankEntryResponse,
    MemoryBankSummary,
)
from smartmatch.scoring.schemas import (
    AnalyzeRequest,
    AnalyzeResponse,
    IndustryModelResponse,
)


smartmatch_router = APIRouter(prefix="/api/smartmatch", tags=["smartmatch"])


# -- Dependencies ---------------------------------------------------------------


def _get_db():
    """Yield a SQLAlchemy session. Lazy-imports the engine module."""
    from smartmatch.db.engine import SessionLocal

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@lru_cache(maxsize=1)
def get_engine() -> MatchEngine:
    """Process-wide MatchEngine built from settings."""
    return MatchEngine.from_settings()


# -- Analysis ---------------------------------------------------------------------


@smartmatch_router.post("/analyze")
async def analyze_endpoint(
    request: AnalyzeRequest,
    db: Session = Depends(_get_db),
    engine: MatchEngine = Depends(get_engine),
) -> AnalyzeResponse:
    """Classify and score an uploaded document."""
    try:
        return await engine.analyze(db, request)
    except InvalidDocumentError as e:
        raise HTTPException(
            status_code=422,
            detail={
                "message": e.message,
                "document_type": e.document_type,
                "rejection_reason": e.rejection_reason,
                "suggestion": e.suggestion,
            },
        )
    except SmartMatchError as e:
        raise HTTPException(status_code=400, detail=str(e))


@smartmatch_router.post("/feedback")
async def feedback_endpoint(
    request: FeedbackCreate,
    db: Session = Depends(_get_db),
    engine: MatchEngine = Depends(get_engine),
) -> list[LearningWeightUpdate]:
    """Record a rating for a match result and adjust weights."""
    try:
        return engine.submit_feedback(db, request)
    except MatchResultNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except SmartMatchError as e:
        raise HTTPException(status_code=400, detail=str(e))


# -- Memory bank ------------------------------------------------------------------


@smartmatch_router.post("/memory-bank", status_code=201)
async def ingest_endpoint(
    request: HistoricalDataCreate,
    db: Session = Depends(_get_db),
    engine: MatchEngine = Depends(get_engine),
) -> MemoryBankEntryResponse:
    """Store a historical RFP outcome; may trigger training."""
    try:
        return await engine.ingest_historical(db, request)
    except SmartMatchError as e:
        raise HTTPException(status_code=400, detail=str(e))


@smartmatch_router.get("/memory-bank")
async def memory_bank_endpoint(
    user_id: str = Query(..., min_length=1),
    industry: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=100),
    db: Session = Depends(_get_db),
    engine: MatchEngine = Depends(get_engine),
) -> MemoryBankSummary:
    """List memory bank entries with summary statistics."""
    return engine.memory_bank(db, user_id, industry, limit)


# -- Training ---------------------------------------------------------------------


@smartmatch_router.post("/train")
async def train_endpoint(
    request: TrainingTriggerRequest,
    db: Session = Depends(_get_db),
    engine: MatchEngine = Depends(get_engine),
) -> TrainingLogResponse:
    """Run a manual retrain for one industry model."""
    try:
        return await engine.trigger_training(db, request.user_id, request.industry)
    except ConcurrentTrainingConflict as e:
        raise HTTPException(status_code=409, detail=str(e))
    except SmartMatchError as e:
        raise HTTPException(status_code=400, detail=str(e))


@smartmatch_router.get("/training-status/{industry}")
async def training_status_endpoint(
    industry: str,
    user_id: str = Query(..., min_length=1),
    db: Session = Depends(_get_db),
    engine: MatchEngine = Depends(get_engine),
) -> TrainingStatusResponse:
    """Training history and current model metrics."""
    return engine.training_status(db, user_id, industry)


@smartmatch_router.get("/models")
async def models_endpoint(
    user_id: str = Query(..., min_length=1),
    db: Session = Depends(_get_db),
    engine: MatchEngine = Depends(get_engine),
) -> list[IndustryModelResponse]:
    """All industry models for a user, active and deactivated."""
    return engine.list_models(db, user_id)
