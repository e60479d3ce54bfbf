"""Training scheduler for per-tenant industry models.

A training pass recomputes heuristic performance metrics from the memory
bank and bumps the model version. It is triggered automatically once a
tenant has at least `min_entries` entries and `min_new_entries` more than
the model was last trained on, or manually as a retrain.

Only one pass runs per (user_id, industry) at a time; a trigger that
arrives while one is in flight is a no-op. A failed pass is rolled back and
recorded as a failed TrainingLog, leaving the model version and training
data count untouched.
"""

from __future__ import annotations

import asyncio
import time
from datetime import datetime, timezone
from typing import Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from smartmatch.exceptions import SmartMatchError, StaleModelError
from smartmatch.learning.models import TrainingLog
from smartmatch.learning.schemas import (
    TrainingLogResponse,
    TrainingStatusResponse,
)
from smartmatch.memory.models import MemoryBankEntry
from smartmatch.memory.schemas import Outcome
from smartmatch.memory.service import MemoryBank
from smartmatch.scoring.schemas import IndustryModelResponse
from smartmatch.scoring.service import (
    compare_and_set_model,
    get_active_model,
    get_or_create_model,
    reload_model,
)
from smartmatch.scoring.weights import normalize_industry

logger = structlog.get_logger(__name__)

TRAINING_TYPES = ("initial", "incremental", "retrain")


def compute_metrics(total: int, won: int) -> dict[str, float]:
    """Heuristic performance metrics from data volume and win count."""
    win_rate = won / total if total else 0.0
    return {
        "accuracy": round(min(0.95, 0.6 + 0.01 * total), 4),
        "precision": round(min(0.9, 0.55 + 0.3 * win_rate), 4),
        "recall": round(min(0.85, 0.5 + 0.008 * total), 4),
        "f1_score": round(min(0.88, 0.52 + 0.009 * total), 4),
        "training_data_size": total,
        "win_rate": round(win_rate, 4),
    }


def metric_improvements(before: dict, after: dict) -> dict[str, float]:
    return {
        key: round(after[key] - before[key], 4)
        for key in after
        if key in before
        and isinstance(after[key], (int, float))
        and isinstance(before[key], (int, float))
    }


def bump_version(version: str) -> str:
    """Increment the minor version: 1.0 becomes 1.1. Non-numeric versions get ".1" appended."""
    major, sep, minor = version.rpartition(".")
    if sep and major and minor.isdigit():
        return f"{major}.{int(minor) + 1}"
    return f"{version}.1"


class TrainingScheduler:
    """Decides when to train and runs guarded training passes."""

    def __init__(
        self,
        min_entries: int = 10,
        min_new_entries: int = 5,
        retry_limit: int = 3,
    ) -> None:
        self.min_entries = min_entries
        self.min_new_entries = min_new_entries
        self.retry_limit = retry_limit
        self._locks: dict[tuple[str, str], asyncio.Lock] = {}

    def lock_for(self, user_id: str, industry: str) -> asyncio.Lock:
        key = (user_id, normalize_industry(industry))
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]

    def is_training(self, user_id: str, industry: str) -> bool:
        lock = self._locks.get((user_id, normalize_industry(industry)))
        return lock is not None and lock.locked()

    def should_train(self, entry_count: int, training_data_count: int) -> bool:
        return (
            entry_count >= self.min_entries
            and entry_count > training_data_count + self.min_new_entries
        )

    async def maybe_train(
        self, db: Session, user_id: str, industry: str
    ) -> Optional[TrainingLog]:
        """Run a training pass when enough new data has accumulated."""
        model = get_or_create_model(db, user_id, industry)
        count = MemoryBank.count_entries(db, user_id, industry)
        if not self.should_train(count, model.training_data_count):
            return None
        logger.info(
            "training_threshold_reached",
            user_id=user_id,
            industry=model.industry,
            entry_count=count,
            training_data_count=model.training_data_count,
        )
        return await self.train(db, user_id, industry)

    async def train(
        self,
        db: Session,
        user_id: str,
        industry: str,
        training_type: Optional[str] = None,
    ) -> Optional[TrainingLog]:
        """Run one training pass. Returns None if a pass is already in flight."""
        lock = self.lock_for(user_id, industry)
        if lock.locked():
            logger.info(
                "training_already_in_flight",
                user_id=user_id,
                industry=normalize_industry(industry),
            )
            return None
        try:
            # _run does not await yet; the guard only excludes overlap once it does.
            async with lock:
                return self._run(db, user_id, normalize_industry(industry), training_type)
        finally:
            key = (user_id, normalize_industry(industry))
            if not lock.locked() and self._locks.get(key) is lock:
                del self._locks[key]

    def _run(
        self,
        db: Session,
        user_id: str,
        industry: str,
        training_type: Optional[str],
    ) -> TrainingLog:
        model = get_or_create_model(db, user_id, industry)
        model_id = model.id
        if training_type is None:
            training_type = "initial" if model.last_training_date is None else "incremental"
        if training_type not in TRAINING_TYPES:
            raise ValueError(f"Unknown training type: {training_type}")

        before = dict(model.performance_metrics or {})
        started = time.perf_counter()
        data_points = 0

        logger.info(
            "training_started",
            user_id=user_id,
            industry=industry,
            model_id=model_id,
            training_type=training_type,
        )

        try:
            outcomes = [
                outcome
                for (outcome,) in db.query(MemoryBankEntry.outcome).filter(
                    MemoryBankEntry.user_id == user_id,
                    MemoryBankEntry.industry == industry,
                )
            ]
            data_points = len(outcomes)
            won = sum(1 for o in outcomes if o == Outcome.WON.value)
            after = compute_metrics(data_points, won)
            new_version = self._commit_model(db, model_id, data_points, after)
        except (SQLAlchemyError, SmartMatchError) as e:
            db.rollback()
            log = TrainingLog(
                user_id=user_id,
                industry=industry,
                model_id=model_id,
                training_type=training_type,
                data_points_used=data_points,
                training_duration_seconds=round(time.perf_counter() - started, 4),
                status="failed",
                before_metrics=before,
                after_metrics={},
                improvements={},
                error_detail=str(e),
            )
            db.add(log)
            db.commit()
            db.refresh(log)
            logger.error(
                "training_failed",
                user_id=user_id,
                industry=industry,
                model_id=model_id,
                error=str(e),
            )
            return log

        log = TrainingLog(
            user_id=user_id,
            industry=industry,
            model_id=model_id,
            training_type=training_type,
            data_points_used=data_points,
            training_duration_seconds=round(time.perf_counter() - started, 4),
            status="completed",
            before_metrics=before,
            after_metrics=after,
            improvements=metric_improvements(before, after),
        )
        db.add(log)
        db.commit()
        db.refresh(log)

        logger.info(
            "training_completed",
            user_id=user_id,
            industry=industry,
            model_id=model_id,
            model_version=new_version,
            data_points=data_points,
        )
        return log

    def _commit_model(
        self, db: Session, model_id: int, data_points: int, metrics: dict
    ) -> str:
        """Compare-and-set the trained state, re-reading on version conflicts."""
        for attempt in range(1, self.retry_limit + 1):
            model = reload_model(db, model_id)
            new_version = bump_version(model.model_version)
            try:
                compare_and_set_model(
                    db,
                    model.id,
                    model.version,
                    performance_metrics=metrics,
                    training_data_count=data_points,
                    last_training_date=datetime.now(timezone.utc).replace(tzinfo=None),
                    model_version=new_version,
                )
            except StaleModelError:
                if attempt == self.retry_limit:
                    raise
                db.rollback()
                logger.info("training_version_conflict", model_id=model_id, attempt=attempt)
                continue
            return new_version
        raise StaleModelError(detail=f"industry_model id={model_id}")

    # -- Status ------------------------------------------------------------------

    @staticmethod
    def training_status(db: Session, user_id: str, industry: str) -> TrainingStatusResponse:
        industry = normalize_industry(industry)
        model = get_active_model(db, user_id, industry)
        logs = (
            db.query(TrainingLog)
            .filter(TrainingLog.user_id == user_id, TrainingLog.industry == industry)
            .order_by(TrainingLog.created_at.desc(), TrainingLog.id.desc())
            .all()
        )
        return TrainingStatusResponse(
            user_id=user_id,
            industry=industry,
            model=IndustryModelResponse.model_validate(model) if model else None,
            logs=[TrainingLogResponse.model_validate(log) for log in logs],
        )
