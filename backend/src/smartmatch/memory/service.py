"""Memory bank: append-only store of historical RFP outcomes.

Entries are scoped per (user_id, industry). Nearest-neighbour lookup uses
cosine similarity over stored embeddings, or token Jaccard against the
entry's RFP text when either side has no usable vector. An empty bank is a
normal outcome meaning "no historical signal".
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from smartmatch.memory.models import ExtractedFeature, MemoryBankEntry
from smartmatch.memory.schemas import (
    HistoricalDataCreate,
    MemoryBankEntryResponse,
    MemoryBankStatistics,
    MemoryBankSummary,
    Outcome,
    SimilarEntry,
)
from smartmatch.scoring.weights import normalize_industry
from smartmatch.semantic.embeddings import EMBEDDING_DIM, cosine_similarity, jaccard
from smartmatch.semantic.features import FeatureExtractor

logger = logging.getLogger(__name__)

DEFAULT_K = 5
MAX_LIST_LIMIT = 100


class MemoryBank:
    """Stores and searches historical entries for one deployment."""

    def __init__(
        self,
        features: FeatureExtractor | None = None,
        embedding_dim: int = EMBEDDING_DIM,
    ) -> None:
        self.features = features or FeatureExtractor()
        self.embedding_dim = embedding_dim

    async def store(self, db: Session, data: HistoricalDataCreate) -> MemoryBankEntry:
        """Append a new entry plus its extracted features and commit.

        The embedding is None when the embedding backend is unavailable.
        """
        features = await self.features.extract_features(data.rfp_text, data.proposal_text)

        entry = MemoryBankEntry(
            user_id=data.user_id,
            industry=normalize_industry(data.industry),
            rfp_text=data.rfp_text,
            proposal_text=data.proposal_text,
            outcome=data.outcome.value,
            win_probability=data.win_probability,
            key_phrases=features.key_phrases,
            required_certifications=features.certifications,
            project_value=data.project_value,
            timeline_weeks=data.timeline_weeks,
            competitor_count=data.competitor_count,
            client_size=data.client_size,
            embedding=features.embedding,
            feedback_notes=data.feedback_notes,
        )
        db.add(entry)
        db.flush()  # Get the ID assigned

        for phrase in features.key_phrases:
            db.add(ExtractedFeature(
                memory_bank_entry_id=entry.id,
                feature_type="key_phrase",
                feature_value=phrase,
            ))
        for cert in features.certifications:
            db.add(ExtractedFeature(
                memory_bank_entry_id=entry.id,
                feature_type="certification",
                feature_value=cert,
            ))

        db.commit()
        db.refresh(entry)

        logger.info(
            "Stored memory bank entry %d for user=%s industry=%s outcome=%s",
            entry.id, entry.user_id, entry.industry, entry.outcome,
        )
        return entry

    async def query_nearest(
        self,
        db: Session,
        user_id: str,
        industry: str,
        query_text: str,
        k: int = DEFAULT_K,
    ) -> list[SimilarEntry]:
        """Top-k most similar entries for (user_id, industry).

        Sorted by similarity descending; ties go to the newest entry first.
        """
        entries = (
            db.query(MemoryBankEntry)
            .filter(
                MemoryBankEntry.user_id == user_id,
                MemoryBankEntry.industry == normalize_industry(industry),
            )
            .all()
        )
        if not entries or k <= 0:
            return []

        query_vec = await self.features.embed_or_none(query_text)

        scored = []
        for entry in entries:
            scored.append((self._similarity(query_vec, query_text, entry), entry))

        scored.sort(key=lambda pair: (pair[0], pair[1].created_at, pair[1].id), reverse=True)

        return [
            SimilarEntry(id=entry.id, similarity=round(sim, 6), outcome=Outcome(entry.outcome))
            for sim, entry in scored[:k]
        ]

    def _similarity(
        self,
        query_vec: Optional[list[float]],
        query_text: str,
        entry: MemoryBankEntry,
    ) -> float:
        if (
            query_vec is not None
            and entry.embedding is not None
            and len(query_vec) == self.embedding_dim
            and len(entry.embedding) == self.embedding_dim
        ):
            return cosine_similarity(query_vec, entry.embedding)
        return jaccard(query_text, entry.rfp_text)

    # -- Queries ---------------------------------------------------------------

    @staticmethod
    def count_entries(db: Session, user_id: str, industry: str) -> int:
        return (
            db.query(func.count(MemoryBankEntry.id))
            .filter(
                MemoryBankEntry.user_id == user_id,
                MemoryBankEntry.industry == normalize_industry(industry),
            )
            .scalar()
        ) or 0

    @staticmethod
    def list_entries(
        db: Session,
        user_id: str,
        industry: Optional[str] = None,
        limit: int = 50,
    ) -> list[MemoryBankEntry]:
        """Newest-first entries for a user, optionally filtered by industry."""
        limit = max(1, min(limit, MAX_LIST_LIMIT))
        query = db.query(MemoryBankEntry).filter(MemoryBankEntry.user_id == user_id)
        if industry:
            query = query.filter(MemoryBankEntry.industry == normalize_industry(industry))
        return (
            query.order_by(MemoryBankEntry.created_at.desc(), MemoryBankEntry.id.desc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def statistics(
        db: Session, user_id: str, industry: Optional[str] = None
    ) -> MemoryBankStatistics:
        """Win rate (percent of all entries), mean project value, industries.

        Aggregated over every entry the user owns, not just one listed page.
        """
        criteria = [MemoryBankEntry.user_id == user_id]
        if industry:
            criteria.append(MemoryBankEntry.industry == normalize_industry(industry))

        total, won, avg_value = (
            db.query(
                func.count(MemoryBankEntry.id),
                func.sum(case((MemoryBankEntry.outcome == Outcome.WON.value, 1), else_=0)),
                func.avg(MemoryBankEntry.project_value),
            )
            .filter(*criteria)
            .one()
        )
        industries = [
            name
            for (name,) in db.query(MemoryBankEntry.industry)
            .filter(*criteria)
            .distinct()
            .order_by(MemoryBankEntry.industry)
        ]
        return MemoryBankStatistics(
            total_entries=total,
            win_rate=round((won or 0) / total * 100, 1) if total else 0.0,
            avg_project_value=round(float(avg_value), 2) if avg_value is not None else 0.0,
            industries=industries,
        )

    @classmethod
    def summarize(
        cls,
        db: Session,
        user_id: str,
        industry: Optional[str] = None,
        limit: int = 50,
    ) -> MemoryBankSummary:
        entries = cls.list_entries(db, user_id, industry, limit)
        return MemoryBankSummary(
            entries=[MemoryBankEntryResponse.model_validate(e) for e in entries],
            statistics=cls.statistics(db, user_id, industry),
        )
