"""Tests for the memory bank: append-only storage, nearest-neighbour lookup,
tenant scoping and summary statistics."""

import asyncio

import pytest

from conftest import FailingEmbeddingBackend

from smartmatch.exceptions import AppendOnlyViolationError
from smartmatch.memory.models import ExtractedFeature, MemoryBankEntry
from smartmatch.memory.schemas import HistoricalDataCreate, Outcome
from smartmatch.memory.service import MemoryBank
from smartmatch.semantic.embeddings import EmbeddingService
from smartmatch.semantic.features import FeatureExtractor


def _run(coro):
    """Helper to run async functions in sync tests."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def _bank(dim: int = 64, embedding_backend=None) -> MemoryBank:
    embeddings = EmbeddingService(embedding_backend, dim=dim)
    return MemoryBank(FeatureExtractor(embeddings=embeddings), embedding_dim=dim)


def _entry(user_id="u1", industry="technology", rfp_text="cloud migration", **kwargs):
    data = dict(
        user_id=user_id,
        industry=industry,
        rfp_text=rfp_text,
        proposal_text="our proposal",
        outcome="won",
    )
    data.update(kwargs)
    return HistoricalDataCreate(**data)


class TestStore:
    def test_store_assigns_id_and_embedding(self, db_session):
        bank = _bank()
        entry = _run(bank.store(db_session, _entry(rfp_text="ISO 27001 cloud migration")))
        assert entry.id is not None
        assert len(entry.embedding) == 64
        assert entry.required_certifications == ["ISO 27001"]
        assert entry.outcome == "won"

    def test_store_writes_extracted_features(self, db_session):
        bank = _bank()
        entry = _run(bank.store(
            db_session, _entry(rfp_text="cloud migration with HIPAA compliance")
        ))
        rows = (
            db_session.query(ExtractedFeature)
            .filter(ExtractedFeature.memory_bank_entry_id == entry.id)
            .all()
        )
        kinds = {(r.feature_type, r.feature_value) for r in rows}
        assert ("key_phrase", "cloud migration") in kinds
        assert ("certification", "HIPAA") in kinds
        assert all(r.importance == 0.5 for r in rows)

    def test_industry_is_normalized(self, db_session):
        entry = _run(_bank().store(db_session, _entry(industry="  Technology ")))
        assert entry.industry == "technology"

    def test_embedding_none_when_backend_down(self, db_session):
        bank = _bank(embedding_backend=FailingEmbeddingBackend())
        entry = _run(bank.store(db_session, _entry()))
        assert entry.embedding is None

    def test_update_is_rejected(self, db_session):
        entry = _run(_bank().store(db_session, _entry()))
        entry.outcome = "lost"
        with pytest.raises(AppendOnlyViolationError):
            db_session.flush()
        db_session.rollback()

    def test_delete_is_rejected(self, db_session):
        entry = _run(_bank().store(db_session, _entry()))
        db_session.delete(entry)
        with pytest.raises(AppendOnlyViolationError):
            db_session.flush()
        db_session.rollback()


class TestQueryNearest:
    def test_empty_bank_returns_empty_list(self, db_session):
        assert _run(_bank().query_nearest(db_session, "u1", "technology", "anything")) == []

    def test_sorted_by_similarity(self, db_session):
        bank = _bank()
        far = _run(bank.store(db_session, _entry(rfp_text="roof repair and gutters")))
        near = _run(bank.store(
            db_session, _entry(rfp_text="cloud migration of payroll system", outcome="lost")
        ))
        results = _run(bank.query_nearest(
            db_session, "u1", "technology", "cloud migration of payroll system"
        ))
        assert [r.id for r in results] == [near.id, far.id]
        assert results[0].similarity == pytest.approx(1.0)
        assert results[0].outcome == Outcome.LOST
        assert all(0.0 <= r.similarity <= 1.0 for r in results)

    def test_ties_prefer_newest(self, db_session):
        bank = _bank()
        ids = [_run(bank.store(db_session, _entry(rfp_text="same text"))).id for _ in range(3)]
        results = _run(bank.query_nearest(db_session, "u1", "technology", "same text"))
        assert [r.id for r in results] == sorted(ids, reverse=True)

    def test_returns_top_k(self, db_session):
        bank = _bank()
        for i in range(7):
            _run(bank.store(db_session, _entry(rfp_text=f"network upgrade phase {i}")))
        assert len(_run(bank.query_nearest(db_session, "u1", "technology", "network", k=3))) == 3
        assert len(_run(bank.query_nearest(db_session, "u1", "technology", "network"))) == 5

    def test_scoped_to_user_and_industry(self, db_session):
        bank = _bank()
        _run(bank.store(db_session, _entry(user_id="u2")))
        _run(bank.store(db_session, _entry(industry="healthcare")))
        assert _run(bank.query_nearest(db_session, "u1", "technology", "cloud migration")) == []

    def test_lexical_fallback_without_embeddings(self, db_session):
        bank = _bank(embedding_backend=FailingEmbeddingBackend())
        entry = _run(bank.store(db_session, _entry(rfp_text="a b")))
        results = _run(bank.query_nearest(db_session, "u1", "technology", "b c"))
        assert results[0].id == entry.id
        assert results[0].similarity == pytest.approx(1 / 3, abs=1e-6)

    def test_dimension_change_uses_lexical_fallback(self, db_session):
        old = _run(_bank(dim=32).store(db_session, _entry(rfp_text="a b")))
        results = _run(_bank(dim=64).query_nearest(db_session, "u1", "technology", "b c"))
        assert results[0].id == old.id
        assert results[0].similarity == pytest.approx(1 / 3, abs=1e-6)


class TestSummaries:
    def test_count_entries(self, db_session):
        bank = _bank()
        for _ in range(3):
            _run(bank.store(db_session, _entry()))
        _run(bank.store(db_session, _entry(industry="finance")))
        assert MemoryBank.count_entries(db_session, "u1", "technology") == 3
        assert MemoryBank.count_entries(db_session, "u1", "finance") == 1
        assert MemoryBank.count_entries(db_session, "u9", "finance") == 0

    def test_summarize_statistics(self, db_session):
        bank = _bank()
        _run(bank.store(db_session, _entry(outcome="won", project_value=100_000)))
        _run(bank.store(db_session, _entry(outcome="lost", project_value=300_000)))
        _run(bank.store(db_session, _entry(outcome="pending", industry="finance")))

        summary = MemoryBank.summarize(db_session, "u1")

        assert summary.statistics.total_entries == 3
        assert summary.statistics.win_rate == 33.3
        assert summary.statistics.avg_project_value == 200_000.0
        assert summary.statistics.industries == ["finance", "technology"]
        assert len(summary.entries) == 3

    def test_summarize_filters_industry_and_limit(self, db_session):
        bank = _bank()
        for _ in range(4):
            _run(bank.store(db_session, _entry()))
        _run(bank.store(db_session, _entry(industry="finance")))
        summary = MemoryBank.summarize(db_session, "u1", industry="technology", limit=2)
        assert len(summary.entries) == 2
        assert all(e.industry == "technology" for e in summary.entries)

    def test_statistics_cover_entries_beyond_the_page(self, db_session):
        bank = _bank(dim=16)
        for i in range(60):
            _run(bank.store(db_session, _entry(
                outcome="won" if i < 10 else "lost",
                project_value=1_000 if i % 2 else None,
            )))

        summary = MemoryBank.summarize(db_session, "u1")

        assert len(summary.entries) == 50
        assert summary.statistics.total_entries == 60
        assert summary.statistics.win_rate == 16.7
        assert summary.statistics.avg_project_value == 1_000.0

    def test_statistics_respect_industry_filter(self, db_session):
        bank = _bank(dim=16)
        _run(bank.store(db_session, _entry(outcome="won")))
        _run(bank.store(db_session, _entry(outcome="lost", industry="finance")))
        stats = MemoryBank.statistics(db_session, "u1", "Finance")
        assert stats.total_entries == 1
        assert stats.win_rate == 0.0
        assert stats.industries == ["finance"]

    def test_empty_summary(self, db_session):
        summary = MemoryBank.summarize(db_session, "nobody")
        assert summary.entries == []
        assert summary.statistics.win_rate == 0.0
        assert summary.statistics.avg_project_value == 0.0

    def test_rows_are_memory_bank_entries(self, db_session):
        _run(_bank().store(db_session, _entry()))
        assert db_session.query(MemoryBankEntry).count() == 1
