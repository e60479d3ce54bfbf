"""Test fixtures for SmartMatch tests.

Each test gets a fresh in-memory SQLite database (StaticPool, so every
session shares one connection) with all tables created from Base.metadata.
Services commit and roll back freely; nothing leaks between tests.

Fake backends stand in for every AI provider so the suite runs offline.
"""

from typing import Optional

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from smartmatch.ai.backends import (
    ClassifierBackend,
    EmbeddingBackend,
    FeatureBackend,
    InsightBackend,
)
from smartmatch.classifier.schemas import ClassifierVerdict
from smartmatch.config import Settings
from smartmatch.db.base import Base
from smartmatch.engine import MatchEngine
from smartmatch.exceptions import BackendUnavailableError
from smartmatch.learning.models import (  # noqa: F401 -- ensure models registered
    MatchFeedback,
    TrainingLog,
    WeightAdjustment,
)
from smartmatch.memory.models import ExtractedFeature, MemoryBankEntry  # noqa: F401
from smartmatch.scoring.models import IndustryModel, MatchResult  # noqa: F401
from smartmatch.scoring.schemas import InsightContext, MatchInsights
from smartmatch.semantic.schemas import FeatureSuggestion


@pytest.fixture
def test_engine():
    """In-memory SQLite engine with foreign keys enabled and all tables created."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def set_pragmas(dbapi_conn, conn_rec):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db_session(test_engine):
    """Session bound to the per-test engine."""
    session = Session(bind=test_engine, expire_on_commit=False)
    yield session
    session.close()


@pytest.fixture
def settings():
    """Settings isolated from the environment and any .env file."""
    return Settings(_env_file=None, database_url="sqlite://", embedding_dim=256)


@pytest.fixture
def match_engine(settings):
    """Engine with every AI backend on its null/fallback implementation."""
    return MatchEngine.build(settings)


# =============================================================================
# Fake backends
# =============================================================================


class FakeClassifierBackend(ClassifierBackend):
    """Returns a fixed verdict, or raises the given exception."""

    def __init__(self, verdict: Optional[ClassifierVerdict] = None, exc: Exception = None):
        self.verdict = verdict
        self.exc = exc
        self.calls: list[str] = []

    async def classify(self, text: str) -> ClassifierVerdict:
        self.calls.append(text)
        if self.exc is not None:
            raise self.exc
        return self.verdict


class FakeFeatureBackend(FeatureBackend):
    def __init__(self, suggestion: Optional[FeatureSuggestion] = None, exc: Exception = None):
        self.suggestion = suggestion
        self.exc = exc
        self.calls: list[tuple[str, str]] = []

    async def extract(self, rfp_text: str, proposal_text: str) -> FeatureSuggestion:
        self.calls.append((rfp_text, proposal_text))
        if self.exc is not None:
            raise self.exc
        return self.suggestion


class FakeInsightBackend(InsightBackend):
    def __init__(self, insights: Optional[MatchInsights] = None, exc: Exception = None):
        self.insights = insights
        self.exc = exc
        self.contexts: list[InsightContext] = []

    async def generate(self, context: InsightContext) -> MatchInsights:
        self.contexts.append(context)
        if self.exc is not None:
            raise self.exc
        return self.insights


class FailingEmbeddingBackend(EmbeddingBackend):
    async def embed(self, text: str) -> list[float]:
        raise BackendUnavailableError(detail="embedding service down")


class FixedEmbeddingBackend(EmbeddingBackend):
    """Returns the same vector for every text."""

    def __init__(self, vector: list[float]):
        self.vector = vector

    async def embed(self, text: str) -> list[float]:
        return list(self.vector)
