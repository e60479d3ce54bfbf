"""SmartMatch engine: wires the components into the boundary operations.

analyze() runs the strictly sequential pipeline
classify -> extract features -> memory bank lookup -> score -> persist.
Only InvalidDocumentError escapes from it; every AI failure along the way
has already been turned into a fallback by the component that hit it.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.orm import Session

from smartmatch.ai.backends import (
    ClassifierBackend,
    EmbeddingBackend,
    FeatureBackend,
    InsightBackend,
)
from smartmatch.ai.client import (
    GenerativeClient,
    HTTPEmbeddingBackend,
    LLMClassifierBackend,
    LLMFeatureBackend,
    LLMInsightBackend,
)
from smartmatch.classifier.service import DocumentClassifier, clean_document_text
from smartmatch.config import Settings, get_settings
from smartmatch.exceptions import ConcurrentTrainingConflict, InvalidDocumentError
from smartmatch.learning.feedback import FeedbackLoop
from smartmatch.learning.schemas import (
    FeedbackCreate,
    LearningWeightUpdate,
    TrainingLogResponse,
    TrainingStatusResponse,
)
from smartmatch.learning.training import TrainingScheduler
from smartmatch.memory.schemas import (
    HistoricalDataCreate,
    MemoryBankEntryResponse,
    MemoryBankSummary,
)
from smartmatch.memory.service import MemoryBank
from smartmatch.scoring.schemas import (
    AnalyzeRequest,
    AnalyzeResponse,
    ClassificationSummary,
    IndustryModelResponse,
)
from smartmatch.scoring.service import (
    IndustryScoringModel,
    get_or_create_model,
    list_models,
    save_match_result,
)
from smartmatch.scoring.weights import normalize_industry
from smartmatch.semantic.embeddings import EmbeddingService, HashingEmbeddingBackend
from smartmatch.semantic.features import FeatureExtractor

logger = logging.getLogger(__name__)


class MatchEngine:
    """Orchestrates classification, scoring, memory and learning."""

    def __init__(
        self,
        classifier: DocumentClassifier,
        features: FeatureExtractor,
        memory: MemoryBank,
        scoring: IndustryScoringModel,
        feedback: FeedbackLoop,
        training: TrainingScheduler,
        similar_entries_limit: int = 5,
    ) -> None:
        self.classifier = classifier
        self.features = features
        self.memory = memory
        self.scoring = scoring
        self.feedback = feedback
        self.training = training
        self.similar_entries_limit = similar_entries_limit

    @classmethod
    def build(
        cls,
        settings: Settings,
        classifier_backend: ClassifierBackend | None = None,
        feature_backend: FeatureBackend | None = None,
        insight_backend: InsightBackend | None = None,
        embedding_backend: EmbeddingBackend | None = None,
    ) -> "MatchEngine":
        """Assemble an engine from settings and explicit backends.

        Backends left as None use their null implementation, or the hashing
        embedder for embeddings.
        """
        timeout = settings.ai_timeout_seconds
        embeddings = EmbeddingService(
            embedding_backend or HashingEmbeddingBackend(settings.embedding_dim),
            dim=settings.embedding_dim,
            timeout=timeout,
        )
        features = FeatureExtractor(feature_backend, embeddings, timeout=timeout)
        return cls(
            classifier=DocumentClassifier(
                classifier_backend, max_chars=settings.classifier_max_chars, timeout=timeout
            ),
            features=features,
            memory=MemoryBank(features, embedding_dim=settings.embedding_dim),
            scoring=IndustryScoringModel(insight_backend, timeout=timeout),
            feedback=FeedbackLoop(retry_limit=settings.optimistic_retry_limit),
            training=TrainingScheduler(
                min_entries=settings.training_min_entries,
                min_new_entries=settings.training_min_new_entries,
                retry_limit=settings.optimistic_retry_limit,
            ),
            similar_entries_limit=settings.similar_entries_limit,
        )

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "MatchEngine":
        """Build an engine wired to the configured AI provider, if any."""
        settings = settings or get_settings()
        client = GenerativeClient.from_settings(settings)
        if client is None:
            logger.info("No AI API key configured; all components use fallback paths")
            return cls.build(settings)

        embedding_backend = None
        if settings.use_remote_embeddings:
            embedding_backend = HTTPEmbeddingBackend(
                client, settings.ai_embedding_model, settings.embedding_dim
            )
        return cls.build(
            settings,
            classifier_backend=LLMClassifierBackend(client),
            feature_backend=LLMFeatureBackend(client),
            insight_backend=LLMInsightBackend(client),
            embedding_backend=embedding_backend,
        )

    # -- Operations ------------------------------------------------------------

    async def analyze(self, db: Session, request: AnalyzeRequest) -> AnalyzeResponse:
        """Classify, score and persist one document.

        Raises:
            InvalidDocumentError: If the document is not a valid RFP.
        """
        text = clean_document_text(request.document_text)
        classification = await self.classifier.classify(text)
        if not classification.is_valid_rfp:
            logger.info(
                "Rejected %s for user=%s as %s",
                request.filename or request.rfp_id,
                request.user_id,
                classification.document_type.value,
            )
            raise InvalidDocumentError(
                document_type=classification.document_type.value,
                rejection_reason=classification.rejection_reason or "Not a valid RFP",
            )

        industry = normalize_industry(request.user_profile.industry)
        features = await self.features.extract_features(text)
        model = get_or_create_model(db, request.user_id, industry)
        similar = await self.memory.query_nearest(
            db, request.user_id, industry, text, k=self.similar_entries_limit
        )
        result = await self.scoring.score(
            rfp_id=request.rfp_id,
            user_id=request.user_id,
            text=text,
            sections=classification.extracted_sections,
            profile=request.user_profile,
            model=model,
            features=features,
            similar=similar,
        )
        row = save_match_result(db, result, classification)

        logger.info(
            "Scored rfp=%s for user=%s industry=%s: %d (%s)",
            request.rfp_id, request.user_id, industry, result.overall_score, result.verdict,
        )
        return AnalyzeResponse(
            match_result_id=row.id,
            result=result,
            verdict=result.verdict,
            classification=ClassificationSummary(
                document_type=classification.document_type,
                confidence=classification.confidence,
                fit_score=classification.fit_score,
                sections_found=classification.extracted_sections.found(),
                used_fallback=classification.used_fallback,
            ),
        )

    def submit_feedback(
        self, db: Session, data: FeedbackCreate
    ) -> list[LearningWeightUpdate]:
        return self.feedback.submit_feedback(db, data)

    async def ingest_historical(
        self, db: Session, data: HistoricalDataCreate
    ) -> MemoryBankEntryResponse:
        """Store a historical entry, then train if the threshold is reached."""
        entry = await self.memory.store(db, data)
        await self.training.maybe_train(db, entry.user_id, entry.industry)
        return MemoryBankEntryResponse.model_validate(entry)

    def memory_bank(
        self, db: Session, user_id: str, industry: Optional[str] = None, limit: int = 50
    ) -> MemoryBankSummary:
        return self.memory.summarize(db, user_id, industry, limit)

    def training_status(
        self, db: Session, user_id: str, industry: str
    ) -> TrainingStatusResponse:
        return self.training.training_status(db, user_id, industry)

    async def trigger_training(
        self, db: Session, user_id: str, industry: str
    ) -> TrainingLogResponse:
        """Run a manual retrain.

        Raises:
            ConcurrentTrainingConflict: If a pass for this tenant is in flight.
        """
        log = await self.training.train(db, user_id, industry, training_type="retrain")
        if log is None:
            raise ConcurrentTrainingConflict(
                detail=f"user_id={user_id}, industry={normalize_industry(industry)}",
            )
        return TrainingLogResponse.model_validate(log)

    def list_models(self, db: Session, user_id: str) -> list[IndustryModelResponse]:
        return [IndustryModelResponse.model_validate(m) for m in list_models(db, user_id)]
