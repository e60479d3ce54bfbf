"""Embedding and similarity primitives.

hash_embed is the deterministic fallback embedding: lowercase alphanumeric
tokens hashed with blake2b into `dim` buckets, term frequencies accumulated,
then L2-normalized. It needs no model and is stable across processes.

EmbeddingService wraps whichever EmbeddingBackend is configured and enforces
the configured dimension, so every stored embedding has the same length.
"""

from __future__ import annotations

import hashlib
import logging
import re
from typing import Optional, Sequence

import numpy as np

from smartmatch.ai.backends import EmbeddingBackend, call_with_timeout
from smartmatch.exceptions import MalformedBackendResponseError

logger = logging.getLogger(__name__)

# Default dense embedding dimension
EMBEDDING_DIM = 768

_TOKEN_RE = re.compile(r"[a-z0-9]+")


def tokenize(text: str) -> list[str]:
    """Lowercase alphanumeric tokens of a text."""
    return _TOKEN_RE.findall(text.lower())


def _bucket(token: str, dim: int) -> int:
    digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big") % dim


def hash_embed(text: str, dim: int = EMBEDDING_DIM) -> list[float]:
    """Hash a text into an L2-normalized term-frequency vector.

    Pure function of (text, dim). Empty or token-free text yields the zero
    vector.
    """
    vec = np.zeros(dim, dtype=np.float64)
    for token in tokenize(text):
        vec[_bucket(token, dim)] += 1.0
    norm = np.linalg.norm(vec)
    if norm > 0:
        vec /= norm
    return vec.tolist()


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity clamped to [0, 1].

    Returns 0.0 when either vector has zero magnitude.

    Raises:
        ValueError: If the vectors differ in length.
    """
    if len(a) != len(b):
        raise ValueError(f"Dimension mismatch: {len(a)} != {len(b)}")
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    denom = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if denom == 0.0:
        return 0.0
    sim = float(np.dot(va, vb)) / denom
    return max(0.0, min(1.0, sim))


def jaccard(a: str, b: str) -> float:
    """Token-set Jaccard similarity of two texts. 0.0 when both are empty."""
    sa, sb = set(tokenize(a)), set(tokenize(b))
    union = sa | sb
    if not union:
        return 0.0
    return len(sa & sb) / len(union)


class HashingEmbeddingBackend(EmbeddingBackend):
    """Local embedding backend built on hash_embed."""

    def __init__(self, dim: int = EMBEDDING_DIM) -> None:
        self.dim = dim

    async def embed(self, text: str) -> list[float]:
        return hash_embed(text, self.dim)


class EmbeddingService:
    """Produces fixed-dimension embeddings through a pluggable backend."""

    def __init__(
        self,
        backend: Optional[EmbeddingBackend] = None,
        dim: int = EMBEDDING_DIM,
        timeout: float = 20.0,
    ) -> None:
        self.dim = dim
        self.backend = backend or HashingEmbeddingBackend(dim)
        self.timeout = timeout

    async def embed(self, text: str) -> list[float]:
        """Embed a text, validating the vector length.

        Raises:
            BackendUnavailableError: If the backend fails or times out.
            MalformedBackendResponseError: If the vector has the wrong length.
        """
        vector = await call_with_timeout(
            self.backend.embed(text), self.timeout, "embedding"
        )
        if not isinstance(vector, (list, tuple)):
            raise MalformedBackendResponseError(
                detail=f"Embedding is {type(vector).__name__}, not a list"
            )
        if len(vector) != self.dim:
            raise MalformedBackendResponseError(
                detail=f"Expected {self.dim}-dim embedding, got {len(vector)}"
            )
        try:
            return [float(v) for v in vector]
        except (TypeError, ValueError) as e:
            raise MalformedBackendResponseError(
                detail=f"Embedding has non-numeric elements: {e}"
            ) from e
