import asyncio
import hashlib
import logging
import math
import os
import time
from typing import Dict, List, Mapping, Optional, Sequence

import httpx
import numpy as np
from pydantic import BaseModel, ConfigDict, Field
from sentence_transformers import SentenceTransformer

from .config import EmbeddingConfig
from .errors import ConfigurationError, EmbeddingError
from .extraction.sentences import strip_inline_markdown
from .models.paragraph import Paragraph
from .models.statement import Statement

logger = logging.getLogger(__name__)


class EmbeddingRequest(BaseModel):
    id: str
    text: str


class EmbeddingBatch(BaseModel):
    """Result of one embedding call: vectors by id, failures by id."""
    model_config = ConfigDict(protected_namespaces=())

    vectors: Dict[str, List[float]] = Field(default_factory=dict)
    failures: Dict[str, str] = Field(default_factory=dict)
    dimensions: int
    model_id: str
    elapsed_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return not self.failures

    def as_arrays(self) -> Dict[str, np.ndarray]:
        return {k: np.asarray(v, dtype=float) for k, v in self.vectors.items()}


class SentenceTransformerBackend:
    name = "sentence_transformers"

    def __init__(self, model_name: str = "all-MiniLM-L6-v2"):
        """
        Local embedder using sentence-transformers.
        """
        # Avoid tokenizer fork warnings when encode runs in a worker thread
        os.environ["TOKENIZERS_PARALLELISM"] = "false"
        self.model_name = model_name
        self.model = SentenceTransformer(model_name)

    async def encode(self, texts: List[str]) -> List[List[float]]:
        if not texts:
            return []
        embeddings = await asyncio.to_thread(self.model.encode, texts, convert_to_tensor=False)
        return [list(map(float, row)) for row in embeddings]


class HttpEmbeddingBackend:
    """POSTs ``{"model", "texts"}`` and expects ``{"embeddings": [[...], ...]}``."""

    name = "http"

    def __init__(self, endpoint: str, model_name: str, timeout: float = 30.0, api_key: Optional[str] = None):
        if not endpoint:
            raise ConfigurationError("http embedding backend requires an endpoint")
        self.endpoint = endpoint
        self.model_name = model_name
        self.timeout = timeout
        self.api_key = api_key or os.environ.get("EVIDENCE_GRAPH_EMBED_API_KEY")

    async def encode(self, texts: List[str]) -> List[List[float]]:
        if not texts:
            return []
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.post(
                self.endpoint, json={"model": self.model_name, "texts": texts}, headers=headers
            )
            resp.raise_for_status()
            data = resp.json()
        embeddings = data.get("embeddings") if isinstance(data, dict) else None
        if not isinstance(embeddings, list):
            raise EmbeddingError("embedding response has no 'embeddings' list")
        return embeddings


class HashingBackend:
    """Deterministic pseudo-embeddings seeded from a sha256 of the text.

    Same text, same vector. Useful offline and in tests; carries no meaning.
    """

    name = "hashing"

    def __init__(self, dimensions: int = 256):
        self.dimensions = dimensions

    async def encode(self, texts: List[str]) -> List[List[float]]:
        out = []
        for text in texts:
            seed = int.from_bytes(hashlib.sha256(text.encode("utf-8")).digest()[:8], "big")
            rng = np.random.default_rng(seed)
            out.append(rng.standard_normal(self.dimensions).tolist())
        return out


def build_backend(config: EmbeddingConfig):
    if config.backend == "sentence_transformers":
        return SentenceTransformerBackend(config.model_id)
    if config.backend == "http":
        return HttpEmbeddingBackend(config.endpoint, config.model_id, timeout=config.timeout_sec)
    if config.backend == "hashing":
        return HashingBackend(config.dimensions)
    raise ConfigurationError(f"Unknown embedding backend: {config.backend}")


def normalize_vector(raw, dimensions: int) -> List[float]:
    """Validate, prefix-truncate to ``dimensions`` and L2-renormalise.

    Raises EmbeddingError for missing, non-numeric, non-finite, too short or
    zero-norm vectors.
    """
    if raw is None:
        raise EmbeddingError("missing vector")
    try:
        vec = np.asarray(raw, dtype=float).ravel()
    except (TypeError, ValueError) as e:
        raise EmbeddingError(f"non-numeric vector: {e}") from e
    if vec.size < dimensions:
        raise EmbeddingError(f"expected at least {dimensions} dimensions, got {vec.size}")
    vec = vec[:dimensions]
    if not np.all(np.isfinite(vec)):
        raise EmbeddingError("vector contains non-finite values")
    norm = float(np.linalg.norm(vec))
    if norm == 0.0 or not math.isfinite(norm):
        raise EmbeddingError("zero-norm vector")
    return (vec / norm).tolist()


class Embedder:
    def __init__(self, config: Optional[EmbeddingConfig] = None, backend=None):
        self.config = config or EmbeddingConfig()
        if self.config.dimensions <= 0:
            raise ConfigurationError("embedding dimensions must be positive")
        self.backend = backend if backend is not None else build_backend(self.config)

    @property
    def backend_name(self) -> str:
        return getattr(self.backend, "name", type(self.backend).__name__)

    async def embed(self, items: Sequence[EmbeddingRequest]) -> EmbeddingBatch:
        """Embed a batch of (id, text) requests.

        Every id ends up either in ``vectors`` or in ``failures``. A backend
        exception fails the whole batch.
        """
        start = time.perf_counter()
        batch = EmbeddingBatch(dimensions=self.config.dimensions, model_id=self.config.model_id)
        if not items:
            return batch

        texts = [item.text for item in items]
        raw_vectors: List = []
        try:
            for i in range(0, len(texts), self.config.batch_size):
                raw_vectors.extend(await self.backend.encode(texts[i:i + self.config.batch_size]))
        except (httpx.HTTPError, EmbeddingError, RuntimeError, ValueError, OSError) as e:
            logger.warning("Embedding backend %s failed for %d items: %s", self.backend_name, len(items), e)
            batch.failures = {item.id: f"backend error: {e}" for item in items}
            batch.elapsed_ms = (time.perf_counter() - start) * 1000
            return batch

        for idx, item in enumerate(items):
            raw = raw_vectors[idx] if idx < len(raw_vectors) else None
            try:
                batch.vectors[item.id] = normalize_vector(raw, self.config.dimensions)
            except EmbeddingError as e:
                batch.failures[item.id] = str(e)

        if batch.failures:
            logger.warning("%d of %d embeddings failed", len(batch.failures), len(items))
        batch.elapsed_ms = (time.perf_counter() - start) * 1000
        logger.debug("Embedded %d items in %.1fms", len(batch.vectors), batch.elapsed_ms)
        return batch

    async def embed_statements(self, statements: Sequence[Statement]) -> EmbeddingBatch:
        return await self.embed(
            [EmbeddingRequest(id=s.id, text=strip_inline_markdown(s.text)) for s in statements]
        )

    async def embed_paragraphs(
        self, paragraphs: Sequence[Paragraph], statements: Sequence[Statement]
    ) -> EmbeddingBatch:
        """Embed each paragraph's member texts joined once, never pooled."""
        by_id = {s.id: s for s in statements}
        requests = []
        for p in paragraphs:
            text = " ".join(by_id[sid].text for sid in p.statement_ids if sid in by_id)
            requests.append(EmbeddingRequest(id=p.id, text=text or p.full_paragraph))
        return await self.embed(requests)


def decode_embedding_map(raw: Mapping[str, Sequence[float]], dimensions: int) -> Dict[str, np.ndarray]:
    """Turn a plain id -> vector mapping into normalised numpy arrays."""
    out: Dict[str, np.ndarray] = {}
    for key, vec in raw.items():
        try:
            out[key] = np.asarray(normalize_vector(vec, dimensions), dtype=float)
        except EmbeddingError as e:
            raise EmbeddingError(f"{key}: {e}", item_id=key) from e
    return out
