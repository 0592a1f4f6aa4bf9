"""Test doubles: a static embedding provider and a scripted store."""

import asyncio
from typing import Any, List, Optional, Sequence

from semsearch.embeddings.base import (
    BatchEmbeddingResult,
    EmbeddingProvider,
    EmbeddingResult,
    ProviderConfig,
    ProviderInfo,
)
from semsearch.ranking.fusion import merge_results, rank_candidates
from semsearch.vector_store.base import HybridRow, HybridStore, ScoredRow


class StaticProvider(EmbeddingProvider):
    """Returns the same vector for every text, or raises ``error``."""

    def __init__(
        self,
        vector: Sequence[float],
        name: str = "openai",
        error: Optional[Exception] = None,
        dimensions: Optional[int] = None
    ):
        super().__init__(ProviderConfig(provider=name, api_key="test-key"))
        self.vector = list(vector)
        self.error_to_raise = error
        self.dimensions = dimensions or len(self.vector)
        self.calls: List[str] = []
        self.closed = False

    def describe(self) -> ProviderInfo:
        return ProviderInfo(
            provider=self.name,
            default_model="static",
            available_models=("static",),
            default_dimensions=self.dimensions,
            max_input_length=1000,
            max_batch_size=2,
            normalized_by_default=True,
        )

    async def embed(self, text: str) -> EmbeddingResult:
        self.calls.append(text)
        if self.error_to_raise is not None:
            raise self.error_to_raise
        return EmbeddingResult(
            embedding=list(self.vector),
            dimensions=len(self.vector),
            provider=self.name,
            model="static",
        )

    async def _batch_embed_chunk(self, texts: List[str]) -> BatchEmbeddingResult:
        self.calls.extend(texts)
        if self.error_to_raise is not None:
            raise self.error_to_raise
        return BatchEmbeddingResult(
            embeddings=[list(self.vector) for _ in texts],
            dimensions=len(self.vector),
            provider=self.name,
            model="static",
        )

    async def close(self) -> None:
        self.closed = True


class ScriptedStore(HybridStore):
    """Store double returning canned hits, with optional delays and failures.

    ``hybrid_search`` fuses the canned hits with the client-side ranker so the
    store-side path can be exercised without a database.
    """

    def __init__(
        self,
        vector_hits: Sequence[tuple] = (),
        lexical_hits: Sequence[tuple] = (),
        vector_error: Optional[Exception] = None,
        lexical_error: Optional[Exception] = None,
        hybrid_error: Optional[Exception] = None,
        vector_delay: float = 0.0,
        lexical_delay: float = 0.0,
        healthy: bool = True
    ):
        self.vector_hits = [ScoredRow(*hit) for hit in vector_hits]
        self.lexical_hits = [ScoredRow(*hit) for hit in lexical_hits]
        self.vector_error = vector_error
        self.lexical_error = lexical_error
        self.hybrid_error = hybrid_error
        self.vector_delay = vector_delay
        self.lexical_delay = lexical_delay
        self.healthy = healthy
        self.calls: List[tuple] = []
        self.cancelled: List[str] = []
        self.closed = False

    async def _pause(self, name: str, delay: float) -> None:
        try:
            await asyncio.sleep(delay)
        except asyncio.CancelledError:
            self.cancelled.append(name)
            raise

    async def vector_search(self, query_vector, k):
        self.calls.append(("vector", k))
        await self._pause("vector", self.vector_delay)
        if self.vector_error is not None:
            raise self.vector_error
        return self.vector_hits[:k]

    async def lexical_search(self, query_text, content_field, k):
        self.calls.append(("lexical", content_field, k))
        await self._pause("lexical", self.lexical_delay)
        if self.lexical_error is not None:
            raise self.lexical_error
        return self.lexical_hits[:k]

    async def hybrid_search(self, query_vector, query_text, content_field, alpha, beta, k, candidate_window):
        self.calls.append(("hybrid", content_field, alpha, beta, k, candidate_window))
        if self.hybrid_error is not None:
            raise self.hybrid_error
        candidates = merge_results(
            self.vector_hits[:candidate_window],
            self.lexical_hits[:candidate_window]
        )
        ranked = rank_candidates(candidates, alpha, beta, "min-max", threshold=float("-inf"), top_k=k)
        return [
            HybridRow(
                identity=r.identity,
                hybrid_score=r.hybrid_score,
                lexical_score=r.bm25_score,
                vector_score=r.vector_score,
                payload=r.payload,
            )
            for r in ranked
        ]

    async def health_check(self) -> bool:
        return self.healthy

    async def close(self) -> None:
        self.closed = True


SCENARIO_VECTOR_HITS = [
    (1, 0.9, {"id": 1, "content": "one"}),
    (2, 0.5, {"id": 2, "content": "two"}),
]
SCENARIO_LEXICAL_HITS = [
    (2, 10.0, {"id": 2, "content": "two"}),
    (3, 5.0, {"id": 3, "content": "three"}),
]


def identities(results: Sequence[Any]) -> List[Any]:
    return [r.identity for r in results]
