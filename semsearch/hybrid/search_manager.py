"""Search manager for hybrid semantic and lexical search.

Combines vector similarity (semantic) with full-text ranking (lexical) over
one store. Where fusion happens depends on the normalization method:

- ``min-max``: the store runs a single combined query that already
  normalizes and weights both signals; the manager only re-applies the
  threshold and top-K cut.
- ``z-score`` / ``none``: the manager issues the vector and lexical queries
  itself (concurrently by default), then merges and ranks client-side.

Both paths produce the same ranking for ``min-max``. Any collaborator
failure is fatal: there is no degraded lexical-only answer.
"""

import asyncio
import time
from typing import Any, Awaitable, Dict, List, Optional, Sequence, Tuple

import structlog

from ..common.errors import SearchError
from ..common.logging import preview_query
from ..common.metrics import MetricsCollector
from ..embeddings.base import EmbeddingProviderError
from ..embeddings.gateway import EmbeddingGateway
from ..ranking.fusion import RankedResult, WeightedScoreFusion, cut_results
from ..ranking.normalization import NormalizationMethod
from ..vector_store.base import HybridRow, HybridStore, ScoredRow, VectorStoreQueryError
from .options import SearchOptions

logger = structlog.get_logger("hybrid.search_manager")

STORE_PATH = "store"
CLIENT_PATH = "client"


class SearchManager:
    """Manages hybrid search operations.

    Responsibilities
    - Turn query text into a vector via the embedding gateway
    - Pick the store-side or client-side fusion path
    - Run the upstream queries with fail-fast semantics
    - Return ranked results with their component scores
    """

    def __init__(
        self,
        gateway: EmbeddingGateway,
        store: HybridStore,
        metrics: Optional[MetricsCollector] = None,
        default_options: Optional[SearchOptions] = None,
        content_field: str = "content",
        semantic_threshold: float = 0.7
    ):
        """Construct a search manager.

        Parameters
        - gateway: Embedding gateway used for every query vector
        - store: Store exposing the vector, lexical and hybrid primitives
        - metrics: Optional collector for search counters and latencies
        - default_options: Options used when a call passes none
        - content_field: Column searched lexically when a call passes none
        - semantic_threshold: Default similarity floor for ``semantic_search``
        """
        self.gateway = gateway
        self.store = store
        self.metrics = metrics
        self.default_options = default_options or SearchOptions()
        self.content_field = content_field
        self.semantic_threshold = semantic_threshold

    def with_gateway(self, gateway: EmbeddingGateway) -> "SearchManager":
        """Return a manager that shares the store but embeds through ``gateway``."""
        return SearchManager(
            gateway=gateway,
            store=self.store,
            metrics=self.metrics,
            default_options=self.default_options,
            content_field=self.content_field,
            semantic_threshold=self.semantic_threshold,
        )

    async def search(
        self,
        text: str,
        content_field: Optional[str] = None,
        options: Optional[SearchOptions] = None
    ) -> List[RankedResult]:
        """Perform hybrid search.

        Returns at most ``options.top_k`` results ordered by descending hybrid
        score, each scoring at least ``options.threshold``. Raises
        ``EmbeddingProviderError`` or a ``VectorStoreError`` on failure.
        """
        options = options or self.default_options
        content_field = content_field or self.content_field
        if not content_field:
            raise ValueError("content_field must not be empty")

        path = STORE_PATH if options.normalization == NormalizationMethod.MIN_MAX else CLIENT_PATH
        start_time = time.time()

        query_vector = await self._embed_query(text, mode="hybrid")

        if path == STORE_PATH:
            results = await self._store_side_search(query_vector, text, content_field, options)
        else:
            results = await self._client_side_search(query_vector, text, content_field, options)

        duration = time.time() - start_time
        if self.metrics:
            self.metrics.record_search("hybrid", path, duration, len(results))

        logger.info(
            "Hybrid search completed",
            query=preview_query(text),
            path=path,
            normalization=options.normalization.value,
            results_count=len(results),
            duration=duration
        )
        return results

    async def semantic_search(
        self,
        text: str,
        top_k: Optional[int] = None,
        threshold: Optional[float] = None
    ) -> List[RankedResult]:
        """Vector-only search keeping rows with similarity ``>= threshold``."""
        top_k = self.default_options.top_k if top_k is None else top_k
        threshold = self.semantic_threshold if threshold is None else threshold
        if top_k <= 0:
            raise ValueError(f"top_k must be a positive integer, got {top_k!r}")

        start_time = time.time()
        query_vector = await self._embed_query(text, mode="semantic")
        rows = await self._store_call(
            self.store.vector_search(query_vector, top_k),
            mode="semantic",
            stage="vector"
        )

        results = [
            RankedResult(
                identity=identity,
                payload=payload,
                hybrid_score=score,
                bm25_score=0.0,
                vector_score=score,
            )
            for identity, score, payload in rows
            if score >= threshold
        ]

        duration = time.time() - start_time
        if self.metrics:
            self.metrics.record_search("semantic", "vector", duration, len(results))

        logger.info(
            "Semantic search completed",
            query=preview_query(text),
            threshold=threshold,
            results_count=len(results),
            duration=duration
        )
        return results

    async def _embed_query(self, text: str, mode: str) -> List[float]:
        """Embed the query text; nothing reaches the store if this fails."""
        try:
            result = await self.gateway.embed(text)
        except Exception as e:
            if self.metrics:
                self.metrics.record_search_failure(mode, "embedding")
            logger.error("Query embedding failed", query=preview_query(text), error=str(e))
            if isinstance(e, SearchError):
                raise
            raise EmbeddingProviderError(
                f"Query embedding failed: {e}", self.gateway.primary.name, e
            ) from e
        return result.embedding

    async def _store_call(self, call: Awaitable[Any], mode: str, stage: str) -> Any:
        """Await one store primitive, typing any untyped failure."""
        try:
            return await call
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if self.metrics:
                self.metrics.record_search_failure(mode, stage)
            logger.error("Store query failed", stage=stage, error=str(e))
            if isinstance(e, SearchError):
                raise
            raise VectorStoreQueryError(f"{stage.capitalize()} query failed: {e}") from e

    async def _store_side_search(
        self,
        query_vector: Sequence[float],
        text: str,
        content_field: str,
        options: SearchOptions
    ) -> List[RankedResult]:
        window = options.candidate_window
        rows: List[HybridRow] = await self._store_call(
            self.store.hybrid_search(
                query_vector,
                text,
                content_field,
                options.alpha,
                options.beta,
                window,
                window,
            ),
            mode="hybrid",
            stage="hybrid"
        )

        results = [
            RankedResult(
                identity=row.identity,
                payload=row.payload,
                hybrid_score=row.hybrid_score,
                bm25_score=row.lexical_score,
                vector_score=row.vector_score,
            )
            for row in rows
        ]
        return cut_results(results, options.threshold, options.top_k)

    async def _client_side_search(
        self,
        query_vector: Sequence[float],
        text: str,
        content_field: str,
        options: SearchOptions
    ) -> List[RankedResult]:
        window = options.candidate_window

        def vector_query() -> Awaitable[List[ScoredRow]]:
            return self._store_call(
                self.store.vector_search(query_vector, window),
                mode="hybrid",
                stage="vector"
            )

        def lexical_query() -> Awaitable[List[ScoredRow]]:
            return self._store_call(
                self.store.lexical_search(text, content_field, window),
                mode="hybrid",
                stage="lexical"
            )

        if options.parallel_queries:
            vector_hits, lexical_hits = await run_fail_fast(vector_query(), lexical_query())
        else:
            vector_hits = await vector_query()
            lexical_hits = await lexical_query()

        fusion = WeightedScoreFusion(
            alpha=options.alpha,
            beta=options.beta,
            normalization=options.normalization
        )
        return fusion.fuse_results(
            vector_hits,
            lexical_hits,
            threshold=options.threshold,
            top_k=options.top_k
        )

    async def health_check(self) -> Dict[str, Any]:
        """Report store reachability and the active embedding provider."""
        store_healthy = await self.store.health_check()
        return {
            "healthy": store_healthy,
            "store": store_healthy,
            "provider": self.gateway.primary.name,
        }

    async def close(self) -> None:
        """Release store and provider resources."""
        await self.gateway.close()
        await self.store.close()


async def run_fail_fast(
    vector_call: Awaitable[Any],
    lexical_call: Awaitable[Any]
) -> Tuple[Any, Any]:
    """Run both queries concurrently and stop at the first failure.

    The surviving task is cancelled and awaited before the error propagates.
    When both fail, the vector error is raised.
    """
    vector_task = asyncio.ensure_future(vector_call)
    lexical_task = asyncio.ensure_future(lexical_call)
    tasks = (vector_task, lexical_task)

    try:
        await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
    finally:
        pending = [task for task in tasks if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    errors = [task.exception() for task in tasks if not task.cancelled()]
    for error in errors:
        if error is not None:
            raise error

    return vector_task.result(), lexical_task.result()
