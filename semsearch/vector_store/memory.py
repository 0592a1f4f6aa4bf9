"""In-memory hybrid store.

Holds rows and their embeddings in process, scoring vectors with numpy and
text with Okapi BM25. Useful for tests, local experiments, and the CLI's
``--store memory`` mode; it follows the same identity and ordering rules as
the PgVector store so the two can be swapped freely.
"""

import math
import re
from collections import Counter
from typing import Any, Dict, Hashable, List, Optional, Sequence

import numpy as np
import structlog

from .base import HybridRow, HybridStore, ScoredRow, VectorStoreQueryError, content_fingerprint

logger = structlog.get_logger("vector_store.memory")

_TOKEN_RE = re.compile(r"\w+", re.UNICODE)


def tokenize(text: str) -> List[str]:
    """Lowercase word tokens."""
    return _TOKEN_RE.findall(str(text).lower())


class InMemoryHybridStore(HybridStore):
    """Hybrid store backed by Python lists and numpy arrays.

    A row matches a lexical query when it contains every query token; only
    matching rows receive a BM25 score.
    """

    def __init__(
        self,
        dimension: int,
        id_column: Optional[str] = "id",
        k1: float = 1.5,
        b: float = 0.75,
    ):
        self.dimension = dimension
        self.id_column = id_column
        self.k1 = k1
        self.b = b
        self._rows: List[Dict[str, Any]] = []
        self._identities: List[Hashable] = []
        self._positions: Dict[Hashable, int] = {}
        self._embeddings = np.zeros((0, dimension), dtype=np.float32)

    def __len__(self) -> int:
        return len(self._rows)

    def _identity(self, payload: Dict[str, Any]) -> Hashable:
        if self.id_column:
            if self.id_column not in payload:
                raise ValueError(f"Row is missing identity column '{self.id_column}'")
            return payload[self.id_column]
        return content_fingerprint(payload)

    def upsert(self, payload: Dict[str, Any], embedding: Sequence[float]) -> Hashable:
        """Insert or replace one row and return its identity."""
        vector = np.asarray(embedding, dtype=np.float32)
        if vector.shape != (self.dimension,):
            raise ValueError(
                f"Expected vector dimension {self.dimension}, got {vector.shape[-1] if vector.ndim else 0}"
            )

        identity = self._identity(payload)
        position = self._positions.get(identity)
        if position is None:
            self._positions[identity] = len(self._rows)
            self._rows.append(dict(payload))
            self._identities.append(identity)
            self._embeddings = np.vstack([self._embeddings, vector[np.newaxis, :]])
        else:
            self._rows[position] = dict(payload)
            self._embeddings[position] = vector
        return identity

    def add_rows(
        self,
        rows: Sequence[Dict[str, Any]],
        embeddings: Sequence[Sequence[float]]
    ) -> List[Hashable]:
        """Upsert many rows at once."""
        if len(rows) != len(embeddings):
            raise ValueError("Rows and embeddings must have the same length")
        return [self.upsert(row, embedding) for row, embedding in zip(rows, embeddings)]

    def _check_vector(self, query_vector: Sequence[float]) -> np.ndarray:
        vector = np.asarray(query_vector, dtype=np.float32)
        if vector.ndim != 1 or vector.shape[0] != self.dimension:
            raise VectorStoreQueryError(
                f"Expected vector dimension {self.dimension}, got {vector.shape}"
            )
        return vector

    def _similarities(self, vector: np.ndarray) -> np.ndarray:
        if not self._rows:
            return np.zeros(0, dtype=np.float64)
        row_norms = np.linalg.norm(self._embeddings, axis=1)
        query_norm = np.linalg.norm(vector)
        denominator = row_norms * query_norm
        dots = self._embeddings @ vector
        with np.errstate(divide="ignore", invalid="ignore"):
            similarities = np.where(denominator > 0, dots / denominator, 0.0)
        return similarities.astype(np.float64)

    def _vector_ranking(self, vector: np.ndarray, k: int) -> List[tuple]:
        similarities = self._similarities(vector)
        order = np.argsort(-similarities, kind="stable")[:k]
        return [(int(i), float(similarities[i])) for i in order]

    def _bm25_ranking(self, query_text: str, content_field: str, k: int) -> List[tuple]:
        terms = set(tokenize(query_text))
        if not terms or not self._rows:
            return []

        documents = [tokenize(row.get(content_field) or "") for row in self._rows]
        total = len(documents)
        avg_length = sum(len(d) for d in documents) / total or 1.0
        frequencies = [Counter(d) for d in documents]
        document_frequency = {
            term: sum(1 for f in frequencies if term in f) for term in terms
        }

        scored = []
        for position, (document, tf) in enumerate(zip(documents, frequencies)):
            if not all(term in tf for term in terms):
                continue
            length_ratio = len(document) / avg_length
            score = 0.0
            for term in terms:
                df = document_frequency[term]
                idf = math.log(1 + (total - df + 0.5) / (df + 0.5))
                count = tf[term]
                score += idf * count * (self.k1 + 1) / (
                    count + self.k1 * (1 - self.b + self.b * length_ratio)
                )
            scored.append((position, score))

        scored.sort(key=lambda item: item[1], reverse=True)
        return scored[:k]

    async def vector_search(
        self,
        query_vector: Sequence[float],
        k: int
    ) -> List[ScoredRow]:
        vector = self._check_vector(query_vector)
        return [
            ScoredRow(self._identities[i], score, dict(self._rows[i]))
            for i, score in self._vector_ranking(vector, k)
        ]

    async def lexical_search(
        self,
        query_text: str,
        content_field: str,
        k: int
    ) -> List[ScoredRow]:
        return [
            ScoredRow(self._identities[i], score, dict(self._rows[i]))
            for i, score in self._bm25_ranking(query_text, content_field, k)
        ]

    async def hybrid_search(
        self,
        query_vector: Sequence[float],
        query_text: str,
        content_field: str,
        alpha: float,
        beta: float,
        k: int,
        candidate_window: int
    ) -> List[HybridRow]:
        """Fuse vector and BM25 candidates with column-wise min-max scaling."""
        vector = self._check_vector(query_vector)
        vector_ranked = self._vector_ranking(vector, candidate_window)
        lexical_ranked = self._bm25_ranking(query_text, content_field, candidate_window)

        positions: List[int] = [i for i, _ in vector_ranked]
        seen = set(positions)
        positions.extend(i for i, _ in lexical_ranked if i not in seen)
        if not positions:
            return []

        vector_lookup = dict(vector_ranked)
        lexical_lookup = dict(lexical_ranked)
        vector_scores = np.array([vector_lookup.get(i, 0.0) for i in positions], dtype=np.float64)
        lexical_scores = np.array([lexical_lookup.get(i, 0.0) for i in positions], dtype=np.float64)

        hybrid = alpha * _min_max(lexical_scores) + beta * _min_max(vector_scores)
        order = np.argsort(-hybrid, kind="stable")[:k]

        results = [
            HybridRow(
                identity=self._identities[positions[j]],
                hybrid_score=float(hybrid[j]),
                lexical_score=float(lexical_scores[j]),
                vector_score=float(vector_scores[j]),
                payload=dict(self._rows[positions[j]]),
            )
            for j in order
        ]

        logger.debug(
            "In-memory hybrid search completed",
            candidate_count=len(positions),
            results_count=len(results)
        )
        return results

    async def health_check(self) -> bool:
        return True


def _min_max(column: np.ndarray) -> np.ndarray:
    lo = column.min()
    hi = column.max()
    if hi == lo:
        return np.ones_like(column)
    return (column - lo) / (hi - lo)
