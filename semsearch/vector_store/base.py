"""Base hybrid store interface.

Defines the contract the search manager depends on, independent of the
backing implementation (PgVector, in-memory, etc.). A store is bound to one
table of records and exposes three query primitives:

- vector similarity search (cosine)
- lexical search restricted to rows matching the full-text predicate
- an optional combined hybrid query fused store-side with min-max scaling

All methods are asynchronous so services can issue the primitives
concurrently.
"""

import hashlib
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Hashable, List, NamedTuple, Sequence

from ..common.errors import SearchError


class ScoredRow(NamedTuple):
    """A row returned by a single-signal primitive.

    Unpacks as ``(identity, score, payload)``.
    """
    identity: Hashable
    score: float
    payload: Dict[str, Any]


@dataclass
class HybridRow:
    """A row returned by the combined hybrid primitive, already fused."""
    identity: Hashable
    hybrid_score: float
    lexical_score: float
    vector_score: float
    payload: Dict[str, Any] = field(default_factory=dict)


class HybridStore(ABC):
    """Abstract base class for hybrid-capable stores.

    Implementations must return the same ``identity`` for a record from every
    primitive, order rows by descending score, and never return rows that do
    not match the lexical predicate from ``lexical_search``.
    """

    @abstractmethod
    async def vector_search(
        self,
        query_vector: Sequence[float],
        k: int
    ) -> List[ScoredRow]:
        """Return up to ``k`` rows by descending cosine similarity."""
        pass

    @abstractmethod
    async def lexical_search(
        self,
        query_text: str,
        content_field: str,
        k: int
    ) -> List[ScoredRow]:
        """Return up to ``k`` matching rows by descending lexical rank."""
        pass

    @abstractmethod
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
        """Return up to ``k`` rows fused store-side.

        The store takes ``candidate_window`` rows from each signal, outer-joins
        them on identity, min-max normalizes each column (constant column
        maps to ``1``), and scores ``alpha * lexical + beta * vector``. Rows
        are ordered by hybrid score, ties in merge order (vector rank, then
        lexical rank for lexical-only rows).
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if the store is reachable."""
        pass

    async def close(self) -> None:
        """Release any held resources."""
        return None


def content_fingerprint(payload: Dict[str, Any]) -> str:
    """Stable identity for a record that has no usable primary key."""
    canonical = json.dumps(payload, sort_keys=True, default=str)
    return hashlib.md5(canonical.encode()).hexdigest()


class VectorStoreError(SearchError):
    """Base exception for store operations."""
    pass


class VectorStoreConnectionError(VectorStoreError):
    """Connection error to the store."""
    pass


class VectorStoreQueryError(VectorStoreError):
    """Query error in the store."""
    pass
