"""Result fusion for hybrid search.

Two steps turn a vector result set and a lexical result set into one ranking:

1. ``merge_results`` outer-joins both sides on row identity, filling the
   missing side's score with ``0``.
2. ``rank_candidates`` normalizes each score column independently, weights
   them (``alpha`` for lexical, ``beta`` for vector), drops rows under the
   threshold, sorts by the fused score, and truncates to ``top_k``.

Fused scores are relative to one query's candidate set: the same hybrid score
from two different queries means nothing by itself.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Hashable, Iterable, List, Sequence, Tuple, Union

import structlog

from .normalization import NormalizationMethod, normalize

logger = structlog.get_logger("ranking.fusion")

# (identity, score, payload) as returned by the store primitives.
Hit = Tuple[Hashable, float, Dict[str, Any]]


@dataclass
class Candidate:
    """One row eligible for hybrid ranking.

    Raw scores are kept as received; a side that did not return the row
    contributes ``0``.
    """
    identity: Hashable
    payload: Dict[str, Any] = field(default_factory=dict)
    vector_score: float = 0.0
    lexical_score: float = 0.0


@dataclass
class RankedResult:
    """A fused result with its raw component scores for diagnostics."""
    identity: Hashable
    payload: Dict[str, Any]
    hybrid_score: float
    bm25_score: float
    vector_score: float

    def to_dict(self) -> Dict[str, Any]:
        """Flatten the payload and scores into one mapping."""
        return {
            **self.payload,
            "hybrid_score": self.hybrid_score,
            "bm25_score": self.bm25_score,
            "vector_score": self.vector_score,
        }


def merge_results(
    vector_hits: Iterable[Hit],
    lexical_hits: Iterable[Hit]
) -> List[Candidate]:
    """Outer-join vector and lexical hits by identity.

    The result holds one ``Candidate`` per distinct identity. Vector-side
    identities come first in the order they were seen, followed by
    lexical-only identities. A duplicate identity within one side overwrites
    the earlier score and payload. The vector side's payload wins when both
    sides carry the row.
    """
    candidates: Dict[Hashable, Candidate] = {}

    for identity, score, payload in vector_hits:
        candidate = candidates.get(identity)
        if candidate is None:
            candidates[identity] = Candidate(
                identity=identity,
                payload=payload or {},
                vector_score=float(score),
            )
        else:
            candidate.vector_score = float(score)
            candidate.payload = payload or {}

    vector_identities = set(candidates)

    for identity, score, payload in lexical_hits:
        candidate = candidates.get(identity)
        if candidate is None:
            candidates[identity] = Candidate(
                identity=identity,
                payload=payload or {},
                lexical_score=float(score),
            )
        else:
            candidate.lexical_score = float(score)
            if identity not in vector_identities:
                candidate.payload = payload or {}

    return list(candidates.values())


def hybrid_scores(
    candidates: Sequence[Candidate],
    alpha: float,
    beta: float,
    normalization: Union[NormalizationMethod, str] = NormalizationMethod.MIN_MAX
) -> List[float]:
    """Compute ``alpha * lexical_norm + beta * vector_norm`` per candidate."""
    normalized_vector = normalize([c.vector_score for c in candidates], normalization)
    normalized_lexical = normalize([c.lexical_score for c in candidates], normalization)

    return [
        alpha * lexical + beta * vector
        for lexical, vector in zip(normalized_lexical, normalized_vector)
    ]


def cut_results(
    results: Iterable[RankedResult],
    threshold: float,
    top_k: int
) -> List[RankedResult]:
    """Apply the threshold filter, stable descending sort, and top-K cut.

    Results scoring exactly ``threshold`` are kept. Equal scores keep their
    incoming relative order.
    """
    kept = [r for r in results if r.hybrid_score >= threshold]
    kept.sort(key=lambda r: r.hybrid_score, reverse=True)
    return kept[:top_k]


def rank_candidates(
    candidates: Sequence[Candidate],
    alpha: float,
    beta: float,
    normalization: Union[NormalizationMethod, str] = NormalizationMethod.MIN_MAX,
    threshold: float = 0.1,
    top_k: int = 5
) -> List[RankedResult]:
    """Fuse, filter, sort, and truncate ``candidates``.

    Ranking uses normalized scores; each emitted result carries the raw
    vector and lexical scores it was built from.
    """
    scores = hybrid_scores(candidates, alpha, beta, normalization)

    results = [
        RankedResult(
            identity=candidate.identity,
            payload=candidate.payload,
            hybrid_score=score,
            bm25_score=candidate.lexical_score,
            vector_score=candidate.vector_score,
        )
        for candidate, score in zip(candidates, scores)
    ]

    return cut_results(results, threshold, top_k)


class WeightedScoreFusion:
    """Weighted score fusion with per-column normalization.

    Weights are used as given; they are not rescaled to sum to one, and both
    may be zero.
    """

    def __init__(
        self,
        alpha: float = 0.3,
        beta: float = 0.7,
        normalization: Union[NormalizationMethod, str] = NormalizationMethod.MIN_MAX
    ):
        if alpha < 0 or beta < 0:
            raise ValueError(f"Fusion weights must be non-negative, got alpha={alpha}, beta={beta}")
        self.alpha = alpha
        self.beta = beta
        self.normalization = NormalizationMethod(normalization)

    def fuse_results(
        self,
        vector_hits: Iterable[Hit],
        lexical_hits: Iterable[Hit],
        threshold: float = 0.1,
        top_k: int = 5
    ) -> List[RankedResult]:
        """Merge both hit lists and rank the merged candidates."""
        candidates = merge_results(vector_hits, lexical_hits)
        results = rank_candidates(
            candidates,
            alpha=self.alpha,
            beta=self.beta,
            normalization=self.normalization,
            threshold=threshold,
            top_k=top_k,
        )

        logger.debug(
            "Weighted score fusion completed",
            candidate_count=len(candidates),
            result_count=len(results),
            alpha=self.alpha,
            beta=self.beta,
            normalization=self.normalization.value
        )

        return results
