"""Caller-facing search options."""

from dataclasses import dataclass, replace
from typing import Any

from ..common.config import BaseConfig
from ..ranking.normalization import NormalizationMethod


@dataclass(frozen=True)
class SearchOptions:
    """Immutable knobs for one hybrid search.

    Invalid values raise ``ValueError`` on construction, before any I/O.
    """
    top_k: int = 5
    alpha: float = 0.3
    beta: float = 0.7
    normalization: NormalizationMethod = NormalizationMethod.MIN_MAX
    threshold: float = 0.1
    candidate_multiplier: int = 2
    parallel_queries: bool = True

    def __post_init__(self) -> None:
        if isinstance(self.top_k, bool) or not isinstance(self.top_k, int) or self.top_k <= 0:
            raise ValueError(f"top_k must be a positive integer, got {self.top_k!r}")
        if self.alpha < 0 or self.beta < 0:
            raise ValueError(
                f"Fusion weights must be non-negative, got alpha={self.alpha}, beta={self.beta}"
            )
        if (
            isinstance(self.candidate_multiplier, bool)
            or not isinstance(self.candidate_multiplier, int)
            or self.candidate_multiplier < 1
        ):
            raise ValueError(
                f"candidate_multiplier must be an integer >= 1, got {self.candidate_multiplier!r}"
            )
        # Frozen dataclasses assign through object.__setattr__.
        object.__setattr__(self, "normalization", NormalizationMethod(self.normalization))

    @property
    def candidate_window(self) -> int:
        """Rows requested from each upstream source."""
        return self.top_k * self.candidate_multiplier

    def with_overrides(self, **overrides: Any) -> "SearchOptions":
        """Return a copy with every non-``None`` override applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **changes) if changes else self

    @classmethod
    def from_config(cls, config: BaseConfig) -> "SearchOptions":
        return cls(
            top_k=config.search_top_k,
            alpha=config.search_alpha,
            beta=config.search_beta,
            normalization=NormalizationMethod(config.search_normalization),
            threshold=config.search_threshold,
            candidate_multiplier=config.search_candidate_multiplier,
            parallel_queries=config.search_parallel_queries,
        )
