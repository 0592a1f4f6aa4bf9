"""Provider-agnostic embedding gateway.

The gateway owns an ordered tuple of providers: the primary first, then the
fallbacks. A single call is always answered by exactly one provider, so a
query vector never mixes models. The gateway is immutable; switching the
primary produces a new gateway.
"""

from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, TypeVar

import structlog

from ..common.metrics import MetricsCollector
from .base import (
    BatchEmbeddingResult,
    EmbeddingProvider,
    EmbeddingProviderError,
    EmbeddingResult,
    ProviderInfo,
)

logger = structlog.get_logger("embeddings.gateway")

T = TypeVar("T")


class EmbeddingGateway:
    """Turn text into vectors through a primary provider with optional fallbacks."""

    def __init__(
        self,
        providers: Sequence[EmbeddingProvider],
        enable_fallback: bool = False,
        metrics: Optional[MetricsCollector] = None
    ):
        if not providers:
            raise ValueError("EmbeddingGateway requires at least one provider")
        self.providers = tuple(providers)
        self.enable_fallback = enable_fallback
        self.metrics = metrics

        primary_dimensions = self.primary.describe().default_dimensions
        for fallback in self.fallbacks:
            dimensions = fallback.describe().default_dimensions
            if dimensions != primary_dimensions:
                logger.warning(
                    "Fallback provider dimensions differ from primary",
                    primary=self.primary.name,
                    primary_dimensions=primary_dimensions,
                    fallback=fallback.name,
                    fallback_dimensions=dimensions
                )

    @property
    def primary(self) -> EmbeddingProvider:
        return self.providers[0]

    @property
    def fallbacks(self) -> Sequence[EmbeddingProvider]:
        return self.providers[1:]

    @property
    def dimensions(self) -> int:
        return self.primary.describe().default_dimensions

    def with_primary(self, provider: EmbeddingProvider) -> "EmbeddingGateway":
        """Return a new gateway with ``provider`` as primary and the same fallbacks."""
        return EmbeddingGateway(
            (provider,) + tuple(self.fallbacks),
            enable_fallback=self.enable_fallback,
            metrics=self.metrics,
        )

    async def _call(
        self,
        operation: Callable[[EmbeddingProvider], Awaitable[T]]
    ) -> T:
        candidates = self.providers if self.enable_fallback else self.providers[:1]

        for position, provider in enumerate(candidates):
            is_last = position == len(candidates) - 1
            try:
                result = await operation(provider)
            except Exception as e:
                if self.metrics:
                    self.metrics.record_embedding(provider.name, success=False)
                error = e if isinstance(e, EmbeddingProviderError) else EmbeddingProviderError(
                    f"{provider.name} embedding failed: {e}", provider.name, e
                )
                if is_last:
                    logger.error("Embedding failed", provider=provider.name, error=str(e))
                    if error is e:
                        raise
                    raise error from e

                logger.warning(
                    "Provider failed, trying fallback",
                    provider=provider.name,
                    next_provider=candidates[position + 1].name,
                    error=str(e)
                )
                if self.metrics:
                    self.metrics.record_embedding_fallback(provider.name)
                continue

            if self.metrics:
                self.metrics.record_embedding(provider.name, success=True)
            return result

        raise EmbeddingProviderError("All providers failed", self.primary.name)

    async def embed(self, text: str) -> EmbeddingResult:
        """Embed ``text`` with the first provider that succeeds."""
        return await self._call(lambda provider: provider.embed(text))

    async def batch_embed(self, texts: List[str]) -> BatchEmbeddingResult:
        """Embed ``texts`` with the first provider that succeeds."""
        return await self._call(lambda provider: provider.batch_embed(texts))

    def describe(self) -> ProviderInfo:
        return self.primary.describe()

    async def validate(self) -> bool:
        """Check that the primary provider answers."""
        try:
            return await self.primary.validate()
        except Exception as e:
            logger.error("Provider validation failed", provider=self.primary.name, error=str(e))
            return False

    async def validate_all(self) -> List[Dict[str, Any]]:
        """Validate every provider in order."""
        results = []
        for provider in self.providers:
            try:
                results.append({"provider": provider.name, "is_valid": await provider.validate()})
            except Exception as e:
                results.append({"provider": provider.name, "is_valid": False, "error": str(e)})
        return results

    async def close(self) -> None:
        for provider in self.providers:
            await provider.close()
