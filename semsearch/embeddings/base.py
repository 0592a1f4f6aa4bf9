"""Base embedding provider interface.

Every provider turns text into unit-length vectors and reports failures as
``EmbeddingProviderError`` so callers can tell an upstream outage apart from
a store failure.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np

from ..common.errors import SearchError


class EmbeddingProviderError(SearchError):
    """Failure reported by an embedding provider."""

    def __init__(
        self,
        message: str,
        provider: str,
        original_error: Optional[BaseException] = None
    ):
        super().__init__(message)
        self.provider = provider
        self.original_error = original_error


@dataclass(frozen=True)
class ProviderConfig:
    """Connection settings for one provider."""
    provider: str
    api_key: str
    model: Optional[str] = None
    base_url: Optional[str] = None
    timeout: float = 60.0


@dataclass(frozen=True)
class ProviderInfo:
    """Static capabilities of a provider."""
    provider: str
    default_model: str
    available_models: Sequence[str]
    default_dimensions: int
    max_input_length: int
    max_batch_size: int
    normalized_by_default: bool


@dataclass
class EmbeddingResult:
    """A single embedding with its provenance."""
    embedding: List[float]
    dimensions: int
    provider: str
    model: str
    tokens: Optional[int] = None


@dataclass
class BatchEmbeddingResult:
    """Embeddings for several inputs, in input order."""
    embeddings: List[List[float]] = field(default_factory=list)
    dimensions: int = 0
    provider: str = ""
    model: str = ""
    total_tokens: Optional[int] = None


class EmbeddingProvider(ABC):
    """Abstract base class for embedding providers."""

    def __init__(self, config: ProviderConfig):
        self.config = config

    @property
    def name(self) -> str:
        return self.config.provider

    @property
    def model(self) -> str:
        """Configured model, or the provider default."""
        return self.config.model or self.describe().default_model

    @abstractmethod
    def describe(self) -> ProviderInfo:
        """Return provider capabilities."""
        pass

    @abstractmethod
    async def embed(self, text: str) -> EmbeddingResult:
        """Embed a single text."""
        pass

    @abstractmethod
    async def _batch_embed_chunk(self, texts: List[str]) -> BatchEmbeddingResult:
        """Embed one batch that already fits the provider limit."""
        pass

    async def batch_embed(self, texts: List[str]) -> BatchEmbeddingResult:
        """Embed many texts, chunking by the provider's batch limit."""
        info = self.describe()
        for text in texts:
            self.validate_input_length(text, info.max_input_length)

        if len(texts) > info.max_batch_size:
            return await self.batch_embed_with_chunking(texts, info.max_batch_size)
        return await self._batch_embed_chunk(texts)

    async def validate(self) -> bool:
        """Return ``True`` when a probe embedding succeeds."""
        try:
            await self.embed("test")
            return True
        except EmbeddingProviderError:
            return False

    async def close(self) -> None:
        return None

    def error(self, message: str, original_error: Optional[BaseException] = None) -> EmbeddingProviderError:
        return EmbeddingProviderError(message, self.name, original_error)

    def normalize_vector(self, vector: Sequence[float]) -> List[float]:
        """Scale ``vector`` to unit length."""
        array = np.asarray(vector, dtype=np.float64)
        magnitude = float(np.linalg.norm(array))
        if magnitude == 0:
            raise self.error("Cannot normalize zero vector")
        return (array / magnitude).tolist()

    def validate_input_length(self, text: str, max_length: int) -> None:
        if len(text) > max_length:
            raise self.error(
                f"Input text length {len(text)} exceeds provider limit of {max_length}"
            )

    def validate_batch_size(self, texts: Sequence[str], max_batch_size: int) -> None:
        if len(texts) > max_batch_size:
            raise self.error(
                f"Batch size {len(texts)} exceeds provider limit of {max_batch_size}"
            )

    async def batch_embed_with_chunking(
        self,
        texts: List[str],
        max_batch_size: int
    ) -> BatchEmbeddingResult:
        """Split ``texts`` into provider-sized chunks and embed them concurrently."""
        chunks = [texts[i:i + max_batch_size] for i in range(0, len(texts), max_batch_size)]
        results = await asyncio.gather(*(self._batch_embed_chunk(chunk) for chunk in chunks))

        embeddings = [embedding for result in results for embedding in result.embeddings]
        total_tokens = sum(result.total_tokens or 0 for result in results)

        return BatchEmbeddingResult(
            embeddings=embeddings,
            dimensions=results[0].dimensions,
            provider=self.name,
            model=results[0].model,
            total_tokens=total_tokens or None,
        )
