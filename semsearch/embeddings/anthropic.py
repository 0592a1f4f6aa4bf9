"""Placeholder for Anthropic embeddings, which are not offered yet.

The provider can be configured and described, but every embed call fails so
a gateway with fallback enabled moves on to the next provider.
"""

from typing import List

from .base import BatchEmbeddingResult, EmbeddingProvider, EmbeddingResult, ProviderInfo

UNAVAILABLE_MESSAGE = (
    "Anthropic embeddings are not yet available. "
    "Please use OpenAI, Cohere, or Voyage providers instead."
)


class AnthropicEmbeddingProvider(EmbeddingProvider):

    def describe(self) -> ProviderInfo:
        return ProviderInfo(
            provider="anthropic",
            default_model="claude-embeddings-v1",
            available_models=("claude-embeddings-v1",),
            default_dimensions=1536,
            max_input_length=100000,
            max_batch_size=100,
            normalized_by_default=False,
        )

    async def embed(self, text: str) -> EmbeddingResult:
        raise self.error(UNAVAILABLE_MESSAGE)

    async def batch_embed(self, texts: List[str]) -> BatchEmbeddingResult:
        raise self.error(UNAVAILABLE_MESSAGE)

    async def _batch_embed_chunk(self, texts: List[str]) -> BatchEmbeddingResult:
        raise self.error(UNAVAILABLE_MESSAGE)

    async def validate(self) -> bool:
        return False
