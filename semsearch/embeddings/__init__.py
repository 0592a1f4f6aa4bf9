"""Embedding providers and the fallback-aware gateway."""

from .base import (
    BatchEmbeddingResult,
    EmbeddingProvider,
    EmbeddingProviderError,
    EmbeddingResult,
    ProviderConfig,
    ProviderInfo,
)
from .factory import create_gateway, create_gateway_from_config, create_provider
from .gateway import EmbeddingGateway

__all__ = [
    "BatchEmbeddingResult",
    "EmbeddingGateway",
    "EmbeddingProvider",
    "EmbeddingProviderError",
    "EmbeddingResult",
    "ProviderConfig",
    "ProviderInfo",
    "create_gateway",
    "create_gateway_from_config",
    "create_provider",
]
