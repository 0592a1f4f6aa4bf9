"""Construct providers and gateways from names, keys, or settings."""

from typing import Any, Dict, Iterable, Optional

import httpx
import structlog

from ..common.config import BaseConfig
from ..common.metrics import MetricsCollector
from .anthropic import AnthropicEmbeddingProvider
from .base import EmbeddingProvider, ProviderConfig
from .cohere import CohereEmbeddingProvider
from .gateway import EmbeddingGateway
from .http_provider import HttpEmbeddingProvider
from .openai import OpenAIEmbeddingProvider
from .voyage import VoyageEmbeddingProvider

logger = structlog.get_logger("embeddings.factory")

PROVIDERS = {
    "openai": OpenAIEmbeddingProvider,
    "cohere": CohereEmbeddingProvider,
    "voyage": VoyageEmbeddingProvider,
    "anthropic": AnthropicEmbeddingProvider,
}


def create_provider(
    config: ProviderConfig,
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> EmbeddingProvider:
    """Create the provider named by ``config.provider``."""
    provider_class = PROVIDERS.get(config.provider)
    if provider_class is None:
        raise ValueError(f"Unsupported provider: {config.provider}")
    if issubclass(provider_class, HttpEmbeddingProvider):
        return provider_class(config, transport=transport)
    return provider_class(config)


def create_gateway(
    primary: ProviderConfig,
    fallbacks: Iterable[ProviderConfig] = (),
    enable_fallback: bool = False,
    metrics: Optional[MetricsCollector] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> EmbeddingGateway:
    """Create a gateway from a primary and ordered fallback configs."""
    providers = [create_provider(primary, transport)]
    providers.extend(create_provider(fallback, transport) for fallback in fallbacks)
    return EmbeddingGateway(providers, enable_fallback=enable_fallback, metrics=metrics)


def _provider_config(config: BaseConfig, entry: Dict[str, Any]) -> ProviderConfig:
    provider = entry["provider"]
    return ProviderConfig(
        provider=provider,
        api_key=entry.get("api_key") or config.api_key_for(provider),
        model=entry.get("model"),
        base_url=entry.get("base_url"),
        timeout=entry.get("timeout", config.ai_request_timeout),
    )


def create_gateway_from_config(
    config: BaseConfig,
    metrics: Optional[MetricsCollector] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> EmbeddingGateway:
    """Create the gateway described by a settings object.

    Raises ``ValueError`` when a configured provider is unknown or has no key.
    """
    primary = _provider_config(config, {"provider": config.ai_provider, "model": config.ai_model})
    fallbacks = [_provider_config(config, entry) for entry in config.fallback_providers]

    logger.info(
        "Creating embedding gateway",
        primary=primary.provider,
        fallbacks=[f.provider for f in fallbacks],
        enable_fallback=config.enable_fallback
    )
    return create_gateway(
        primary,
        fallbacks,
        enable_fallback=config.enable_fallback,
        metrics=metrics,
        transport=transport,
    )
