"""Tests for embedding providers and the gateway."""

import json

import httpx
import pytest

from semsearch.common.config import BaseConfig
from semsearch.embeddings.anthropic import AnthropicEmbeddingProvider
from semsearch.embeddings.base import EmbeddingProviderError, ProviderConfig
from semsearch.embeddings.cohere import CohereEmbeddingProvider
from semsearch.embeddings.factory import create_gateway, create_gateway_from_config, create_provider
from semsearch.embeddings.gateway import EmbeddingGateway
from semsearch.embeddings.http_provider import HttpEmbeddingProvider
from semsearch.embeddings.openai import OpenAIEmbeddingProvider
from semsearch.embeddings.voyage import VoyageEmbeddingProvider

from .fakes import StaticProvider


def openai_handler(requests):
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        body = json.loads(request.content)
        data = [
            {"index": i, "embedding": [3.0, 4.0]}
            for i, _ in enumerate(body["input"])
        ]
        return httpx.Response(200, json={"data": data, "usage": {"total_tokens": 7}})
    return handler


@pytest.mark.asyncio
async def test_openai_embed_normalizes_to_unit_length():
    requests = []
    provider = OpenAIEmbeddingProvider(
        ProviderConfig(provider="openai", api_key="sk-test"),
        transport=httpx.MockTransport(openai_handler(requests))
    )

    result = await provider.embed("wind farm output")

    assert result.embedding == pytest.approx([0.6, 0.8])
    assert result.dimensions == 2
    assert result.provider == "openai"
    assert result.model == "text-embedding-3-small"
    assert result.tokens == 7

    request = requests[0]
    assert str(request.url) == "https://api.openai.com/v1/embeddings"
    assert request.headers["Authorization"] == "Bearer sk-test"
    assert json.loads(request.content) == {
        "model": "text-embedding-3-small",
        "input": ["wind farm output"],
    }
    await provider.close()


@pytest.mark.asyncio
async def test_openai_http_error_is_typed():
    def handler(request):
        return httpx.Response(429, text="rate limited")

    provider = OpenAIEmbeddingProvider(
        ProviderConfig(provider="openai", api_key="sk-test", model="text-embedding-3-large"),
        transport=httpx.MockTransport(handler)
    )

    with pytest.raises(EmbeddingProviderError, match="HTTP 429") as exc_info:
        await provider.embed("query")

    assert exc_info.value.provider == "openai"
    assert exc_info.value.original_error is not None
    assert await provider.validate() is False


@pytest.mark.asyncio
async def test_zero_vector_is_rejected():
    def handler(request):
        return httpx.Response(200, json={"data": [{"index": 0, "embedding": [0.0, 0.0]}]})

    provider = OpenAIEmbeddingProvider(
        ProviderConfig(provider="openai", api_key="sk-test"),
        transport=httpx.MockTransport(handler)
    )

    with pytest.raises(EmbeddingProviderError, match="zero vector"):
        await provider.embed("query")


@pytest.mark.asyncio
async def test_input_length_checked_before_request():
    requests = []
    provider = VoyageEmbeddingProvider(
        ProviderConfig(provider="voyage", api_key="vo-test"),
        transport=httpx.MockTransport(openai_handler(requests))
    )

    with pytest.raises(EmbeddingProviderError, match="exceeds provider limit"):
        await provider.embed("x" * 32001)
    assert requests == []


@pytest.mark.asyncio
async def test_transport_failure_is_typed():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    provider = VoyageEmbeddingProvider(
        ProviderConfig(provider="voyage", api_key="vo-test", base_url="https://voyage.internal/"),
        transport=httpx.MockTransport(handler)
    )

    with pytest.raises(EmbeddingProviderError, match="Voyage embedding failed") as exc_info:
        await provider.embed("query")
    assert isinstance(exc_info.value.original_error, httpx.ConnectError)


@pytest.mark.asyncio
async def test_cohere_batches_are_chunked_in_order():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        body = json.loads(request.content)
        assert body["input_type"] == "search_document"
        embeddings = [[1.0, float(text[1:])] for text in body["texts"]]
        return httpx.Response(
            200,
            json={"embeddings": embeddings, "meta": {"billed_units": {"input_tokens": len(embeddings)}}}
        )

    provider = CohereEmbeddingProvider(
        ProviderConfig(provider="cohere", api_key="co-test"),
        transport=httpx.MockTransport(handler)
    )
    texts = [f"t{i}" for i in range(200)]

    result = await provider.batch_embed(texts)

    assert len(requests) == 3
    assert [len(json.loads(r.content)["texts"]) for r in requests] == [96, 96, 8]
    assert len(result.embeddings) == 200
    for i, embedding in enumerate(result.embeddings):
        assert embedding[1] / embedding[0] == pytest.approx(i)
    assert result.total_tokens == 200
    assert result.model == "embed-english-v3.0"
    assert str(requests[0].url) == "https://api.cohere.ai/v1/embed"


@pytest.mark.asyncio
async def test_anthropic_placeholder_always_fails():
    provider = AnthropicEmbeddingProvider(ProviderConfig(provider="anthropic", api_key="key"))

    assert provider.describe().default_dimensions == 1536
    with pytest.raises(EmbeddingProviderError, match="not yet available"):
        await provider.embed("query")
    with pytest.raises(EmbeddingProviderError):
        await provider.batch_embed(["a", "b"])
    assert await provider.validate() is False


def test_unknown_provider_rejected():
    with pytest.raises(ValueError, match="Unsupported provider"):
        create_provider(ProviderConfig(provider="acme", api_key="key"))


@pytest.mark.asyncio
async def test_gateway_without_fallback_propagates_primary_error():
    primary = StaticProvider([1.0, 0.0], error=EmbeddingProviderError("down", "openai"))
    fallback = StaticProvider([0.0, 1.0], name="cohere")
    gateway = EmbeddingGateway([primary, fallback], enable_fallback=False)

    with pytest.raises(EmbeddingProviderError, match="down"):
        await gateway.embed("query")
    assert fallback.calls == []


@pytest.mark.asyncio
async def test_gateway_falls_back_in_order(metrics):
    primary = StaticProvider([1.0, 0.0], error=EmbeddingProviderError("down", "openai"))
    second = StaticProvider([0.0, 1.0], name="voyage", error=RuntimeError("timeout"))
    third = StaticProvider([0.5, 0.5], name="cohere")
    gateway = EmbeddingGateway([primary, second, third], enable_fallback=True, metrics=metrics)

    result = await gateway.embed("query")

    assert result.provider == "cohere"
    assert primary.calls == second.calls == third.calls == ["query"]
    registry = metrics.registry
    assert registry.get_sample_value("embedding_fallbacks_total", {"from_provider": "openai"}) == 1.0
    assert registry.get_sample_value("embedding_fallbacks_total", {"from_provider": "voyage"}) == 1.0
    assert registry.get_sample_value("embedding_requests_total", {"provider": "cohere"}) == 1.0


@pytest.mark.asyncio
async def test_gateway_raises_last_error_when_all_fail():
    gateway = EmbeddingGateway(
        [
            StaticProvider([1.0], error=EmbeddingProviderError("first", "openai")),
            StaticProvider([1.0], name="cohere", error=EmbeddingProviderError("second", "cohere")),
        ],
        enable_fallback=True
    )

    with pytest.raises(EmbeddingProviderError, match="second") as exc_info:
        await gateway.embed("query")
    assert exc_info.value.provider == "cohere"


@pytest.mark.asyncio
async def test_gateway_wraps_untyped_errors():
    gateway = EmbeddingGateway([StaticProvider([1.0], error=RuntimeError("boom"))])

    with pytest.raises(EmbeddingProviderError) as exc_info:
        await gateway.embed("query")
    assert exc_info.value.provider == "openai"
    assert isinstance(exc_info.value.original_error, RuntimeError)


@pytest.mark.asyncio
async def test_gateway_batch_embed_and_validation():
    healthy = StaticProvider([1.0, 0.0])
    broken = StaticProvider([1.0, 0.0], name="cohere", error=EmbeddingProviderError("no", "cohere"))
    gateway = EmbeddingGateway([healthy, broken])

    batch = await gateway.batch_embed(["a", "b", "c"])
    assert len(batch.embeddings) == 3

    assert await gateway.validate() is True
    assert await gateway.validate_all() == [
        {"provider": "openai", "is_valid": True},
        {"provider": "cohere", "is_valid": False},
    ]


def test_with_primary_returns_new_gateway():
    original_primary = StaticProvider([1.0, 0.0])
    fallback = StaticProvider([0.0, 1.0], name="cohere")
    gateway = EmbeddingGateway([original_primary, fallback], enable_fallback=True)

    replacement = StaticProvider([1.0, 1.0], name="voyage")
    switched = gateway.with_primary(replacement)

    assert switched is not gateway
    assert switched.primary is replacement
    assert list(switched.fallbacks) == [fallback]
    assert switched.enable_fallback is True
    assert gateway.primary is original_primary


def test_gateway_requires_a_provider():
    with pytest.raises(ValueError):
        EmbeddingGateway([])


def test_mismatched_fallback_dimensions_are_allowed():
    gateway = EmbeddingGateway(
        [StaticProvider([1.0, 0.0]), StaticProvider([1.0, 0.0, 0.0], name="cohere")],
        enable_fallback=True
    )
    assert gateway.dimensions == 2


def test_create_gateway_from_config(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("AI_PROVIDER", "openai")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
    monkeypatch.setenv("COHERE_API_KEY", "co-env")
    monkeypatch.setenv("ENABLE_FALLBACK", "true")
    monkeypatch.setenv("FALLBACK_PROVIDERS", '[{"provider": "cohere", "model": "embed-english-light-v3.0"}]')

    gateway = create_gateway_from_config(BaseConfig())

    assert [p.name for p in gateway.providers] == ["openai", "cohere"]
    assert gateway.enable_fallback is True
    assert gateway.fallbacks[0].model == "embed-english-light-v3.0"
    assert gateway.fallbacks[0].config.api_key == "co-env"
    assert gateway.primary.model == "text-embedding-3-small"


def test_create_gateway_from_config_requires_keys(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("AI_PROVIDER", "voyage")
    monkeypatch.delenv("VOYAGE_API_KEY", raising=False)
    monkeypatch.delenv("FALLBACK_PROVIDERS", raising=False)

    with pytest.raises(ValueError, match="VOYAGE_API_KEY"):
        create_gateway_from_config(BaseConfig())


def test_create_gateway_builds_fallbacks():
    gateway = create_gateway(
        ProviderConfig(provider="voyage", api_key="vo"),
        [ProviderConfig(provider="openai", api_key="sk")],
        enable_fallback=True
    )
    assert isinstance(gateway.primary, VoyageEmbeddingProvider)
    assert isinstance(gateway.fallbacks[0], OpenAIEmbeddingProvider)


@pytest.mark.asyncio
async def test_oversized_chunk_rejected_before_request():
    requests = []
    provider = CohereEmbeddingProvider(
        ProviderConfig(provider="cohere", api_key="co-test"),
        transport=httpx.MockTransport(openai_handler(requests))
    )

    with pytest.raises(EmbeddingProviderError, match="Batch size 97 exceeds provider limit of 96"):
        await provider._batch_embed_chunk([f"t{i}" for i in range(97)])
    assert requests == []


def test_http_provider_requires_request_hooks():
    class PartialProvider(HttpEmbeddingProvider):
        label = "Partial"

        def describe(self):
            return OpenAIEmbeddingProvider.describe(self)

    with pytest.raises(TypeError):
        PartialProvider(ProviderConfig(provider="openai", api_key="sk-test"))
