"""Shared plumbing for providers reached over HTTPS with a bearer key."""

from abc import abstractmethod
from typing import Any, Dict, List, Optional

import httpx
import structlog

from .base import (
    BatchEmbeddingResult,
    EmbeddingProvider,
    EmbeddingProviderError,
    EmbeddingResult,
    ProviderConfig,
)

logger = structlog.get_logger("embeddings.http_provider")


class HttpEmbeddingProvider(EmbeddingProvider):
    """Provider that POSTs JSON to ``{base_url}{endpoint}``.

    Subclasses supply the request body and pick embeddings out of the
    response. ``transport`` lets tests plug in ``httpx.MockTransport``.
    """

    label = "HTTP"
    default_base_url = ""
    endpoint = ""

    def __init__(
        self,
        config: ProviderConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        super().__init__(config)
        self.base_url = (config.base_url or self.default_base_url).rstrip("/")
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.config.timeout,
                transport=self._transport,
                headers={
                    "Authorization": f"Bearer {self.config.api_key}",
                    "Content-Type": "application/json",
                    "Accept": "application/json",
                },
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @abstractmethod
    def request_body(self, texts: List[str], model: str) -> Dict[str, Any]:
        """JSON body for one request."""
        pass

    @abstractmethod
    def parse_embeddings(self, data: Dict[str, Any]) -> List[List[float]]:
        """Vectors from a response, in input order."""
        pass

    def parse_tokens(self, data: Dict[str, Any]) -> Optional[int]:
        return (data.get("usage") or {}).get("total_tokens")

    async def _post(self, texts: List[str], model: str) -> Dict[str, Any]:
        response = await self._get_client().post(
            f"{self.base_url}{self.endpoint}",
            json=self.request_body(texts, model),
        )
        if response.status_code >= 400:
            raise RuntimeError(f"HTTP {response.status_code}: {response.text}")
        return response.json()

    async def _request(self, texts: List[str], operation: str) -> BatchEmbeddingResult:
        model = self.model
        try:
            data = await self._post(texts, model)
            raw = self.parse_embeddings(data)
            if not raw:
                raise RuntimeError(f"No embeddings returned from {self.label}")
            embeddings = [self.normalize_vector(vector) for vector in raw]
        except EmbeddingProviderError:
            raise
        except (httpx.HTTPError, RuntimeError, ValueError, KeyError, TypeError) as e:
            logger.error(
                "Embedding request failed",
                provider=self.name,
                model=model,
                error=str(e)
            )
            raise self.error(f"{self.label} {operation} failed: {e}", e) from e

        return BatchEmbeddingResult(
            embeddings=embeddings,
            dimensions=len(embeddings[0]),
            provider=self.name,
            model=model,
            total_tokens=self.parse_tokens(data),
        )

    async def embed(self, text: str) -> EmbeddingResult:
        self.validate_input_length(text, self.describe().max_input_length)
        batch = await self._request([text], "embedding")
        return EmbeddingResult(
            embedding=batch.embeddings[0],
            dimensions=batch.dimensions,
            provider=batch.provider,
            model=batch.model,
            tokens=batch.total_tokens,
        )

    async def _batch_embed_chunk(self, texts: List[str]) -> BatchEmbeddingResult:
        self.validate_batch_size(texts, self.describe().max_batch_size)
        return await self._request(texts, "batch embedding")
