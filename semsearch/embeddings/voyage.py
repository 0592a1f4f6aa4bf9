"""Voyage AI embeddings (``/v1/embeddings``)."""

from typing import Any, Dict, List

from .base import ProviderInfo
from .http_provider import HttpEmbeddingProvider

MODEL_DIMENSIONS = {
    "voyage-large-2": 1536,
    "voyage-code-2": 1536,
    "voyage-2": 1024,
    "voyage-lite-02-instruct": 1024,
}


class VoyageEmbeddingProvider(HttpEmbeddingProvider):
    label = "Voyage"
    default_base_url = "https://api.voyageai.com"
    endpoint = "/v1/embeddings"

    def describe(self) -> ProviderInfo:
        return ProviderInfo(
            provider="voyage",
            default_model="voyage-large-2",
            available_models=tuple(MODEL_DIMENSIONS),
            default_dimensions=1536,
            max_input_length=32000,
            max_batch_size=128,
            normalized_by_default=True,
        )

    def request_body(self, texts: List[str], model: str) -> Dict[str, Any]:
        return {"input": texts, "model": model}

    def parse_embeddings(self, data: Dict[str, Any]) -> List[List[float]]:
        return [item["embedding"] for item in data.get("data") or []]
