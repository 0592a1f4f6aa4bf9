"""OpenAI embeddings (``/v1/embeddings``)."""

from typing import Any, Dict, List

from .base import ProviderInfo
from .http_provider import HttpEmbeddingProvider

MODEL_DIMENSIONS = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}


class OpenAIEmbeddingProvider(HttpEmbeddingProvider):
    label = "OpenAI"
    default_base_url = "https://api.openai.com"
    endpoint = "/v1/embeddings"

    def describe(self) -> ProviderInfo:
        return ProviderInfo(
            provider="openai",
            default_model="text-embedding-3-small",
            available_models=tuple(MODEL_DIMENSIONS),
            default_dimensions=1536,
            max_input_length=8191,
            max_batch_size=2048,
            normalized_by_default=False,
        )

    def request_body(self, texts: List[str], model: str) -> Dict[str, Any]:
        return {"model": model, "input": texts}

    def parse_embeddings(self, data: Dict[str, Any]) -> List[List[float]]:
        items = sorted(data.get("data") or [], key=lambda item: item.get("index", 0))
        return [item["embedding"] for item in items]
