"""Cohere embeddings (``/v1/embed``)."""

from typing import Any, Dict, List, Optional

from .base import ProviderInfo
from .http_provider import HttpEmbeddingProvider

MODEL_DIMENSIONS = {
    "embed-english-v3.0": 1024,
    "embed-english-light-v3.0": 384,
    "embed-multilingual-v3.0": 1024,
    "embed-multilingual-light-v3.0": 384,
}


class CohereEmbeddingProvider(HttpEmbeddingProvider):
    label = "Cohere"
    default_base_url = "https://api.cohere.ai"
    endpoint = "/v1/embed"

    def describe(self) -> ProviderInfo:
        return ProviderInfo(
            provider="cohere",
            default_model="embed-english-v3.0",
            available_models=tuple(MODEL_DIMENSIONS),
            default_dimensions=1024,
            max_input_length=2048,
            max_batch_size=96,
            normalized_by_default=True,
        )

    def request_body(self, texts: List[str], model: str) -> Dict[str, Any]:
        return {"texts": texts, "model": model, "input_type": "search_document"}

    def parse_embeddings(self, data: Dict[str, Any]) -> List[List[float]]:
        return list(data.get("embeddings") or [])

    def parse_tokens(self, data: Dict[str, Any]) -> Optional[int]:
        return ((data.get("meta") or {}).get("billed_units") or {}).get("input_tokens")
