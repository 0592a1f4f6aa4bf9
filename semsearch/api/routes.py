"""API routes for the search service."""

import time
from typing import Any, Dict, List, Literal, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, Field

from ..common.logging import preview_query
from ..embeddings.base import EmbeddingProviderError
from ..hybrid.search_manager import SearchManager
from ..ranking.fusion import RankedResult
from ..vector_store.base import VectorStoreError

logger = structlog.get_logger("api.routes")

router = APIRouter()


class HybridSearchRequest(BaseModel):
    """Request model for the hybrid search endpoint.

    Omitted knobs fall back to the service defaults.
    """
    query: str = Field(..., description="Search query")
    content_field: Optional[str] = Field(None, description="Column searched lexically")
    top_k: Optional[int] = Field(None, description="Maximum number of results")
    alpha: Optional[float] = Field(None, description="Lexical weight")
    beta: Optional[float] = Field(None, description="Vector weight")
    normalization: Optional[Literal["min-max", "z-score", "none"]] = Field(
        None, description="Score normalization method"
    )
    threshold: Optional[float] = Field(None, description="Minimum hybrid score")
    candidate_multiplier: Optional[int] = Field(None, description="Upstream window multiplier")
    parallel_queries: Optional[bool] = Field(None, description="Issue upstream queries concurrently")


class SemanticSearchRequest(BaseModel):
    """Request model for the semantic search endpoint."""
    query: str = Field(..., description="Search query")
    top_k: Optional[int] = Field(None, description="Maximum number of results")
    threshold: Optional[float] = Field(None, description="Minimum cosine similarity")


class SearchResult(BaseModel):
    """Search result model."""
    identity: Any = Field(..., description="Row identity")
    hybrid_score: float = Field(..., description="Fused relevance score")
    bm25_score: float = Field(..., description="Raw lexical score")
    vector_score: float = Field(..., description="Raw cosine similarity")
    payload: Dict[str, Any] = Field(..., description="Row fields")


class SearchResponse(BaseModel):
    """Response model for search endpoints."""
    results: List[SearchResult] = Field(..., description="Search results")
    total: int = Field(..., description="Number of results returned")
    query: str = Field(..., description="Original query")
    latency_ms: float = Field(..., description="Search latency in milliseconds")


class ProviderDescription(BaseModel):
    """Provider capabilities as exposed over HTTP."""
    provider: str
    model: str
    default_dimensions: int
    max_input_length: int
    max_batch_size: int
    is_primary: bool
    is_valid: Optional[bool] = None
    error: Optional[str] = None


class ProvidersResponse(BaseModel):
    providers: List[ProviderDescription]
    enable_fallback: bool


def get_search_manager(request: Request) -> SearchManager:
    """Get search manager from application state."""
    return request.app.state.search_manager


def _to_response(query: str, results: List[RankedResult], start_time: float) -> SearchResponse:
    return SearchResponse(
        results=[
            SearchResult(
                identity=r.identity,
                hybrid_score=r.hybrid_score,
                bm25_score=r.bm25_score,
                vector_score=r.vector_score,
                payload=r.payload,
            )
            for r in results
        ],
        total=len(results),
        query=query,
        latency_ms=(time.time() - start_time) * 1000,
    )


def _http_error(e: Exception, query: str) -> HTTPException:
    """Map a search failure onto an HTTP status."""
    if isinstance(e, EmbeddingProviderError):
        logger.error(
            "Embedding provider failed",
            query=preview_query(query),
            provider=e.provider,
            error=str(e)
        )
        return HTTPException(status_code=502, detail=f"Embedding provider error: {e}")
    if isinstance(e, VectorStoreError):
        logger.error("Store failed", query=preview_query(query), error=str(e))
        return HTTPException(status_code=503, detail=f"Store error: {e}")
    return HTTPException(status_code=422, detail=str(e))


@router.post("/search/hybrid", response_model=SearchResponse)
async def hybrid_search(
    request: HybridSearchRequest,
    search_manager: SearchManager = Depends(get_search_manager)
):
    """Perform hybrid search."""
    start_time = time.time()

    try:
        options = search_manager.default_options.with_overrides(
            top_k=request.top_k,
            alpha=request.alpha,
            beta=request.beta,
            normalization=request.normalization,
            threshold=request.threshold,
            candidate_multiplier=request.candidate_multiplier,
            parallel_queries=request.parallel_queries,
        )
        results = await search_manager.search(
            request.query,
            content_field=request.content_field,
            options=options
        )
    except (EmbeddingProviderError, VectorStoreError, ValueError) as e:
        raise _http_error(e, request.query) from e

    return _to_response(request.query, results, start_time)


@router.post("/search/semantic", response_model=SearchResponse)
async def semantic_search(
    request: SemanticSearchRequest,
    search_manager: SearchManager = Depends(get_search_manager)
):
    """Perform vector-only search."""
    start_time = time.time()

    try:
        results = await search_manager.semantic_search(
            request.query,
            top_k=request.top_k,
            threshold=request.threshold
        )
    except (EmbeddingProviderError, VectorStoreError, ValueError) as e:
        raise _http_error(e, request.query) from e

    return _to_response(request.query, results, start_time)


@router.get("/providers", response_model=ProvidersResponse)
async def list_providers(
    validate: bool = Query(False, description="Probe each provider with a test embedding"),
    search_manager: SearchManager = Depends(get_search_manager)
):
    """Describe the configured embedding providers."""
    gateway = search_manager.gateway
    validation: List[Dict[str, Any]] = []
    if validate:
        validation = await gateway.validate_all()

    providers = []
    for position, provider in enumerate(gateway.providers):
        info = provider.describe()
        status = validation[position] if validation else {}
        providers.append(ProviderDescription(
            provider=info.provider,
            model=provider.model,
            default_dimensions=info.default_dimensions,
            max_input_length=info.max_input_length,
            max_batch_size=info.max_batch_size,
            is_primary=position == 0,
            is_valid=status.get("is_valid"),
            error=status.get("error"),
        ))

    return ProvidersResponse(providers=providers, enable_fallback=gateway.enable_fallback)
