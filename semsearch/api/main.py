"""Search service main application."""

import time
from contextlib import asynccontextmanager
from typing import Optional

import structlog
import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..common.config import SearchConfig, load_config
from ..common.logging import configure_logging
from ..common.metrics import get_metrics_collector
from ..embeddings.factory import create_gateway_from_config
from ..hybrid.options import SearchOptions
from ..hybrid.search_manager import SearchManager
from ..vector_store.factory import create_store_from_config
from .routes import router as api_router

logger = structlog.get_logger("search_service")

SERVICE_NAME = "semsearch"


def build_search_manager(config: SearchConfig) -> SearchManager:
    """Wire gateway, store and defaults from settings."""
    metrics = get_metrics_collector(SERVICE_NAME)
    return SearchManager(
        gateway=create_gateway_from_config(config, metrics=metrics),
        store=create_store_from_config(config),
        metrics=metrics,
        default_options=SearchOptions.from_config(config),
        content_field=config.semsearch_content_column,
        semantic_threshold=config.semantic_threshold,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager.

    A search manager already placed on ``app.state`` (tests, embedding
    applications) is used as-is; otherwise one is built from settings.
    """
    # Startup
    if not hasattr(app.state, "metrics_collector"):
        app.state.metrics_collector = get_metrics_collector(SERVICE_NAME)

    if not hasattr(app.state, "search_manager"):
        config = getattr(app.state, "config", None) or load_config()
        configure_logging(
            SERVICE_NAME,
            config.semsearch_log_level,
            config.semsearch_log_format,
            env=config.semsearch_env
        )
        app.state.search_manager = build_search_manager(config)

    logger.info(
        "Search service started",
        provider=app.state.search_manager.gateway.primary.name
    )

    yield

    # Shutdown
    logger.info("Shutting down search service")
    await app.state.search_manager.close()
    logger.info("Search service shutdown complete")


def create_app(
    search_manager: Optional[SearchManager] = None,
    config: Optional[SearchConfig] = None
) -> FastAPI:
    """Create the FastAPI application."""
    app = FastAPI(
        title="Semantic Search Service",
        description="Hybrid semantic and lexical search over PostgreSQL",
        version=__version__,
        lifespan=lifespan
    )
    if search_manager is not None:
        app.state.search_manager = search_manager
        if search_manager.metrics is not None:
            app.state.metrics_collector = search_manager.metrics
    if config is not None:
        app.state.config = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router, prefix="/api/v1")

    @app.middleware("http")
    async def add_process_time_header(request: Request, call_next):
        """Add processing time header to responses."""
        start_time = time.time()
        response = await call_next(request)
        response.headers["X-Process-Time"] = str(time.time() - start_time)
        return response

    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        """Collect metrics for HTTP requests."""
        start_time = time.time()

        try:
            response = await call_next(request)
            status_code = response.status_code
        except Exception as e:
            logger.error("Unhandled request error", path=request.url.path, error=str(e))
            status_code = 500
            response = JSONResponse(
                status_code=500,
                content={"error": "Internal server error", "detail": str(e)}
            )

        if hasattr(app.state, "metrics_collector"):
            app.state.metrics_collector.record_http_request(
                method=request.method,
                endpoint=request.url.path,
                status=status_code,
                duration=time.time() - start_time
            )

        return response

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        try:
            health = await app.state.search_manager.health_check()
        except Exception as e:
            logger.error("Health check failed", error=str(e))
            return JSONResponse(
                status_code=503,
                content={"status": "unhealthy", "service": SERVICE_NAME, "error": str(e)}
            )

        if health["healthy"]:
            return {"status": "healthy", "service": SERVICE_NAME, **health}
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "service": SERVICE_NAME, **health}
        )

    @app.get("/metrics")
    async def metrics():
        """Prometheus metrics endpoint."""
        if hasattr(app.state, "metrics_collector"):
            return Response(
                content=app.state.metrics_collector.get_metrics(),
                media_type="text/plain"
            )
        return Response(content="# No metrics available\n", media_type="text/plain")

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "service": SERVICE_NAME,
            "version": __version__,
            "status": "running",
            "endpoints": {
                "health": "/health",
                "metrics": "/metrics",
                "hybrid_search": "/api/v1/search/hybrid",
                "semantic_search": "/api/v1/search/semantic",
                "providers": "/api/v1/providers"
            }
        }

    return app


def run(host: str = "0.0.0.0", port: Optional[int] = None) -> None:
    """Serve the application with uvicorn."""
    config = load_config()
    uvicorn.run(
        create_app(config=config),
        host=host,
        port=port or config.semsearch_api_port,
        log_level=config.semsearch_log_level.lower()
    )


if __name__ == "__main__":
    run()
