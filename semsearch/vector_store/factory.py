"""Store factory for creating different implementations.

Centralizes creation of concrete ``HybridStore`` backends so the search
manager, the CLI, and the service never import a backend directly.
"""

from enum import Enum
from typing import Any, Dict

import structlog

from ..common.config import BaseConfig
from .base import HybridStore
from .memory import InMemoryHybridStore
from .pgvector import PgVectorStore

logger = structlog.get_logger("vector_store.factory")


class StoreType(Enum):
    """Supported store backends."""
    PGVECTOR = "pgvector"
    MEMORY = "memory"


class StoreFactory:
    """Factory for creating store instances."""

    @staticmethod
    def create(store_type: StoreType, config: Dict[str, Any], **kwargs: Any) -> HybridStore:
        """Create a store instance.

        Parameters
        - store_type: A ``StoreType`` enum value
        - config: Backend-specific parameters (e.g., DSN for pgvector)
        - kwargs: Additional overrides forwarded to the implementation
        """
        if store_type == StoreType.PGVECTOR:
            dsn = config.get("dsn")
            if not dsn:
                raise ValueError("PgVector requires 'dsn' in config")

            return PgVectorStore(
                dsn=dsn,
                table_name=config.get("table_name", "documents"),
                schema_name=config.get("schema_name", "public"),
                id_column=config.get("id_column", "id"),
                embedding_column=config.get("embedding_column", "embedding"),
                text_search_config=config.get("text_search_config", "english"),
                pool_size=config.get("pool_size", 10),
                max_queries=config.get("max_queries", 50000),
                command_timeout=config.get("command_timeout", 60),
                vector_dimension=config.get("vector_dimension"),
                **kwargs
            )

        elif store_type == StoreType.MEMORY:
            dimension = config.get("vector_dimension")
            if not dimension:
                raise ValueError("In-memory store requires 'vector_dimension' in config")
            return InMemoryHybridStore(
                dimension=dimension,
                id_column=config.get("id_column", "id"),
                **kwargs
            )

        raise ValueError(f"Unsupported store type: {store_type}")


def create_store(backend: str, config: Dict[str, Any], **kwargs: Any) -> HybridStore:
    """Convenience function to create a store by backend name."""
    try:
        store_type = StoreType(backend)
    except ValueError:
        raise ValueError(f"Unsupported store type: {backend}") from None
    return StoreFactory.create(store_type, config, **kwargs)


def create_store_from_config(config: BaseConfig) -> HybridStore:
    """Create the store described by a settings object."""
    store_config = {
        "dsn": config.semsearch_db_dsn,
        "table_name": config.semsearch_table_name,
        "schema_name": config.semsearch_schema_name,
        "id_column": config.id_column,
        "embedding_column": config.semsearch_embedding_column,
        "text_search_config": config.semsearch_text_search_config,
        "pool_size": config.semsearch_db_pool_size,
        "max_queries": config.semsearch_db_max_queries,
        "command_timeout": config.semsearch_db_command_timeout,
        "vector_dimension": config.semsearch_vector_dimension,
    }

    logger.info(
        "Creating store",
        backend=config.semsearch_store_backend,
        table=config.semsearch_table_name
    )
    return create_store(config.semsearch_store_backend, store_config)
