"""Hybrid store adapters and utilities.

Primary components:
- ``base``: abstract ``HybridStore`` interface and common exceptions.
- ``pgvector``: PostgreSQL/pgvector implementation of the interface.
- ``memory``: numpy/BM25 implementation for tests and local use.
- ``factory``: helpers to construct a store from a backend name or settings.
"""

from .base import (
    HybridRow,
    HybridStore,
    ScoredRow,
    VectorStoreConnectionError,
    VectorStoreError,
    VectorStoreQueryError,
)
from .factory import StoreType, create_store, create_store_from_config

__all__ = [
    "HybridRow",
    "HybridStore",
    "ScoredRow",
    "StoreType",
    "VectorStoreConnectionError",
    "VectorStoreError",
    "VectorStoreQueryError",
    "create_store",
    "create_store_from_config",
]
