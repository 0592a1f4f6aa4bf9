"""Hybrid semantic + lexical search over PostgreSQL.

Subpackages:
- ``semsearch.common``: configuration, logging, metrics, and the error root.
- ``semsearch.ranking``: score normalization, result merging, hybrid ranking.
- ``semsearch.embeddings``: embedding providers and the fallback gateway.
- ``semsearch.vector_store``: store interface and concrete backends.
- ``semsearch.hybrid``: the search manager that ties everything together.
- ``semsearch.api``: FastAPI search service.

Usage:
- ``from semsearch.hybrid.search_manager import SearchManager``
"""

__version__ = "0.1.0"
