"""PgVector implementation of the hybrid store.

Rows live in an ordinary PostgreSQL table with a pgvector ``embedding``
column and a text column used for full-text search.

- Cosine similarity is computed with the ``<=>`` operator as
  ``1 - distance``
- Lexical rank is ``ts_rank_cd`` over ``plainto_tsquery``; only rows matching
  the ``@@`` predicate are returned
- The combined hybrid query performs the outer join, min-max normalization
  and weighting in one statement using window functions

Connection management
- A shared asyncpg pool is created on demand and reused across calls
- Queries are funneled through ``_execute_query`` for uniform error handling
"""

import json
from typing import Any, Iterable, List, Optional, Sequence

import asyncpg
import numpy as np
import structlog
from asyncpg import Connection, Pool
from pgvector.asyncpg import register_vector

from .base import (
    HybridRow,
    HybridStore,
    ScoredRow,
    VectorStoreConnectionError,
    VectorStoreError,
    VectorStoreQueryError,
)

logger = structlog.get_logger("vector_store.pgvector")


def quote_ident(name: str) -> str:
    """Quote a SQL identifier (table, schema, or column name)."""
    if not name:
        raise ValueError("SQL identifier must not be empty")
    return '"' + name.replace('"', '""') + '"'


class PgVectorStore(HybridStore):
    """PgVector implementation of the hybrid store."""

    def __init__(
        self,
        dsn: str,
        table_name: str = "documents",
        schema_name: str = "public",
        id_column: Optional[str] = "id",
        embedding_column: str = "embedding",
        text_search_config: str = "english",
        pool_size: int = 10,
        max_queries: int = 50000,
        command_timeout: int = 60,
        vector_dimension: Optional[int] = None,
    ):
        """Configure a PgVector-backed store.

        Parameters
        - dsn: PostgreSQL DSN including database and credentials
        - table_name / schema_name: Table holding the searchable rows
        - id_column: Primary-key column used as row identity; ``None`` makes
          the identity an md5 fingerprint of the row JSON
        - embedding_column: pgvector column holding row embeddings
        - text_search_config: Full-text configuration (e.g. ``english``)
        - pool_size: Max size of asyncpg connection pool
        - max_queries: Queries per connection before recycling
        - command_timeout: Seconds to allow per DB command
        - vector_dimension: Expected dimensionality of query vectors
        """
        self.dsn = dsn
        self.table_name = table_name
        self.schema_name = schema_name
        self.id_column = id_column
        self.embedding_column = embedding_column
        self.text_search_config = text_search_config
        self.pool_size = pool_size
        self.max_queries = max_queries
        self.command_timeout = command_timeout
        self.vector_dimension = vector_dimension
        self._pool: Optional[Pool] = None

    async def _init_connection(self, conn: Connection) -> None:
        """Register the pgvector and jsonb codecs for asyncpg connections."""
        await register_vector(conn)
        await conn.set_type_codec(
            "jsonb",
            encoder=json.dumps,
            decoder=json.loads,
            schema="pg_catalog",
        )

    async def _get_pool(self) -> Pool:
        """Get or create connection pool.

        Lazily initializes an asyncpg pool so callers don't pay startup cost
        unless/until they make a call that requires the database.
        """
        if self._pool is None:
            try:
                self._pool = await asyncpg.create_pool(
                    self.dsn,
                    min_size=1,
                    max_size=self.pool_size,
                    max_queries=self.max_queries,
                    command_timeout=self.command_timeout,
                    init=self._init_connection,
                )
                logger.info("Created PgVector connection pool", pool_size=self.pool_size)
            except Exception as e:
                logger.error("Failed to create PgVector connection pool", error=str(e))
                raise VectorStoreConnectionError(f"Failed to create connection pool: {e}") from e

        return self._pool

    async def _execute_query(
        self,
        query: str,
        *args: Any,
        fetch: bool = False,
        fetch_one: bool = False
    ) -> Any:
        """Execute a query with error handling.

        The ``fetch``/``fetch_one`` flags control how results are retrieved.
        Driver failures are wrapped in ``VectorStoreQueryError``.
        """
        try:
            pool = await self._get_pool()
            async with pool.acquire() as conn:
                if fetch_one:
                    result = await conn.fetchrow(query, *args)
                elif fetch:
                    result = await conn.fetch(query, *args)
                else:
                    result = await conn.execute(query, *args)
                return result
        except VectorStoreError:
            raise
        except Exception as e:
            logger.error("Query execution failed", table=self.table_name, error=str(e))
            raise VectorStoreQueryError(f"Query failed: {e}") from e

    @property
    def _table(self) -> str:
        return f"{quote_ident(self.schema_name)}.{quote_ident(self.table_name)}"

    @property
    def _embedding(self) -> str:
        return f"t.{quote_ident(self.embedding_column)}"

    def _identity_expr(self, payload_param: str) -> str:
        """SQL expression yielding a text identity for row ``t``."""
        if self.id_column:
            return f"(t.{quote_ident(self.id_column)})::text"
        return f"md5((to_jsonb(t.*) - {payload_param}::text)::text)"

    def _payload_expr(self, payload_param: str) -> str:
        """Row JSON without the embedding column."""
        return f"(to_jsonb(t.*) - {payload_param}::text)"

    def _rank_expr(self, text_param: str, config_param: str, content_field: str) -> str:
        column = f"t.{quote_ident(content_field)}"
        return (
            f"ts_rank_cd(to_tsvector({config_param}::regconfig, {column}), "
            f"plainto_tsquery({config_param}::regconfig, {text_param}))"
        )

    def _match_expr(self, text_param: str, config_param: str, content_field: str) -> str:
        column = f"t.{quote_ident(content_field)}"
        return (
            f"to_tsvector({config_param}::regconfig, {column}) "
            f"@@ plainto_tsquery({config_param}::regconfig, {text_param})"
        )

    def build_vector_query(self) -> str:
        """SQL for ``vector_search``: $1 vector, $2 limit, $3 embedding column name."""
        return f"""
            SELECT {self._identity_expr('$3')} AS identity,
                   {self._payload_expr('$3')} AS row_data,
                   (1 - ({self._embedding} <=> $1))::float8 AS similarity
            FROM {self._table} t
            WHERE {self._embedding} IS NOT NULL
            ORDER BY {self._embedding} <=> $1
            LIMIT $2
        """

    def build_lexical_query(self, content_field: str) -> str:
        """SQL for ``lexical_search``: $1 text, $2 limit, $3 embedding column, $4 regconfig."""
        return f"""
            SELECT {self._identity_expr('$3')} AS identity,
                   {self._payload_expr('$3')} AS row_data,
                   {self._rank_expr('$1', '$4', content_field)}::float8 AS bm25_score
            FROM {self._table} t
            WHERE {self._match_expr('$1', '$4', content_field)}
            ORDER BY bm25_score DESC
            LIMIT $2
        """

    def build_hybrid_query(self, content_field: str) -> str:
        """SQL for ``hybrid_search``.

        Parameters: $1 vector, $2 text, $3 embedding column name, $4 regconfig,
        $5 candidate window, $6 alpha, $7 beta, $8 limit.
        """
        rank = self._rank_expr("$2", "$4", content_field)
        return f"""
            WITH vector_results AS (
                SELECT {self._identity_expr('$3')} AS identity,
                       {self._payload_expr('$3')} AS row_data,
                       (1 - ({self._embedding} <=> $1))::float8 AS vector_score,
                       row_number() OVER (ORDER BY {self._embedding} <=> $1) AS vector_rank
                FROM {self._table} t
                WHERE {self._embedding} IS NOT NULL
                ORDER BY {self._embedding} <=> $1
                LIMIT $5
            ),
            fulltext_results AS (
                SELECT {self._identity_expr('$3')} AS identity,
                       {self._payload_expr('$3')} AS row_data,
                       {rank}::float8 AS bm25_score,
                       row_number() OVER (ORDER BY {rank} DESC) AS bm25_rank
                FROM {self._table} t
                WHERE {self._match_expr('$2', '$4', content_field)}
                ORDER BY bm25_score DESC
                LIMIT $5
            ),
            combined AS (
                SELECT COALESCE(v.identity, f.identity) AS identity,
                       COALESCE(v.row_data, f.row_data) AS row_data,
                       COALESCE(v.vector_score, 0)::float8 AS vector_score,
                       COALESCE(f.bm25_score, 0)::float8 AS bm25_score,
                       v.vector_rank,
                       f.bm25_rank
                FROM vector_results v
                FULL OUTER JOIN fulltext_results f ON v.identity = f.identity
            ),
            normalized AS (
                SELECT c.*,
                       CASE
                           WHEN max(c.vector_score) OVER () = min(c.vector_score) OVER () THEN 1.0
                           ELSE (c.vector_score - min(c.vector_score) OVER ())
                                / (max(c.vector_score) OVER () - min(c.vector_score) OVER ())
                       END AS norm_vector_score,
                       CASE
                           WHEN max(c.bm25_score) OVER () = min(c.bm25_score) OVER () THEN 1.0
                           ELSE (c.bm25_score - min(c.bm25_score) OVER ())
                                / (max(c.bm25_score) OVER () - min(c.bm25_score) OVER ())
                       END AS norm_bm25_score
                FROM combined c
            )
            SELECT identity,
                   row_data,
                   ($6::float8 * norm_bm25_score + $7::float8 * norm_vector_score) AS hybrid_score,
                   bm25_score,
                   vector_score
            FROM normalized
            ORDER BY hybrid_score DESC, vector_rank ASC NULLS LAST, bm25_rank ASC
            LIMIT $8
        """

    async def vector_search(
        self,
        query_vector: Sequence[float],
        k: int
    ) -> List[ScoredRow]:
        """Search for similar rows using cosine similarity."""
        vector_array = self._ensure_vector_dimension(query_vector)
        rows = await self._execute_query(
            self.build_vector_query(),
            vector_array,
            k,
            self.embedding_column,
            fetch=True
        )

        results = [
            ScoredRow(row["identity"], float(row["similarity"]), row["row_data"] or {})
            for row in rows
        ]

        logger.debug(
            "Vector similarity search completed",
            table=self.table_name,
            limit=k,
            results_count=len(results)
        )
        return results

    async def lexical_search(
        self,
        query_text: str,
        content_field: str,
        k: int
    ) -> List[ScoredRow]:
        """Search for matching rows using PostgreSQL full-text search."""
        rows = await self._execute_query(
            self.build_lexical_query(content_field),
            query_text,
            k,
            self.embedding_column,
            self.text_search_config,
            fetch=True
        )

        results = [
            ScoredRow(row["identity"], float(row["bm25_score"]), row["row_data"] or {})
            for row in rows
        ]

        logger.debug(
            "Lexical search completed",
            table=self.table_name,
            content_field=content_field,
            limit=k,
            results_count=len(results)
        )
        return results

    async def hybrid_search(
        self,
        query_vector: Sequence[float],
        query_text: str,
        content_field: str,
        alpha: float,
        beta: float,
        k: int,
        candidate_window: int
    ) -> List[HybridRow]:
        """Run the combined hybrid query in a single statement."""
        vector_array = self._ensure_vector_dimension(query_vector)
        rows = await self._execute_query(
            self.build_hybrid_query(content_field),
            vector_array,
            query_text,
            self.embedding_column,
            self.text_search_config,
            candidate_window,
            float(alpha),
            float(beta),
            k,
            fetch=True
        )

        results = [
            HybridRow(
                identity=row["identity"],
                hybrid_score=float(row["hybrid_score"]),
                lexical_score=float(row["bm25_score"]),
                vector_score=float(row["vector_score"]),
                payload=row["row_data"] or {},
            )
            for row in rows
        ]

        logger.debug(
            "Store-side hybrid search completed",
            table=self.table_name,
            limit=k,
            candidate_window=candidate_window,
            results_count=len(results)
        )
        return results

    async def health_check(self) -> bool:
        """Check if the database is reachable."""
        try:
            await self._execute_query("SELECT 1", fetch_one=True)
            return True
        except VectorStoreError as e:
            logger.error("Health check failed", error=str(e))
            return False

    async def close(self) -> None:
        """Close the connection pool."""
        if self._pool:
            await self._pool.close()
            self._pool = None
            logger.info("Closed PgVector connection pool")

    def _ensure_vector_dimension(self, vector: Iterable[float]) -> np.ndarray:
        """Ensure a query vector matches the expected dimensionality."""
        array = np.asarray(vector, dtype=np.float32)
        if array.ndim != 1:
            raise VectorStoreQueryError("Query vector must be one-dimensional")

        if self.vector_dimension is not None and array.shape[0] != self.vector_dimension:
            raise VectorStoreQueryError(
                f"Expected vector dimension {self.vector_dimension}, "
                f"got {array.shape[0]}"
            )
        return array
