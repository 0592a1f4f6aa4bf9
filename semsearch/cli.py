"""Command line interface for hybrid search.

Commands
- ``hybrid QUERY``: fused semantic + lexical search
- ``semantic QUERY``: vector-only search
- ``providers``: describe (and optionally validate) embedding providers
- ``env-template``: print or write a ``.env`` template
- ``init-config``: write a sample JSON config file

``--store memory --data rows.json`` searches rows loaded from a JSON file
instead of PostgreSQL; rows without an ``embedding`` are embedded on load.
"""

import argparse
import asyncio
import json
import os
import sys
from typing import Any, Dict, List, Optional, Sequence

import structlog

from .common.config import (
    STANDARD_CONFIG_PATHS,
    SearchConfig,
    generate_env_template,
    generate_sample_config,
    load_config,
    save_config,
)
from .common.errors import SearchError
from .common.logging import configure_logging
from .embeddings.factory import create_gateway_from_config
from .embeddings.gateway import EmbeddingGateway
from .hybrid.options import SearchOptions
from .hybrid.search_manager import SearchManager
from .vector_store.base import HybridStore
from .vector_store.factory import create_store_from_config
from .vector_store.memory import InMemoryHybridStore

logger = structlog.get_logger("cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="semsearch",
        description="Hybrid semantic and lexical search over PostgreSQL"
    )
    parser.add_argument("--config", help="Configuration file path")
    parser.add_argument("--log-level", help="Override the configured log level")
    parser.add_argument(
        "--store",
        choices=["pgvector", "memory"],
        help="Override the configured store backend"
    )
    parser.add_argument("--data", help="JSON file of rows for the in-memory store")

    subparsers = parser.add_subparsers(dest="command", required=True)

    hybrid = subparsers.add_parser("hybrid", help="Run a hybrid search")
    hybrid.add_argument("query", help="Search query")
    hybrid.add_argument("--top-k", type=int, help="Maximum number of results")
    hybrid.add_argument("--alpha", type=float, help="Lexical weight")
    hybrid.add_argument("--beta", type=float, help="Vector weight")
    hybrid.add_argument(
        "--normalization",
        choices=["min-max", "z-score", "none"],
        help="Score normalization method"
    )
    hybrid.add_argument("--threshold", type=float, help="Minimum hybrid score")
    hybrid.add_argument("--candidate-multiplier", type=int, help="Upstream window multiplier")
    hybrid.add_argument("--content-field", help="Column searched lexically")
    hybrid.add_argument(
        "--sequential",
        action="store_true",
        help="Run the vector query before the lexical query instead of concurrently"
    )

    semantic = subparsers.add_parser("semantic", help="Run a vector-only search")
    semantic.add_argument("query", help="Search query")
    semantic.add_argument("--top-k", type=int, help="Maximum number of results")
    semantic.add_argument("--threshold", type=float, help="Minimum cosine similarity")

    providers = subparsers.add_parser("providers", help="Describe embedding providers")
    providers.add_argument("--validate", action="store_true", help="Probe each provider")

    env_template = subparsers.add_parser("env-template", help="Print a .env template")
    env_template.add_argument("--output", help="Write the template to this file")

    init_config = subparsers.add_parser("init-config", help="Write a sample config file")
    init_config.add_argument("--output", default=STANDARD_CONFIG_PATHS[0], help="Target path")
    init_config.add_argument("--force", action="store_true", help="Overwrite an existing file")

    return parser


def load_rows(path: str) -> List[Dict[str, Any]]:
    """Read a JSON array of row objects."""
    try:
        with open(path, "r") as f:
            rows = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ValueError(f"Failed to load rows from {path}: {e}") from e
    if not isinstance(rows, list):
        raise ValueError(f"Expected a JSON array of rows in {path}")
    return rows


async def build_memory_store(
    config: SearchConfig,
    gateway: EmbeddingGateway,
    rows: Sequence[Dict[str, Any]]
) -> InMemoryHybridStore:
    """Load ``rows`` into an in-memory store, embedding rows that lack vectors."""
    store = InMemoryHybridStore(
        dimension=config.semsearch_vector_dimension,
        id_column=config.id_column
    )
    embedding_field = config.semsearch_embedding_column
    content_field = config.semsearch_content_column

    missing = [row for row in rows if embedding_field not in row]
    if missing:
        batch = await gateway.batch_embed([str(row.get(content_field, "")) for row in missing])
        computed = iter(batch.embeddings)
    else:
        computed = iter(())

    for row in rows:
        payload = {k: v for k, v in row.items() if k != embedding_field}
        embedding = row[embedding_field] if embedding_field in row else next(computed)
        store.upsert(payload, embedding)

    logger.info("Loaded rows into memory store", rows=len(store), embedded=len(missing))
    return store


async def build_manager(config: SearchConfig, data_path: Optional[str]) -> SearchManager:
    if config.semsearch_store_backend == "memory" and not data_path:
        raise ValueError("--data is required with the memory store")

    gateway = create_gateway_from_config(config)
    try:
        if config.semsearch_store_backend == "memory":
            store: HybridStore = await build_memory_store(config, gateway, load_rows(data_path))
        else:
            store = create_store_from_config(config)
    except Exception:
        await gateway.close()
        raise

    return SearchManager(
        gateway=gateway,
        store=store,
        default_options=SearchOptions.from_config(config),
        content_field=config.semsearch_content_column,
        semantic_threshold=config.semantic_threshold,
    )


async def run_search(args: argparse.Namespace, config: SearchConfig) -> List[Dict[str, Any]]:
    manager = await build_manager(config, args.data)
    try:
        if args.command == "hybrid":
            options = manager.default_options.with_overrides(
                top_k=args.top_k,
                alpha=args.alpha,
                beta=args.beta,
                normalization=args.normalization,
                threshold=args.threshold,
                candidate_multiplier=args.candidate_multiplier,
                parallel_queries=False if args.sequential else None,
            )
            results = await manager.search(args.query, args.content_field, options)
        else:
            results = await manager.semantic_search(
                args.query,
                top_k=args.top_k,
                threshold=args.threshold
            )
    finally:
        await manager.close()

    return [result.to_dict() for result in results]


async def run_providers(args: argparse.Namespace, config: SearchConfig) -> Dict[str, Any]:
    gateway = create_gateway_from_config(config)
    try:
        validation = await gateway.validate_all() if args.validate else []
        providers = []
        for position, provider in enumerate(gateway.providers):
            info = provider.describe()
            entry = {
                "provider": info.provider,
                "model": provider.model,
                "dimensions": info.default_dimensions,
                "max_batch_size": info.max_batch_size,
                "primary": position == 0,
            }
            if validation:
                entry.update(validation[position])
            providers.append(entry)
    finally:
        await gateway.close()

    return {"enable_fallback": gateway.enable_fallback, "providers": providers}


def write_env_template(output: Optional[str]) -> None:
    template = generate_env_template()
    if not output:
        sys.stdout.write(template)
        return
    with open(output, "w") as f:
        f.write(template)
    print(f"Wrote environment template to {output}")


def write_sample_config(output: str, force: bool) -> None:
    if os.path.exists(output) and not force:
        raise ValueError(f"{output} already exists; pass --force to overwrite")
    save_config(generate_sample_config(), output)
    print(f"Wrote sample configuration to {output}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main function for CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        if args.command == "env-template":
            write_env_template(args.output)
            return 0
        if args.command == "init-config":
            write_sample_config(args.output, args.force)
            return 0

        config = load_config(args.config)
        overrides = {}
        if args.store:
            overrides["semsearch_store_backend"] = args.store
        if args.log_level:
            overrides["semsearch_log_level"] = args.log_level
        if overrides:
            config = config.model_copy(update=overrides)

        configure_logging("semsearch-cli", config.semsearch_log_level, config.semsearch_log_format)

        if args.command == "providers":
            output: Any = asyncio.run(run_providers(args, config))
        else:
            output = asyncio.run(run_search(args, config))
    except (SearchError, ValueError) as e:
        logger.error("Command failed", command=args.command, error=str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(json.dumps(output, indent=2, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
