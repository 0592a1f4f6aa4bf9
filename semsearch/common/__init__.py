"""Common utilities shared across the package.

Includes:
- ``config``: pydantic-settings configuration and JSON config-file loading.
- ``logging``: structured logging setup with structlog.
- ``metrics``: Prometheus metrics helpers.
- ``errors``: the ``SearchError`` root exception.

Import pattern:
- from semsearch.common.config import SearchConfig
- from semsearch.common.logging import configure_logging
"""
