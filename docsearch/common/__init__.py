"""Common utilities shared across the search core and the service.

Includes:
- ``config``: Pydantic-based configuration from environment variables.
- ``logging``: structured logging setup with structlog.
- ``metrics``: Prometheus metrics helpers.

Import pattern:
- from docsearch.common.config import SearchConfig
- from docsearch.common.logging import configure_logging
"""
