"""Configuration management for the documentation search core.

Centralizes environment-driven configuration for the search engine and the
HTTP service in front of it. It builds on ``pydantic_settings.BaseSettings``
so values can be provided via environment variables, ``.env`` files, or
defaults.

Highlights
- Strongly-typed settings with sensible defaults
- One place to discover every tuning constant (fusion weights, boost range,
  similarity threshold, cache TTLs)
- A small service-specific subclass to keep HTTP concerns apart

Usage
- Inject the config in your entrypoint: ``config = SearchConfig()``
- Or select dynamically: ``config = get_config("service")``
"""

from typing import Dict

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SearchConfig(BaseSettings):
    """Configuration for the search core.

    Field names double as environment variable names (case-insensitive),
    e.g. ``DOCSEARCH_REDIS_URL`` populates ``docsearch_redis_url``.

    Notes
    - Add new shared settings here so the service inherits them.
    - Fusion weights and boost range are tuning parameters, not invariants.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    docsearch_env: str = Field(default="local")

    # Logging
    docsearch_log_level: str = Field(default="INFO")
    docsearch_log_format: str = Field(default="json")

    # Corpus source
    docsearch_corpus_base_url: str = Field(default="http://localhost:4200/assets/")
    docsearch_enhanced_index_resource: str = Field(default="enhanced-search-index.json")
    docsearch_standard_index_resource: str = Field(default="search-index.json")
    docsearch_versioned_index_resource: str = Field(default="docs-index-versioned.json")
    docsearch_http_timeout: float = Field(default=30.0)

    # Cache
    docsearch_cache_enabled: bool = Field(default=True)
    docsearch_redis_url: str = Field(default="redis://localhost:6379")
    docsearch_cache_key_prefix: str = Field(default="docsearch:")
    docsearch_corpus_cache_ttl: int = Field(default=24 * 60 * 60)
    docsearch_metadata_cache_ttl: int = Field(default=60 * 60)

    # Keyword index
    docsearch_title_boost: float = Field(default=3.0)
    docsearch_category_boost: float = Field(default=2.0)
    docsearch_content_boost: float = Field(default=1.0)
    docsearch_fuzzy: float = Field(default=0.2)
    docsearch_prefix: bool = Field(default=True)
    docsearch_min_term_length: int = Field(default=2)
    docsearch_result_limit: int = Field(default=20)
    docsearch_suggestion_limit: int = Field(default=5)

    # Semantic enhancement
    docsearch_enhancement_enabled: bool = Field(default=True)
    docsearch_embedding_model: str = Field(default="sentence-transformers/all-MiniLM-L6-v2")
    docsearch_enhancement_delay: float = Field(default=3.0)
    docsearch_min_memory_gb: float = Field(default=2.0)
    docsearch_similarity_threshold: float = Field(default=0.3, ge=-1.0, lt=1.0)
    docsearch_min_boost: float = Field(default=1.2)
    docsearch_max_boost: float = Field(default=3.0)
    docsearch_model_load_timeout: float = Field(default=120.0)
    docsearch_ready_message_ttl: float = Field(default=3.0)

    # Hybrid fusion
    docsearch_keyword_weight: float = Field(default=0.4)
    docsearch_semantic_weight: float = Field(default=0.6)
    docsearch_similarity_scale: float = Field(default=100.0)

    # Documentation context
    docsearch_default_version: str = Field(default="v1.0.0")
    docsearch_docs_route_prefix: str = Field(default="/docs")

    @property
    def field_boosts(self) -> Dict[str, float]:
        """Keyword index field weighting (title >> category > content)."""
        return {
            "title": self.docsearch_title_boost,
            "category": self.docsearch_category_boost,
            "content": self.docsearch_content_boost,
        }


class ServiceConfig(SearchConfig):
    """Configuration for the HTTP search service.

    Adds the listening port and the service name bound to every log line.
    """

    docsearch_service_name: str = Field(default="docsearch-service")
    docsearch_service_port: int = Field(default=9007)


def get_config(service_name: str = "core") -> SearchConfig:
    """Get configuration for a component.

    Parameters
    - service_name: ``core`` or ``service``

    Returns
    - A concrete ``SearchConfig`` subclass reading the right env vars.
    """
    config_map = {
        "core": SearchConfig,
        "service": ServiceConfig,
    }

    # Default to ``SearchConfig`` to avoid surprising crashes for unknown names.
    config_class = config_map.get(service_name, SearchConfig)
    return config_class()
