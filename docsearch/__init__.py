"""Hybrid documentation search.

Layout:
- ``common``: configuration, structured logging and metrics helpers.
- ``keyword``: fuzzy/prefix inverted index over chunk text.
- ``enhancement``: capability gate and the optional semantic layer.
- ``ranking``: hybrid score fusion and preview highlighting.
- ``context``: version/state registry and result filtering.
- ``retrievers``: corpus fetching and corpus caching.
- ``hybrid``: the ``SearchEngine`` that owns and wires everything.
"""

from .models import EnhancedSearchResult, SearchChunk, SearchDocument
from .hybrid.engine import SearchEngine, create_search_engine

__version__ = "0.1.0"
__all__ = [
    "EnhancedSearchResult",
    "SearchChunk",
    "SearchDocument",
    "SearchEngine",
    "create_search_engine",
]
