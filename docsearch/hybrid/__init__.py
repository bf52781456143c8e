"""Search engine wiring the keyword index, semantic layer and context filter."""

from .engine import SearchEngine, create_search_engine

__all__ = ["SearchEngine", "create_search_engine"]
