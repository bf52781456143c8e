"""Corpus retrieval: network source and Redis-backed cache."""

from .cache_manager import CachedCorpus, CorpusCacheManager, create_corpus_cache_manager
from .corpus_source import CorpusSource

__all__ = ["CachedCorpus", "CorpusCacheManager", "CorpusSource", "create_corpus_cache_manager"]
