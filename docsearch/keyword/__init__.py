"""Deterministic lexical retrieval.

Contents
- ``index``: the fuzzy/prefix inverted index queried for keyword scores
  and autocomplete suggestions.
"""

from .index import KeywordHit, KeywordIndex, Suggestion, bounded_edit_distance, tokenize

__all__ = ["KeywordHit", "KeywordIndex", "Suggestion", "bounded_edit_distance", "tokenize"]
