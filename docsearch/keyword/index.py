"""Fuzzy/prefix inverted index over chunk text.

Each indexed item carries three fields (``title``, ``category``,
``content``). A query is tokenized the same way as the items, every query
term is expanded into exact, prefix and fuzzy (edit distance) matches
against the vocabulary, and the per-term scores are combined with logical
AND. Scores follow BM25+ weighted by field boost and by how far the
matched term is from the query term. Only relative ordering is meaningful.
"""

import bisect
import math
import re
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple

import structlog

logger = structlog.get_logger("keyword_index")

FIELDS: Tuple[str, ...] = ("title", "category", "content")
DEFAULT_BOOSTS: Dict[str, float] = {"title": 3.0, "category": 2.0, "content": 1.0}

# BM25+ parameters
BM25_K = 1.2
BM25_B = 0.7
BM25_D = 0.5

# Relative weight of non-exact term matches
PREFIX_WEIGHT = 0.375
FUZZY_WEIGHT = 0.45
MAX_FUZZY_DISTANCE = 6

_SPLIT_PATTERN = re.compile(r"[\s\W_]+", re.UNICODE)


def tokenize(text: str, min_length: int = 2) -> List[str]:
    """Split on whitespace/punctuation, lower-case, drop short terms."""
    if not text:
        return []
    return [
        term.lower()
        for term in _SPLIT_PATTERN.split(text)
        if len(term) >= min_length
    ]


def bounded_edit_distance(a: str, b: str, max_distance: int) -> Optional[int]:
    """Levenshtein distance between ``a`` and ``b`` if it is <= ``max_distance``.

    Returns ``None`` as soon as the distance is known to exceed the bound.
    """
    if abs(len(a) - len(b)) > max_distance:
        return None
    if a == b:
        return 0

    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i] + [0] * len(b)
        row_min = i
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current[j] = min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + cost,
            )
            row_min = min(row_min, current[j])
        if row_min > max_distance:
            return None
        previous = current

    distance = previous[-1]
    return distance if distance <= max_distance else None


@dataclass
class KeywordHit:
    """A matching item and how it matched."""

    id: str
    score: float
    terms: List[str] = field(default_factory=list)
    query_terms: List[str] = field(default_factory=list)
    match: Dict[str, List[str]] = field(default_factory=dict)


@dataclass
class Suggestion:
    """An autocomplete suggestion built from matched vocabulary terms."""

    suggestion: str
    terms: List[str]
    score: float


@dataclass
class _Partial:
    score: float = 0.0
    terms: List[str] = field(default_factory=list)
    match: Dict[str, List[str]] = field(default_factory=dict)


class KeywordIndex:
    """Inverted index with field weighting, fuzzy and prefix matching.

    Parameters
    - boosts: Field weights; defaults to title 3, category 2, content 1
    - fuzzy: Edit-distance tolerance as a fraction of the query term length
      (values >= 1 are an absolute distance; 0 disables fuzzy matching)
    - prefix: Whether query terms also match vocabulary terms they prefix
    - min_term_length: Terms shorter than this are never indexed or queried
    """

    def __init__(
        self,
        boosts: Optional[Mapping[str, float]] = None,
        fuzzy: float = 0.2,
        prefix: bool = True,
        min_term_length: int = 2,
    ):
        self.boosts = {**DEFAULT_BOOSTS, **(boosts or {})}
        self.fuzzy = fuzzy
        self.prefix = prefix
        self.min_term_length = min_term_length

        # term -> field -> item id -> term frequency
        self._postings: Dict[str, Dict[str, Dict[str, int]]] = {}
        # item id -> field -> token count
        self._field_lengths: Dict[str, Dict[str, int]] = {}
        self._total_field_lengths: Dict[str, int] = {name: 0 for name in FIELDS}
        # item id -> distinct terms, for removal
        self._item_terms: Dict[str, List[str]] = {}
        # term length -> terms, so fuzzy matching only scans reachable lengths
        self._terms_by_length: Dict[int, Dict[str, None]] = {}
        self._sorted_terms: Optional[List[str]] = None

    def __len__(self) -> int:
        return len(self._field_lengths)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._field_lengths

    @property
    def vocabulary_size(self) -> int:
        return len(self._postings)

    def clear(self) -> None:
        """Drop every item; the index is then equivalent to a new one."""
        self._postings.clear()
        self._field_lengths.clear()
        self._total_field_lengths = {name: 0 for name in FIELDS}
        self._item_terms.clear()
        self._terms_by_length.clear()
        self._sorted_terms = None

    def add(self, item_id: str, fields: Mapping[str, str]) -> None:
        """Index one item.

        Raises ``ValueError`` if ``item_id`` is already indexed.
        """
        if item_id in self._field_lengths:
            raise ValueError(f"Duplicate item id: {item_id}")

        lengths: Dict[str, int] = {}
        distinct: Dict[str, None] = {}
        for name in FIELDS:
            tokens = tokenize(fields.get(name) or "", self.min_term_length)
            lengths[name] = len(tokens)
            self._total_field_lengths[name] += len(tokens)
            for term in tokens:
                if term not in self._postings:
                    self._terms_by_length.setdefault(len(term), {})[term] = None
                by_field = self._postings.setdefault(term, {})
                by_item = by_field.setdefault(name, {})
                by_item[item_id] = by_item.get(item_id, 0) + 1
                distinct[term] = None

        self._field_lengths[item_id] = lengths
        self._item_terms[item_id] = list(distinct)
        self._sorted_terms = None

    def remove(self, item_id: str) -> bool:
        """Remove one item; returns ``False`` if it was not indexed."""
        lengths = self._field_lengths.pop(item_id, None)
        if lengths is None:
            return False

        for name, length in lengths.items():
            self._total_field_lengths[name] -= length

        for term in self._item_terms.pop(item_id, []):
            by_field = self._postings.get(term, {})
            for name in list(by_field):
                by_field[name].pop(item_id, None)
                if not by_field[name]:
                    del by_field[name]
            if not by_field:
                self._postings.pop(term, None)
                self._forget_length(term)

        self._sorted_terms = None
        return True

    def search(
        self,
        query: str,
        fuzzy: Optional[float] = None,
        prefix: Optional[bool] = None,
        boost: Optional[Mapping[str, float]] = None,
    ) -> List[KeywordHit]:
        """Query the index.

        Every query term must match (AND). Returns hits sorted by
        descending score; an empty index or an empty query yields ``[]``.
        """
        query_terms = tokenize(query, self.min_term_length)
        if not query_terms or not self._field_lengths:
            return []

        fuzzy = self.fuzzy if fuzzy is None else fuzzy
        prefix = self.prefix if prefix is None else prefix
        boosts = {**self.boosts, **(boost or {})}

        combined: Optional[Dict[str, _Partial]] = None
        for query_term in query_terms:
            term_results = self._term_results(query_term, fuzzy, prefix, boosts)
            if combined is None:
                combined = term_results
            else:
                combined = self._intersect(combined, term_results)
            if not combined:
                return []

        hits = [
            KeywordHit(
                id=item_id,
                score=partial.score * max(len(partial.terms), 1),
                terms=partial.terms,
                query_terms=query_terms,
                match=partial.match,
            )
            for item_id, partial in combined.items()
        ]
        hits.sort(key=lambda hit: hit.score, reverse=True)
        return hits

    def auto_suggest(
        self,
        query: str,
        fuzzy: Optional[float] = None,
        prefix: Optional[bool] = None,
        limit: Optional[int] = None,
    ) -> List[Suggestion]:
        """Suggest completions made of indexed terms only.

        Hits are grouped by the matched terms; each group's score is the
        mean score of its hits.
        """
        groups: Dict[str, Tuple[float, int, List[str]]] = {}
        for hit in self.search(query, fuzzy=fuzzy, prefix=prefix):
            phrase = " ".join(hit.terms)
            score, count, terms = groups.get(phrase, (0.0, 0, hit.terms))
            groups[phrase] = (score + hit.score, count + 1, terms)

        suggestions = [
            Suggestion(suggestion=phrase, terms=terms, score=score / count)
            for phrase, (score, count, terms) in groups.items()
        ]
        suggestions.sort(key=lambda s: s.score, reverse=True)
        return suggestions[:limit] if limit is not None else suggestions

    def _expand(self, query_term: str, fuzzy: float, prefix: bool) -> Dict[str, float]:
        """Map vocabulary terms matching ``query_term`` to their match weight."""
        expansions: Dict[str, float] = {}
        if query_term in self._postings:
            expansions[query_term] = 1.0

        if prefix:
            for term in self._prefix_matches(query_term):
                distance = len(term) - len(query_term)
                if distance:
                    expansions[term] = PREFIX_WEIGHT * len(term) / (len(term) + 0.3 * distance)

        max_distance = self._max_distance(query_term, fuzzy)
        if max_distance > 0:
            for term in self._terms_within(len(query_term), max_distance):
                if term in expansions:
                    continue
                distance = bounded_edit_distance(query_term, term, max_distance)
                if distance:
                    expansions[term] = FUZZY_WEIGHT * len(term) / (len(term) + distance)

        return expansions

    def _term_results(
        self,
        query_term: str,
        fuzzy: float,
        prefix: bool,
        boosts: Mapping[str, float],
    ) -> Dict[str, _Partial]:
        results: Dict[str, _Partial] = {}
        total_items = len(self._field_lengths)

        for term, weight in self._expand(query_term, fuzzy, prefix).items():
            for name, by_item in self._postings[term].items():
                field_boost = boosts.get(name, 0.0)
                if not field_boost:
                    continue
                average_length = self._total_field_lengths[name] / total_items or 1.0
                for item_id, frequency in by_item.items():
                    raw = self._bm25(
                        frequency,
                        len(by_item),
                        total_items,
                        self._field_lengths[item_id][name],
                        average_length,
                    )
                    partial = results.setdefault(item_id, _Partial())
                    partial.score += weight * field_boost * raw
                    if term not in partial.terms:
                        partial.terms.append(term)
                    fields = partial.match.setdefault(term, [])
                    if name not in fields:
                        fields.append(name)

        return results

    @staticmethod
    def _intersect(left: Dict[str, _Partial], right: Dict[str, _Partial]) -> Dict[str, _Partial]:
        merged: Dict[str, _Partial] = {}
        for item_id, partial in left.items():
            other = right.get(item_id)
            if other is None:
                continue
            terms = partial.terms + [t for t in other.terms if t not in partial.terms]
            match = {term: list(fields) for term, fields in partial.match.items()}
            for term, fields in other.match.items():
                existing = match.setdefault(term, [])
                existing.extend(f for f in fields if f not in existing)
            merged[item_id] = _Partial(score=partial.score + other.score, terms=terms, match=match)
        return merged

    @staticmethod
    def _bm25(
        frequency: int,
        matching_count: int,
        total_count: int,
        field_length: int,
        average_length: float,
    ) -> float:
        inverse_frequency = math.log(1 + (total_count - matching_count + 0.5) / (matching_count + 0.5))
        return inverse_frequency * (
            BM25_D + frequency * (BM25_K + 1)
            / (frequency + BM25_K * (1 - BM25_B + BM25_B * field_length / average_length))
        )

    @staticmethod
    def _max_distance(query_term: str, fuzzy: float) -> int:
        if not fuzzy:
            return 0
        if fuzzy < 1:
            return min(MAX_FUZZY_DISTANCE, int(round(len(query_term) * fuzzy)))
        return int(fuzzy)

    def _prefix_matches(self, query_term: str) -> List[str]:
        if self._sorted_terms is None:
            self._sorted_terms = sorted(self._postings)
        start = bisect.bisect_left(self._sorted_terms, query_term)
        matches = []
        for term in self._sorted_terms[start:]:
            if not term.startswith(query_term):
                break
            matches.append(term)
        return matches

    def _terms_within(self, length: int, max_distance: int) -> List[str]:
        """Vocabulary terms whose length is within ``max_distance`` of ``length``."""
        terms: List[str] = []
        for candidate_length in range(max(1, length - max_distance), length + max_distance + 1):
            terms.extend(self._terms_by_length.get(candidate_length, ()))
        return terms

    def _forget_length(self, term: str) -> None:
        bucket = self._terms_by_length.get(len(term))
        if bucket is None:
            return
        bucket.pop(term, None)
        if not bucket:
            del self._terms_by_length[len(term)]
