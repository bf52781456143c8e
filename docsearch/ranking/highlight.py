"""Query term extraction and preview highlighting."""

import re
from typing import List

HIGHLIGHT_OPEN = '<mark class="search-highlight">'
HIGHLIGHT_CLOSE = "</mark>"

_NON_WORD = re.compile(r"[^\w]", re.UNICODE)


def extract_search_terms(query: str) -> List[str]:
    """Lower-cased whitespace-separated query words longer than one character.

    Non-alphanumeric characters are stripped from each word.
    """
    terms = []
    for word in query.lower().split():
        if len(word) <= 1:
            continue
        cleaned = _NON_WORD.sub("", word).replace("_", "")
        if cleaned and cleaned not in terms:
            terms.append(cleaned)
    return terms


def highlight_text(text: str, terms: List[str]) -> str:
    """Wrap every case-insensitive occurrence of each term in ``<mark>``."""
    if not text or not terms:
        return text

    # Longest first so a term never splits a longer overlapping one
    alternatives = sorted({t for t in terms if t}, key=len, reverse=True)
    if not alternatives:
        return text

    pattern = re.compile("(" + "|".join(re.escape(t) for t in alternatives) + ")", re.IGNORECASE)
    return pattern.sub(lambda m: f"{HIGHLIGHT_OPEN}{m.group(0)}{HIGHLIGHT_CLOSE}", text)
