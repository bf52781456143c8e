"""Scope ranked results to the caller's documentation context.

The context comes from the caller's current location, never from the
query: ``/docs`` resolves to the current version, ``/docs/<state>/...`` and
``/docs/<version>/...`` resolve to that state or version, and any other
docs path falls back to the current version. Locations outside the docs
route are not filtered.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Set, TypeVar
from urllib.parse import urlsplit

import structlog

from .registry import ContextRegistry

logger = structlog.get_logger("context_filter")

FOLDER_SEGMENT = "_folder"

T = TypeVar("T")


@dataclass(frozen=True)
class ResolvedContext:
    """A version or state token plus how it was resolved."""

    token: str
    kind: str  # "version" or "state"
    is_current_version: bool = False
    fallback: bool = False

    def describe(self) -> str:
        label = f"{self.kind}: {self.token}"
        return f"{label} (fallback)" if self.fallback else label


def slug_first_segment(slug: str) -> str:
    return slug.split("/", 1)[0]


def is_folder_slug(slug: str) -> bool:
    return slug.rsplit("/", 1)[-1] == FOLDER_SEGMENT


class ContextFilter:
    """Resolves locations to contexts and filters result lists by them."""

    def __init__(self, registry: ContextRegistry):
        self.registry = registry

    def resolve(self, location: Optional[str]) -> Optional[ResolvedContext]:
        """Context for a location, or ``None`` when the location is not filtered."""
        if not location:
            return None

        path = urlsplit(location).path or "/"
        prefix = self.registry.docs_route_prefix
        if path != prefix and not path.startswith(prefix + "/"):
            return None

        segment = path[len(prefix):].strip("/").split("/", 1)[0]
        current = self.registry.current_version

        if not segment:
            return ResolvedContext(token=current, kind="version", is_current_version=True)
        if self.registry.is_state(segment):
            return ResolvedContext(token=segment, kind="state")
        if self.registry.is_version(segment):
            return ResolvedContext(
                token=segment,
                kind="version",
                is_current_version=segment == current,
            )
        return ResolvedContext(token=current, kind="version", is_current_version=True, fallback=True)

    def allows(self, slug: str, context: ResolvedContext, registered: Optional[Set[str]] = None) -> bool:
        """Whether a document slug belongs to ``context``.

        The current version admits only the slugs registered under it. An
        explicit version or state also admits slugs whose first segment is
        its token. Folder overview documents never belong. Without a loaded
        versioned index nothing is known to register against, so every
        non-folder slug belongs.
        """
        if is_folder_slug(slug):
            return False
        if not self.registry.is_loaded:
            return True

        if registered is None:
            registered = self.registry.slugs_for(context.token)
        if slug in registered:
            return True

        if context.is_current_version:
            return False
        return "/" in slug and slug_first_segment(slug) == context.token

    def apply(
        self,
        results: Sequence[T],
        location: Optional[str],
        search_all_contexts: bool = False,
    ) -> List[T]:
        """Drop results outside the location's context, preserving order.

        Results must expose ``document.slug``.
        """
        if search_all_contexts:
            return list(results)

        context = self.resolve(location)
        if context is None:
            return list(results)

        registered = self.registry.slugs_for(context.token)
        filtered = [r for r in results if self.allows(r.document.slug, context, registered)]

        logger.debug(
            "Context-filtered search",
            before=len(results),
            after=len(filtered),
            context=context.describe(),
        )
        return filtered
