"""Exceptions raised inside the search core.

Components raise these internally; the engine converts them into
"semantic layer unavailable" or "empty result set" at its boundary. Only
``DuplicateChunkError`` reaches callers, from ``add_document``.
"""


class DocSearchError(Exception):
    """Base class for search core errors."""


class CorpusUnavailableError(DocSearchError):
    """Neither the enhanced nor the standard corpus resource could be fetched."""


class CorpusFormatError(DocSearchError):
    """A corpus payload is not a list of valid documents."""


class DuplicateChunkError(DocSearchError):
    """A chunk id is already owned by another document."""

    def __init__(self, chunk_id: str, owner_slug: str):
        super().__init__(f"Chunk {chunk_id!r} already belongs to document {owner_slug!r}")
        self.chunk_id = chunk_id
        self.owner_slug = owner_slug


class ModelLoadError(DocSearchError):
    """The embedding model could not be fetched or instantiated."""
