"""In-memory corpus: document/chunk lookup maps plus the keyword index.

A ``Corpus`` is built wholesale from a list of documents and then treated
as a read-only snapshot by queries. The only in-place mutations are
``add_document`` and ``remove_document``, which keep the maps and the
keyword index in step: a chunk is visible in the index exactly when it is
visible in ``chunk_by_id``.
"""

from collections import Counter
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

import numpy as np
import structlog

from .exceptions import DuplicateChunkError
from .keyword.index import KeywordIndex
from .models import SearchChunk, SearchDocument

logger = structlog.get_logger("corpus")


def _index_fields(document: SearchDocument, chunk: SearchChunk) -> Dict[str, str]:
    return {
        "title": document.title,
        "category": document.category,
        "content": chunk.text,
    }


class Corpus:
    """Documents, chunks and the keyword index for one loaded corpus.

    Parameters
    - documents: Documents to index; later duplicates of a slug or chunk id
      are skipped with a warning
    - boosts, fuzzy, prefix, min_term_length: Keyword index settings
    - origin: Where the documents came from (``network``, ``cache``, ``empty``)
    """

    def __init__(
        self,
        documents: Iterable[SearchDocument] = (),
        boosts: Optional[Mapping[str, float]] = None,
        fuzzy: float = 0.2,
        prefix: bool = True,
        min_term_length: int = 2,
        origin: str = "network",
    ):
        self.origin = origin
        self.document_by_slug: Dict[str, SearchDocument] = {}
        self.chunk_by_id: Dict[str, SearchChunk] = {}
        self.chunk_owner: Dict[str, str] = {}
        self.index = KeywordIndex(
            boosts=boosts,
            fuzzy=fuzzy,
            prefix=prefix,
            min_term_length=min_term_length,
        )
        self._embedding_ids: List[str] = []
        self._embedding_matrix: Optional[np.ndarray] = None
        self._embeddings_dirty = True

        skipped = 0
        for document in documents:
            if document.slug in self.document_by_slug:
                logger.warning("Duplicate document slug skipped", slug=document.slug)
                skipped += 1
                continue
            try:
                self._insert(document)
            except DuplicateChunkError as e:
                logger.warning(
                    "Document with duplicate chunk id skipped",
                    slug=document.slug,
                    chunk_id=e.chunk_id,
                    owner=e.owner_slug,
                )
                skipped += 1

        logger.info(
            "Corpus built",
            origin=origin,
            documents=len(self.document_by_slug),
            chunks=len(self.chunk_by_id),
            skipped_documents=skipped,
        )

    def __len__(self) -> int:
        return len(self.chunk_by_id)

    @property
    def documents(self) -> List[SearchDocument]:
        return list(self.document_by_slug.values())

    @property
    def is_empty(self) -> bool:
        return not self.chunk_by_id

    def document_for_chunk(self, chunk_id: str) -> Optional[SearchDocument]:
        slug = self.chunk_owner.get(chunk_id)
        return self.document_by_slug.get(slug) if slug is not None else None

    def add_document(self, document: SearchDocument) -> None:
        """Add or replace a document and its chunks.

        Raises ``DuplicateChunkError`` if one of its chunk ids belongs to a
        different document; the corpus is left unchanged in that case.
        """
        previous = self.document_by_slug.get(document.slug)
        for chunk in document.chunks:
            owner = self.chunk_owner.get(chunk.id)
            if owner is not None and owner != document.slug:
                raise DuplicateChunkError(chunk.id, owner)

        if previous is not None:
            self._delete(previous)
        try:
            self._insert(document)
        except DuplicateChunkError:
            if previous is not None:
                self._insert(previous)
            raise

        logger.info("Document added", slug=document.slug, chunks=len(document.chunks), replaced=previous is not None)

    def remove_document(self, slug: str) -> bool:
        """Remove a document and its chunks; returns ``False`` if unknown."""
        document = self.document_by_slug.get(slug)
        if document is None:
            return False
        self._delete(document)
        logger.info("Document removed", slug=slug, chunks=len(document.chunks))
        return True

    def embeddings(self) -> Tuple[List[str], Optional[np.ndarray]]:
        """Chunk ids and the stacked embedding matrix of embedded chunks.

        Only chunks whose embedding has the corpus dimensionality (the most
        common length) are included. Returns ``([], None)`` when no chunk has
        an embedding.
        """
        if self._embeddings_dirty:
            self._rebuild_embeddings()
        return self._embedding_ids, self._embedding_matrix

    @property
    def embedding_dimension(self) -> Optional[int]:
        _, matrix = self.embeddings()
        return None if matrix is None else int(matrix.shape[1])

    @property
    def has_embeddings(self) -> bool:
        _, matrix = self.embeddings()
        return matrix is not None

    def _insert(self, document: SearchDocument) -> None:
        added: List[str] = []
        try:
            for chunk in document.chunks:
                owner = self.chunk_owner.get(chunk.id)
                if owner is not None:
                    raise DuplicateChunkError(chunk.id, owner)
                self.index.add(chunk.id, _index_fields(document, chunk))
                self.chunk_by_id[chunk.id] = chunk
                self.chunk_owner[chunk.id] = document.slug
                added.append(chunk.id)
        except DuplicateChunkError:
            for chunk_id in added:
                self.index.remove(chunk_id)
                self.chunk_by_id.pop(chunk_id, None)
                self.chunk_owner.pop(chunk_id, None)
            raise

        self.document_by_slug[document.slug] = document
        self._embeddings_dirty = True

    def _delete(self, document: SearchDocument) -> None:
        for chunk in document.chunks:
            if self.chunk_owner.get(chunk.id) != document.slug:
                continue
            self.index.remove(chunk.id)
            self.chunk_by_id.pop(chunk.id, None)
            self.chunk_owner.pop(chunk.id, None)
        self.document_by_slug.pop(document.slug, None)
        self._embeddings_dirty = True

    def _rebuild_embeddings(self) -> None:
        embedded = [chunk for chunk in self.chunk_by_id.values() if chunk.has_embedding]
        self._embeddings_dirty = False
        if not embedded:
            self._embedding_ids = []
            self._embedding_matrix = None
            return

        lengths = Counter(len(chunk.embedding) for chunk in embedded)
        dimension, _ = lengths.most_common(1)[0]
        if len(lengths) > 1:
            logger.warning(
                "Inconsistent embedding dimensions, using the most common",
                dimension=dimension,
                dimensions=dict(lengths),
            )

        kept = [chunk for chunk in embedded if len(chunk.embedding) == dimension]
        self._embedding_ids = [chunk.id for chunk in kept]
        self._embedding_matrix = np.asarray([chunk.embedding for chunk in kept], dtype=np.float64)
