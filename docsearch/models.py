"""Data models for the documentation search core.

``SearchChunk`` and ``SearchDocument`` describe the corpus wire shape (a
JSON array of documents, camelCase keys) and are validated with pydantic
because corpus payloads and cache entries are untrusted input. Result and
match records produced by the engine are plain dataclasses.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from .exceptions import CorpusFormatError


class SearchChunk(BaseModel):
    """A contiguous slice of one document's text; the unit of retrieval."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str
    text: str
    preview: str = ""
    start_index: int = Field(default=0, alias="startIndex")
    embedding: Optional[List[float]] = None

    # Enrichment metadata, opaque to scoring
    keywords: Optional[List[str]] = None
    semantic_keywords: Optional[List[str]] = Field(default=None, alias="semanticKeywords")
    concepts: Optional[List[str]] = None
    content_type: Optional[str] = Field(default=None, alias="contentType")
    difficulty: Optional[str] = None
    has_code: Optional[bool] = Field(default=None, alias="hasCode")
    language: Optional[str] = None
    word_count: Optional[int] = Field(default=None, alias="wordCount")
    importance: Optional[float] = None

    @field_validator("id")
    @classmethod
    def _id_not_empty(cls, value: str) -> str:
        if not value:
            raise ValueError("chunk id must not be empty")
        return value

    @property
    def has_embedding(self) -> bool:
        return bool(self.embedding)


class SearchDocument(BaseModel):
    """One documentation page and its ordered chunks."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    type: str = "document"
    slug: str
    title: str = ""
    category: str = ""
    url: str = ""
    chunks: List[SearchChunk] = Field(default_factory=list)
    keywords: Optional[List[str]] = None
    description: Optional[str] = None
    order: Optional[int] = None
    last_modified: Optional[str] = Field(default=None, alias="lastModified")

    @field_validator("slug")
    @classmethod
    def _slug_not_empty(cls, value: str) -> str:
        if not value:
            raise ValueError("slug must not be empty")
        return value

    @property
    def context_token(self) -> Optional[str]:
        """First slug segment (``v1.2.0``, ``drafts``), or ``None`` for current-version pages."""
        if "/" not in self.slug:
            return None
        return self.slug.split("/", 1)[0]


_DOCUMENT_LIST = TypeAdapter(List[SearchDocument])


def parse_documents(payload: Any) -> List[SearchDocument]:
    """Validate a decoded JSON payload into documents.

    Raises ``CorpusFormatError`` when the payload is not a list of valid
    documents.
    """
    try:
        return _DOCUMENT_LIST.validate_python(payload)
    except ValidationError as e:
        raise CorpusFormatError(f"Invalid corpus payload: {e.error_count()} error(s)") from e


def dump_documents(documents: List[SearchDocument]) -> List[Dict[str, Any]]:
    """Serialize documents back to the camelCase wire shape."""
    return [doc.model_dump(by_alias=True, exclude_none=True) for doc in documents]


@dataclass
class SemanticMatch:
    """A chunk whose similarity to the query reached the threshold."""

    chunk_id: str
    similarity: float
    boost: float


@dataclass
class EnhancedSearchResult:
    """A ranked search result.

    ``semantic_score`` is the scaled similarity (zero when the semantic
    layer did not contribute); ``final_score`` is the value results are
    ordered by.
    """

    document: SearchDocument
    chunk: SearchChunk
    keyword_score: float
    semantic_score: float
    final_score: float
    highlighted_preview: str
    is_semantic_match: bool = False
    terms: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Flatten into a JSON-friendly record (without embeddings)."""
        return {
            "slug": self.document.slug,
            "title": self.document.title,
            "category": self.document.category,
            "url": self.document.url,
            "chunk_id": self.chunk.id,
            "preview": self.chunk.preview,
            "highlighted_preview": self.highlighted_preview,
            "keyword_score": self.keyword_score,
            "semantic_score": self.semantic_score,
            "final_score": self.final_score,
            "is_semantic_match": self.is_semantic_match,
            "terms": list(self.terms),
        }
