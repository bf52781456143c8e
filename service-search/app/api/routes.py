"""API routes for the documentation search service."""

import time
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, Field
import structlog

from docsearch.exceptions import DuplicateChunkError
from docsearch.hybrid.engine import SearchEngine
from docsearch.models import SearchDocument

logger = structlog.get_logger("search_service.api")

router = APIRouter()


class SearchRequest(BaseModel):
    """Request model for search endpoint."""
    query: str = Field(..., description="Search query")
    location: Optional[str] = Field(None, description="Caller's current location, e.g. /docs/v1.2.0/intro")
    search_all_contexts: bool = Field(False, description="Search across every version and state")
    limit: Optional[int] = Field(None, ge=0, description="Maximum number of results")
    fuzzy: Optional[float] = Field(None, ge=0, description="Fuzzy matching tolerance")
    prefix: Optional[bool] = Field(None, description="Enable prefix matching")
    boost: Optional[Dict[str, float]] = Field(None, description="Per-field boost overrides")


class SearchResult(BaseModel):
    """Search result model."""
    slug: str = Field(..., description="Document slug")
    title: str = Field(..., description="Document title")
    category: str = Field(..., description="Document category")
    url: str = Field(..., description="Document URL")
    chunk_id: str = Field(..., description="Matched chunk ID")
    preview: str = Field(..., description="Chunk preview")
    highlighted_preview: str = Field(..., description="Preview with highlighted terms")
    keyword_score: float = Field(..., description="Keyword index score")
    semantic_score: float = Field(..., description="Scaled semantic similarity")
    final_score: float = Field(..., description="Fused ranking score")
    is_semantic_match: bool = Field(..., description="Matched through semantic similarity only")
    terms: List[str] = Field(..., description="Highlighted query terms")


class SearchResponse(BaseModel):
    """Response model for search endpoint."""
    results: List[SearchResult] = Field(..., description="Search results")
    total: int = Field(..., description="Total number of results")
    query: str = Field(..., description="Original query")
    semantic: bool = Field(..., description="Semantic layer was ready")
    latency_ms: float = Field(..., description="Search latency in milliseconds")


class SuggestionResult(BaseModel):
    suggestion: str
    terms: List[str]
    score: float


class SuggestResponse(BaseModel):
    suggestions: List[SuggestionResult]
    query: str


class EnhancementStatus(BaseModel):
    """Enhancement progress notification."""
    state: str
    progress: float
    message: str
    can_dismiss: bool


class ReloadResponse(BaseModel):
    status: str = Field(..., description="reloaded or unavailable")
    stats: Dict[str, Any]


class DocumentResponse(BaseModel):
    status: str
    slug: str


def get_engine(request: Request) -> SearchEngine:
    """Get search engine from application state."""
    return request.app.state.engine


@router.post("/search", response_model=SearchResponse)
async def search(request: SearchRequest, engine: SearchEngine = Depends(get_engine)):
    """Perform hybrid search scoped to the caller's documentation context."""
    start_time = time.time()
    semantic = engine.enhancer is not None and engine.enhancer.is_ready

    results = await engine.search(
        request.query,
        location=request.location,
        search_all_contexts=request.search_all_contexts,
        limit=request.limit,
        fuzzy=request.fuzzy,
        prefix=request.prefix,
        boost=request.boost,
    )
    latency_ms = (time.time() - start_time) * 1000

    logger.info(
        "Search completed",
        query=request.query,
        semantic=semantic,
        results_count=len(results),
        latency_ms=latency_ms,
    )

    return SearchResponse(
        results=[SearchResult(**result.to_dict()) for result in results],
        total=len(results),
        query=request.query,
        semantic=semantic,
        latency_ms=latency_ms,
    )


@router.get("/suggest", response_model=SuggestResponse)
async def suggest(
    q: str = Query(..., description="Partial query"),
    limit: Optional[int] = Query(None, ge=1, description="Maximum number of suggestions"),
    engine: SearchEngine = Depends(get_engine),
):
    """Autocomplete suggestions from indexed terms."""
    suggestions = engine.suggest(q, limit=limit)
    return SuggestResponse(
        suggestions=[
            SuggestionResult(suggestion=s.suggestion, terms=s.terms, score=s.score)
            for s in suggestions
        ],
        query=q,
    )


@router.get("/enhancement", response_model=EnhancementStatus)
async def enhancement_status(engine: SearchEngine = Depends(get_engine)):
    """Current semantic enhancement state and progress."""
    return EnhancementStatus(**engine.enhancement_progress.to_dict())


@router.post("/enhancement/dismiss", response_model=EnhancementStatus)
async def dismiss_enhancement(engine: SearchEngine = Depends(get_engine)):
    """Disable semantic enhancement for the rest of the session."""
    engine.dismiss_enhancement()
    return EnhancementStatus(**engine.enhancement_progress.to_dict())


@router.post("/corpus/reload", response_model=ReloadResponse)
async def reload_corpus(engine: SearchEngine = Depends(get_engine)):
    """Fetch the corpus again and replace the live index."""
    reloaded = await engine.refresh()
    return ReloadResponse(status="reloaded" if reloaded else "unavailable", stats=engine.stats())


@router.put("/documents", response_model=DocumentResponse)
async def upsert_document(document: SearchDocument, engine: SearchEngine = Depends(get_engine)):
    """Add or replace one document in the live index."""
    try:
        engine.add_document(document)
    except DuplicateChunkError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return DocumentResponse(status="indexed", slug=document.slug)


@router.delete("/documents/{slug:path}", response_model=DocumentResponse)
async def delete_document(slug: str, engine: SearchEngine = Depends(get_engine)):
    """Remove one document from the live index."""
    if not engine.remove_document(slug):
        raise HTTPException(status_code=404, detail=f"Unknown document: {slug}")
    return DocumentResponse(status="removed", slug=slug)


@router.get("/versions")
async def versions(engine: SearchEngine = Depends(get_engine)):
    """Known versions and documentation states."""
    registry = engine.registry
    return {
        "current_version": registry.current_version,
        "production_version": registry.production_version,
        "versions": [v.to_dict() for v in registry.versions],
        "states": [s.to_dict() for s in registry.states],
    }


@router.get("/stats")
async def stats(engine: SearchEngine = Depends(get_engine)):
    """Index statistics."""
    return engine.stats()
