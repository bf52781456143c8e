"""Search engine for hybrid keyword and semantic document search.

``SearchEngine`` owns the live ``Corpus``, the context registry and the
semantic enhancer. The keyword index always runs; when the enhancer is
ready and the corpus carries embeddings, similarity scores are fused in.
Context filtering is applied last on every path.

Loads replace the corpus by swapping one reference after the new corpus
is fully built, and every query works on the corpus it started with, so
a query never observes a mix of two loads.
"""

import asyncio
import time
from contextlib import suppress
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

import httpx
import structlog

from ..common.config import SearchConfig, get_config
from ..common.logging import log_performance
from ..common.metrics import MetricsCollector
from ..context.filter import ContextFilter
from ..context.registry import ContextRegistry
from ..corpus import Corpus
from ..enhancement.capability import CapabilityGate, DeviceSignals
from ..enhancement.loader import SentenceTransformerLoader
from ..enhancement.manager import EnhancementProgress, EnhancementState, SemanticEnhancer
from ..exceptions import CorpusFormatError, CorpusUnavailableError
from ..keyword.index import Suggestion
from ..models import EnhancedSearchResult, SearchDocument
from ..ranking.fusion import create_fusion_algorithm
from ..ranking.highlight import extract_search_terms, highlight_text
from ..retrievers.cache_manager import CorpusCacheManager, create_corpus_cache_manager
from ..retrievers.corpus_source import CorpusSource

logger = structlog.get_logger("search_engine")

VERSIONED_INDEX_CACHE_NAME = "versioned-index"


class SearchEngine:
    """Hybrid document search over one live corpus.

    Parameters
    - config: ``SearchConfig`` with index, fusion and context settings
    - source: ``CorpusSource`` used by ``refresh``; ``None`` disables fetching
    - cache: ``CorpusCacheManager``; ``None`` disables persistence
    - enhancer: ``SemanticEnhancer``; ``None`` means keyword-only search
    - registry: Initial ``ContextRegistry`` (replaced on ``initialize`` if
      the versioned index can be loaded)
    - metrics: Optional ``MetricsCollector``
    """

    def __init__(
        self,
        config: Optional[SearchConfig] = None,
        source: Optional[CorpusSource] = None,
        cache: Optional[CorpusCacheManager] = None,
        enhancer: Optional[SemanticEnhancer] = None,
        registry: Optional[ContextRegistry] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.config = config or get_config()
        self.source = source
        self.cache = cache
        self.enhancer = enhancer
        self.metrics = metrics

        self.registry = registry or ContextRegistry(
            default_version=self.config.docsearch_default_version,
            docs_route_prefix=self.config.docsearch_docs_route_prefix,
        )
        self.context_filter = ContextFilter(self.registry)

        self.hybrid_fusion = create_fusion_algorithm(
            "hybrid",
            keyword_weight=self.config.docsearch_keyword_weight,
            semantic_weight=self.config.docsearch_semantic_weight,
            similarity_scale=self.config.docsearch_similarity_scale,
        )
        self.keyword_fusion = create_fusion_algorithm("keyword")

        self.corpus = self._build_corpus([], origin="empty")
        self._refresh_task: Optional[asyncio.Task] = None

        if self.enhancer is not None and self.metrics is not None:
            self.enhancer.on_state_change = lambda state: self.metrics.set_enhancement_state(state.value)
            self.metrics.set_enhancement_state(self.enhancer.state.value)

    async def initialize(
        self,
        background_refresh: bool = True,
        signals: Optional[DeviceSignals] = None,
    ) -> None:
        """Load the registry and corpus, then schedule semantic enhancement.

        A fresh cached corpus is served immediately and the network fetch
        runs in the background (or inline with ``background_refresh=False``);
        without one the corpus is fetched inline. Never raises for an
        unavailable corpus: the engine is left with an empty index.
        """
        await self._load_registry()

        cached = await self.cache.load_corpus() if self.cache is not None else None
        if cached is not None:
            await self.load_corpus(cached.documents, origin="cache", persist=False)
            if self.source is not None:
                if background_refresh:
                    self._refresh_task = asyncio.create_task(self.refresh())
                else:
                    await self.refresh()
        elif self.source is not None:
            await self.refresh()

        if self.enhancer is not None and self.config.docsearch_enhancement_enabled:
            self.enhancer.start(signals)

        logger.info(
            "Search engine initialized",
            origin=self.corpus.origin,
            documents=len(self.corpus.document_by_slug),
            chunks=len(self.corpus),
        )

    async def refresh(self) -> bool:
        """Fetch the corpus from the network and make it live.

        Returns ``False`` when no resource could be loaded; the current
        corpus (possibly empty) stays in place.
        """
        if self.source is None:
            return False

        try:
            documents = await self.source.fetch_documents()
        except CorpusUnavailableError as e:
            logger.error("Corpus unavailable, keeping current index", origin=self.corpus.origin, error=str(e))
            return False

        await self.load_corpus(documents, origin="network")
        return True

    async def load_corpus(
        self,
        documents: Sequence[SearchDocument],
        origin: str = "network",
        persist: bool = True,
    ) -> Corpus:
        """Build a corpus from ``documents`` and make it live in one step."""
        corpus = self._build_corpus(documents, origin=origin)
        self.corpus = corpus

        if self.metrics is not None:
            self.metrics.set_corpus_size(origin, len(corpus))
        if persist and self.cache is not None:
            await self.cache.store_corpus(corpus.documents)
        return corpus

    async def search(
        self,
        query: str,
        location: Optional[str] = None,
        search_all_contexts: bool = False,
        limit: Optional[int] = None,
        fuzzy: Optional[float] = None,
        prefix: Optional[bool] = None,
        boost: Optional[Mapping[str, float]] = None,
    ) -> List[EnhancedSearchResult]:
        """Ranked results for ``query`` scoped to the caller's location.

        Returns ``[]`` for an empty query or an empty corpus. ``limit``
        applies after context filtering.
        """
        start_time = time.perf_counter()
        corpus = self.corpus
        if not query or not query.strip() or corpus.is_empty:
            return []

        hits = corpus.index.search(query, fuzzy=fuzzy, prefix=prefix, boost=boost)

        mode = "keyword"
        matches = []
        if self.enhancer is not None and self.enhancer.is_ready:
            chunk_ids, matrix = corpus.embeddings()
            if matrix is not None:
                query_embedding = await self.enhancer.generate_query_embedding(query)
                if query_embedding is not None and query_embedding.shape[-1] != matrix.shape[1]:
                    logger.warning(
                        "Malformed query embedding, using keyword results only",
                        query_dimension=int(query_embedding.shape[-1]),
                        corpus_dimension=int(matrix.shape[1]),
                    )
                elif query_embedding is not None:
                    matches = self.enhancer.match_chunks(query_embedding, chunk_ids, matrix)
                    mode = "hybrid"

        fusion = self.hybrid_fusion if mode == "hybrid" else self.keyword_fusion
        fused = fusion.fuse_results(hits, matches)

        terms = extract_search_terms(query)
        results = []
        for scored in fused:
            chunk = corpus.chunk_by_id.get(scored.chunk_id)
            document = corpus.document_for_chunk(scored.chunk_id)
            if chunk is None or document is None:
                continue
            results.append(
                EnhancedSearchResult(
                    document=document,
                    chunk=chunk,
                    keyword_score=scored.keyword_score,
                    semantic_score=scored.semantic_score,
                    final_score=scored.final_score,
                    highlighted_preview=highlight_text(chunk.preview, terms),
                    is_semantic_match=scored.semantic_only,
                    terms=terms,
                )
            )

        results = self.context_filter.apply(results, location, search_all_contexts)
        if limit is None:
            limit = self.config.docsearch_result_limit
        results = results[:max(limit, 0)]

        duration = time.perf_counter() - start_time
        if self.metrics is not None:
            self.metrics.record_search(mode, duration, len(results))
        log_performance(
            "search",
            duration * 1000,
            mode=mode,
            keyword_hits=len(hits),
            semantic_matches=len(matches),
            results_count=len(results),
        )
        return results

    async def search_all_contexts(self, query: str, **options: Any) -> List[EnhancedSearchResult]:
        """Search without context filtering."""
        return await self.search(query, search_all_contexts=True, **options)

    def suggest(self, query: str, limit: Optional[int] = None) -> List[Suggestion]:
        """Autocomplete suggestions from indexed terms (keyword index only)."""
        if limit is None:
            limit = self.config.docsearch_suggestion_limit
        return self.corpus.index.auto_suggest(query, limit=limit)

    def add_document(self, document: SearchDocument) -> None:
        """Add or replace one document in the live corpus.

        Raises ``DuplicateChunkError`` when a chunk id belongs to another
        document; the corpus is unchanged in that case.
        """
        self.corpus.add_document(document)
        if self.metrics is not None:
            self.metrics.set_corpus_size(self.corpus.origin, len(self.corpus))

    def remove_document(self, slug: str) -> bool:
        removed = self.corpus.remove_document(slug)
        if removed and self.metrics is not None:
            self.metrics.set_corpus_size(self.corpus.origin, len(self.corpus))
        return removed

    @property
    def enhancement_state(self) -> EnhancementState:
        if self.enhancer is None:
            return EnhancementState.DISABLED
        return self.enhancer.state

    @property
    def enhancement_progress(self) -> EnhancementProgress:
        if self.enhancer is None:
            return EnhancementProgress(
                state=EnhancementState.DISABLED,
                progress=0,
                message="AI enhancement disabled",
                can_dismiss=False,
            )
        return self.enhancer.progress

    def subscribe(self, listener: Callable[[EnhancementProgress], None]) -> Callable[[], None]:
        """Subscribe to enhancement progress notifications."""
        if self.enhancer is None:
            listener(self.enhancement_progress)
            return lambda: None
        return self.enhancer.subscribe(listener)

    def dismiss_enhancement(self) -> None:
        if self.enhancer is not None:
            self.enhancer.dismiss()

    def stats(self) -> Dict[str, Any]:
        corpus = self.corpus
        chunk_ids, _ = corpus.embeddings()
        return {
            "documents": len(corpus.document_by_slug),
            "chunks": len(corpus),
            "embedded_chunks": len(chunk_ids),
            "embedding_dimension": corpus.embedding_dimension,
            "vocabulary_size": corpus.index.vocabulary_size,
            "origin": corpus.origin,
            "enhancement_state": self.enhancement_state.value,
            "current_version": self.registry.current_version,
        }

    async def close(self):
        """Cancel background work and release clients."""
        if self._refresh_task is not None and not self._refresh_task.done():
            self._refresh_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._refresh_task
        if self.enhancer is not None:
            await self.enhancer.close()
        if self.source is not None:
            await self.source.close()
        if self.cache is not None:
            await self.cache.close()
        logger.info("Search engine closed")

    def _build_corpus(self, documents: Sequence[SearchDocument], origin: str) -> Corpus:
        return Corpus(
            documents,
            boosts=self.config.field_boosts,
            fuzzy=self.config.docsearch_fuzzy,
            prefix=self.config.docsearch_prefix,
            min_term_length=self.config.docsearch_min_term_length,
            origin=origin,
        )

    async def _load_registry(self) -> None:
        if self.cache is not None:
            payload = await self.cache.load_metadata(VERSIONED_INDEX_CACHE_NAME)
            if payload is not None:
                try:
                    self._install_registry(payload)
                    return
                except CorpusFormatError as e:
                    logger.warning("Discarding invalid cached versioned index", error=str(e))
                    await self.cache.discard_metadata(VERSIONED_INDEX_CACHE_NAME)

        if self.source is None:
            return

        try:
            payload = await self.source.fetch_versioned_index()
            self._install_registry(payload)
        except (httpx.HTTPError, CorpusFormatError) as e:
            logger.warning("Versioned index unavailable, using default context", error=str(e))
            return

        if self.cache is not None:
            await self.cache.store_metadata(VERSIONED_INDEX_CACHE_NAME, payload)

    def _install_registry(self, payload: Any) -> None:
        registry = ContextRegistry.from_versioned_index(
            payload,
            default_version=self.config.docsearch_default_version,
            docs_route_prefix=self.config.docsearch_docs_route_prefix,
        )
        registry.set_current_version(self.registry.current_version)
        self.registry = registry
        self.context_filter = ContextFilter(registry)


def create_search_engine(
    config: Optional[SearchConfig] = None,
    metrics: Optional[MetricsCollector] = None,
    **overrides: Any,
) -> SearchEngine:
    """Create a search engine wired from configuration.

    Keyword arguments (``source``, ``cache``, ``enhancer``, ``registry``)
    replace the components that would otherwise be built from ``config``.
    """
    config = config or get_config()

    if "source" not in overrides:
        overrides["source"] = CorpusSource(
            base_url=config.docsearch_corpus_base_url,
            enhanced_resource=config.docsearch_enhanced_index_resource,
            standard_resource=config.docsearch_standard_index_resource,
            versioned_index_resource=config.docsearch_versioned_index_resource,
            timeout=config.docsearch_http_timeout,
        )

    if "cache" not in overrides:
        overrides["cache"] = (
            create_corpus_cache_manager(
                redis_url=config.docsearch_redis_url,
                corpus_cache_ttl=config.docsearch_corpus_cache_ttl,
                metadata_cache_ttl=config.docsearch_metadata_cache_ttl,
                key_prefix=config.docsearch_cache_key_prefix,
                metrics=metrics,
            )
            if config.docsearch_cache_enabled
            else None
        )

    if "enhancer" not in overrides:
        overrides["enhancer"] = (
            SemanticEnhancer(
                loader=SentenceTransformerLoader(),
                gate=CapabilityGate(min_memory_gb=config.docsearch_min_memory_gb),
                model_name=config.docsearch_embedding_model,
                delay=config.docsearch_enhancement_delay,
                load_timeout=config.docsearch_model_load_timeout or None,
                ready_message_ttl=config.docsearch_ready_message_ttl,
                threshold=config.docsearch_similarity_threshold,
                min_boost=config.docsearch_min_boost,
                max_boost=config.docsearch_max_boost,
            )
            if config.docsearch_enhancement_enabled
            else None
        )

    return SearchEngine(config=config, metrics=metrics, **overrides)
