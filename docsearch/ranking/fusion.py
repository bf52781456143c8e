"""Score fusion for hybrid search."""

from dataclasses import dataclass, field
from typing import Dict, List, Sequence

import structlog

from ..keyword.index import KeywordHit
from ..models import SemanticMatch

logger = structlog.get_logger("search_fusion")


@dataclass
class FusedScore:
    """Per-chunk scoring breakdown.

    ``semantic_only`` is set for chunks that reached the result set through
    similarity alone, without any keyword overlap.
    """

    chunk_id: str
    keyword_score: float
    similarity: float
    semantic_score: float
    boost: float
    final_score: float
    semantic_only: bool = False
    terms: List[str] = field(default_factory=list)


class RankFusionAlgorithm:
    """Base class for score fusion algorithms."""

    name = "base"

    def fuse_results(
        self,
        keyword_hits: Sequence[KeywordHit],
        semantic_matches: Sequence[SemanticMatch],
    ) -> List[FusedScore]:
        """Fuse keyword hits and semantic matches into one ranked list."""
        raise NotImplementedError


class KeywordOnlyFusion(RankFusionAlgorithm):
    """Pass-through used while the semantic layer is unavailable.

    ``final_score`` equals the keyword score; semantic matches are ignored.
    """

    name = "keyword"

    def fuse_results(
        self,
        keyword_hits: Sequence[KeywordHit],
        semantic_matches: Sequence[SemanticMatch] = (),
    ) -> List[FusedScore]:
        fused = [
            FusedScore(
                chunk_id=hit.id,
                keyword_score=hit.score,
                similarity=0.0,
                semantic_score=0.0,
                boost=1.0,
                final_score=hit.score,
                terms=list(hit.terms),
            )
            for hit in keyword_hits
        ]
        fused.sort(key=lambda f: f.final_score, reverse=True)
        return fused


class BoostedWeightedFusion(RankFusionAlgorithm):
    """Weighted sum of keyword score and scaled similarity, times the boost.

    ``final = (keyword * keyword_weight + similarity * scale * semantic_weight) * boost``

    Chunks present in only one input treat the missing component as zero
    (boost 1.0 without a semantic match). Keyword-only chunks are therefore
    down-weighted to ``keyword * keyword_weight`` whenever this algorithm
    is used; that asymmetry is intended.
    """

    name = "hybrid"

    def __init__(
        self,
        keyword_weight: float = 0.4,
        semantic_weight: float = 0.6,
        similarity_scale: float = 100.0,
    ):
        self.keyword_weight = keyword_weight
        self.semantic_weight = semantic_weight
        self.similarity_scale = similarity_scale

    def fuse_results(
        self,
        keyword_hits: Sequence[KeywordHit],
        semantic_matches: Sequence[SemanticMatch],
    ) -> List[FusedScore]:
        keyword_map: Dict[str, KeywordHit] = {hit.id: hit for hit in keyword_hits}
        semantic_map: Dict[str, SemanticMatch] = {m.chunk_id: m for m in semantic_matches}

        # Keyword order first, then semantic-only chunks by similarity
        ordered_ids = list(keyword_map)
        ordered_ids.extend(m.chunk_id for m in semantic_matches if m.chunk_id not in keyword_map)

        fused = []
        for chunk_id in ordered_ids:
            hit = keyword_map.get(chunk_id)
            match = semantic_map.get(chunk_id)

            keyword_score = hit.score if hit else 0.0
            similarity = match.similarity if match else 0.0
            boost = match.boost if match else 1.0
            semantic_score = similarity * self.similarity_scale

            final_score = (
                keyword_score * self.keyword_weight
                + semantic_score * self.semantic_weight
            ) * boost

            fused.append(
                FusedScore(
                    chunk_id=chunk_id,
                    keyword_score=keyword_score,
                    similarity=similarity,
                    semantic_score=semantic_score,
                    boost=boost,
                    final_score=final_score,
                    semantic_only=hit is None,
                    terms=list(hit.terms) if hit else [],
                )
            )

        fused.sort(key=lambda f: f.final_score, reverse=True)

        logger.debug(
            "Hybrid fusion completed",
            keyword_count=len(keyword_map),
            semantic_count=len(semantic_map),
            fused_count=len(fused),
            semantic_only=sum(1 for f in fused if f.semantic_only),
        )
        return fused


def create_fusion_algorithm(algorithm: str = "hybrid", **params) -> RankFusionAlgorithm:
    """Create a fusion algorithm instance."""

    if algorithm == "hybrid":
        return BoostedWeightedFusion(
            keyword_weight=params.get("keyword_weight", 0.4),
            semantic_weight=params.get("semantic_weight", 0.6),
            similarity_scale=params.get("similarity_scale", 100.0),
        )

    elif algorithm == "keyword":
        return KeywordOnlyFusion()

    else:
        raise ValueError(f"Unknown fusion algorithm: {algorithm}")
