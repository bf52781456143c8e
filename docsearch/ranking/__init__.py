"""Hybrid scoring and result presentation."""

from .fusion import (
    BoostedWeightedFusion,
    FusedScore,
    KeywordOnlyFusion,
    RankFusionAlgorithm,
    create_fusion_algorithm,
)
from .highlight import extract_search_terms, highlight_text

__all__ = [
    "BoostedWeightedFusion",
    "FusedScore",
    "KeywordOnlyFusion",
    "RankFusionAlgorithm",
    "create_fusion_algorithm",
    "extract_search_terms",
    "highlight_text",
]
