"""Optional semantic layer.

Contents
- ``capability``: one-time device/runtime capability gate.
- ``similarity``: cosine similarity and the similarity-to-boost mapping.
- ``loader``: embedding model loading (sentence-transformers).
- ``manager``: the ``SemanticEnhancer`` state machine.
"""

from .capability import CapabilityGate, ConnectionSpeed, DeviceCapability, DeviceSignals
from .manager import EnhancementProgress, EnhancementState, SemanticEnhancer
from .similarity import cosine_similarity, score_similarities, semantic_boost

__all__ = [
    "CapabilityGate",
    "ConnectionSpeed",
    "DeviceCapability",
    "DeviceSignals",
    "EnhancementProgress",
    "EnhancementState",
    "SemanticEnhancer",
    "cosine_similarity",
    "score_similarities",
    "semantic_boost",
]
