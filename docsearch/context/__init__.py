"""Documentation contexts (versions and unreleased-content states)."""

from .filter import ContextFilter, ResolvedContext
from .registry import ContextRegistry, StateInfo, VersionedIndexEntry, VersionInfo

__all__ = [
    "ContextFilter",
    "ContextRegistry",
    "ResolvedContext",
    "StateInfo",
    "VersionInfo",
    "VersionedIndexEntry",
]
