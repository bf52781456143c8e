"""Registry of documentation versions and states.

Built from the versioned index, a JSON array whose entries each describe
one version (``{"version": "v1.0.0", "metadata": {...}, "docs": [...]}``)
or one unreleased-content state (``{"state": "drafts", ...}``).
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set

import structlog
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from ..exceptions import CorpusFormatError

logger = structlog.get_logger("context_registry")

DEFAULT_VERSION = "v1.0.0"

VERSION_TYPES = ("released", "beta", "alpha", "planned")
STATE_DISPLAY_NAMES = {
    "drafts": "Drafts",
    "proposals": "Proposals",
    "backlog": "Backlog",
    "declined": "Declined",
}


class VersionedIndexEntry(BaseModel):
    """One entry of the versioned index payload."""

    model_config = ConfigDict(extra="allow")

    version: Optional[str] = None
    state: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    docs: List[Dict[str, Any]] = Field(default_factory=list)


_ENTRY_LIST = TypeAdapter(List[VersionedIndexEntry])


@dataclass
class VersionInfo:
    version: str
    type: str
    display_name: str
    status: str = "unknown"
    theme: str = ""
    release_date: Optional[str] = None
    estimated_date: Optional[str] = None
    description: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "type": self.type,
            "display_name": self.display_name,
            "status": self.status,
            "theme": self.theme,
            "release_date": self.release_date,
            "estimated_date": self.estimated_date,
            "description": self.description,
        }


@dataclass
class StateInfo:
    state: str
    display_name: str
    description: str = ""
    count: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state,
            "display_name": self.display_name,
            "description": self.description,
            "count": self.count,
        }


def determine_version_type(metadata: Optional[Dict[str, Any]]) -> str:
    """``released``/``beta``/``alpha`` from ``metadata.status``, else ``planned``."""
    status = str((metadata or {}).get("status") or "").lower()
    return status if status in VERSION_TYPES else "planned"


def version_display_name(version: str, metadata: Optional[Dict[str, Any]]) -> str:
    theme = (metadata or {}).get("theme")
    return f"{version} - {theme}" if theme else version


def state_display_name(state: str) -> str:
    return STATE_DISPLAY_NAMES.get(state, state)


class ContextRegistry:
    """Known versions and states and the document slugs registered under each.

    Parameters
    - entries: Parsed versioned index entries
    - default_version: Version used when nothing is released and as the
      initial current version
    - docs_route_prefix: Route prefix for generated document URLs
    """

    def __init__(
        self,
        entries: Iterable[VersionedIndexEntry] = (),
        default_version: str = DEFAULT_VERSION,
        docs_route_prefix: str = "/docs",
    ):
        self.default_version = default_version
        self.docs_route_prefix = docs_route_prefix.rstrip("/") or "/docs"
        self._current_version = default_version
        self._versions: List[VersionInfo] = []
        self._states: List[StateInfo] = []
        self._docs: Dict[str, List[Dict[str, Any]]] = {}

        for entry in entries:
            if entry.version:
                self._versions.append(
                    VersionInfo(
                        version=entry.version,
                        type=determine_version_type(entry.metadata),
                        display_name=version_display_name(entry.version, entry.metadata),
                        status=entry.metadata.get("status") or "unknown",
                        theme=entry.metadata.get("theme") or "",
                        release_date=entry.metadata.get("releaseDate"),
                        estimated_date=entry.metadata.get("estimatedDate"),
                        description=entry.metadata.get("description"),
                        metadata=entry.metadata,
                    )
                )
                self._docs.setdefault(entry.version, entry.docs)
            elif entry.state:
                self._states.append(
                    StateInfo(
                        state=entry.state,
                        display_name=state_display_name(entry.state),
                        description=entry.metadata.get("description") or "",
                        count=len(entry.docs),
                        metadata=entry.metadata,
                    )
                )
                self._docs.setdefault(entry.state, entry.docs)
            else:
                logger.warning("Versioned index entry without version or state skipped")

        # Released first, then by version string
        self._versions.sort(key=lambda v: (v.type != "released", v.version))

    @classmethod
    def from_versioned_index(cls, payload: Any, **kwargs) -> "ContextRegistry":
        """Build a registry from the decoded versioned index JSON.

        Raises ``CorpusFormatError`` if the payload is not a list of entries.
        """
        try:
            entries = _ENTRY_LIST.validate_python(payload)
        except ValidationError as e:
            raise CorpusFormatError(f"Invalid versioned index: {e.error_count()} error(s)") from e

        registry = cls(entries, **kwargs)
        logger.info(
            "Context registry built",
            versions=len(registry.versions),
            states=len(registry.states),
        )
        return registry

    @property
    def is_loaded(self) -> bool:
        """Whether any version or state came from a versioned index."""
        return bool(self._versions or self._states)

    @property
    def versions(self) -> List[VersionInfo]:
        return list(self._versions)

    @property
    def states(self) -> List[StateInfo]:
        return list(self._states)

    @property
    def current_version(self) -> str:
        return self._current_version

    def set_current_version(self, version: str) -> None:
        self._current_version = version

    def version_info(self, version: str) -> Optional[VersionInfo]:
        return next((v for v in self._versions if v.version == version), None)

    def state_info(self, state: str) -> Optional[StateInfo]:
        return next((s for s in self._states if s.state == state), None)

    def is_version(self, token: str) -> bool:
        return self.version_info(token) is not None

    def is_state(self, token: str) -> bool:
        return self.state_info(token) is not None

    def is_known_token(self, token: str) -> bool:
        return self.is_version(token) or self.is_state(token)

    def is_released(self, version: str) -> bool:
        info = self.version_info(version)
        return info is not None and info.type == "released"

    def is_in_development(self, version: str) -> bool:
        info = self.version_info(version)
        return info is not None and info.type in ("beta", "alpha")

    def is_planned(self, version: str) -> bool:
        info = self.version_info(version)
        return info is not None and info.type == "planned"

    @property
    def production_version(self) -> str:
        """First released version, or the default version."""
        released = [v for v in self._versions if v.type == "released"]
        return released[0].version if released else self.default_version

    def docs_for(self, token: str) -> List[Dict[str, Any]]:
        """Documents registered under a version or state (``[]`` if unknown)."""
        return list(self._docs.get(token, []))

    def slugs_for(self, token: str) -> Set[str]:
        return {doc["slug"] for doc in self._docs.get(token, []) if doc.get("slug")}

    def doc_url(self, slug: str) -> str:
        """Clean URL for the production version, version-prefixed otherwise."""
        if self._current_version == self.production_version:
            return f"{self.docs_route_prefix}/{slug}"
        return f"{self.docs_route_prefix}/{self._current_version}/{slug}"
