"""Test doubles and sample data shared across the test suite."""

import asyncio
import json
import math
from typing import Any, Callable, Dict, List, Optional

import httpx
import numpy as np
from redis.exceptions import ConnectionError as RedisConnectionError

from docsearch.enhancement.capability import CapabilityGate, DeviceSignals
from docsearch.enhancement.manager import SemanticEnhancer


class FakeRedis:
    """In-memory stand-in for ``redis.asyncio.Redis`` (get/set/delete)."""

    def __init__(self):
        self.store: Dict[str, Any] = {}
        self.expiry: Dict[str, Optional[int]] = {}
        self.fail = False
        self.closed = False

    def _check(self):
        if self.fail:
            raise RedisConnectionError("redis unavailable")

    async def get(self, key):
        self._check()
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        self._check()
        self.store[key] = value.encode() if isinstance(value, str) else value
        self.expiry[key] = ex
        return True

    async def delete(self, *keys):
        self._check()
        deleted = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                deleted += 1
        return deleted

    async def aclose(self):
        self.closed = True


class FakeEmbeddingModel:
    """Maps known texts to fixed vectors; anything else gets ``default``."""

    def __init__(self, vectors: Optional[Dict[str, List[float]]] = None, default: Optional[List[float]] = None):
        self.vectors = vectors or {}
        self.default = default or [0.0, 0.0, 1.0]
        self.calls: List[List[str]] = []

    def encode(self, texts: List[str]) -> np.ndarray:
        self.calls.append(list(texts))
        return np.asarray([self.vectors.get(text, self.default) for text in texts], dtype=np.float64)


class FakeLoader:
    """Model loader that reports progress and can be told to fail or block."""

    def __init__(
        self,
        model: Optional[FakeEmbeddingModel] = None,
        error: Optional[Exception] = None,
        gate: Optional[asyncio.Event] = None,
    ):
        self.model = model or FakeEmbeddingModel()
        self.error = error
        self.gate = gate
        self.calls: List[str] = []

    async def load(self, model_name: str, on_progress: Callable[[float, str], None]):
        self.calls.append(model_name)
        on_progress(0.5, "model.onnx")
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        on_progress(1.0, "model.onnx")
        return self.model


def capable_signals() -> DeviceSignals:
    return DeviceSignals(has_webassembly=True, device_memory_gb=8.0, effective_type="4g", downlink_mbps=10.0)


def make_enhancer(loader: FakeLoader, signals: Optional[DeviceSignals] = None, **kwargs) -> SemanticEnhancer:
    signals = signals or capable_signals()
    kwargs.setdefault("delay", 0)
    kwargs.setdefault("ready_message_ttl", 60)
    return SemanticEnhancer(
        loader=loader,
        gate=CapabilityGate(min_memory_gb=2.0, signals_provider=lambda: signals),
        **kwargs,
    )


# Unit vectors at a known cosine similarity to QUERY_VECTOR
QUERY_VECTOR = [1.0, 0.0, 0.0]


def vector_at(similarity: float) -> List[float]:
    return [similarity, math.sqrt(1.0 - similarity ** 2), 0.0]


SAMPLE_DOCUMENTS: List[Dict[str, Any]] = [
    {
        "type": "document",
        "slug": "getting-started",
        "title": "Getting Started",
        "category": "Guides",
        "url": "/docs/getting-started",
        "chunks": [
            {
                "id": "getting-started-chunk-0",
                "text": "Install the CLI and run init to scaffold a project.",
                "preview": "Install the CLI and run init...",
                "startIndex": 0,
            },
            {
                "id": "getting-started-chunk-1",
                "text": "Configuration lives in a single file next to the project.",
                "preview": "Configuration lives in a single file...",
                "startIndex": 52,
            },
        ],
    },
    {
        "type": "document",
        "slug": "configuration",
        "title": "Configuration",
        "category": "Reference",
        "url": "/docs/configuration",
        "chunks": [
            {
                "id": "configuration-chunk-0",
                "text": "Every option can be overridden with environment variables.",
                "preview": "Every option can be overridden...",
                "startIndex": 0,
            },
        ],
    },
    {
        "type": "document",
        "slug": "v2.0.0/getting-started",
        "title": "Getting Started",
        "category": "Guides",
        "url": "/docs/v2.0.0/getting-started",
        "chunks": [
            {
                "id": "v2.0.0/getting-started-chunk-0",
                "text": "Install the new CLI with the package manager.",
                "preview": "Install the new CLI...",
                "startIndex": 0,
            },
        ],
    },
    {
        "type": "document",
        "slug": "drafts/plugins",
        "title": "Plugins",
        "category": "Drafts",
        "url": "/docs/drafts/plugins",
        "chunks": [
            {
                "id": "drafts/plugins-chunk-0",
                "text": "Plugins will let you install extensions from the CLI.",
                "preview": "Plugins will let you install extensions...",
                "startIndex": 0,
            },
        ],
    },
    {
        "type": "document",
        "slug": "drafts/_folder",
        "title": "Drafts",
        "category": "Drafts",
        "url": "/docs/drafts",
        "chunks": [
            {
                "id": "drafts/_folder-chunk-0",
                "text": "Draft pages about the CLI install flow.",
                "preview": "Draft pages...",
                "startIndex": 0,
            },
        ],
    },
]

VERSIONED_INDEX: List[Dict[str, Any]] = [
    {
        "version": "v2.0.0",
        "metadata": {"status": "beta", "theme": "Plugins"},
        "docs": [{"slug": "v2.0.0/getting-started"}],
    },
    {
        "version": "v1.0.0",
        "metadata": {"status": "released", "theme": "Foundations", "releaseDate": "2024-01-15"},
        "docs": [{"slug": "getting-started"}, {"slug": "configuration"}],
    },
    {
        "version": "v3.0.0",
        "metadata": {"status": "someday"},
        "docs": [],
    },
    {
        "state": "drafts",
        "metadata": {"description": "Work in progress"},
        "docs": [{"slug": "drafts/plugins"}, {"slug": "drafts/_folder"}],
    },
    {
        "state": "proposals",
        "metadata": {},
        "docs": [],
    },
]


def json_transport(routes: Dict[str, Any], calls: Optional[List[str]] = None) -> httpx.MockTransport:
    """MockTransport serving ``routes`` (path suffix -> JSON payload or status code)."""

    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request.url.path)
        for suffix, payload in routes.items():
            if request.url.path.endswith(suffix):
                if isinstance(payload, int):
                    return httpx.Response(payload)
                if isinstance(payload, str):
                    return httpx.Response(200, content=payload.encode())
                return httpx.Response(200, content=json.dumps(payload).encode())
        return httpx.Response(404)

    return httpx.MockTransport(handler)


