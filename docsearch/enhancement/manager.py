"""Semantic enhancer lifecycle.

State machine::

    NOT_STARTED -> CHECKING_CAPABILITY -> LOADING -> READY | FAILED
    any state -> DISABLED   (user dismissal, terminal)

The lifecycle runs as one task started after a fixed delay. Dismissal
cancels that task and sets a flag that is checked before every
transition, so a load that completes after dismissal is never applied.
"""

import asyncio
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, List, Optional, Sequence

import numpy as np
import structlog

from ..exceptions import ModelLoadError
from ..models import SemanticMatch
from .capability import CapabilityGate, DeviceSignals
from .loader import EmbeddingModel, ModelLoader
from .similarity import score_similarities

logger = structlog.get_logger("semantic_enhancer")


class EnhancementState(str, Enum):
    """Lifecycle states of the semantic layer."""
    NOT_STARTED = "not_started"
    CHECKING_CAPABILITY = "checking_capability"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"
    DISABLED = "disabled"


@dataclass
class EnhancementProgress:
    """Notification payload for progress indicators."""

    state: EnhancementState
    progress: float
    message: str
    can_dismiss: bool

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "progress": self.progress,
            "message": self.message,
            "can_dismiss": self.can_dismiss,
        }


ProgressListener = Callable[[EnhancementProgress], None]

MESSAGE_NOT_STARTED = "AI enhancement not started"
MESSAGE_CHECKING = "Checking device capabilities..."
MESSAGE_LOADING = "Loading AI model for enhanced search..."
MESSAGE_DOWNLOADING = "Downloading AI model..."
MESSAGE_INITIALIZING = "AI model ready, initializing..."
MESSAGE_READY = "Smart search is now available!"
MESSAGE_FAILED = "AI enhancement failed - using standard search"
MESSAGE_DISMISSED = "AI enhancement dismissed by user"


class SemanticEnhancer:
    """Owns the embedding model and the enhancement state machine.

    Parameters
    - loader: ``ModelLoader`` used to fetch the embedding model
    - gate: ``CapabilityGate`` consulted once before loading
    - model_name: Model identifier passed to the loader
    - delay: Seconds to wait after ``start`` before checking capability
    - load_timeout: Upper bound on the model load, ``None`` for unbounded
    - ready_message_ttl: Seconds the "ready" message stays visible
    - threshold, min_boost, max_boost: Similarity cut-off and boost range
    - on_state_change: Optional hook called with every new state
    """

    def __init__(
        self,
        loader: ModelLoader,
        gate: Optional[CapabilityGate] = None,
        model_name: str = "sentence-transformers/all-MiniLM-L6-v2",
        delay: float = 3.0,
        load_timeout: Optional[float] = 120.0,
        ready_message_ttl: float = 3.0,
        threshold: float = 0.3,
        min_boost: float = 1.2,
        max_boost: float = 3.0,
        on_state_change: Optional[Callable[[EnhancementState], None]] = None,
    ):
        self.loader = loader
        self.gate = gate or CapabilityGate()
        self.model_name = model_name
        self.delay = delay
        self.load_timeout = load_timeout
        self.ready_message_ttl = ready_message_ttl
        self.threshold = threshold
        self.min_boost = min_boost
        self.max_boost = max_boost
        self.on_state_change = on_state_change

        self._model: Optional[EmbeddingModel] = None
        self._dismissed = False
        self._task: Optional[asyncio.Task] = None
        self._clear_handle: Optional[asyncio.TimerHandle] = None
        self._listeners: List[ProgressListener] = []
        self._progress = EnhancementProgress(
            state=EnhancementState.NOT_STARTED,
            progress=0,
            message=MESSAGE_NOT_STARTED,
            can_dismiss=False,
        )

    @property
    def state(self) -> EnhancementState:
        return self._progress.state

    @property
    def progress(self) -> EnhancementProgress:
        return replace(self._progress)

    @property
    def is_ready(self) -> bool:
        return self._progress.state is EnhancementState.READY and self._model is not None

    @property
    def is_dismissed(self) -> bool:
        return self._dismissed

    def subscribe(self, listener: ProgressListener) -> Callable[[], None]:
        """Register a progress listener; returns a function that removes it.

        The listener is called immediately with the current progress.
        """
        self._listeners.append(listener)
        self._notify(listener, self.progress)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def start(self, signals: Optional[DeviceSignals] = None) -> Optional[asyncio.Task]:
        """Schedule the lifecycle task; a no-op once started or dismissed."""
        if self._dismissed or self._task is not None:
            return self._task
        if self.state is not EnhancementState.NOT_STARTED:
            return None

        self._task = asyncio.create_task(self._run(signals))
        logger.info("Semantic enhancement scheduled", delay=self.delay, model_name=self.model_name)
        return self._task

    def dismiss(self) -> None:
        """Disable the semantic layer for the rest of the session."""
        if self.state is EnhancementState.DISABLED:
            return

        self._dismissed = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._cancel_clear()
        self._model = None
        self._update(EnhancementState.DISABLED, 0, MESSAGE_DISMISSED, False)
        logger.info("Semantic enhancement dismissed")

    async def close(self) -> None:
        """Cancel pending work and drop the model."""
        self._cancel_clear()
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._model = None

    async def generate_query_embedding(self, query: str) -> Optional[np.ndarray]:
        """Embed a query; ``None`` when not ready, empty, or on failure."""
        model = self._model
        if not self.is_ready or model is None or not query.strip():
            return None

        try:
            vectors = await asyncio.to_thread(model.encode, [query])
        except Exception as e:
            logger.warning("Failed to generate query embedding", error=str(e))
            return None

        if self._dismissed:
            return None
        return np.asarray(vectors, dtype=np.float64).reshape(1, -1)[0]

    def match_chunks(
        self,
        query_embedding: Optional[np.ndarray],
        chunk_ids: Sequence[str],
        matrix: Optional[np.ndarray],
    ) -> List[SemanticMatch]:
        """Chunks at or above the similarity threshold, most similar first.

        Returns ``[]`` when not ready, without embeddings, or when the query
        dimension does not match the corpus.
        """
        if not self.is_ready or query_embedding is None or matrix is None or not len(chunk_ids):
            return []

        if query_embedding.shape[-1] != matrix.shape[1]:
            logger.warning(
                "Query embedding dimension mismatch, skipping semantic scoring",
                query_dimension=int(query_embedding.shape[-1]),
                corpus_dimension=int(matrix.shape[1]),
            )
            return []

        return score_similarities(
            query_embedding,
            chunk_ids,
            matrix,
            threshold=self.threshold,
            min_boost=self.min_boost,
            max_boost=self.max_boost,
        )

    async def _run(self, signals: Optional[DeviceSignals]) -> None:
        await asyncio.sleep(self.delay)
        if self._dismissed:
            return

        self._update(EnhancementState.CHECKING_CAPABILITY, 10, MESSAGE_CHECKING, False)
        capability = self.gate.check(signals)
        if self._dismissed:
            return
        if not capability.is_supported:
            logger.warning("Semantic enhancement unsupported", reason=capability.reason)
            self._update(EnhancementState.FAILED, 0, capability.reason or "Device not supported", True)
            return

        self._update(EnhancementState.LOADING, 20, MESSAGE_LOADING, True)
        try:
            model = await self._load_model()
        except ModelLoadError as e:
            if self._dismissed:
                return
            logger.warning("Semantic enhancement failed", model_name=self.model_name, error=str(e))
            self._update(EnhancementState.FAILED, 0, MESSAGE_FAILED, True)
            return

        if self._dismissed:
            logger.info("Model load finished after dismissal, result ignored")
            return

        self._update(EnhancementState.LOADING, 95, MESSAGE_INITIALIZING, True)
        self._model = model
        self._update(EnhancementState.READY, 100, MESSAGE_READY, True)
        logger.info("Semantic enhancement ready", model_name=self.model_name)

        self._clear_handle = asyncio.get_running_loop().call_later(
            self.ready_message_ttl, self._clear_ready_message
        )

    async def _load_model(self) -> EmbeddingModel:
        self._update(EnhancementState.LOADING, 30, MESSAGE_DOWNLOADING, True)
        try:
            return await asyncio.wait_for(
                self.loader.load(self.model_name, self._on_load_progress),
                timeout=self.load_timeout,
            )
        except asyncio.TimeoutError as e:
            raise ModelLoadError(f"Model load timed out after {self.load_timeout}s") from e
        except Exception as e:
            raise ModelLoadError(f"AI model loading failed: {e}") from e

    def _on_load_progress(self, fraction: float, resource: str) -> None:
        if self._dismissed or self.state is not EnhancementState.LOADING:
            return
        fraction = max(0.0, min(1.0, fraction))
        progress = min(90.0, 30 + fraction * 60)
        self._update(
            EnhancementState.LOADING,
            progress,
            f"Loading: {resource} ({round(fraction * 100)}%)",
            True,
        )

    def _clear_ready_message(self) -> None:
        self._clear_handle = None
        if self.state is EnhancementState.READY:
            self._update(EnhancementState.READY, 100, "", False)

    def _cancel_clear(self) -> None:
        if self._clear_handle is not None:
            self._clear_handle.cancel()
            self._clear_handle = None

    def _update(self, state: EnhancementState, progress: float, message: str, can_dismiss: bool) -> None:
        previous = self._progress.state
        self._progress = EnhancementProgress(
            state=state,
            progress=progress,
            message=message,
            can_dismiss=can_dismiss,
        )
        if state is not previous and self.on_state_change is not None:
            self.on_state_change(state)
        for listener in list(self._listeners):
            self._notify(listener, self.progress)

    @staticmethod
    def _notify(listener: ProgressListener, progress: EnhancementProgress) -> None:
        try:
            listener(progress)
        except Exception as e:
            logger.warning("Progress listener failed", error=str(e))
