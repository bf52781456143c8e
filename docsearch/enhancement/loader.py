"""Embedding model loading.

The enhancer only depends on the two protocols below, so the
sentence-transformers backend can be swapped for any model that turns
text into fixed-length vectors.
"""

import asyncio
from typing import Callable, List, Protocol

import numpy as np
import structlog

logger = structlog.get_logger("embedding_loader")

# (fraction in [0, 1], resource name)
ProgressCallback = Callable[[float, str], None]


class EmbeddingModel(Protocol):
    """Turns texts into a ``(len(texts), dim)`` array."""

    def encode(self, texts: List[str]) -> np.ndarray:
        ...


class ModelLoader(Protocol):
    """Fetches and instantiates an embedding model."""

    async def load(self, model_name: str, on_progress: ProgressCallback) -> EmbeddingModel:
        ...


class SentenceTransformerModel:
    """Adapter over a ``SentenceTransformer`` with mean pooling and L2 normalization."""

    def __init__(self, model):
        self.model = model

    @property
    def dimension(self) -> int:
        return self.model.get_sentence_embedding_dimension()

    def encode(self, texts: List[str]) -> np.ndarray:
        return self.model.encode(
            texts,
            convert_to_numpy=True,
            normalize_embeddings=True,
            show_progress_bar=False,
        )


class SentenceTransformerLoader:
    """Loads sentence-transformers models off the event loop.

    sentence-transformers does not expose download progress, so progress is
    reported at the start and the end of the load.
    """

    def __init__(self, device: str = "cpu"):
        self.device = device

    async def load(self, model_name: str, on_progress: ProgressCallback) -> SentenceTransformerModel:
        # Imported here so the keyword-only path never pays for torch
        from sentence_transformers import SentenceTransformer

        on_progress(0.0, model_name)
        model = await asyncio.to_thread(SentenceTransformer, model_name, device=self.device)
        on_progress(1.0, model_name)

        wrapped = SentenceTransformerModel(model)
        logger.info(
            "Loaded embedding model",
            model_name=model_name,
            dimension=wrapped.dimension,
            device=self.device,
        )
        return wrapped
