"""
Embedding Service

Local embedding generation using sentence-transformers.

Model: google/embeddinggemma-300m
- 768 dimensions
- Separate "query" and "document" prompts for asymmetric retrieval
- Free (no API costs)

The model is CPU/GPU bound, so every encode call runs in a worker thread
via asyncio.to_thread and never blocks the event loop.
"""

import asyncio
import logging
from typing import Literal, Optional

import numpy as np
import torch
from sentence_transformers import SentenceTransformer

from contentvault.core.config import settings
from contentvault.core.exceptions import OracleFailure

logger = logging.getLogger(__name__)

EmbedMode = Literal["document", "query"]


class EmbeddingService:
    """
    Service for generating embeddings using sentence-transformers.

    Usage:
    ------
    embedder = EmbeddingService()
    await embedder.initialize()

    doc_vector = await embedder.embed("Title: React hooks ...", mode="document")
    query_vector = await embedder.embed("What are React hooks?", mode="query")
    """

    def __init__(
        self,
        model_name: Optional[str] = None,
        batch_size: Optional[int] = None,
        device: Optional[str] = None,
        normalize: bool = True
    ):
        """
        Args:
            model_name: Model name/path (default from settings)
            batch_size: Batch size for processing (default from settings)
            device: Device to use: cpu, cuda, mps (default from settings)
            normalize: Whether to normalize embeddings (default True)
        """
        self.model_name = model_name or settings.EMBEDDING_MODEL
        self.batch_size = batch_size or settings.EMBEDDING_BATCH_SIZE
        self.device = device or settings.EMBEDDING_DEVICE
        self.normalize = normalize

        self.model: Optional[SentenceTransformer] = None
        self._initialized = False

        self._validate_device()

    def _validate_device(self) -> None:
        """Fall back to CPU when the requested accelerator is missing."""
        if self.device == "cuda" and not torch.cuda.is_available():
            logger.warning("CUDA not available, falling back to CPU")
            self.device = "cpu"
        elif self.device == "mps" and not torch.backends.mps.is_available():
            logger.warning("MPS not available, falling back to CPU")
            self.device = "cpu"

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """
        Load the model (downloads it on first use).

        Raises:
            OracleFailure: If model loading fails
        """
        if self._initialized:
            return

        try:
            logger.info(f"Loading embedding model: {self.model_name} on {self.device}")
            self.model = await asyncio.to_thread(
                SentenceTransformer,
                self.model_name,
                device=self.device
            )
            self._initialized = True
            logger.info(
                f"Embedding model loaded. "
                f"Dimension: {self.get_embedding_dimension()}, "
                f"Device: {self.device}"
            )
        except Exception as e:
            logger.error(f"Failed to load embedding model: {e}")
            raise OracleFailure(f"Failed to load embedding model: {e}") from e

    def get_embedding_dimension(self) -> int:
        if self.model is None:
            return settings.EMBEDDING_DIMENSION
        return self.model.get_sentence_embedding_dimension()

    def _prompt_name(self, mode: EmbedMode) -> Optional[str]:
        # Models without configured prompts embed queries and documents alike
        prompts = getattr(self.model, "prompts", None) or {}
        return mode if mode in prompts else None

    async def embed(self, text: str, mode: EmbedMode = "document") -> list[float]:
        """
        Embed a single text.

        Args:
            text: Text to embed
            mode: "document" for indexed content, "query" for search queries

        Returns:
            Embedding vector as a list of floats

        Raises:
            OracleFailure: If the service is not initialized, the text is
                empty or the model call fails
        """
        if not self._initialized:
            raise OracleFailure("Embedding service not initialized. Call initialize() first.")

        if not text or not text.strip():
            raise OracleFailure("Cannot embed empty text")

        try:
            embedding = await asyncio.to_thread(self._encode, text, mode)
        except Exception as e:
            logger.error(f"Error generating {mode} embedding: {e}")
            raise OracleFailure(f"Embedding generation failed: {e}") from e

        return embedding.tolist()

    def _encode(self, text: str, mode: EmbedMode) -> np.ndarray:
        """Runs in a worker thread."""
        return self.model.encode(
            text,
            prompt_name=self._prompt_name(mode),
            batch_size=self.batch_size,
            normalize_embeddings=self.normalize,
            show_progress_bar=False,
            convert_to_numpy=True,
        )

    async def shutdown(self) -> None:
        """Free the model (and the CUDA cache when on GPU)."""
        if self.model is not None:
            if self.device == "cuda":
                torch.cuda.empty_cache()
            del self.model
            self.model = None

        self._initialized = False
        logger.info("Embedding service shut down")
