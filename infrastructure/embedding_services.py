# infrastructure/embedding_services.py
"""Embedding generation with L2 normalization for consistent distance ranking"""
import asyncio
import logging
import numpy as np
from typing import List, Optional
from sentence_transformers import SentenceTransformer

from core.exceptions import UpstreamUnavailableError
from core.interfaces import IEmbeddingService
from config import settings

logger = logging.getLogger(settings.LOGGER_NAME)

class SentenceTransformerEmbedding(IEmbeddingService):
    """
    Sentence transformer with L2 normalization (unit vectors).

    With unit vectors the L2 distance used by the SQL chunk store and the
    cosine distance used by ChromaDB rank results identically:
    ||a-b||² = 2(1 - cos(a,b)).
    """

    _model: Optional[SentenceTransformer] = None  # Singleton cache

    def __init__(self, model_name: str = "all-MiniLM-L6-v2"):
        """Initializes the service, loading the heavy model only once."""

        if SentenceTransformerEmbedding._model is None:
            try:
                logger.info(f"Attempting to load model {model_name} from local cache...")
                SentenceTransformerEmbedding._model = SentenceTransformer(
                    model_name,
                    local_files_only=True
                )
                logger.info(f"Successfully loaded {model_name} from local cache.")

            except Exception as e:
                logger.warning(
                    f"Model {model_name} not found in cache. Attempting online download. "
                    f"This may take a few minutes. Error: {e}"
                )
                SentenceTransformerEmbedding._model = SentenceTransformer(model_name)
                logger.info(f"Successfully downloaded and loaded {model_name}.")

        self.model = SentenceTransformerEmbedding._model

    def _l2_normalize(self, arr: np.ndarray) -> np.ndarray:
        """
        L2 normalize vectors to unit length (||v|| = 1).

        Args:
            arr: (N, D) array of N vectors with D dimensions

        Returns:
            (N, D) array of unit-normalized vectors
        """
        norms = np.linalg.norm(arr, axis=1, keepdims=True)
        norms[norms == 0] = 1e-12  # Avoid division by zero
        return arr / norms

    async def embed(self, text: str) -> List[float]:
        """Generate one L2-normalized embedding. One call per text, no batching."""
        try:
            raw = await asyncio.to_thread(
                self.model.encode,
                text,
                convert_to_tensor=False
            )
        except Exception as e:
            logger.error(f"[EMBED] Embedding failed: {e}")
            raise UpstreamUnavailableError(f"Embedding service failed: {e}") from e

        normalized = self._l2_normalize(
            np.array(raw, dtype="float32").reshape(1, -1)
        )
        return normalized[0].tolist()
