"""
Embedding providers. Texts are trimmed before embedding, and every provider
returns exactly one finite, fixed-length vector per input or raises EmbeddingFailure.
"""

from abc import ABC, abstractmethod
import hashlib
from typing import List, Union
import numpy as np

from ..core.errors import EmbeddingFailure


class IEmbeddingProvider(ABC):
    """Abstract interface for embedding providers."""

    @abstractmethod
    def _embed_batch(self, texts: List[str]) -> List:
        """Raw model call for already-cleaned texts."""
        pass

    @abstractmethod
    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        pass

    def generate_embeddings(self, texts: Union[str, List[str]]) -> List[np.ndarray]:
        """Embed one or many texts; output order matches input order."""
        inputs = [texts] if isinstance(texts, str) else list(texts)
        if not inputs:
            raise EmbeddingFailure("No texts to embed")
        cleaned = [t.strip() for t in inputs]

        try:
            raw = self._embed_batch(cleaned)
        except EmbeddingFailure:
            raise
        except Exception as e:
            raise EmbeddingFailure(f"Embedding generation failed: {e}") from e

        if raw is None or len(raw) != len(cleaned):
            raise EmbeddingFailure(
                "Embedding generation failed",
                {"expected": len(cleaned), "received": 0 if raw is None else len(raw)}
            )

        vectors = []
        for vector in raw:
            array = np.asarray(vector, dtype=np.float32).reshape(-1)
            if array.size == 0 or not np.all(np.isfinite(array)):
                raise EmbeddingFailure("Invalid embedding vector")
            vectors.append(array)
        return vectors

    def embed_text(self, text: str) -> np.ndarray:
        """Generate embedding vector for given text."""
        return self.generate_embeddings([text])[0]


class DeterministicHashEmbedding(IEmbeddingProvider):
    """Deterministic hash-based embedding provider for offline use and tests.

    The SHA-256 of the text seeds a Gaussian draw, so identical text always maps
    to the same vector (cosine 1.0) while unrelated texts land near-orthogonal.
    It carries no semantic meaning.
    """

    def __init__(self, dimension: int = 384):
        self.dimension = dimension

    def _embed_batch(self, texts: List[str]) -> List[np.ndarray]:
        vectors = []
        for text in texts:
            digest = hashlib.sha256(text.encode("utf-8")).digest()
            rng = np.random.default_rng(int.from_bytes(digest[:8], "big"))
            vectors.append(rng.standard_normal(self.dimension).astype(np.float32))
        return vectors

    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        return self.dimension


class SentenceTransformerEmbedding(IEmbeddingProvider):
    """Sentence transformers embedding provider using pre-trained models.

    Defaults to all-MiniLM-L6-v2 (384 dimensions). The model is loaded on first use.
    """

    def __init__(self, model_name: str = "all-MiniLM-L6-v2"):
        self.model_name = model_name
        self._model = None
        self._dimension = None

    @property
    def model(self):
        if self._model is None:
            from sentence_transformers import SentenceTransformer
            self._model = SentenceTransformer(self.model_name)
        return self._model

    def _embed_batch(self, texts: List[str]) -> List[np.ndarray]:
        embeddings = self.model.encode(texts, convert_to_numpy=True, normalize_embeddings=True)
        return list(embeddings)

    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        if self._dimension is None:
            self._dimension = self.model.get_sentence_embedding_dimension()
        return self._dimension
