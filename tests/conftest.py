"""
Shared fixtures: a temp SQLite database, a controllable clock and a keyword
embedding whose cosine similarities are known in advance.
"""

import numpy as np
import pytest

from mcp_memory.core.coordinator import MemoryCoordinator
from mcp_memory.core.dao import MemoryDAO
from mcp_memory.core.ranking import RankingConfig
from mcp_memory.vector.embeddings import IEmbeddingProvider
from mcp_memory.vector.index import SimpleInMemoryVectorStore

T0 = 1_700_000_000_000

# Concept vectors (4 dims). cos(tea, beverage) = 0.9, cos(tea, coffee) = 0.6,
# hiking and sql are orthogonal to the drinks and to each other.
CONCEPTS = {
    "beverage": [0.9, 0.43588989, 0.0, 0.0],
    "coffee": [0.6, 0.8, 0.0, 0.0],
    "tea": [1.0, 0.0, 0.0, 0.0],
    "hiking": [0.0, 0.0, 1.0, 0.0],
    "sql": [0.0, 0.0, 0.0, 1.0],
}


class KeywordEmbedding(IEmbeddingProvider):
    """Maps a text to the vector of the first concept keyword it contains."""

    def __init__(self, concepts=None):
        self.concepts = concepts or CONCEPTS
        self.calls = []

    def _embed_batch(self, texts):
        self.calls.append(list(texts))
        vectors = []
        for text in texts:
            lowered = text.lower()
            match = next((k for k in self.concepts if k in lowered), None)
            if match is None:
                raise KeyError(f"no concept keyword in {text!r}")
            vectors.append(np.array(self.concepts[match], dtype=np.float32))
        return vectors

    def get_dimension(self):
        return 4


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, now=T0):
        self.start = now
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "memory.db")


@pytest.fixture
def dao(db_path):
    return MemoryDAO(db_path)


@pytest.fixture
def vector_store():
    return SimpleInMemoryVectorStore(dimension=4)


@pytest.fixture
def embedder():
    return KeywordEmbedding()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def coordinator(dao, vector_store, embedder, clock):
    return MemoryCoordinator(dao, vector_store, embedder, config=RankingConfig(), clock=clock)
