"""
Environment-driven configuration and provider selection.
"""

import pytest
from unittest.mock import patch

from mcp_memory.core import config
from mcp_memory.core.ranking import RankingConfig
from mcp_memory.vector.embeddings import DeterministicHashEmbedding
from mcp_memory.vector.faiss_store import FaissVectorStore
from mcp_memory.vector.index import SimpleInMemoryVectorStore


def test_default_config_is_valid():
    assert config.validate_config() == []


def test_ranking_config_from_defaults():
    assert config.get_ranking_config() == RankingConfig()


def test_default_providers():
    assert isinstance(config.get_embedding_provider(), DeterministicHashEmbedding)
    assert isinstance(config.get_vector_store(), SimpleInMemoryVectorStore)


def test_faiss_provider_selected():
    with patch.object(config, "VECTOR_PROVIDER", "faiss"):
        store = config.get_vector_store(dimension=8)
    assert isinstance(store, FaissVectorStore)
    assert store.dimension == 8


@pytest.mark.parametrize("name, value", [
    ("VECTOR_PROVIDER", "pinecone"),
    ("EMBED_PROVIDER", "openai"),
    ("CORRECTION_MODE", "auto"),
    ("DRIFT_RULESET", "loose"),
    ("BATCH_WRITE_MAX", 0),
    ("SEARCH_THRESHOLD", 3.0),
])
def test_invalid_settings_reported(name, value):
    with patch.object(config, name, value):
        issues = config.validate_config()
    assert len(issues) == 1


def test_debug_enabled(monkeypatch):
    monkeypatch.setenv("DEBUG", "true")
    assert config.debug_enabled() is True
    monkeypatch.setenv("DEBUG", "no")
    assert config.debug_enabled() is False


def test_ensure_db_directory(tmp_path):
    target = tmp_path / "nested" / "dir" / "memory.db"
    config.ensure_db_directory(str(target))
    assert target.parent.is_dir()
