"""
Rebuilding the vector overlay from canonical SQLite rows, via the library
function and the command-line script.
"""

import pytest
from unittest.mock import patch

from mcp_memory.core.errors import EmbeddingFailure
from mcp_memory.core.rebuild import rebuild_index
from mcp_memory.vector.index import SimpleInMemoryVectorStore
from scripts.rebuild_index import main


@pytest.fixture
def seeded(coordinator):
    """Three users' memories written through the coordinator, then the overlay wiped."""
    coordinator.write("User prefers tea", "u1", "long")
    coordinator.write("User likes hiking", "u1", "short")
    coordinator.write("User drinks coffee", "u2", "long")
    coordinator.vector_store.clear()
    return coordinator


def test_rebuild_restores_every_namespace(seeded, dao, vector_store, embedder):
    summary = rebuild_index(dao, vector_store, embedder)

    assert (summary.users, summary.rows, summary.embedded, summary.failed_ids) == (2, 3, 3, [])
    assert len(vector_store.list_ids("u1:long")) == 1
    assert len(vector_store.list_ids("u1:short")) == 1
    assert len(vector_store.list_ids("u2:long")) == 1
    assert [r.content for r in seeded.search("beverage", "u1", "long")] == ["User prefers tea"]


def test_rebuild_single_user(seeded, dao, vector_store, embedder):
    summary = rebuild_index(dao, vector_store, embedder, user_id="u2")
    assert (summary.users, summary.rows) == (1, 1)
    assert vector_store.list_ids("u1:long") == []


def test_rebuild_is_idempotent(seeded, dao, vector_store, embedder):
    rebuild_index(dao, vector_store, embedder)
    summary = rebuild_index(dao, vector_store, embedder)
    assert summary.embedded == 3
    assert len(vector_store.list_ids("u1:long")) == 1


def test_rebuild_batches_embedding_calls(seeded, dao, vector_store, embedder):
    embedder.calls.clear()
    rebuild_index(dao, vector_store, embedder, user_id="u1", batch_size=1)
    assert len(embedder.calls) == 2


def test_failed_batch_is_reported(seeded, dao, embedder):
    store = SimpleInMemoryVectorStore(dimension=4)
    with patch.object(embedder, "generate_embeddings", side_effect=EmbeddingFailure("model offline")):
        summary = rebuild_index(dao, store, embedder, user_id="u1")

    assert summary.embedded == 0
    assert len(summary.failed_ids) == 2


def test_rebuild_script_successful(capfd, seeded):
    with patch("scripts.rebuild_index.get_coordinator", return_value=seeded):
        main([])

    captured = capfd.readouterr()
    assert "Starting vector index rebuild..." in captured.out
    assert "Found 3 memories for 2 user(s) in canonical store" in captured.out
    assert "✓ Successfully rebuilt index with 3 vectors" in captured.out
    assert "Index rebuild complete!" in captured.out
    assert "Drift audit" not in captured.out


def test_rebuild_script_empty_store(capfd, coordinator):
    with patch("scripts.rebuild_index.get_coordinator", return_value=coordinator):
        main([])

    captured = capfd.readouterr()
    assert "Found 0 memories for 0 user(s) in canonical store" in captured.out
    assert "No entries to rebuild. Exiting." in captured.out
    assert "Index rebuild complete!" not in captured.out


def test_rebuild_script_with_drift_check(capfd, seeded, dao):
    dropped = dao.get_all_memories("u1", "long")[0].id

    def rebuild_then_drop(*args, **kwargs):
        # Row removed behind the overlay's back leaves one orphaned vector
        summary = rebuild_index(*args, **kwargs)
        dao.delete_memory(dropped, "u1")
        return summary

    with patch("scripts.rebuild_index.get_coordinator", return_value=seeded), \
         patch("scripts.rebuild_index.rebuild_index", side_effect=rebuild_then_drop), \
         patch("mcp_memory.core.drift_rules.get_correction_mode", return_value="apply"), \
         patch("scripts.rebuild_index.get_correction_mode", return_value="apply"):
        main(["--user-id", "u1", "--check"])

    captured = capfd.readouterr()
    assert "Found 2 memories for 1 user(s) in canonical store" in captured.out
    assert "Drift audit found 1 finding(s)" in captured.out
    assert "✓ Corrections (apply): 1/1 applied" in captured.out
    assert seeded.vector_store.list_ids("u1:long") == []


def test_rebuild_script_service_unavailable(capfd):
    with patch("scripts.rebuild_index.get_coordinator", side_effect=ValueError("bad config")):
        with pytest.raises(SystemExit) as exc:
            main([])

    assert exc.value.code == 1
    assert "ERROR: Memory service unavailable: bad config" in capfd.readouterr().out
