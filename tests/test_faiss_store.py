"""
FAISS-specific behaviour: per-namespace IndexIDMap2 indexes and label bookkeeping.
"""

import numpy as np
import pytest

from mcp_memory.core.schema import MemoryMetadata, MemoryTier
from mcp_memory.vector.faiss_store import FaissVectorStore
from mcp_memory.vector.types import VectorRecord


def make_record(record_id, value, namespace="u1:long"):
    vector = np.zeros(384, dtype=np.float32)
    vector[value] = 1.0
    return VectorRecord(
        id=record_id,
        namespace=namespace,
        vector=vector,
        metadata=MemoryMetadata(user_id="u1", tier=MemoryTier.LONG, content=record_id, created_at=1),
    )


def test_faiss_store_initialization():
    store = FaissVectorStore()
    assert store.dimension == 384
    assert store._indexes == {}


def test_one_index_per_namespace():
    store = FaissVectorStore()
    store.insert([make_record("a", 0), make_record("b", 1, namespace="u1:short")])
    assert set(store._indexes) == {"u1:long", "u1:short"}
    assert store._indexes["u1:long"].ntotal == 1


def test_delete_removes_from_index():
    store = FaissVectorStore()
    store.insert([make_record("a", 0), make_record("b", 1)])

    store.delete_by_ids(["a"])

    assert store._indexes["u1:long"].ntotal == 1
    assert "a" not in store._labels
    results = store.query(make_record("q", 0).vector, "u1:long", top_k=5)
    assert [r.id for r in results] == ["b"]
    assert results[0].score == pytest.approx(0.0)


def test_empty_namespace_index_is_dropped():
    store = FaissVectorStore()
    store.insert([make_record("a", 0)])
    store.delete_by_ids(["a"])
    assert "u1:long" not in store._indexes


def test_upsert_reuses_id_with_new_label():
    store = FaissVectorStore()
    store.insert([make_record("a", 0)])
    first_label = store._labels["a"]

    store.upsert([make_record("a", 2)])

    assert store._labels["a"] != first_label
    assert store._indexes["u1:long"].ntotal == 1
    assert store.query(make_record("q", 2).vector, "u1:long")[0].score == pytest.approx(1.0)


def test_top_k_larger_than_index():
    store = FaissVectorStore()
    store.insert([make_record("a", 0), make_record("b", 1)])
    assert len(store.query(make_record("q", 0).vector, "u1:long", top_k=50)) == 2


def test_upsert_with_repeated_id_keeps_last():
    store = FaissVectorStore()
    store.upsert([make_record("a", 0), make_record("a", 1)])

    assert store._indexes["u1:long"].ntotal == 1
    assert store.query(make_record("q", 0).vector, "u1:long", top_k=1)[0].score == pytest.approx(0.0)
    results = store.query(make_record("q", 1).vector, "u1:long", top_k=1)
    assert [r.id for r in results] == ["a"]
    assert results[0].score == pytest.approx(1.0)
