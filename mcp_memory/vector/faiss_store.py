"""
FAISS-backed vector index: one IndexIDMap2(IndexFlatIP) per namespace.
Vectors are normalized before insertion, so inner product equals cosine similarity.
"""

import threading
from typing import Dict, Iterable, List
import numpy as np

from .types import VectorRecord, QueryResult
from .index import IVectorStore, normalize
from ..core.errors import VectorStoreFailure


class FaissVectorStore(IVectorStore):
    """FAISS-backed implementation of IVectorStore."""

    def __init__(self, dimension: int = 384):
        """
        Initialize FAISS vector store.

        Args:
            dimension: Dimension of the vectors (default: 384, matching the hash and MiniLM embeddings)
        """
        try:
            import faiss
        except ImportError:
            raise ImportError("FAISS not installed. Please install faiss-cpu package.")

        self.faiss = faiss
        self.dimension = dimension

        self._indexes = {}  # namespace -> faiss.IndexIDMap2
        self._records: Dict[str, VectorRecord] = {}  # record_id -> record
        self._labels: Dict[str, int] = {}  # record_id -> int64 faiss label
        self._label_ids: Dict[int, str] = {}  # faiss label -> record_id
        self._next_label = 0
        self._lock = threading.RLock()

    def _index_for(self, namespace: str):
        index = self._indexes.get(namespace)
        if index is None:
            index = self.faiss.IndexIDMap2(self.faiss.IndexFlatIP(self.dimension))
            self._indexes[namespace] = index
        return index

    def _add(self, records: List[VectorRecord]) -> None:
        # Repeated ids in one call collapse to the last occurrence
        latest: Dict[str, VectorRecord] = {}
        for record in records:
            if not record.namespace:
                raise VectorStoreFailure(f"Record '{record.id}' has no namespace")
            latest[record.id] = record
        prepared = [(record, normalize(record.vector, self.dimension)) for record in latest.values()]

        by_namespace: Dict[str, list] = {}
        for record, vec in prepared:
            self._remove(record.id)
            label = self._next_label
            self._next_label += 1
            self._labels[record.id] = label
            self._label_ids[label] = record.id
            self._records[record.id] = record
            by_namespace.setdefault(record.namespace, []).append((label, vec))

        for namespace, items in by_namespace.items():
            labels = np.array([label for label, _ in items], dtype=np.int64)
            vectors = np.vstack([vec for _, vec in items]).astype(np.float32)
            try:
                self._index_for(namespace).add_with_ids(vectors, labels)
            except RuntimeError as e:
                raise VectorStoreFailure(f"FAISS add failed for namespace '{namespace}': {e}") from e

    def _remove(self, record_id: str) -> bool:
        label = self._labels.pop(record_id, None)
        if label is None:
            return False
        record = self._records.pop(record_id)
        self._label_ids.pop(label, None)
        index = self._indexes.get(record.namespace)
        if index is not None:
            index.remove_ids(np.array([label], dtype=np.int64))
            if index.ntotal == 0:
                del self._indexes[record.namespace]
        return True

    def insert(self, records: List[VectorRecord]) -> None:
        with self._lock:
            ids = [r.id for r in records]
            duplicates = [i for i in ids if i in self._labels]
            if duplicates or len(set(ids)) != len(ids):
                raise VectorStoreFailure("Vector ids already present", {"ids": duplicates or ids})
            self._add(records)

    def upsert(self, records: List[VectorRecord]) -> None:
        with self._lock:
            self._add(records)

    def query(self, vector, namespace: str, top_k: int = 10, return_metadata: bool = True) -> List[QueryResult]:
        if top_k <= 0:
            return []
        with self._lock:
            index = self._indexes.get(namespace)
            if index is None or not index.ntotal:
                return []

            query_array = normalize(vector, self.dimension).reshape(1, -1)
            scores, labels = index.search(query_array, min(top_k, index.ntotal))

            results = []
            for score, label in zip(scores[0], labels[0]):
                record_id = self._label_ids.get(int(label))
                if record_id is None:
                    continue
                results.append(QueryResult(
                    id=record_id,
                    score=float(score),
                    metadata=self._records[record_id].metadata if return_metadata else None
                ))
            return results

    def delete_by_ids(self, ids: Iterable[str]) -> int:
        with self._lock:
            return sum(1 for record_id in list(ids) if self._remove(record_id))

    def list_ids(self, namespace: str) -> List[str]:
        with self._lock:
            return [rid for rid, record in self._records.items() if record.namespace == namespace]

    def get(self, ids: Iterable[str]) -> List[VectorRecord]:
        with self._lock:
            return [self._records[rid] for rid in ids if rid in self._records]

    def clear(self) -> None:
        """Clear all records from the FAISS store."""
        with self._lock:
            self._indexes.clear()
            self._records.clear()
            self._labels.clear()
            self._label_ids.clear()
            self._next_label = 0
