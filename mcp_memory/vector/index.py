"""
Vector index adapter interface and a numpy-backed in-memory implementation.
Namespace ('{user_id}:{tier}') is the only isolation boundary between users and tiers.
"""

import threading
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional
import numpy as np

from .types import VectorRecord, QueryResult
from ..core.errors import VectorStoreFailure


def normalize(vector, dimension: Optional[int] = None) -> np.ndarray:
    """Return a float32 unit vector, rejecting bad shapes and zero vectors."""
    array = np.asarray(vector, dtype=np.float32).reshape(-1)
    if array.size == 0:
        raise VectorStoreFailure("Empty vector")
    if dimension is not None and array.size != dimension:
        raise VectorStoreFailure(f"Vector dimension {array.size} does not match expected dimension {dimension}")
    norm = np.linalg.norm(array)
    if norm == 0 or not np.isfinite(norm):
        raise VectorStoreFailure("Vector has zero or non-finite norm")
    return array / norm


class IVectorStore(ABC):
    """Abstract interface for vector storage operations."""

    @abstractmethod
    def insert(self, records: List[VectorRecord]) -> None:
        """Add new records. Fails if any id is already present."""
        pass

    @abstractmethod
    def upsert(self, records: List[VectorRecord]) -> None:
        """Add or replace records by id."""
        pass

    @abstractmethod
    def query(self, vector, namespace: str, top_k: int = 10, return_metadata: bool = True) -> List[QueryResult]:
        """Nearest neighbours inside one namespace, best first."""
        pass

    @abstractmethod
    def delete_by_ids(self, ids: Iterable[str]) -> int:
        """Delete records by id. Returns how many were present."""
        pass

    @abstractmethod
    def list_ids(self, namespace: str) -> List[str]:
        """Every id stored in a namespace."""
        pass

    @abstractmethod
    def get(self, ids: Iterable[str]) -> List[VectorRecord]:
        """Fetch stored records; unknown ids are skipped."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Clear all records from the store."""
        pass


class SimpleInMemoryVectorStore(IVectorStore):
    """Simple in-memory implementation of IVectorStore using cosine similarity."""

    def __init__(self, dimension: Optional[int] = None):
        self.dimension = dimension
        self._namespaces: Dict[str, Dict[str, VectorRecord]] = {}  # namespace -> id -> record
        self._index: Dict[str, np.ndarray] = {}  # record_id -> normalized vector
        self._id_namespace: Dict[str, str] = {}  # record_id -> namespace
        self._lock = threading.RLock()

    def _prepare(self, records: List[VectorRecord]) -> List[np.ndarray]:
        dimension = self.dimension
        normalized = []
        for record in records:
            if not record.namespace:
                raise VectorStoreFailure(f"Record '{record.id}' has no namespace")
            vec = normalize(record.vector, dimension)
            dimension = vec.size
            normalized.append(vec)
        # Only fix the dimension once the whole batch is accepted
        self.dimension = dimension
        return normalized

    def _store(self, record: VectorRecord, normalized: np.ndarray) -> None:
        self._remove(record.id)
        self._namespaces.setdefault(record.namespace, {})[record.id] = record
        self._index[record.id] = normalized
        self._id_namespace[record.id] = record.namespace

    def _remove(self, record_id: str) -> bool:
        namespace = self._id_namespace.pop(record_id, None)
        if namespace is None:
            return False
        self._index.pop(record_id, None)
        bucket = self._namespaces.get(namespace, {})
        bucket.pop(record_id, None)
        if not bucket:
            self._namespaces.pop(namespace, None)
        return True

    def insert(self, records: List[VectorRecord]) -> None:
        with self._lock:
            ids = [r.id for r in records]
            duplicates = [i for i in ids if i in self._id_namespace]
            if duplicates or len(set(ids)) != len(ids):
                raise VectorStoreFailure("Vector ids already present", {"ids": duplicates or ids})
            normalized = self._prepare(records)
            for record, vec in zip(records, normalized):
                self._store(record, vec)

    def upsert(self, records: List[VectorRecord]) -> None:
        with self._lock:
            normalized = self._prepare(records)
            for record, vec in zip(records, normalized):
                self._store(record, vec)

    def query(self, vector, namespace: str, top_k: int = 10, return_metadata: bool = True) -> List[QueryResult]:
        if top_k <= 0:
            return []
        with self._lock:
            bucket = self._namespaces.get(namespace)
            if not bucket:
                return []

            query_vec = normalize(vector, self.dimension)
            ids = list(bucket.keys())
            matrix = np.vstack([self._index[i] for i in ids])
            similarities = matrix @ query_vec

            # Stable: equal scores keep insertion order
            order = sorted(range(len(ids)), key=lambda i: -similarities[i])[:top_k]
            return [
                QueryResult(
                    id=ids[i],
                    score=float(similarities[i]),
                    metadata=bucket[ids[i]].metadata if return_metadata else None
                )
                for i in order
            ]

    def delete_by_ids(self, ids: Iterable[str]) -> int:
        with self._lock:
            return sum(1 for record_id in list(ids) if self._remove(record_id))

    def list_ids(self, namespace: str) -> List[str]:
        with self._lock:
            return list(self._namespaces.get(namespace, {}).keys())

    def get(self, ids: Iterable[str]) -> List[VectorRecord]:
        with self._lock:
            found = []
            for record_id in ids:
                namespace = self._id_namespace.get(record_id)
                if namespace is not None:
                    found.append(self._namespaces[namespace][record_id])
            return found

    def clear(self) -> None:
        with self._lock:
            self._namespaces.clear()
            self._index.clear()
            self._id_namespace.clear()
