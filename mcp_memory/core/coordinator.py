"""
Memory coordinator - the only entry point callers use.

Keeps each canonical SQLite row and its vector entry in step, merges
near-duplicate writes into the existing memory, and ranks search hits by
semantic similarity plus a recency boost.

Known races, accepted: two concurrent writes of near-identical content in the
same namespace can both miss each other's dedup check and create two memories.
"""

import time
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional, Union

from . import ranking
from .config import BATCH_WRITE_MAX
from .dao import MemoryDAO
from .errors import NotFound, VectorStoreFailure
from .ranking import RankingConfig
from .saga import SagaStep, run_saga
from .schema import (
    BatchEntry, MemoryMetadata, MemoryRecord, MemoryResult, MemoryStats, MemoryTier,
    namespace_for, new_memory_id,
)
from ..vector.embeddings import IEmbeddingProvider
from ..vector.index import IVectorStore
from ..vector.types import QueryResult, VectorRecord
from ..util.logging import logger


def _now_ms() -> int:
    return int(time.time() * 1000)


def _require_content(content: str, field: str = "content") -> str:
    if content is None or not str(content).strip():
        raise ValueError(f"{field} cannot be empty")
    return str(content).strip()


def _require_user(user_id: str) -> str:
    if not user_id or not user_id.strip():
        raise ValueError("user_id cannot be empty")
    return user_id


def _check_importance(importance: Optional[float]) -> Optional[float]:
    if importance is not None and not 0.0 <= importance <= 1.0:
        raise ValueError(f"importance must be within [0, 1], got {importance}")
    return importance


class MemoryCoordinator:
    """Orchestrates writes, updates, deletes and searches across both stores."""

    def __init__(self, dao: MemoryDAO, vector_store: IVectorStore,
                 embedding_provider: IEmbeddingProvider, config: RankingConfig = None,
                 clock: Callable[[], int] = None, batch_max: int = BATCH_WRITE_MAX):
        self.dao = dao
        self.vector_store = vector_store
        self.embedding_provider = embedding_provider
        self.config = config or RankingConfig()
        self.clock = clock or _now_ms
        self.batch_max = batch_max

    # Helpers

    def _config(self, config: Optional[RankingConfig]) -> RankingConfig:
        return config or self.config

    def _vector_call(self, operation: str, fn: Callable[[], Any]) -> Any:
        """Run a vector-store call, surfacing any error as VectorStoreFailure."""
        try:
            return fn()
        except VectorStoreFailure:
            raise
        except Exception as e:
            raise VectorStoreFailure(f"Vector {operation} failed: {e}") from e

    def _next_timestamp(self, prior: MemoryRecord) -> int:
        """Current time, bumped so updated_at strictly increases per memory."""
        floor = max(prior.created_at, prior.updated_at or 0)
        return max(self.clock(), floor + 1)

    def _nearest(self, vector, namespace: str) -> Optional[QueryResult]:
        matches = self._vector_call(
            "query", lambda: self.vector_store.query(vector, namespace, top_k=1, return_metadata=True)
        )
        return matches[0] if matches else None

    def _replace_content(self, saga: str, prior: MemoryRecord, content: str, vector,
                         importance: Optional[float] = None, source: Optional[str] = None) -> MemoryRecord:
        """Re-point an existing memory at new content.

        The vector upsert runs first and the canonical row is written last, so a
        vector failure leaves both stores as they were. If the row write fails,
        the previous vector entry is restored.
        """
        now = self._next_timestamp(prior)
        updated = replace(
            prior,
            content=content,
            updated_at=now,
            importance=importance if importance is not None else prior.importance,
            source=source if source is not None else prior.source,
        )
        entry = VectorRecord(
            id=prior.id,
            namespace=namespace_for(prior.user_id, prior.tier),
            vector=vector,
            metadata=MemoryMetadata.from_record(updated),
        )
        previous = self._vector_call("get", lambda: self.vector_store.get([prior.id]))

        def restore_vector():
            if previous:
                self.vector_store.upsert(previous)
            else:
                self.vector_store.delete_by_ids([prior.id])

        run_saga(saga, [
            SagaStep(
                "upsert_vector",
                lambda: self._vector_call("upsert", lambda: self.vector_store.upsert([entry])),
                restore_vector,
            ),
            SagaStep(
                "update_row",
                lambda: self.dao.update_memory(prior.id, prior.user_id, content, now,
                                               importance=importance, source=source),
            ),
        ])
        return updated

    # Caller-facing operations

    def write(self, content: str, user_id: str, tier: Union[MemoryTier, str],
              importance: Optional[float] = None, source: Optional[str] = None,
              config: Optional[RankingConfig] = None, memory_id: Optional[str] = None) -> str:
        """Store a memory, or merge it into a near-identical one. Returns the memory id."""
        content = _require_content(content)
        user_id = _require_user(user_id)
        tier = MemoryTier.parse(tier)
        _check_importance(importance)
        cfg = self._config(config)
        namespace = namespace_for(user_id, tier)

        vector = self.embedding_provider.embed_text(content)

        match = self._nearest(vector, namespace)
        if match is not None and match.score >= cfg.duplicate_threshold:
            prior = self.dao.get_memory_by_id(match.id, user_id)
            if prior is not None:
                self._replace_content("write.merge", prior, content, vector, importance, source)
                logger.log_memory_operation("write", prior.id, user_id, content=content, details={
                    "deduplicated": True, "score": round(match.score, 4)
                })
                return prior.id

            # Vector without a canonical row: drop it and store fresh
            logger.log_vector_operation("orphan_removed", match.id, {"namespace": namespace}, status="skipped")
            self._vector_call("delete", lambda: self.vector_store.delete_by_ids([match.id]))

        record = MemoryRecord(
            id=memory_id or new_memory_id(user_id, tier),
            user_id=user_id,
            tier=tier,
            content=content,
            created_at=self.clock(),
            importance=importance if importance is not None else 0.0,
            source=source,
        )
        entry = VectorRecord(
            id=record.id,
            namespace=namespace,
            vector=vector,
            metadata=MemoryMetadata.from_record(record),
        )

        run_saga("write", [
            SagaStep(
                "create_row",
                lambda: self.dao.create_memory(record),
                lambda: self.dao.delete_memory(record.id, user_id),
            ),
            SagaStep(
                "insert_vector",
                lambda: self._vector_call("insert", lambda: self.vector_store.insert([entry])),
            ),
        ])

        logger.log_memory_operation("write", record.id, user_id, content=content,
                                    details={"deduplicated": False, "tier": tier.value})
        return record.id

    def batch_write(self, entries: List[Union[BatchEntry, Dict[str, Any]]], user_id: str) -> List[str]:
        """Store 1..batch_max memories as one all-or-nothing unit. No dedup."""
        user_id = _require_user(user_id)
        if not entries or len(entries) > self.batch_max:
            raise ValueError(f"batch_write accepts 1 to {self.batch_max} entries, got {len(entries or [])}")

        now = self.clock()
        records = []
        for raw in entries:
            entry = raw if isinstance(raw, BatchEntry) else BatchEntry(**raw)
            tier = MemoryTier.parse(entry.tier)
            _check_importance(entry.importance)
            records.append(MemoryRecord(
                id=entry.id or new_memory_id(user_id, tier),
                user_id=user_id,
                tier=tier,
                content=_require_content(entry.content),
                created_at=now,
                importance=entry.importance if entry.importance is not None else 0.0,
                source=entry.source,
            ))
        ids = [r.id for r in records]
        embedded: Dict[str, list] = {}

        def embed_all():
            embedded["vectors"] = self.embedding_provider.generate_embeddings([r.content for r in records])

        def insert_all():
            vector_records = [
                VectorRecord(
                    id=r.id,
                    namespace=namespace_for(user_id, r.tier),
                    vector=vec,
                    metadata=MemoryMetadata.from_record(r),
                )
                for r, vec in zip(records, embedded["vectors"])
            ]
            self._vector_call("insert", lambda: self.vector_store.insert(vector_records))

        run_saga("batch_write", [
            SagaStep(
                "create_rows",
                lambda: self.dao.create_memories(records),
                lambda: self.dao.delete_memories(ids, user_id),
            ),
            SagaStep("embed", embed_all),
            SagaStep("insert_vectors", insert_all),
        ])

        logger.log_operation("memory.batch_write", "success", {"user_id": user_id, "count": len(ids)})
        return ids

    def search(self, query: str, user_id: str, tier: Union[MemoryTier, str], top_k: int = 10,
               config: Optional[RankingConfig] = None) -> List[MemoryResult]:
        """Ranked memories in one (user, tier) namespace. Empty list when nothing is relevant."""
        user_id = _require_user(user_id)
        tier = MemoryTier.parse(tier)
        cfg = self._config(config)
        if top_k <= 0 or query is None or not query.strip():
            return []

        vector = self.embedding_provider.embed_text(query)
        matches = self._vector_call(
            "query",
            lambda: self.vector_store.query(vector, namespace_for(user_id, tier), top_k=top_k, return_metadata=True)
        )

        now = self.clock()
        results = []
        for match in matches:
            metadata = match.metadata
            if metadata is None or not metadata.content or match.score < cfg.search_threshold:
                continue
            results.append(MemoryResult(
                id=match.id,
                content=metadata.content,
                score=ranking.score(match.score, metadata.created_at, now, cfg),
            ))

        # Stable sort: equal scores keep the index's order
        results.sort(key=lambda r: r.score, reverse=True)
        return results

    def update(self, memory_id: str, user_id: str, new_content: str) -> None:
        """Replace a memory's content. Tier and id come from the canonical row."""
        new_content = _require_content(new_content, "new_content")
        prior = self.dao.get_memory_by_id(memory_id, user_id)
        if prior is None:
            raise NotFound(memory_id, user_id)

        vector = self.embedding_provider.embed_text(new_content)
        self._replace_content("update", prior, new_content, vector)

    def delete(self, memory_id: str, user_id: str) -> bool:
        """Delete the vector entry, then the row. Returns whether the row was removed."""
        if self.dao.get_memory_by_id(memory_id, user_id) is None:
            raise NotFound(memory_id, user_id)

        self._vector_call("delete", lambda: self.vector_store.delete_by_ids([memory_id]))
        return self.dao.delete_memory(memory_id, user_id)

    def clear(self, user_id: str, tier: Optional[Union[MemoryTier, str]] = None) -> int:
        """Remove every memory in scope. Returns the number of rows removed."""
        user_id = _require_user(user_id)
        tier = MemoryTier.parse(tier) if tier is not None else None
        tiers = [tier] if tier is not None else list(MemoryTier)

        expected = self.dao.get_memory_count(user_id, tier)
        ids = [r.id for r in self.dao.get_all_memories(user_id, tier)]
        for t in tiers:
            ids.extend(self._vector_call("list", lambda: self.vector_store.list_ids(namespace_for(user_id, t))))
        ids = list(dict.fromkeys(ids))

        if ids:
            self._vector_call("delete", lambda: self.vector_store.delete_by_ids(ids))
        removed = self.dao.clear_all_memories(user_id, tier)

        if removed != expected:
            logger.warning(f"clear for user '{user_id}' removed {removed} rows, expected {expected}")
        return removed

    def stats(self, user_id: str) -> MemoryStats:
        counts = self.dao.get_tier_counts(user_id)
        short = counts.get(MemoryTier.SHORT.value, 0)
        long = counts.get(MemoryTier.LONG.value, 0)
        return MemoryStats(short=short, long=long, total=short + long)

    def get(self, memory_id: str, user_id: str) -> Optional[MemoryRecord]:
        return self.dao.get_memory_by_id(memory_id, user_id)

    def list(self, user_id: str, tier: Union[MemoryTier, str], limit: int = 50) -> List[MemoryRecord]:
        return self.dao.get_memories(user_id, MemoryTier.parse(tier), limit)
