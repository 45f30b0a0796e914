"""
Structured store adapter - canonical memory rows in SQLite.

The SQLite row is the source of truth for every memory; the vector overlay
mirrors it. All sqlite3 errors are re-raised as StructuredStoreFailure.
"""

import sqlite3
from typing import Iterable, List, Optional

from .db import get_db, init_db, health_check
from .errors import NotFound, StructuredStoreFailure
from .schema import MemoryRecord, MemoryTier
from ..util.logging import logger

_COLUMNS = "id, user_id, tier, content, importance, source, created_at, updated_at"


def _row_to_record(row) -> MemoryRecord:
    memory_id, user_id, tier, content, importance, source, created_at, updated_at = row
    return MemoryRecord(
        id=memory_id,
        user_id=user_id,
        tier=MemoryTier(tier),
        content=content,
        importance=importance if importance is not None else 0.0,
        source=source,
        created_at=created_at,
        updated_at=updated_at,
    )


def _tier_clause(tier: Optional[MemoryTier]):
    if tier is None:
        return "", ()
    return " AND tier = ?", (MemoryTier.parse(tier).value,)


class MemoryDAO:
    """Data access object for the `memories` table."""

    def __init__(self, db_path: str = None):
        self.db_path = db_path
        init_db(db_path)

    def create_memory(self, record: MemoryRecord) -> MemoryRecord:
        """Insert a new canonical row. Fails if the id already exists."""
        if not record.content or not record.content.strip():
            raise ValueError("content cannot be empty")
        try:
            with get_db(self.db_path) as conn:
                conn.execute(
                    f"INSERT INTO memories ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        record.id, record.user_id, MemoryTier.parse(record.tier).value,
                        record.content, record.importance, record.source,
                        record.created_at, record.updated_at,
                    )
                )
                conn.commit()
        except sqlite3.Error as e:
            logger.log_memory_operation("create", record.id, record.user_id, status="failed",
                                        details={"error": str(e)[:100]})
            raise StructuredStoreFailure(f"Failed to create memory '{record.id}': {e}") from e

        logger.log_memory_operation("create", record.id, record.user_id, content=record.content)
        return record

    def create_memories(self, records: List[MemoryRecord]) -> List[MemoryRecord]:
        """Insert several rows in one transaction."""
        try:
            with get_db(self.db_path) as conn:
                conn.executemany(
                    f"INSERT INTO memories ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                    [
                        (r.id, r.user_id, MemoryTier.parse(r.tier).value, r.content,
                         r.importance, r.source, r.created_at, r.updated_at)
                        for r in records
                    ]
                )
                conn.commit()
        except sqlite3.Error as e:
            raise StructuredStoreFailure(f"Failed to create {len(records)} memories: {e}") from e

        logger.log_operation("memory.create_batch", "success", {"count": len(records)})
        return records

    def get_memory_by_id(self, memory_id: str, user_id: str) -> Optional[MemoryRecord]:
        """Get a memory by id, scoped to its owner."""
        try:
            with get_db(self.db_path) as conn:
                cursor = conn.execute(
                    f"SELECT {_COLUMNS} FROM memories WHERE id = ? AND user_id = ?",
                    (memory_id, user_id)
                )
                row = cursor.fetchone()
        except sqlite3.Error as e:
            raise StructuredStoreFailure(f"Failed to get memory '{memory_id}': {e}") from e

        return _row_to_record(row) if row else None

    def get_memories(self, user_id: str, tier: MemoryTier, limit: int = 50) -> List[MemoryRecord]:
        """Most recent memories for a (user, tier)."""
        if limit <= 0:
            return []
        try:
            with get_db(self.db_path) as conn:
                cursor = conn.execute(
                    f"SELECT {_COLUMNS} FROM memories WHERE user_id = ? AND tier = ? "
                    "ORDER BY created_at DESC LIMIT ?",
                    (user_id, MemoryTier.parse(tier).value, limit)
                )
                rows = cursor.fetchall()
        except sqlite3.Error as e:
            raise StructuredStoreFailure(f"Failed to list memories for user '{user_id}': {e}") from e

        return [_row_to_record(row) for row in rows]

    def get_all_memories(self, user_id: str, tier: Optional[MemoryTier] = None) -> List[MemoryRecord]:
        """Every memory for a user, optionally restricted to one tier."""
        clause, params = _tier_clause(tier)
        try:
            with get_db(self.db_path) as conn:
                cursor = conn.execute(
                    f"SELECT {_COLUMNS} FROM memories WHERE user_id = ?{clause} ORDER BY created_at DESC",
                    (user_id,) + params
                )
                rows = cursor.fetchall()
        except sqlite3.Error as e:
            raise StructuredStoreFailure(f"Failed to list memories for user '{user_id}': {e}") from e

        return [_row_to_record(row) for row in rows]

    def get_user_ids(self) -> List[str]:
        """Distinct owners with at least one memory."""
        try:
            with get_db(self.db_path) as conn:
                rows = conn.execute("SELECT DISTINCT user_id FROM memories ORDER BY user_id").fetchall()
        except sqlite3.Error as e:
            raise StructuredStoreFailure(f"Failed to list users: {e}") from e

        return [row[0] for row in rows]

    def get_memory_count(self, user_id: str, tier: Optional[MemoryTier] = None) -> int:
        clause, params = _tier_clause(tier)
        try:
            with get_db(self.db_path) as conn:
                cursor = conn.execute(
                    f"SELECT COUNT(*) FROM memories WHERE user_id = ?{clause}",
                    (user_id,) + params
                )
                result = cursor.fetchone()
        except sqlite3.Error as e:
            raise StructuredStoreFailure(f"Failed to count memories for user '{user_id}': {e}") from e

        return result[0] if result else 0

    def get_tier_counts(self, user_id: str) -> dict:
        """Row count per tier in a single query."""
        try:
            with get_db(self.db_path) as conn:
                cursor = conn.execute(
                    "SELECT tier, COUNT(*) FROM memories WHERE user_id = ? GROUP BY tier",
                    (user_id,)
                )
                rows = cursor.fetchall()
        except sqlite3.Error as e:
            raise StructuredStoreFailure(f"Failed to aggregate memories for user '{user_id}': {e}") from e

        return {tier: count for tier, count in rows}

    def update_memory(self, memory_id: str, user_id: str, content: str, updated_at: int,
                      importance: float = None, source: str = None) -> None:
        """Replace content and stamp updated_at. importance/source change only when given."""
        if not content or not content.strip():
            raise ValueError("content cannot be empty")
        try:
            with get_db(self.db_path) as conn:
                cursor = conn.execute(
                    "UPDATE memories SET content = ?, updated_at = ?, "
                    "importance = COALESCE(?, importance), source = COALESCE(?, source) "
                    "WHERE id = ? AND user_id = ?",
                    (content, updated_at, importance, source, memory_id, user_id)
                )
                conn.commit()
                affected = cursor.rowcount
        except sqlite3.Error as e:
            raise StructuredStoreFailure(f"Failed to update memory '{memory_id}': {e}") from e

        if affected == 0:
            raise NotFound(memory_id, user_id)

        logger.log_memory_operation("update", memory_id, user_id, content=content)

    def delete_memory(self, memory_id: str, user_id: str) -> bool:
        """Delete one row. Returns whether a row was removed."""
        try:
            with get_db(self.db_path) as conn:
                cursor = conn.execute(
                    "DELETE FROM memories WHERE id = ? AND user_id = ?",
                    (memory_id, user_id)
                )
                conn.commit()
                removed = cursor.rowcount > 0
        except sqlite3.Error as e:
            raise StructuredStoreFailure(f"Failed to delete memory '{memory_id}': {e}") from e

        logger.log_memory_operation("delete", memory_id, user_id,
                                    status="success" if removed else "skipped")
        return removed

    def delete_memories(self, memory_ids: Iterable[str], user_id: str) -> int:
        """Delete a set of rows owned by user_id. Returns rows removed."""
        ids = list(memory_ids)
        if not ids:
            return 0
        placeholders = ", ".join("?" for _ in ids)
        try:
            with get_db(self.db_path) as conn:
                cursor = conn.execute(
                    f"DELETE FROM memories WHERE user_id = ? AND id IN ({placeholders})",
                    [user_id] + ids
                )
                conn.commit()
                removed = cursor.rowcount
        except sqlite3.Error as e:
            raise StructuredStoreFailure(f"Failed to delete {len(ids)} memories: {e}") from e

        logger.log_operation("memory.delete_batch", "success", {"user_id": user_id, "removed": removed})
        return removed

    def clear_all_memories(self, user_id: str, tier: Optional[MemoryTier] = None) -> int:
        """Delete every row in the (user, tier?) scope. Returns rows removed."""
        clause, params = _tier_clause(tier)
        try:
            with get_db(self.db_path) as conn:
                cursor = conn.execute(
                    f"DELETE FROM memories WHERE user_id = ?{clause}",
                    (user_id,) + params
                )
                conn.commit()
                removed = cursor.rowcount
        except sqlite3.Error as e:
            raise StructuredStoreFailure(f"Failed to clear memories for user '{user_id}': {e}") from e

        logger.log_operation("memory.clear", "success", {
            "user_id": user_id,
            "tier": MemoryTier.parse(tier).value if tier else "all",
            "removed": removed
        })
        return removed

    def health_check(self) -> bool:
        return health_check(self.db_path)
