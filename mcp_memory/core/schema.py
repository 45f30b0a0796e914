"""
Typed records shared by the canonical store, the vector overlay and the coordinator.
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class MemoryTier(str, Enum):
    SHORT = "short"
    LONG = "long"

    @classmethod
    def parse(cls, value) -> "MemoryTier":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"tier must be one of: {[t.value for t in cls]}, got {value!r}")


def namespace_for(user_id: str, tier: MemoryTier) -> str:
    """Vector namespace: one per (user, tier)."""
    return f"{user_id}:{MemoryTier.parse(tier).value}"


def new_memory_id(user_id: str, tier: MemoryTier) -> str:
    return f"{user_id}:{MemoryTier.parse(tier).value}:{uuid.uuid4()}"


@dataclass
class MemoryRecord:
    """Canonical row in the structured store."""
    id: str
    user_id: str
    tier: MemoryTier
    content: str
    created_at: int
    updated_at: Optional[int] = None
    importance: float = 0.0
    source: Optional[str] = None


@dataclass
class MemoryMetadata:
    """Snapshot stored next to each vector; mirrors the canonical row."""
    user_id: str
    tier: MemoryTier
    content: str
    created_at: int
    updated_at: Optional[int] = None
    importance: Optional[float] = None
    source: Optional[str] = None

    @classmethod
    def from_record(cls, record: MemoryRecord) -> "MemoryMetadata":
        return cls(
            user_id=record.user_id,
            tier=record.tier,
            content=record.content,
            created_at=record.created_at,
            updated_at=record.updated_at,
            importance=record.importance,
            source=record.source,
        )


@dataclass
class MemoryResult:
    """Ranked search hit."""
    id: str
    content: str
    score: float


@dataclass
class MemoryStats:
    short: int = 0
    long: int = 0
    total: int = 0


@dataclass
class BatchEntry:
    content: str
    tier: MemoryTier
    importance: Optional[float] = None
    source: Optional[str] = None
    id: Optional[str] = field(default=None)
