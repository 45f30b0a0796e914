"""
Exception hierarchy for memory coordination.

None of these are retried by the coordinator; retry policy belongs to the caller.
"""

from typing import Any, Optional


class MemoryServiceError(Exception):
    """Base exception for all memory service errors."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class EmbeddingFailure(MemoryServiceError):
    """Embedding provider returned no vectors, or malformed ones."""

    pass


class NotFound(MemoryServiceError):
    """Memory does not exist or is owned by a different user."""

    def __init__(self, memory_id: str, user_id: str):
        self.memory_id = memory_id
        self.user_id = user_id
        super().__init__(
            f"Memory '{memory_id}' not found",
            {"memory_id": memory_id, "user_id": user_id},
        )


class VectorStoreFailure(MemoryServiceError):
    """Insert, upsert, query or delete error on the vector index."""

    pass


class StructuredStoreFailure(MemoryServiceError):
    """Error raised by the canonical SQLite store."""

    pass
