"""
Vector memory overlay - mirrors the canonical SQLite rows, one entry per memory id.
"""

from typing import Optional
import numpy as np
from dataclasses import dataclass

from ..core.schema import MemoryMetadata


@dataclass
class VectorRecord:
    """Represents a vector record with metadata."""

    id: str
    """Same id as the owning MemoryRecord"""

    namespace: str
    """'{user_id}:{tier}' isolation scope"""

    vector: np.ndarray
    """The vector representation of the content"""

    metadata: MemoryMetadata
    """Snapshot of the canonical row"""


@dataclass
class QueryResult:
    """Represents a search result from vector store."""

    id: str
    """Identifier for the matching record"""

    score: float
    """Cosine similarity of the match"""

    metadata: Optional[MemoryMetadata]
    """Metadata associated with the matched record, None unless requested"""
