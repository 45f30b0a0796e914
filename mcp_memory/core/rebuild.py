"""
Rebuild the vector overlay from canonical SQLite rows.

Both vector store implementations live in process memory, so after a restart
the overlay is empty while SQLite still holds every memory. Rebuilding
re-embeds each row in batches and upserts it into its namespace.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from .dao import MemoryDAO
from .errors import EmbeddingFailure, VectorStoreFailure
from .schema import MemoryMetadata, namespace_for
from ..vector.embeddings import IEmbeddingProvider
from ..vector.index import IVectorStore
from ..vector.types import VectorRecord
from ..util.logging import logger

REBUILD_BATCH_SIZE = 64


@dataclass
class RebuildSummary:
    users: int = 0
    rows: int = 0
    embedded: int = 0
    failed_ids: List[str] = field(default_factory=list)


def rebuild_index(dao: MemoryDAO, vector_store: IVectorStore, embedding_provider: IEmbeddingProvider,
                  user_id: Optional[str] = None, batch_size: int = REBUILD_BATCH_SIZE) -> RebuildSummary:
    """Re-embed rows for one user, or for every user when user_id is None."""
    user_ids = [user_id] if user_id else dao.get_user_ids()
    summary = RebuildSummary(users=len(user_ids))

    for uid in user_ids:
        rows = dao.get_all_memories(uid)
        summary.rows += len(rows)

        for start in range(0, len(rows), batch_size):
            batch = rows[start:start + batch_size]
            try:
                vectors = embedding_provider.generate_embeddings([r.content for r in batch])
                vector_store.upsert([
                    VectorRecord(
                        id=row.id,
                        namespace=namespace_for(row.user_id, row.tier),
                        vector=vec,
                        metadata=MemoryMetadata.from_record(row),
                    )
                    for row, vec in zip(batch, vectors)
                ])
                summary.embedded += len(batch)
            except (EmbeddingFailure, VectorStoreFailure) as e:
                summary.failed_ids.extend(r.id for r in batch)
                logger.log_operation("vector.rebuild_batch", "failed", {"user_id": uid, "error": str(e)[:100]})

    logger.log_operation("vector.rebuild", "success" if not summary.failed_ids else "failed", {
        "users": summary.users,
        "rows": summary.rows,
        "embedded": summary.embedded,
        "failed": len(summary.failed_ids),
    })
    return summary
