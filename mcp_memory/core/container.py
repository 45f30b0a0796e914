"""
Process-wide coordinator handle.

Built lazily, exactly once. Concurrent first callers block on the same lock and
receive the same instance. Code that already holds a coordinator should pass it
explicitly rather than calling get_coordinator().
"""

import threading
from typing import Optional

from .config import BATCH_WRITE_MAX, get_embedding_provider, get_ranking_config, get_vector_store, validate_config
from .coordinator import MemoryCoordinator
from .dao import MemoryDAO
from ..util.logging import logger

_coordinator: Optional[MemoryCoordinator] = None
_init_lock = threading.Lock()


def build_coordinator(db_path: str = None) -> MemoryCoordinator:
    """Construct a coordinator from environment configuration."""
    issues = validate_config()
    if issues:
        raise ValueError(f"Memory service configuration invalid: {issues}")

    embedding_provider = get_embedding_provider()
    vector_store = get_vector_store(embedding_provider.get_dimension())
    coordinator = MemoryCoordinator(
        dao=MemoryDAO(db_path),
        vector_store=vector_store,
        embedding_provider=embedding_provider,
        config=get_ranking_config(),
        batch_max=BATCH_WRITE_MAX,
    )
    logger.log_operation("coordinator.init", "success", {
        "vector_store": vector_store.__class__.__name__,
        "embedding_provider": embedding_provider.__class__.__name__,
    })
    return coordinator


def get_coordinator() -> MemoryCoordinator:
    """Return the process-wide coordinator, building it on first use."""
    global _coordinator
    if _coordinator is None:
        with _init_lock:
            if _coordinator is None:
                _coordinator = build_coordinator()
    return _coordinator


def reset_coordinator() -> None:
    """Drop the cached coordinator so the next call rebuilds it."""
    global _coordinator
    with _init_lock:
        _coordinator = None
