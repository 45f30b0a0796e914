"""
Environment-driven configuration for the memory service.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

from .ranking import RankingConfig, DAY_MS

load_dotenv()

# Database path configuration
DB_PATH = os.getenv("DB_PATH", "./data/memory.db")

# Vector overlay and embedding configuration
VECTOR_PROVIDER = os.getenv("VECTOR_PROVIDER", "memory")  # memory|faiss
EMBED_PROVIDER = os.getenv("EMBED_PROVIDER", "hash")  # hash|sentence
EMBED_MODEL_NAME = os.getenv("EMBED_MODEL_NAME", "all-MiniLM-L6-v2")
EMBED_DIM = int(os.getenv("EMBED_DIM", "384"))

# Ranking defaults (overridable per call)
DUPLICATE_THRESHOLD = float(os.getenv("DUPLICATE_THRESHOLD", "0.85"))
SEARCH_THRESHOLD = float(os.getenv("SEARCH_THRESHOLD", "0.65"))
RECENCY_WEIGHT = float(os.getenv("RECENCY_WEIGHT", "0.1"))
RECENCY_HALF_LIFE_MS = int(os.getenv("RECENCY_HALF_LIFE_MS", str(3 * DAY_MS)))

BATCH_WRITE_MAX = int(os.getenv("BATCH_WRITE_MAX", "50"))

# Drift correction
CORRECTION_MODE = os.getenv("CORRECTION_MODE", "propose")  # off|propose|apply
DRIFT_RULESET = os.getenv("DRIFT_RULESET", "strict")  # strict|lenient

VERSION = "1.0.0"


def get_vector_store(dimension: int = None):
    """Get configured vector store implementation."""
    if VECTOR_PROVIDER == "faiss":
        from ..vector.faiss_store import FaissVectorStore
        return FaissVectorStore(dimension or EMBED_DIM)

    from ..vector.index import SimpleInMemoryVectorStore
    return SimpleInMemoryVectorStore()


def get_embedding_provider():
    """Get configured embedding provider implementation."""
    if EMBED_PROVIDER == "sentence":
        from ..vector.embeddings import SentenceTransformerEmbedding
        return SentenceTransformerEmbedding(EMBED_MODEL_NAME)

    from ..vector.embeddings import DeterministicHashEmbedding
    return DeterministicHashEmbedding(EMBED_DIM)


def get_ranking_config() -> RankingConfig:
    """Ranking defaults built from the environment."""
    return RankingConfig(
        duplicate_threshold=DUPLICATE_THRESHOLD,
        search_threshold=SEARCH_THRESHOLD,
        recency_weight=RECENCY_WEIGHT,
        recency_half_life_ms=RECENCY_HALF_LIFE_MS,
    )


def debug_enabled():
    """Check if debug mode is enabled."""
    return os.getenv("DEBUG", "false").lower() == "true"


def ensure_db_directory(db_path: str = None):
    """Ensure the database directory exists."""
    Path(db_path or DB_PATH).parent.mkdir(parents=True, exist_ok=True)


def get_correction_mode():
    """Get correction mode (off|propose|apply)."""
    return CORRECTION_MODE


def get_drift_ruleset():
    """Get drift ruleset (strict|lenient)."""
    return DRIFT_RULESET


def validate_config():
    """Validate configuration and return any issues."""
    issues = []

    if VECTOR_PROVIDER not in ["memory", "faiss"]:
        issues.append(f"Invalid VECTOR_PROVIDER: {VECTOR_PROVIDER}")

    if EMBED_PROVIDER not in ["hash", "sentence"]:
        issues.append(f"Invalid EMBED_PROVIDER: {EMBED_PROVIDER}")

    if CORRECTION_MODE not in ["off", "propose", "apply"]:
        issues.append(f"Invalid CORRECTION_MODE: {CORRECTION_MODE}")

    if DRIFT_RULESET not in ["strict", "lenient"]:
        issues.append(f"Invalid DRIFT_RULESET: {DRIFT_RULESET}")

    if EMBED_DIM < 1:
        issues.append("EMBED_DIM must be >= 1")

    if BATCH_WRITE_MAX < 1:
        issues.append("BATCH_WRITE_MAX must be >= 1")

    try:
        get_ranking_config()
    except ValueError as e:
        issues.append(str(e))

    return issues
