"""
Ranking engine: blends semantic similarity with an exponential recency boost.
"""

import math
from dataclasses import dataclass, replace
from typing import Optional

DAY_MS = 1000 * 60 * 60 * 24


@dataclass(frozen=True)
class RankingConfig:
    """Thresholds and weights used by write dedup and search ranking."""

    duplicate_threshold: float = 0.85
    """Similarity at or above which a write merges into an existing memory"""

    search_threshold: float = 0.65
    """Relevance floor for search matches"""

    recency_weight: float = 0.1
    """Magnitude of the recency boost"""

    recency_half_life_ms: int = 3 * DAY_MS
    """Decay constant for the recency boost"""

    def __post_init__(self):
        for name in ("duplicate_threshold", "search_threshold"):
            value = getattr(self, name)
            if not -1.0 <= value <= 1.0:
                raise ValueError(f"{name} must be within [-1, 1], got {value}")
        if self.recency_weight < 0:
            raise ValueError(f"recency_weight must be >= 0, got {self.recency_weight}")
        if self.recency_half_life_ms <= 0:
            raise ValueError(f"recency_half_life_ms must be > 0, got {self.recency_half_life_ms}")

    def merge(self, **overrides) -> "RankingConfig":
        """Return a copy with the non-None overrides applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes) if changes else self


def recency_boost(created_at: int, now: int, config: RankingConfig) -> float:
    """exp(-age / half_life); timestamps in the future count as age 0."""
    age = max(0, now - created_at)
    return math.exp(-age / config.recency_half_life_ms)


def score(semantic_score: float, created_at: int, now: int, config: Optional[RankingConfig] = None) -> float:
    """Final ranking score: semantic * (1 + recency_weight * recency)."""
    config = config or RankingConfig()
    recency = recency_boost(created_at, now, config)
    return semantic_score * (1 + config.recency_weight * recency)
