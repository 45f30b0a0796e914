"""
Drift detection and correction between canonical rows and the vector overlay.

Compensation is best-effort, so a crash between steps can leave a row without a
vector (missing_vector), a vector that lags its row (stale_vector) or a vector
without a row (orphaned_vector). These findings are reported here and repaired
by correction plans; the canonical row always wins.
"""

import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .config import get_correction_mode, get_drift_ruleset
from .dao import MemoryDAO
from .schema import MemoryMetadata, MemoryTier, namespace_for
from ..vector.embeddings import IEmbeddingProvider
from ..vector.index import IVectorStore
from ..vector.types import VectorRecord
from ..util.logging import logger


@dataclass
class DriftFinding:
    """Represents a detected inconsistency between SQLite and the vector overlay."""
    id: str
    type: str  # 'missing_vector', 'stale_vector', 'orphaned_vector'
    severity: str  # 'low', 'medium', 'high'
    memory_id: str
    user_id: str
    tier: MemoryTier
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass
class CorrectionAction:
    """Represents a corrective action to resolve drift."""
    type: str  # 'ADD_VECTOR', 'UPDATE_VECTOR', 'REMOVE_VECTOR'
    memory_id: str
    user_id: str
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class CorrectionPlan:
    """A complete plan to resolve a drift finding."""
    id: str
    finding_id: str
    actions: List[CorrectionAction]
    preview: Dict[str, Any]


@dataclass
class CorrectionResult:
    """Result of executing a correction action."""
    plan_id: str
    action_index: int
    success: bool
    action_taken: bool
    error_message: str
    details: Dict[str, Any]


def _calculate_severity(drift_type: str) -> str:
    """Calculate severity based on drift type and ruleset configuration."""
    if get_drift_ruleset() == "strict":
        return "high"

    if drift_type in ["missing_vector", "stale_vector"]:
        return "medium"
    elif drift_type == "orphaned_vector":
        return "low"

    return "medium"


def _is_stale(metadata: MemoryMetadata, row) -> bool:
    return metadata.content != row.content or metadata.updated_at != row.updated_at


def detect_drift(dao: MemoryDAO, vector_store: IVectorStore, user_id: str,
                 tier: Optional[MemoryTier] = None) -> List[DriftFinding]:
    """
    Compare a user's canonical rows against the vector overlay, tier by tier.

    Returns:
        List of drift findings; empty when both sides agree.
    """
    tiers = [MemoryTier.parse(tier)] if tier is not None else list(MemoryTier)
    findings = []

    for t in tiers:
        rows = {r.id: r for r in dao.get_all_memories(user_id, t)}
        vectors = {v.id: v for v in vector_store.get(vector_store.list_ids(namespace_for(user_id, t)))}

        for memory_id, row in rows.items():
            vector = vectors.get(memory_id)
            if vector is None:
                findings.append(DriftFinding(
                    id=str(uuid.uuid4()),
                    type="missing_vector",
                    severity=_calculate_severity("missing_vector"),
                    memory_id=memory_id,
                    user_id=user_id,
                    tier=t,
                    details={"reason": "Row exists in SQLite but has no vector entry"}
                ))
            elif _is_stale(vector.metadata, row):
                findings.append(DriftFinding(
                    id=str(uuid.uuid4()),
                    type="stale_vector",
                    severity=_calculate_severity("stale_vector"),
                    memory_id=memory_id,
                    user_id=user_id,
                    tier=t,
                    details={
                        "vector_updated": vector.metadata.updated_at,
                        "sqlite_updated": row.updated_at,
                        "reason": "Vector metadata lags the SQLite row"
                    }
                ))

        for memory_id in vectors.keys() - rows.keys():
            findings.append(DriftFinding(
                id=str(uuid.uuid4()),
                type="orphaned_vector",
                severity=_calculate_severity("orphaned_vector"),
                memory_id=memory_id,
                user_id=user_id,
                tier=t,
                details={"reason": "Vector entry has no SQLite row"}
            ))

    for finding in findings:
        logger.log_drift_finding(finding.type, finding.severity, finding.memory_id, {"user_id": user_id})
    return findings


def create_correction_plan(finding: DriftFinding) -> CorrectionPlan:
    """Map a finding to the action that makes the vector side match SQLite."""
    action_types = {
        "missing_vector": ("ADD_VECTOR", "Add missing vector for existing row"),
        "stale_vector": ("UPDATE_VECTOR", "Re-embed stale vector entry"),
        "orphaned_vector": ("REMOVE_VECTOR", "Remove orphaned vector entry"),
    }
    if finding.type not in action_types:
        raise ValueError(f"Unknown drift type: {finding.type}")

    action_type, reason = action_types[finding.type]
    action = CorrectionAction(
        type=action_type,
        memory_id=finding.memory_id,
        user_id=finding.user_id,
        metadata={"reason": reason, "finding_details": finding.details}
    )

    return CorrectionPlan(
        id=str(uuid.uuid4()),
        finding_id=finding.id,
        actions=[action],
        preview={
            "drift_type": finding.type,
            "severity": finding.severity,
            "affected_memory": finding.memory_id,
            "action_type": action.type,
        }
    )


def apply_corrections(plans: List[CorrectionPlan], dao: MemoryDAO, vector_store: IVectorStore,
                      embedding_provider: IEmbeddingProvider, mode: str = None) -> List[CorrectionResult]:
    """
    Apply correction plans.

    Modes:
    - 'off': nothing is executed
    - 'propose': plans are logged, no store changes
    - 'apply': actions are executed against the vector store
    """
    mode = mode or get_correction_mode()
    if mode not in ("off", "propose", "apply"):
        raise ValueError(f"Invalid correction mode: {mode}")

    results = []
    for plan in plans:
        for i, action in enumerate(plan.actions):
            result = CorrectionResult(
                plan_id=plan.id,
                action_index=i,
                success=True,
                action_taken=False,
                error_message="",
                details={"action_type": action.type, "memory_id": action.memory_id, "mode": mode}
            )
            if mode == "apply":
                try:
                    _execute_action(action, dao, vector_store, embedding_provider)
                    result.action_taken = True
                except Exception as e:
                    result.success = False
                    result.error_message = str(e)
            results.append(result)

        logger.log_correction_application(
            plan.id, len(plan.actions), mode,
            status="success" if all(r.success for r in results if r.plan_id == plan.id) else "failed"
        )

    return results


def _execute_action(action: CorrectionAction, dao: MemoryDAO, vector_store: IVectorStore,
                    embedding_provider: IEmbeddingProvider) -> None:
    if action.type == "REMOVE_VECTOR":
        vector_store.delete_by_ids([action.memory_id])
        return

    row = dao.get_memory_by_id(action.memory_id, action.user_id)
    if row is None:
        raise ValueError(f"Row '{action.memory_id}' disappeared before correction")

    vector_store.upsert([VectorRecord(
        id=row.id,
        namespace=namespace_for(row.user_id, row.tier),
        vector=embedding_provider.embed_text(row.content),
        metadata=MemoryMetadata.from_record(row),
    )])
