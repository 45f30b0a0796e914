"""
Best-effort consistency between the canonical store and the vector overlay.

A multi-store operation is a named list of forward steps, each paired with a
compensating step. When a forward step fails, the steps that already ran are
compensated in reverse order and the original error is re-raised. There is no
retry and no distributed transaction; a crash between steps can still leave an
orphan row, which drift detection reports.
"""

from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from ..util.logging import logger


@dataclass
class SagaStep:
    """One forward action and the action that undoes it."""
    name: str
    action: Callable[[], Any]
    compensate: Optional[Callable[[], Any]] = None


def compensate_steps(saga: str, completed: List[SagaStep]) -> List[str]:
    """Undo completed steps, last first. Returns names of compensations that failed.

    A failing compensation is logged and skipped so the remaining ones still run.
    """
    failed = []
    for step in reversed(completed):
        if step.compensate is None:
            continue
        try:
            step.compensate()
            logger.log_compensation(saga, step.name)
        except Exception as e:
            failed.append(step.name)
            logger.log_compensation(saga, step.name, status="failed", details={"error": str(e)[:100]})
    return failed


def run_saga(saga: str, steps: List[SagaStep]) -> List[Any]:
    """Run steps in order; compensate and re-raise on the first failure."""
    completed: List[SagaStep] = []
    results = []
    for step in steps:
        try:
            results.append(step.action())
        except Exception as e:
            logger.log_operation(f"saga.{saga}", "failed", {"step": step.name, "error": str(e)[:100]})
            compensate_steps(saga, completed)
            raise
        completed.append(step)
    return results
