"""
Structured logging for memory coordination.
Every cross-store step (write, merge, compensation, drift repair) is logged here.
"""

import logging
from typing import Any, Dict, List

CONTENT_PREVIEW_CHARS = 50


def _preview(text: str) -> str:
    if text is None:
        return ""
    return text[:CONTENT_PREVIEW_CHARS] + "..." if len(text) > CONTENT_PREVIEW_CHARS else text


class StructuredLogger:
    """Structured logger for memory, vector and correction operations."""

    def __init__(self, name: str = "mcp_memory"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.INFO)

        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        if status in ("failed", "error"):
            self.logger.error(message)
        elif status in ("compensated", "skipped", "detected"):
            self.logger.warning(message)
        else:
            self.logger.info(message)

    def log_memory_operation(self, operation: str, memory_id: str, user_id: str,
                             content: str = None, status: str = "success",
                             details: Dict[str, Any] = None):
        """Log an operation against the canonical memory store."""
        log_details = {"memory_id": memory_id, "user_id": user_id}
        if content is not None:
            log_details["content"] = _preview(content)
        if details:
            log_details.update(details)

        self.log_operation(f"memory.{operation}", status, log_details)

    def log_vector_operation(self, operation: str, record_id: str, details: Dict[str, Any] = None, status: str = "success"):
        """Log a vector operation."""
        log_details = {"record_id": record_id}
        if details:
            log_details.update(details)

        self.log_operation(f"vector.{operation}", status, log_details)

    def log_compensation(self, saga: str, step: str, status: str = "compensated", details: Dict[str, Any] = None):
        """Log a compensating action run after a failed forward step."""
        log_details = {"saga": saga, "step": step}
        if details:
            log_details.update(details)

        self.log_operation("saga.compensation", status, log_details)

    def log_drift_finding(self, finding_type: str, severity: str, memory_id: str, details: Dict[str, Any] = None):
        """Log drift detection findings."""
        log_details = {
            "finding_type": finding_type,
            "severity": severity,
            "memory_id": memory_id
        }
        if details:
            log_details.update(details)

        self.log_operation("drift.finding", "detected", log_details)

    def log_correction_application(self, plan_id: str, actions_count: int, mode: str,
                                   status: str = "success", details: Dict[str, Any] = None):
        """Log correction plan execution."""
        log_details = {
            "plan_id": plan_id,
            "actions_count": actions_count,
            "mode": mode
        }
        if details:
            log_details.update(details)

        self.log_operation("correction.applied", status, log_details)

    def warning(self, message: str) -> None:
        """Log a warning message."""
        self.logger.warning(message)


# Global logger instance
logger = StructuredLogger()


def sanitize_payload(payload: Any, sensitive_fields: List[str] = None) -> Any:
    """Truncate content-bearing fields so memory text never lands in logs in full."""
    if sensitive_fields is None:
        sensitive_fields = ['content', 'new_content', 'query']

    if isinstance(payload, dict):
        sanitized = {}
        for k, v in payload.items():
            if k in sensitive_fields and isinstance(v, str):
                sanitized[k] = _preview(v)
            else:
                sanitized[k] = sanitize_payload(v, sensitive_fields)
        return sanitized
    elif isinstance(payload, list):
        return [sanitize_payload(item, sensitive_fields) for item in payload]
    else:
        return payload
