"""
Structured operation logging for memory, retrieval and streaming stages.
"""

import logging
from typing import Any, Dict, List

# Fields never written to logs verbatim
SENSITIVE_FIELDS = ['text', 'prompt', 'payload', 'content', 'secret', 'password', 'api_key']


class StructuredLogger:
    """Structured logger for memory store and orchestrator operations."""

    def __init__(self, name: str = "groundstream"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.INFO)

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None, level: int = logging.INFO):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        self.logger.log(level, message)

    def log_memory_operation(self, operation: str, namespace: str = None, record_id: int = None,
                             details: Dict[str, Any] = None, status: str = "success"):
        """Log a memory store operation."""
        log_details = {}
        if namespace is not None:
            log_details["namespace"] = namespace
        if record_id is not None:
            log_details["record_id"] = record_id
        if details:
            log_details.update(details)

        level = logging.INFO if status == "success" else logging.WARNING
        self.log_operation(f"memory.{operation}", status, log_details, level)

    def log_stage(self, run_id: str, stage: str, status: str, details: Dict[str, Any] = None):
        """Log an orchestrator stage transition or outcome."""
        log_details = {"run_id": run_id}
        if details:
            log_details.update(sanitize_payload(details))

        level = logging.INFO if status in ("ok", "entered", "success") else logging.WARNING
        self.log_operation(f"orchestrator.{stage}", status, log_details, level)

    def log_moderation(self, run_id: str, allowed: bool, reason: Any = None, failed: bool = False):
        """Log a moderation decision, or a fail-open after a gate failure."""
        if failed:
            self.log_operation("moderation.check", "fail_open",
                               {"run_id": run_id, "reason": str(reason)[:100]}, logging.WARNING)
            return

        status = "allowed" if allowed else "blocked"
        self.log_operation("moderation.check", status, {"run_id": run_id, "reason": str(reason)[:100]})

    def log_stream_run(self, run_id: str, final_state: str, chunks: int, elapsed_ms: int = None):
        """Log the end of one streaming run."""
        details = {"run_id": run_id, "chunks": chunks}
        if elapsed_ms is not None:
            details["elapsed_ms"] = elapsed_ms
        level = logging.INFO if final_state == "done" else logging.WARNING
        self.log_operation("stream.run", final_state, details, level)

    # Standard logging methods for compatibility
    def info(self, message: str) -> None:
        """Log an info message."""
        self.logger.info(message)

    def warning(self, message: str) -> None:
        """Log a warning message."""
        self.logger.warning(message)

    def error(self, message: str) -> None:
        """Log an error message."""
        self.logger.error(message)

    def debug(self, message: str) -> None:
        """Log a debug message."""
        self.logger.debug(message)


# Global logger instance
logger = StructuredLogger()


def sanitize_payload(payload: Any, reveal_sensitive: bool = False, sensitive_fields: List[str] = None) -> Any:
    """Sanitize payloads for logging: redact sensitive fields, truncate long strings."""
    if sensitive_fields is None:
        sensitive_fields = SENSITIVE_FIELDS

    if isinstance(payload, dict):
        sanitized = {}
        for k, v in payload.items():
            if reveal_sensitive or k not in sensitive_fields:
                sanitized[k] = sanitize_payload(v, reveal_sensitive, sensitive_fields)
            else:
                sanitized[k] = "[REDACTED]"
        return sanitized
    elif isinstance(payload, str):
        # Truncate long strings
        return payload[:100] + "..." if len(payload) > 100 else payload
    elif isinstance(payload, list):
        return [sanitize_payload(item, reveal_sensitive, sensitive_fields) for item in payload]
    else:
        return payload
