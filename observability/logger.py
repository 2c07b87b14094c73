"""
Observability Layer — structured agent events.

Responsibility:
- Emit execution, workflow and batch lifecycle events as JSON log lines
- Carry session/trace ids so one chat turn can be followed across layers
- Time arbitrary blocks (measure)
"""

import json
import logging
import time
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger("observability")


class Observability:
    """Structured event emitter for the orchestration core."""

    def __init__(self, session_id: str | None = None, trace_id: str | None = None):
        self.session_id = session_id or "system"
        self.trace_id = trace_id or uuid.uuid4().hex[:16]

    def log_event(self, event_type: str, payload: dict[str, Any], level: str = "INFO") -> None:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "session_id": self.session_id,
            "trace_id": self.trace_id,
            "event": event_type,
            **payload,
        }
        log_method = getattr(logger, level.lower(), logger.info)
        log_method(json.dumps(entry, default=str))

    def execution(self, event_type: str, execution: Any, level: str = "INFO") -> None:
        """Log an Execution lifecycle event (started/completed/failed)."""
        self.log_event(
            event_type,
            {
                "execution_id": execution.id,
                "capability": execution.capability_id,
                "operation": execution.operation_id,
                "status": execution.status,
                "response_time_ms": execution.response_time_ms,
                "error": execution.error,
            },
            level=level,
        )

    def workflow(self, event_type: str, workflow: Any, level: str = "INFO", **extra: Any) -> None:
        self.log_event(
            event_type,
            {
                "workflow_id": workflow.id,
                "status": workflow.status,
                "completed_steps": workflow.completed_steps,
                "total_steps": workflow.total_steps,
                **extra,
            },
            level=level,
        )

    def batch(self, event_type: str, batch: Any, level: str = "INFO") -> None:
        self.log_event(
            event_type,
            {
                "batch_id": batch.id,
                "job_id": batch.job_id,
                "status": batch.status,
                "processed": batch.processed_count,
                "failed": batch.failed_count,
                "total": batch.total_count,
            },
            level=level,
        )

    @contextmanager
    def measure(self, operation: str, metadata: dict[str, Any] | None = None):
        """Context manager to measure execution time of an operation."""
        start_time = time.perf_counter()
        success = True
        error = None
        try:
            yield
        except Exception as e:
            success = False
            error = str(e)
            raise
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000
            self.log_event(
                "operation_timing",
                {
                    "operation": operation,
                    "duration_ms": round(duration_ms, 2),
                    "success": success,
                    "error": error,
                    **(metadata or {}),
                },
            )

    def for_session(self, session_id: str) -> "Observability":
        """New emitter bound to a session, sharing this trace id."""
        return Observability(session_id=session_id, trace_id=self.trace_id)
