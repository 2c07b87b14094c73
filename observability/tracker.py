"""
Execution Tracker — records every capability invocation and keeps metrics.

Responsibility:
- Execution lifecycle: pending -> running -> completed | error
- Per-capability metrics (incremental mean response time, bounded error log)
- System health, execution history, recent activity, age-based cleanup

Prohibitions:
- No capability dispatch (callers pass an awaitable factory to run())
- No persistence (state is process-local)
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections import deque
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable

from observability.logger import Observability
from shared.errors import AgentCoreError, InvalidTransition, NotFound, OperationError
from shared.models import (
    CapabilityMetrics,
    ErrorLogEntry,
    Execution,
    RecentAction,
    SystemHealth,
    utc_now,
)

logger = logging.getLogger(__name__)

_ALLOWED_TRANSITIONS: dict[str, set[str]] = {
    "pending": {"running"},
    "running": {"completed", "error"},
    "completed": set(),
    "error": set(),
}


class ExecutionTracker:
    """Injectable, process-local store of executions and metrics."""

    def __init__(
        self,
        error_log_limit: int = 10,
        history_limit: int = 100,
        recent_limit: int = 20,
        clock: Callable[[], datetime] = utc_now,
        observability: Observability | None = None,
    ):
        self.error_log_limit = error_log_limit
        self.history_limit = history_limit
        self._clock = clock
        self._obs = observability or Observability()
        self._executions: dict[str, Execution] = {}
        self._started_at: dict[str, datetime] = {}
        self._metrics: dict[str, CapabilityMetrics] = {}
        self._recent: deque[RecentAction] = deque(maxlen=recent_limit)
        self._lock = threading.Lock()

    # ─── Registration ──────────────────────────────────────────

    def register_capability(self, capability_id: str, capability_name: str = "") -> None:
        """Create an empty metrics record so the capability shows up before first use."""
        with self._lock:
            if capability_id not in self._metrics:
                self._metrics[capability_id] = CapabilityMetrics(
                    capability_id=capability_id,
                    capability_name=capability_name or capability_id,
                )

    # ─── Execution lifecycle ───────────────────────────────────

    def begin(
        self,
        capability_id: str,
        operation_id: str,
        input_text: str = "",
        session_id: str | None = None,
        command: str = "",
    ) -> Execution:
        execution = Execution(
            id=f"exec_{uuid.uuid4().hex[:12]}",
            capability_id=capability_id,
            operation_id=operation_id,
            command=command,
            session_id=session_id,
            input_text=input_text,
            status="pending",
            created_at=self._clock(),
        )
        with self._lock:
            self._executions[execution.id] = execution
        return execution

    def start(self, execution_id: str) -> Execution:
        execution = self._transition(execution_id, "running")
        self._started_at[execution_id] = self._clock()
        self._obs.execution("execution_started", execution)
        return execution

    def complete(self, execution_id: str, output: str = "") -> Execution:
        execution = self._finish(execution_id, "completed", output=output)
        self._obs.execution("execution_completed", execution)
        return execution

    def fail(self, execution_id: str, error: str) -> Execution:
        execution = self._finish(execution_id, "error", error=error)
        self._obs.execution("execution_failed", execution, level="WARNING")
        return execution

    def get(self, execution_id: str) -> Execution | None:
        return self._executions.get(execution_id)

    def _transition(self, execution_id: str, status: str, **update: Any) -> Execution:
        with self._lock:
            current = self._executions.get(execution_id)
            if current is None:
                raise NotFound(f"Execution '{execution_id}' not found", execution_id=execution_id)
            if status not in _ALLOWED_TRANSITIONS[current.status]:
                raise InvalidTransition(
                    f"Execution '{execution_id}' cannot move from {current.status} to {status}",
                    execution_id=execution_id,
                )
            updated = current.model_copy(update={"status": status, **update})
            self._executions[execution_id] = updated
            return updated

    def _finish(self, execution_id: str, status: str, output: str | None = None, error: str | None = None) -> Execution:
        now = self._clock()
        started = self._started_at.pop(execution_id, None)
        current = self._executions.get(execution_id)
        reference = started or (current.created_at if current else now)
        elapsed_ms = max((now - reference).total_seconds() * 1000, 0.0)

        execution = self._transition(
            execution_id,
            status,
            output=output,
            error=error,
            completed_at=now,
            response_time_ms=elapsed_ms,
        )
        self.record_metrics(
            execution.capability_id,
            response_time_ms=elapsed_ms,
            success=status == "completed",
            error=error,
            input_text=execution.input_text,
        )
        self.add_recent_action(
            execution.capability_id,
            f"{execution.operation_id}: {status}",
            success=status == "completed",
        )
        self._prune_history()
        return execution

    async def run(
        self,
        capability_id: str,
        operation_id: str,
        input_text: str,
        call: Callable[[], Awaitable[Any]],
        session_id: str | None = None,
        command: str = "",
    ) -> Any:
        """Run `call` as one tracked execution.

        A result whose status is "failure" is recorded as an error and returned.
        Exceptions are recorded first, then re-raised; anything that is not
        already an AgentCoreError surfaces as OperationError.
        """
        execution = self.begin(capability_id, operation_id, input_text, session_id=session_id, command=command)
        self.start(execution.id)
        try:
            result = await call()
        except AgentCoreError as e:
            self.fail(execution.id, e.message)
            raise
        except Exception as e:
            self.fail(execution.id, str(e) or type(e).__name__)
            raise OperationError(
                f"{capability_id} failed while running '{command or operation_id}': {e}",
                capability=capability_id,
                operation=operation_id,
                input=input_text,
                execution_id=execution.id,
            ) from e

        if getattr(result, "status", None) == "failure":
            self.fail(execution.id, getattr(result, "explanation", "") or "failure")
        else:
            self.complete(execution.id, getattr(result, "explanation", ""))
        return result

    # ─── Metrics ───────────────────────────────────────────────

    def record_metrics(
        self,
        capability_id: str,
        response_time_ms: float,
        success: bool,
        error: str | None = None,
        input_text: str = "",
    ) -> CapabilityMetrics:
        """Fold one finished invocation into the capability's metrics record."""
        with self._lock:
            current = self._metrics.get(capability_id) or CapabilityMetrics(
                capability_id=capability_id, capability_name=capability_id
            )
            count = current.invocation_count + 1
            average = current.average_response_time_ms + (
                response_time_ms - current.average_response_time_ms
            ) / count
            error_log = list(current.error_log)
            if not success:
                error_log.append(ErrorLogEntry(error=error or "unknown error", timestamp=self._clock(), input_text=input_text))
                error_log = error_log[-self.error_log_limit:]
            updated = current.model_copy(
                update={
                    "invocation_count": count,
                    "success_count": current.success_count + (1 if success else 0),
                    "error_count": current.error_count + (0 if success else 1),
                    "average_response_time_ms": average,
                    "last_invocation": self._clock(),
                    "error_log": error_log,
                }
            )
            self._metrics[capability_id] = updated
            return updated

    def get_metrics(self, capability_id: str) -> CapabilityMetrics | None:
        return self._metrics.get(capability_id)

    def all_metrics(self) -> list[CapabilityMetrics]:
        return list(self._metrics.values())

    def reset_metrics(self, capability_id: str | None = None) -> None:
        with self._lock:
            targets = [capability_id] if capability_id else list(self._metrics.keys())
            for cid in targets:
                current = self._metrics.get(cid)
                if current is not None:
                    self._metrics[cid] = CapabilityMetrics(
                        capability_id=cid, capability_name=current.capability_name
                    )

    def system_health(self) -> SystemHealth:
        metrics = self.all_metrics()
        total = sum(m.invocation_count for m in metrics)
        successes = sum(m.success_count for m in metrics)
        used = [m for m in metrics if m.invocation_count > 0]
        weighted_time = sum(m.average_response_time_ms * m.invocation_count for m in used)
        return SystemHealth(
            overall_success_rate=round(successes / total * 100, 2) if total else 0.0,
            avg_response_time_ms=round(weighted_time / total, 2) if total else 0.0,
            active_capabilities=len(used),
            total_executions=total,
            last_health_check=self._clock(),
        )

    # ─── History & activity ────────────────────────────────────

    def history(self, capability_id: str | None = None, limit: int = 50) -> list[Execution]:
        """Executions newest first, optionally filtered by capability."""
        items = [
            e for e in self._executions.values()
            if capability_id is None or e.capability_id == capability_id
        ]
        items.sort(key=lambda e: e.created_at, reverse=True)
        return items[:limit]

    def active_executions(self) -> list[Execution]:
        return [e for e in self._executions.values() if e.status in ("pending", "running")]

    def add_recent_action(self, capability_id: str, action: str, success: bool = True) -> None:
        self._recent.append(
            RecentAction(capability_id=capability_id, action=action, timestamp=self._clock(), success=success)
        )

    def recent_activity(self, limit: int | None = None) -> list[RecentAction]:
        """Most recent actions first."""
        items = list(reversed(self._recent))
        return items[:limit] if limit else items

    def cleanup(self, max_age: timedelta = timedelta(days=7)) -> int:
        """Drop finished executions older than max_age. Returns the number removed."""
        cutoff = self._clock() - max_age
        with self._lock:
            stale = [
                eid for eid, e in self._executions.items()
                if e.status in ("completed", "error") and e.created_at < cutoff
            ]
            for eid in stale:
                del self._executions[eid]
        if stale:
            logger.info("Removed %d executions older than %s", len(stale), max_age)
        return len(stale)

    def _prune_history(self) -> None:
        with self._lock:
            finished = [eid for eid, e in self._executions.items() if e.status in ("completed", "error")]
            overflow = len(finished) - self.history_limit
            for eid in finished[:max(overflow, 0)]:
                del self._executions[eid]
