"""
Shared Pydantic models for all layers.
All contexts are immutable (frozen) after creation; state transitions
produce new instances via model_copy(update=...).
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field, computed_field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ─── Entry Layer ───────────────────────────────────────────────

class EntryRequest(BaseModel):
    """Normalized input from any entry adapter."""
    model_config = {"frozen": True}

    session_id: str
    input_text: str
    metadata: dict[str, Any] = Field(default_factory=dict)


# ─── Capability Layer ─────────────────────────────────────────

class OperationParameter(BaseModel):
    """Typed parameter accepted inline by an operation."""
    model_config = {"frozen": True}

    name: str
    kind: Literal["string", "number", "boolean", "enum"] = "string"
    description: str = ""
    required: bool = False
    choices: list[str] = Field(default_factory=list, description="Allowed values when kind == 'enum'")
    default: Any = None


class Operation(BaseModel):
    """A single invocable operation exposed by a capability."""
    model_config = {"frozen": True}

    id: str = Field(..., description="Operation identifier, unique within its capability")
    command: str = Field(..., description="Slash command, e.g. '/create-project'")
    name: str = ""
    description: str = ""
    parameters: list[OperationParameter] = Field(default_factory=list)


class CapabilityInfo(BaseModel):
    """Descriptor of a registered capability and its ordered operations."""
    model_config = {"frozen": True}

    id: str
    name: str
    description: str = ""
    icon: str = ""
    operations: list[Operation] = Field(default_factory=list)

    def find_operation(self, operation_id: str) -> Operation | None:
        for operation in self.operations:
            if operation.id == operation_id:
                return operation
        return None


class CapabilityOutput(BaseModel):
    """Result returned by Capability.execute().
    status: success | failure | clarification
    """
    model_config = {"frozen": True}

    status: Literal["success", "failure", "clarification"]
    result: dict[str, Any] = Field(default_factory=dict)
    explanation: str = Field(default="", description="User-visible response text")
    confidence: float = Field(default=1.0)
    metadata: dict[str, Any] = Field(default_factory=dict)


# ─── Execution Tracking ───────────────────────────────────────

ExecutionStatus = Literal["pending", "running", "completed", "error"]


class Execution(BaseModel):
    """One invocation of a capability operation."""
    model_config = {"frozen": True}

    id: str
    capability_id: str
    operation_id: str
    command: str = ""
    session_id: str | None = None
    input_text: str = ""
    status: ExecutionStatus = "pending"
    output: str | None = None
    error: str | None = None
    created_at: datetime = Field(default_factory=utc_now)
    completed_at: datetime | None = None
    response_time_ms: float | None = None


class ErrorLogEntry(BaseModel):
    model_config = {"frozen": True}

    error: str
    timestamp: datetime = Field(default_factory=utc_now)
    input_text: str = ""


class CapabilityMetrics(BaseModel):
    """Per-capability aggregate. Average response time is an incremental mean."""
    model_config = {"frozen": True}

    capability_id: str
    capability_name: str = ""
    invocation_count: int = 0
    success_count: int = 0
    error_count: int = 0
    average_response_time_ms: float = 0.0
    last_invocation: datetime | None = None
    error_log: list[ErrorLogEntry] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def success_rate(self) -> float:
        """Percentage of finished invocations that completed successfully."""
        finished = self.success_count + self.error_count
        if finished == 0:
            return 0.0
        return round(self.success_count / finished * 100, 2)


class SystemHealth(BaseModel):
    model_config = {"frozen": True}

    overall_success_rate: float = 0.0
    avg_response_time_ms: float = 0.0
    active_capabilities: int = 0
    total_executions: int = 0
    last_health_check: datetime = Field(default_factory=utc_now)


class RecentAction(BaseModel):
    model_config = {"frozen": True}

    capability_id: str
    action: str
    timestamp: datetime = Field(default_factory=utc_now)
    success: bool = True


# ─── Workflow Layer ───────────────────────────────────────────

StepStatus = Literal["pending", "running", "completed", "error", "skipped"]
WorkflowStatus = Literal["pending", "running", "completed", "error", "cancelled"]


class WorkflowStep(BaseModel):
    """One capability invocation inside a workflow."""
    model_config = {"frozen": True}

    id: str
    capability_id: str
    operation_id: str
    command: str = ""
    input: str = ""
    depends_on: list[str] = Field(default_factory=list, description="Step ids that must be completed first")
    status: StepStatus = "pending"
    output: str | None = None
    error: str | None = None


class Workflow(BaseModel):
    """Ordered chain of capability invocations."""
    model_config = {"frozen": True}

    id: str
    name: str
    description: str = ""
    steps: list[WorkflowStep] = Field(default_factory=list)
    status: WorkflowStatus = "pending"
    current_step_index: int = 0
    created_at: datetime = Field(default_factory=utc_now)
    completed_at: datetime | None = None
    total_steps: int = 0
    completed_steps: int = 0

    def step_by_id(self, step_id: str) -> WorkflowStep | None:
        for step in self.steps:
            if step.id == step_id:
                return step
        return None


# ─── Batch Layer ──────────────────────────────────────────────

BatchStatus = Literal["pending", "processing", "completed", "failed"]


class Batch(BaseModel):
    """A fixed-size group of generated items dispatched together."""
    model_config = {"frozen": True}

    id: str
    job_id: str
    items: list[Any] = Field(default_factory=list)
    status: BatchStatus = "pending"
    processed_count: int = 0
    failed_count: int = 0
    total_count: int = 0
    errors: list[str] = Field(default_factory=list)


# ─── Routing Layer ────────────────────────────────────────────

class RouteCandidate(BaseModel):
    """A ranked routing match produced by the Intent Router."""
    model_config = {"frozen": True}

    capability_id: str
    operation_id: str
    command: str = ""
    capability_name: str = ""
    confidence: float = Field(..., ge=0.0, le=1.0)
    reason: str = ""


class RoutingDecision(BaseModel):
    """Caller policy applied to the ranked candidates.
    action: execute | disambiguate | guide
    """
    model_config = {"frozen": True}

    action: Literal["execute", "disambiguate", "guide"]
    candidates: list[RouteCandidate] = Field(default_factory=list)

    @property
    def top(self) -> RouteCandidate | None:
        return self.candidates[0] if self.candidates else None
