"""
Workflow Engine — sequential capability chains with dependency checks.

Responsibility:
- Decompose a goal into ordered steps and store it as a Workflow
- Run steps strictly in order, tracking each one as an execution
- Fail fast on step errors or unmet prerequisites
- Cooperative cancellation between steps
- Prune finished workflows on cleanup()

Prohibitions:
- No parallel steps
- No automatic retries
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Callable

from commands.interface import CommandInterface
from execution.progress import ProgressCallback, emit_progress
from intent.router import IntentRouter
from observability.logger import Observability
from observability.tracker import ExecutionTracker
from registry.capability_registry import CapabilityRegistry
from shared.errors import DependencyViolation, NotFound
from shared.models import CapabilityOutput, Workflow, WorkflowStep, utc_now

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = {"completed", "error", "cancelled"}


def goal_templates(goal: str) -> list[tuple[str, str]]:
    """(command, input) pairs for a goal, in execution order."""
    lowered = goal.lower()
    if "social" in lowered or "content" in lowered:
        return [
            ("/instructions", "social media content strategy"),
            ("/twitter", goal),
        ]
    if "project" in lowered:
        return [
            ("/create-project", goal),
            ("/instructions", f"project documentation for {goal}"),
        ]
    return [("/create-project", goal)]


class WorkflowStore:
    """Workflows by id plus the active set."""

    def __init__(self):
        self.workflows: dict[str, Workflow] = {}
        self.active: set[str] = set()

    def cleanup(self, cutoff: datetime) -> list[str]:
        """Remove finished workflows completed before cutoff; returns their ids."""
        stale = [
            wid for wid, w in self.workflows.items()
            if w.status in TERMINAL_STATUSES
            and wid not in self.active
            and w.completed_at is not None
            and w.completed_at < cutoff
        ]
        for wid in stale:
            del self.workflows[wid]
        return stale


class WorkflowEngine:
    """Plans, runs and cancels workflows."""

    def __init__(
        self,
        registry: CapabilityRegistry,
        router: IntentRouter | None = None,
        tracker: ExecutionTracker | None = None,
        store: WorkflowStore | None = None,
        clock: Callable[[], Any] = utc_now,
        observability: Observability | None = None,
    ):
        self.registry = registry
        self.router = router
        self.tracker = tracker
        self.store = store or WorkflowStore()
        self._clock = clock
        self._obs = observability or Observability()

    # ─── Planning ──────────────────────────────────────────────

    def plan_for_goal(self, goal: str) -> list[WorkflowStep]:
        steps: list[WorkflowStep] = []
        for index, (command, step_input) in enumerate(goal_templates(goal), start=1):
            capability_id, operation_id, resolved_command = self._resolve(command, step_input)
            steps.append(
                WorkflowStep(
                    id=f"step_{index}",
                    capability_id=capability_id,
                    operation_id=operation_id,
                    command=resolved_command,
                    input=step_input,
                    depends_on=[steps[-1].id] if steps else [],
                )
            )
        return steps

    def _resolve(self, command: str, step_input: str) -> tuple[str, str, str]:
        match = self.registry.find_by_command(command)
        if match is not None:
            capability, operation = match
            return capability.id, operation.id, operation.command
        if self.router is not None:
            candidates = self.router.route(step_input)
            if candidates:
                top = candidates[0]
                return top.capability_id, top.operation_id, top.command
        raise NotFound(f"No capability can run '{command}'", command=command, input=step_input)

    # ─── Lifecycle ─────────────────────────────────────────────

    def create_workflow(
        self,
        name: str,
        description: str,
        steps: list[WorkflowStep] | list[dict[str, Any]],
    ) -> Workflow:
        parsed = [s if isinstance(s, WorkflowStep) else WorkflowStep(**s) for s in steps]
        workflow = Workflow(
            id=f"workflow_{uuid.uuid4().hex[:12]}",
            name=name,
            description=description,
            steps=[s.model_copy(update={"status": "pending", "output": None, "error": None}) for s in parsed],
            status="pending",
            created_at=self._clock(),
            total_steps=len(parsed),
            completed_steps=0,
        )
        self.store.workflows[workflow.id] = workflow
        logger.info("Created workflow %s '%s' with %d steps", workflow.id, name, len(parsed))
        return workflow

    def create_for_goal(self, goal: str) -> Workflow:
        return self.create_workflow(
            name=f"Goal: {goal[:60]}",
            description=goal,
            steps=self.plan_for_goal(goal),
        )

    def get(self, workflow_id: str) -> Workflow:
        workflow = self.store.workflows.get(workflow_id)
        if workflow is None:
            raise NotFound(f"Workflow '{workflow_id}' not found", workflow_id=workflow_id)
        return workflow

    def list_workflows(self) -> list[Workflow]:
        return list(self.store.workflows.values())

    @property
    def active_workflow_ids(self) -> list[str]:
        return sorted(self.store.active)

    def start(self, workflow_id: str) -> Workflow:
        workflow = self.get(workflow_id)
        if workflow.status != "pending":
            return workflow
        workflow = self._update(workflow_id, status="running")
        self.store.active.add(workflow_id)
        self._obs.workflow("workflow_started", workflow)
        return workflow

    def cancel(self, workflow_id: str) -> Workflow:
        workflow = self.get(workflow_id)
        if workflow.status in TERMINAL_STATUSES:
            return workflow
        workflow = self._update(workflow_id, status="cancelled", completed_at=self._clock())
        self.store.active.discard(workflow_id)
        self._obs.workflow("workflow_cancelled", workflow)
        return workflow

    def cleanup(self, max_age: timedelta = timedelta(days=7)) -> int:
        """Drop finished workflows completed more than max_age ago. Returns the number removed."""
        removed = self.store.cleanup(self._clock() - max_age)
        if removed:
            logger.info("Removed %d workflows older than %s", len(removed), max_age)
        return len(removed)

    # ─── Execution ─────────────────────────────────────────────

    async def run(
        self,
        workflow_id: str,
        commands: CommandInterface,
        session_id: str | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> Workflow:
        workflow = self.start(workflow_id)
        if workflow.status != "running":
            return workflow

        for index in range(workflow.current_step_index, len(workflow.steps)):
            workflow = self.get(workflow_id)
            if workflow.status == "cancelled":
                logger.info("Workflow %s cancelled before step %d", workflow_id, index + 1)
                break
            step = workflow.steps[index]
            self._check_dependencies(workflow, step)

            self._update_step(workflow_id, step.id, status="running")
            self._update(workflow_id, current_step_index=index)
            await emit_progress(progress_callback, {
                "event": "step_started",
                "workflow_id": workflow_id,
                "step_id": step.id,
                "capability": step.capability_id,
                "index": index + 1,
                "total": workflow.total_steps,
            })

            output, error = await self._run_step(step, commands, session_id)

            if self.get(workflow_id).status == "cancelled":
                self._update_step(workflow_id, step.id, status="skipped")
                logger.info("Workflow %s cancelled during %s; result discarded", workflow_id, step.id)
                break

            if error is not None:
                self._update_step(workflow_id, step.id, status="error", error=error)
                workflow = self._update(workflow_id, status="error", completed_at=self._clock())
                self.store.active.discard(workflow_id)
                self._obs.workflow("workflow_failed", workflow, level="WARNING", step_id=step.id, error=error)
                await emit_progress(progress_callback, {
                    "event": "step_failed",
                    "workflow_id": workflow_id,
                    "step_id": step.id,
                    "error": error,
                })
                return workflow

            self._update_step(workflow_id, step.id, status="completed", output=output)
            workflow = self.get(workflow_id)
            workflow = self._update(
                workflow_id,
                completed_steps=min(workflow.completed_steps + 1, workflow.total_steps),
                current_step_index=index + 1,
            )
            await emit_progress(progress_callback, {
                "event": "step_completed",
                "workflow_id": workflow_id,
                "step_id": step.id,
                "completed": workflow.completed_steps,
                "total": workflow.total_steps,
            })

        workflow = self.get(workflow_id)
        if workflow.status == "running" and workflow.completed_steps == workflow.total_steps:
            workflow = self._update(workflow_id, status="completed", completed_at=self._clock())
            self.store.active.discard(workflow_id)
            self._obs.workflow("workflow_completed", workflow)
        return workflow

    async def execute_goal(
        self,
        goal: str,
        commands: CommandInterface,
        session_id: str | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> CapabilityOutput:
        workflow = self.create_for_goal(goal)
        workflow = await self.run(workflow.id, commands, session_id=session_id, progress_callback=progress_callback)
        return summarize_workflow(workflow)

    def _check_dependencies(self, workflow: Workflow, step: WorkflowStep) -> None:
        for dependency in step.depends_on:
            prerequisite = workflow.step_by_id(dependency)
            if prerequisite is not None and prerequisite.status == "completed":
                continue
            message = f"Step '{step.id}' requires '{dependency}' to be completed first"
            self._update_step(workflow.id, step.id, status="error", error=message)
            failed = self._update(workflow.id, status="error", completed_at=self._clock())
            self.store.active.discard(workflow.id)
            self._obs.workflow("workflow_failed", failed, level="WARNING", step_id=step.id, error=message)
            raise DependencyViolation(message, workflow_id=workflow.id, step=step.id, depends_on=dependency)

    async def _run_step(
        self,
        step: WorkflowStep,
        commands: CommandInterface,
        session_id: str | None,
    ) -> tuple[str | None, str | None]:
        """Execute one step. Returns (output, error)."""
        step_input = f"{step.command} {step.input}".strip() if step.command else step.input

        async def call() -> CapabilityOutput:
            return await self.registry.execute(
                step.capability_id, step.operation_id, step_input, commands, session_id=session_id
            )

        try:
            if self.tracker is not None:
                output = await self.tracker.run(
                    step.capability_id,
                    step.operation_id,
                    step.input,
                    call,
                    session_id=session_id,
                    command=step.command,
                )
            else:
                output = await call()
        except Exception as e:
            logger.warning("Workflow step %s (%s) failed: %s", step.id, step.capability_id, e)
            return None, str(e) or type(e).__name__

        if output.status == "failure":
            return None, output.explanation or "Step failed"
        if output.status == "clarification":
            return None, f"Step needs more input: {output.explanation}"
        return output.explanation, None

    def _update(self, workflow_id: str, **update: Any) -> Workflow:
        workflow = self.get(workflow_id).model_copy(update=update)
        self.store.workflows[workflow_id] = workflow
        return workflow

    def _update_step(self, workflow_id: str, step_id: str, **update: Any) -> Workflow:
        workflow = self.get(workflow_id)
        steps = [s.model_copy(update=update) if s.id == step_id else s for s in workflow.steps]
        return self._update(workflow_id, steps=steps)


def summarize_workflow(workflow: Workflow) -> CapabilityOutput:
    lines = [f"Workflow '{workflow.name}': {workflow.status} ({workflow.completed_steps}/{workflow.total_steps} steps)"]
    for step in workflow.steps:
        detail = step.error or step.output or ""
        first_line = detail.strip().splitlines()[0] if detail.strip() else ""
        lines.append(f"- {step.id} {step.command or step.capability_id}: {step.status}" + (f" ({first_line})" if first_line else ""))

    status = "success" if workflow.status == "completed" else "failure"
    return CapabilityOutput(
        status=status,
        result={"workflow": workflow.model_dump(mode="json")},
        explanation="\n".join(lines),
        metadata={"workflow_id": workflow.id},
    )
