"""
Orchestrator — single entry point from adapters into the agent core.

Responsibility:
- Dispatch built-in commands (/workflow, /cancel-workflow, /status, /help, /guide)
- Resolve '/command' input through the registry
- Hand free text to the capability owning a live session, else to the router
- Send unrouted text to the capability that just finalized, for its idle reply
- Prune stale executions, sessions and workflows on cleanup()
- Run every capability call as a tracked execution
- Store user and assistant messages through the command interface

Prohibitions:
- No capability logic
- Never raises for business errors (AgentCoreError becomes a failure output)
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Callable

from commands.interface import CommandInterface
from conversation.session_engine import SessionStore
from domains.base import DEFAULT_SESSION_ID
from execution.workflow_engine import WorkflowEngine, summarize_workflow
from intent.router import IntentRouter
from observability.logger import Observability
from observability.tracker import ExecutionTracker
from registry.capability_registry import CapabilityRegistry
from shared.errors import AgentCoreError, CommandError, RoutingAmbiguous
from shared.models import CapabilityOutput, EntryRequest, RouteCandidate, RoutingDecision, utc_now
from shared.response_formatter import format_candidates, format_capabilities, format_health

logger = logging.getLogger(__name__)

BUILTIN_COMMANDS = ("/workflow", "/cancel-workflow", "/status", "/help", "/guide")


class Orchestrator:
    """Routes one request to a capability and records the outcome."""

    def __init__(
        self,
        registry: CapabilityRegistry,
        router: IntentRouter,
        tracker: ExecutionTracker,
        workflow_engine: WorkflowEngine,
        session_store: SessionStore,
        store_messages: bool = True,
        observability: Observability | None = None,
        clock: Callable[[], datetime] = utc_now,
        cleanup_interval: timedelta | None = timedelta(hours=1),
        cleanup_max_age: timedelta = timedelta(days=7),
    ):
        self.registry = registry
        self.router = router
        self.tracker = tracker
        self.workflow_engine = workflow_engine
        self.session_store = session_store
        self.store_messages = store_messages
        self._obs = observability or Observability()
        self._clock = clock
        self.cleanup_interval = cleanup_interval
        self.cleanup_max_age = cleanup_max_age
        self._last_cleanup = clock()

    async def handle(self, request: EntryRequest, commands: CommandInterface) -> CapabilityOutput:
        """Process one turn. Returns a CapabilityOutput, never raises AgentCoreError."""
        session_id = request.session_id or DEFAULT_SESSION_ID
        text = request.input_text.strip()
        self._sweep_if_due()
        await self._store(commands, "user", text, session_id, request.metadata)

        try:
            with self._obs.for_session(session_id).measure("handle_request", {"input_length": len(text)}):
                output = await self._dispatch(text, session_id, commands)
        except AgentCoreError as e:
            logger.warning("Request failed for session %s: %s", session_id, e.message)
            output = CapabilityOutput(
                status="failure",
                explanation=e.message,
                confidence=0.0,
                metadata=e.to_metadata(),
            )

        await self._store(
            commands, "assistant", output.explanation, session_id, {"status": output.status, **output.metadata}
        )
        return output

    async def execute_capability(
        self,
        capability_id: str,
        operation_id: str,
        input_text: str,
        commands: CommandInterface,
        session_id: str | None = None,
        command: str = "",
    ) -> CapabilityOutput:
        """registry.execute wrapped in a tracked execution."""

        async def call() -> CapabilityOutput:
            return await self.registry.execute(
                capability_id, operation_id, input_text, commands, session_id=session_id
            )

        return await self.tracker.run(
            capability_id, operation_id, input_text, call, session_id=session_id, command=command
        )

    def cleanup(self, max_age: timedelta = timedelta(days=7)) -> dict[str, int]:
        """Prune finished executions, stale sessions and finished workflows older than max_age."""
        now = self._clock()
        removed = {
            "executions": self.tracker.cleanup(max_age),
            "sessions": self.session_store.cleanup(now, max_age),
            "workflows": self.workflow_engine.cleanup(max_age),
        }
        self._last_cleanup = now
        return removed

    def _sweep_if_due(self) -> None:
        if self.cleanup_interval is None:
            return
        if self._clock() - self._last_cleanup >= self.cleanup_interval:
            self.cleanup(self.cleanup_max_age)

    # ─── Dispatch ──────────────────────────────────────────────

    async def _dispatch(self, text: str, session_id: str, commands: CommandInterface) -> CapabilityOutput:
        if not text:
            return self._guide()

        if text.startswith("/"):
            parts = text.split(None, 1)
            head = parts[0].lower()
            rest = parts[1] if len(parts) > 1 else ""
            if head in BUILTIN_COMMANDS:
                return await self._builtin(head, rest.strip(), session_id, commands)

            match = self.registry.find_by_command(head)
            if match is None:
                return CapabilityOutput(
                    status="failure",
                    explanation=(
                        f"Unknown command: {head}\n\nAvailable commands:\n"
                        + "\n".join(f"  {c}" for c in [*self.registry.available_commands(), *BUILTIN_COMMANDS])
                    ),
                    confidence=0.0,
                    metadata={"command": head},
                )
            capability, operation = match
            # Legacy aliases are rewritten to the canonical command so the capability sees an explicit call.
            canonical = f"{operation.command} {rest}".strip()
            output = await self.execute_capability(
                capability.id, operation.id, canonical, commands, session_id=session_id, command=operation.command
            )
            return self._annotate(output, "command", capability.id)

        owner = self.session_store.owner_of(session_id)
        if owner is not None:
            output = await self._continue_session(owner, text, session_id, commands)
            if output is not None:
                return output

        decision = self.router.decide(text)
        if decision.action != "execute":
            # Text that names no capability goes back to the one that just finished, for its idle reply.
            finished = self.session_store.finalized_owner(session_id)
            if finished is not None:
                output = await self._continue_session(finished, text, session_id, commands)
                if output is not None:
                    return output

        try:
            return await self._route(text, decision, session_id, commands)
        except RoutingAmbiguous as e:
            logger.info("No confident route for session %s: %s", session_id, e.message)
            return self._guide(e.context.get("candidates", []))

    async def _continue_session(
        self,
        owner: str,
        text: str,
        session_id: str,
        commands: CommandInterface,
    ) -> CapabilityOutput | None:
        capability = self.registry.get(owner)
        if capability is None or not capability.describe().operations:
            return None
        operation = capability.describe().operations[0]
        logger.info("Continuing %s session %s", owner, session_id)
        output = await self.execute_capability(
            owner, operation.id, text, commands, session_id=session_id, command=operation.command
        )
        return self._annotate(output, "session", owner)

    async def _route(
        self,
        text: str,
        decision: RoutingDecision,
        session_id: str,
        commands: CommandInterface,
    ) -> CapabilityOutput:
        if decision.action == "execute" and decision.top is not None:
            top = decision.top
            # A routed request is a fresh invocation, same as typing the command.
            output = await self.execute_capability(
                top.capability_id,
                top.operation_id,
                f"{top.command} {text}",
                commands,
                session_id=session_id,
                command=top.command,
            )
            return self._annotate(output, "router", top.capability_id, confidence=top.confidence)
        if decision.action == "disambiguate":
            return self._disambiguate(decision.candidates)
        raise RoutingAmbiguous("No capability matched the request", input=text, candidates=decision.candidates)

    async def _builtin(
        self,
        command: str,
        argument: str,
        session_id: str,
        commands: CommandInterface,
    ) -> CapabilityOutput:
        if command == "/workflow":
            if not argument:
                return CapabilityOutput(
                    status="clarification",
                    explanation="Describe the goal, e.g. /workflow launch a social media content push",
                )
            return await self.workflow_engine.execute_goal(argument, commands, session_id=session_id)

        if command == "/cancel-workflow":
            if not argument:
                active = ", ".join(self.workflow_engine.active_workflow_ids) or "none"
                return CapabilityOutput(
                    status="clarification",
                    explanation=f"Which workflow? Active workflows: {active}",
                )
            workflow = self.workflow_engine.cancel(argument)
            return summarize_workflow(workflow).model_copy(update={"status": "success"})

        if command == "/status":
            health = self.tracker.system_health()
            sessions = self.session_store.live_sessions()
            lines = [
                format_health(health, self.tracker.all_metrics()),
                "",
                f"Active workflows: {', '.join(self.workflow_engine.active_workflow_ids) or 'none'}",
                f"Live sessions: {len(sessions)}",
            ]
            return CapabilityOutput(
                status="success",
                explanation="\n".join(lines),
                result={"health": health.model_dump(mode="json"), "live_sessions": len(sessions)},
            )

        if command == "/help":
            return CapabilityOutput(
                status="success",
                explanation=format_capabilities(self.registry.describe_all())
                + "\n\nBuilt-in: " + ", ".join(BUILTIN_COMMANDS),
            )

        return self._guide()

    # ─── Responses ─────────────────────────────────────────────

    def _disambiguate(self, candidates: list[RouteCandidate]) -> CapabilityOutput:
        top, alternates = candidates[0], candidates[1:]
        lines = [f"Did you mean {top.capability_name} ({top.command})? {top.reason}."]
        if alternates:
            lines.append("")
            lines.append("Other options:")
            lines.append(format_candidates(alternates))
        lines.append("")
        lines.append(f"Run {top.command} <details> to continue.")
        return CapabilityOutput(
            status="clarification",
            explanation="\n".join(lines),
            confidence=top.confidence,
            result={"candidates": [c.model_dump() for c in candidates]},
            metadata={"routing": "disambiguate"},
        )

    def _guide(self, candidates: list[RouteCandidate] | None = None) -> CapabilityOutput:
        lines = ["I'm not sure what you'd like to do. Popular capabilities:"]
        for info in self.registry.describe_all():
            if info.operations:
                lines.append(f"  {info.operations[0].command:<18} {info.description}")
        lines.append("")
        lines.append("Type /help for every command, or /workflow <goal> to chain several steps.")
        return CapabilityOutput(
            status="clarification",
            explanation="\n".join(lines),
            confidence=candidates[0].confidence if candidates else 0.0,
            result={"candidates": [c.model_dump() for c in candidates or []]},
            metadata={"routing": "guide"},
        )

    @staticmethod
    def _annotate(
        output: CapabilityOutput,
        routed_by: str,
        capability_id: str,
        confidence: float | None = None,
    ) -> CapabilityOutput:
        metadata: dict[str, Any] = {**output.metadata, "routed_by": routed_by, "capability_id": capability_id}
        if confidence is not None:
            metadata["route_confidence"] = confidence
        return output.model_copy(update={"metadata": metadata})

    async def _store(
        self,
        commands: CommandInterface,
        role: str,
        content: str,
        session_id: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        if not self.store_messages or not content:
            return
        try:
            await commands.store_message(role=role, content=content, session_id=session_id, metadata=metadata)
        except CommandError as e:
            logger.warning("Could not store %s message for session %s: %s", role, session_id, e.message)
