"""
Capability base classes.

Responsibility:
- One execute(operation, input_text, commands, session_id) entrypoint per capability
- Describe the capability (id, name, icon, operations) for the registry
- Bridge stateful capabilities to the Session Engine

Prohibitions:
- No routing (the Intent Router and Registry decide who runs)
- No metrics (the Execution Tracker records outcomes)
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable

from commands.interface import CommandInterface
from conversation.session_engine import ConversationFlow, SessionEngine, SessionStore
from shared.errors import SessionExpired
from shared.models import CapabilityInfo, CapabilityOutput, Operation, utc_now

logger = logging.getLogger(__name__)

DEFAULT_SESSION_ID = "default"


def strip_command(input_text: str, command: str) -> str:
    """Remove a leading '/command' token, keeping the inline parameters."""
    text = input_text.strip()
    if command and text.lower().startswith(command.lower()):
        return text[len(command):].strip()
    return text


class Capability(ABC):
    """A provider of one or more operations."""

    info: CapabilityInfo

    @property
    def id(self) -> str:
        return self.info.id

    @property
    def name(self) -> str:
        return self.info.name

    def describe(self) -> CapabilityInfo:
        return self.info

    @abstractmethod
    async def execute(
        self,
        operation: Operation,
        input_text: str,
        commands: CommandInterface,
        session_id: str | None = None,
    ) -> CapabilityOutput:
        ...


class SessionCapability(Capability):
    """Capability backed by a multi-turn conversation flow.

    An explicit '/command' always starts a fresh session. Free text continues
    the live one, gets the idle reply once the session has finalized, and
    starts a session only when none exists. Expired sessions are answered with
    a restart prompt.
    """

    def __init__(
        self,
        flow: ConversationFlow,
        store: SessionStore | None = None,
        timeout_seconds: float | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.flow = flow
        self.engine = SessionEngine(flow, store=store, clock=clock, timeout_seconds=timeout_seconds)

    async def execute(
        self,
        operation: Operation,
        input_text: str,
        commands: CommandInterface,
        session_id: str | None = None,
    ) -> CapabilityOutput:
        sid = session_id or DEFAULT_SESSION_ID
        explicit = input_text.strip().lower().startswith(operation.command.lower())
        text = strip_command(input_text, operation.command)

        state = self.engine.status(sid)
        if explicit or state == "absent":
            return await self.start(sid, text, commands)

        try:
            return await self.engine.continue_session(sid, text, commands)
        except SessionExpired as e:
            return CapabilityOutput(
                status="clarification",
                explanation=e.message,
                metadata={**e.context, "expired": True},
            )

    async def start(self, session_id: str, text: str, commands: CommandInterface) -> CapabilityOutput:
        """Hook for capabilities that can sometimes finish without a session."""
        return self.engine.begin(session_id, text)


def slugify(text: str, max_length: int = 50) -> str:
    cleaned = re.sub(r"[^a-z0-9\s-]", "", text.lower())
    return re.sub(r"\s+", "-", cleaned.strip())[:max_length].strip("-")


def find_project(projects: list[dict[str, Any]], name: str) -> dict[str, Any] | None:
    """Case-insensitive exact name match."""
    wanted = name.strip().lower()
    for project in projects:
        if str(project.get("name", "")).strip().lower() == wanted:
            return project
    return None


async def ensure_project(commands: CommandInterface, name: str, description: str = "") -> dict[str, Any]:
    """Return the project called `name`, creating it when missing."""
    existing = find_project(await commands.get_projects(), name)
    if existing is not None:
        return existing
    logger.info("Creating missing project: %s", name)
    return await commands.create_project(name=name, description=description, status="active")


def success(explanation: str, **result: Any) -> CapabilityOutput:
    return CapabilityOutput(status="success", explanation=explanation, result=result)


def failure(explanation: str, **metadata: Any) -> CapabilityOutput:
    return CapabilityOutput(status="failure", explanation=explanation, metadata=metadata, confidence=0.0)


def clarification(explanation: str, **metadata: Any) -> CapabilityOutput:
    return CapabilityOutput(status="clarification", explanation=explanation, metadata=metadata)
