"""
Error taxonomy shared by every layer.

Each error carries a context dict (capability, operation, input, ...)
so a user-visible failure can be retried by re-issuing the same command.
"""

from __future__ import annotations

from typing import Any


class AgentCoreError(Exception):
    """Base error for the orchestration core."""

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = {k: v for k, v in context.items() if v is not None}

    def to_metadata(self) -> dict[str, Any]:
        return {"error": self.message, "error_type": type(self).__name__, **self.context}


class NotFound(AgentCoreError):
    """Referenced capability, operation, workflow or session does not exist."""


class SessionExpired(AgentCoreError):
    """Session exceeded its inactivity timeout and was discarded."""


class DependencyViolation(AgentCoreError):
    """A workflow step's prerequisites were not completed in declared order."""


class OperationError(AgentCoreError):
    """A capability's execute() call failed."""


class RoutingAmbiguous(AgentCoreError):
    """No confident route was found for free-text input."""


class InvalidTransition(AgentCoreError):
    """Illegal execution status transition."""


class CommandError(AgentCoreError):
    """The backend command interface rejected a call."""
