"""
Registry — Maps capability ids and slash commands to capability providers.

Responsibility:
- Maintain mapping of capability_id -> Capability
- Resolve '/command' strings (including deprecated aliases) to an operation
- Delegate execute() to the owning capability

Prohibitions:
- Never catches capability exceptions (failures propagate to the caller)
- No routing heuristics
"""

import logging

from commands.interface import CommandInterface
from domains.base import Capability
from shared.errors import NotFound
from shared.models import CapabilityInfo, CapabilityOutput, Operation

logger = logging.getLogger(__name__)

# Deprecated command spellings -> canonical command.
LEGACY_COMMAND_ALIASES: dict[str, str] = {
    "create": "/create-project",
    "create-project": "/create-project",
    "create-file": "/create-file",
}


def normalize_command(command: str) -> str:
    token = command.strip().split(maxsplit=1)[0] if command.strip() else ""
    token = token.lower()
    bare = token.lstrip("/")
    if bare in LEGACY_COMMAND_ALIASES:
        return LEGACY_COMMAND_ALIASES[bare]
    return token


class CapabilityRegistry:
    """Registry of capability providers and their operations."""

    def __init__(self):
        self._capabilities: dict[str, Capability] = {}

    def register(self, capability: Capability) -> None:
        """Add or overwrite a capability by id."""
        if capability.id in self._capabilities:
            logger.info("Overwriting capability: %s", capability.id)
        self._capabilities[capability.id] = capability
        logger.info(
            "Registered capability: %s → %s (%d operations)",
            capability.id,
            capability.__class__.__name__,
            len(capability.describe().operations),
        )

    def get(self, capability_id: str) -> Capability | None:
        return self._capabilities.get(capability_id)

    def require(self, capability_id: str) -> Capability:
        capability = self._capabilities.get(capability_id)
        if capability is None:
            raise NotFound(f"Capability '{capability_id}' not found", capability=capability_id)
        return capability

    def find_by_command(self, command: str) -> tuple[Capability, Operation] | None:
        """First operation whose command matches exactly, after alias resolution."""
        canonical = normalize_command(command)
        if not canonical:
            return None
        for capability in self._capabilities.values():
            for operation in capability.describe().operations:
                if operation.command.lower() == canonical:
                    return capability, operation
        return None

    def list_all(self) -> list[Capability]:
        return list(self._capabilities.values())

    def describe_all(self) -> list[CapabilityInfo]:
        return [c.describe() for c in self._capabilities.values()]

    def available_commands(self) -> list[str]:
        return [op.command for info in self.describe_all() for op in info.operations]

    @property
    def registered_capabilities(self) -> list[str]:
        return list(self._capabilities.keys())

    async def execute(
        self,
        capability_id: str,
        operation_id: str,
        input_text: str,
        commands: CommandInterface,
        session_id: str | None = None,
    ) -> CapabilityOutput:
        capability = self.require(capability_id)
        operation = capability.describe().find_operation(operation_id)
        if operation is None:
            raise NotFound(
                f"Operation '{operation_id}' not found on capability '{capability_id}'",
                capability=capability_id,
                operation=operation_id,
            )
        logger.info("Executing %s.%s (session=%s)", capability_id, operation_id, session_id)
        return await capability.execute(operation, input_text, commands, session_id=session_id)
