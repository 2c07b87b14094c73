"""
Project Creator — creates projects from natural-language requests.

When no usable name can be extracted, a short session asks for one and the
next reply is taken as the name.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from commands.interface import CommandInterface
from conversation.session_engine import ConversationFlow, ConversationSession, PhaseSpec
from domains.base import SessionCapability, clarification, success
from shared.models import CapabilityInfo, CapabilityOutput, Operation, OperationParameter

logger = logging.getLogger(__name__)

GENERIC_NAMES = {"project", "new project", "a project", "new", "it", "this", "that", "one"}

_VERBS = r"(?:create|new|make|start|build|setup)"

NAME_PATTERNS = (
    re.compile(
        _VERBS + r"\s+(?:a\s+)?project\s+(?:called|named)\s+[\"']?([^\"']+?)[\"']?(?:\s+for|\s+with|$)",
        re.IGNORECASE,
    ),
    re.compile(r"[\"']([^\"']{2,})[\"']"),
    re.compile(
        _VERBS + r"\s+(?:a\s+)?(?:project\s+)?[\"']?([a-zA-Z][a-zA-Z0-9\s\-_]{2,})[\"']?(?:\s+for|\s+with|$)",
        re.IGNORECASE,
    ),
)

PROJECT_TYPE_KEYWORDS: dict[str, tuple[str, ...]] = {
    "marketing": ("marketing", "campaign", "promotion", "advertising", "brand"),
    "development": ("development", "dev", "app", "website", "software", "code"),
    "content": ("content", "blog", "article", "writing", "editorial"),
    "financial": ("financial", "budget", "finance", "accounting", "money"),
    "social": ("social", "instagram", "twitter", "facebook", "media"),
}


def _acceptable(name: str) -> bool:
    return len(name) > 2 and name.lower() not in GENERIC_NAMES


def extract_project_name(text: str, allow_bare: bool = False) -> str:
    """Project name from a request, or "" when only a generic name is present.

    allow_bare accepts the whole text as the name when it carries no creation verb.
    """
    for pattern in NAME_PATTERNS:
        match = pattern.search(text)
        if match and match.group(1):
            candidate = match.group(1).strip()
            if _acceptable(candidate):
                return candidate

    bare = text.strip().strip("\"'").strip()
    if allow_bare and not re.match(_VERBS + r"\b", bare, re.IGNORECASE) and len(bare) <= 80 and _acceptable(bare):
        return bare
    return ""


def extract_project_details(text: str, allow_bare: bool = False) -> dict[str, Any]:
    lowered = text.lower()
    details: dict[str, Any] = {"name": extract_project_name(text, allow_bare=allow_bare)}

    description = re.search(r"\b(?:for|about|to)\s+(.+)", text, re.IGNORECASE)
    if description:
        details["description"] = description.group(1).strip()

    for project_type, keywords in PROJECT_TYPE_KEYWORDS.items():
        if any(re.search(rf"\b{re.escape(k)}\b", lowered) for k in keywords):
            details["project_type"] = project_type
            break

    budget = re.search(r"\$([\d,]+)", text)
    if budget:
        details["budget"] = int(budget.group(1).replace(",", ""))
    return details


def extract_pending_name(text: str) -> dict[str, Any]:
    name = extract_project_name(text, allow_bare=True)
    return {"name": name} if name else {}


async def create_project_from(details: dict[str, Any], commands: CommandInterface) -> CapabilityOutput:
    name = details["name"]
    description = details.get("description") or f"Project created from chat: {name}"
    project = await commands.create_project(name=name, description=description, status="active")
    lines = [f"Project created: {name}"]
    if details.get("project_type"):
        lines.append(f"Type: {details['project_type']}")
    if details.get("budget"):
        lines.append(f"Budget: ${details['budget']:,}")
    lines.append(f"Description: {description}")
    return success("\n".join(lines), project=project)


class ProjectNameFlow(ConversationFlow):
    capability_id = "project-creator"
    timeout_seconds = 5 * 60

    @property
    def phases(self) -> list[PhaseSpec]:
        return [
            PhaseSpec(
                phase=1,
                prompt=self._ask_name,
                extractor=extract_pending_name,
                correction_prompt=self._ask_name,
            )
        ]

    def initial_extractor(self, text: str) -> dict[str, Any]:
        details = extract_project_details(text)
        details.pop("name", None)
        return details

    def expired_message(self) -> str:
        return "The pending project request expired. Run /create-project again with a project name."

    def idle_message(self) -> str:
        return "No project is waiting for a name. Use /create-project <name> to create one."

    @staticmethod
    def _ask_name(session: ConversationSession) -> str:
        return (
            "What would you like to name the new project?\n"
            "Reply with just the name, e.g. \"Q4 Product Launch\"."
        )

    async def finalize(self, session: ConversationSession, commands: CommandInterface) -> CapabilityOutput:
        if not session.data.get("name"):
            return clarification("That doesn't look like a project name. Please enter a specific name.")
        return await create_project_from(session.data, commands)


class ProjectCreatorCapability(SessionCapability):
    info = CapabilityInfo(
        id="project-creator",
        name="Project Creator",
        description="Creates projects from natural-language requests",
        icon="FileText",
        operations=[
            Operation(
                id="natural-language-creator",
                command="/create-project",
                name="Natural Language Creator",
                description="Create a project, e.g. 'create a project called Launch Plan for the Q4 release'",
                parameters=[
                    OperationParameter(name="name", description="Project name"),
                    OperationParameter(name="description", description="Text after 'for', 'about' or 'to'"),
                ],
            )
        ],
    )

    def __init__(self, **kwargs: Any):
        super().__init__(ProjectNameFlow(), **kwargs)

    async def start(self, session_id: str, text: str, commands: CommandInterface) -> CapabilityOutput:
        details = extract_project_details(text, allow_bare=True)
        if not details["name"]:
            logger.info("No project name in %r; asking for one", text)
            return self.engine.begin(session_id, text)
        self.engine.discard(session_id)
        return await create_project_from(details, commands)
