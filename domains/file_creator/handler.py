"""
File Creator — creates templated files inside existing projects.

If the request names no project, the user is shown the project list and the
next reply (a number or a name) selects the target.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any, Callable

from commands.interface import CommandInterface
from conversation.session_engine import ConversationFlow, ConversationSession, PhaseSpec
from domains.base import SessionCapability, clarification, failure, find_project, success
from shared.models import CapabilityInfo, CapabilityOutput, Operation, OperationParameter, utc_now

logger = logging.getLogger(__name__)

# (type, extension, backend file type, detection pattern, template)
FILE_TYPES: tuple[tuple[str, str, str, str, str], ...] = (
    (
        "spreadsheet", ".xlsx", "document", r"\b(?:spreadsheet|excel|xlsx?|budget|financial|calculation)\b",
        "# {name}\n\n| Item | Value | Notes |\n|------|-------|-------|\n| Example | 0 | Add your data here |\n| Total | 0 | |\n",
    ),
    (
        "document", ".docx", "document", r"\b(?:document|docx?|report|proposal|word)\b",
        "# {name}\n\nDocument created: {date}\n\n## Executive Summary\n\n## Main Content\n\n## Conclusion\n",
    ),
    (
        "presentation", ".pptx", "document", r"\b(?:presentation|pptx?|slides?|powerpoint)\b",
        "# {name}\n\nPresentation Outline\n\n## Slide 1: Title\n- {name}\n- Date: {date}\n\n## Slide 2: Agenda\n\n## Slide 3: Content\n",
    ),
    (
        "plan", ".md", "note", r"\b(?:plan|planning|strategy|roadmap)\b",
        "# {name}\n\nProject Plan - {date}\n\n## Objectives\n\n## Timeline\n- Phase 1:\n- Phase 2:\n- Phase 3:\n\n## Resources\n\n## Milestones\n",
    ),
    (
        "notes", ".md", "note", r"\b(?:notes?|meeting|minutes)\b",
        "# {name}\n\nMeeting Notes - {date}\n\n## Attendees\n\n## Agenda\n\n## Discussion Points\n\n## Action Items\n- [ ] \n",
    ),
    (
        "brief", ".md", "note", r"\b(?:brief|overview|summary)\b",
        "# {name}\n\nProject Brief - {date}\n\n## Project Overview\n\n## Objectives\n\n## Target Audience\n\n## Key Messages\n\n## Deliverables\n",
    ),
    (
        "checklist", ".md", "note", r"\b(?:checklist|tasks?|todo|list)\b",
        "# {name}\n\nChecklist - {date}\n\n## Pre-Launch\n- [ ] Task 1\n\n## Launch\n- [ ] Task 1\n\n## Post-Launch\n- [ ] Task 1\n",
    ),
)

MARKDOWN_TEMPLATE = "# {name}\n\nCreated: {date}\n\n## Overview\n\n## Details\n\n## Notes\n"

FILE_NAME_PATTERNS = (
    re.compile(
        r"(?:create|make|add|generate)\s+(?:a\s+)?(?:new\s+)?(?:file\s+)?(?:called\s+)?[\"']?([^\"']+?)[\"']?(?:\s+(?:for|in|to|as)\b|\s*$)",
        re.IGNORECASE,
    ),
    re.compile(r"(?:file\s+)?[\"']([^\"']+)[\"']", re.IGNORECASE),
)

PROJECT_PATTERNS = (
    re.compile(r"(?:for|in|to)\s+(?:the\s+)?project\s+[\"']?([^\"']+?)[\"']?\s*$", re.IGNORECASE),
    re.compile(r"project\s+[\"']([^\"']+)[\"']", re.IGNORECASE),
    re.compile(r"in\s+[\"']([^\"']+)[\"']\s+project", re.IGNORECASE),
)

_TYPE_WORDS = re.compile(r"\b(?:file|document|spreadsheet|presentation|notes?|plan|brief|checklist)\b", re.IGNORECASE)


def detect_file_type(text: str) -> tuple[str, str, str]:
    """(file type, extension, backend file type)."""
    lowered = text.lower()
    for file_type, extension, backend_type, pattern, _ in FILE_TYPES:
        if re.search(pattern, lowered):
            return file_type, extension, backend_type
    return "markdown", ".md", "note"


def extract_file_details(text: str) -> dict[str, Any]:
    file_type, extension, backend_type = detect_file_type(text)

    project_name = ""
    for pattern in PROJECT_PATTERNS:
        match = pattern.search(text)
        if match:
            project_name = match.group(1).strip()
            break

    file_name = ""
    for pattern in FILE_NAME_PATTERNS:
        match = pattern.search(text)
        if match:
            file_name = match.group(1).strip()
            break
    if not file_name and text.strip() and not project_name:
        file_name = text.strip()
    file_name = re.sub(r"\s{2,}", " ", _TYPE_WORDS.sub("", file_name)).strip()
    if not file_name:
        file_name = f"new-{file_type}"
    if "." not in file_name:
        file_name += extension

    return {
        "file_name": file_name,
        "file_type": file_type,
        "extension": extension,
        "backend_type": backend_type,
        "project_name": project_name,
    }


def render_template(file_type: str, file_name: str, today: str) -> str:
    template = next((t[4] for t in FILE_TYPES if t[0] == file_type), MARKDOWN_TEMPLATE)
    base_name = re.sub(r"\.[^/.]+$", "", file_name)
    return template.format(name=base_name, date=today)


def select_project(text: str, projects: list[dict[str, Any]]) -> dict[str, Any] | None:
    """Pick a project by list number or by (partial) name."""
    answer = text.strip()
    if re.fullmatch(r"\d+", answer):
        index = int(answer) - 1
        return projects[index] if 0 <= index < len(projects) else None

    match = re.search(r"(?:add.*to|put.*in|create.*for|use|select)\s+[\"']?([^\"']+?)[\"']?$", answer, re.IGNORECASE)
    wanted = (match.group(1) if match else answer).strip().strip("\"'").lower()
    if not wanted:
        return None
    for project in projects:
        name = str(project.get("name", "")).lower()
        if name and (wanted in name or name in wanted):
            return project
    return None


def _project_list(projects: list[dict[str, Any]]) -> str:
    return "\n".join(f"{i}. {p.get('name', '')}" for i, p in enumerate(projects, start=1))


class FileProjectSelectionFlow(ConversationFlow):
    capability_id = "file-creator"
    timeout_seconds = 5 * 60

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self._clock = clock

    @property
    def phases(self) -> list[PhaseSpec]:
        return [
            PhaseSpec(
                phase=1,
                prompt=self._ask_project,
                extractor=lambda text: {"selection": text.strip()},
            )
        ]

    def initial_extractor(self, text: str) -> dict[str, Any]:
        return extract_file_details(text)

    def expired_message(self) -> str:
        return "The pending file request expired. Run /create-file again."

    @staticmethod
    def _ask_project(session: ConversationSession) -> str:
        projects = session.data.get("projects", [])
        return (
            f"Which project should '{session.data.get('file_name', 'the file')}' go into?\n\n"
            f"{_project_list(projects)}\n\n"
            "Reply with a number or a project name."
        )

    async def finalize(self, session: ConversationSession, commands: CommandInterface) -> CapabilityOutput:
        projects = session.data.get("projects", [])
        project = select_project(session.data.get("selection", ""), projects)
        if project is None:
            return clarification(
                "Project not found. Please select from the available projects:\n\n" + _project_list(projects)
            )
        return await create_file_in(session.data, project, commands, self._clock)


async def create_file_in(
    details: dict[str, Any],
    project: dict[str, Any],
    commands: CommandInterface,
    clock: Callable[[], datetime] = utc_now,
) -> CapabilityOutput:
    today = clock().date().isoformat()
    content = render_template(details["file_type"], details["file_name"], today)
    record = await commands.create_file(
        name=details["file_name"],
        file_type=details["backend_type"],
        project_id=str(project.get("id", "")),
        content=content,
        extension=details["extension"].lstrip("."),
    )
    return success(
        f"File created: {details['file_name']}\n"
        f"Project: {project.get('name', '')}\n"
        f"Type: {details['file_type']}",
        file=record,
    )


class FileCreatorCapability(SessionCapability):
    info = CapabilityInfo(
        id="file-creator",
        name="File Creator",
        description="Creates files in existing projects with project selection",
        icon="FilePlus",
        operations=[
            Operation(
                id="create-file",
                command="/create-file",
                name="Create File",
                description="Create a templated file, e.g. 'create meeting notes in project \"Launch\"'",
                parameters=[
                    OperationParameter(name="name", description="File name"),
                    OperationParameter(
                        name="type",
                        kind="enum",
                        choices=["markdown", "spreadsheet", "document", "presentation", "plan", "notes", "brief", "checklist"],
                        default="markdown",
                    ),
                    OperationParameter(name="project", description="Target project name"),
                ],
            )
        ],
    )

    def __init__(self, clock: Callable[[], datetime] = utc_now, **kwargs: Any):
        self._clock = clock
        super().__init__(FileProjectSelectionFlow(clock=clock), clock=clock, **kwargs)

    async def start(self, session_id: str, text: str, commands: CommandInterface) -> CapabilityOutput:
        if not text:
            return clarification(
                "Tell me what to create, e.g. /create-file budget spreadsheet in project \"Launch Plan\"."
            )
        details = extract_file_details(text)
        projects = await commands.get_projects()

        if details["project_name"]:
            project = find_project(projects, details["project_name"])
            if project is None:
                return failure(
                    f"Could not find a project named \"{details['project_name']}\".\n\n"
                    f"Available projects:\n{_project_list(projects) or '(none)'}",
                    project=details["project_name"],
                )
            self.engine.discard(session_id)
            return await create_file_in(details, project, commands, self._clock)

        if not projects:
            return failure("No projects exist yet. Create one first with /create-project <name>.")
        return self.engine.begin(session_id, text, seed_data={"projects": projects})
