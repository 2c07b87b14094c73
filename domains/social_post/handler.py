"""
Twitter Post — turns chat text into a draft (or scheduled) X/Twitter post file.

Flags: --project <name>, --schedule "<when>", --settings <reply-setting>.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta
from typing import Any, Callable

from commands.interface import CommandInterface
from domains.base import Capability, ensure_project, failure, find_project, slugify, strip_command, success
from shared.models import CapabilityInfo, CapabilityOutput, Operation, OperationParameter, utc_now

logger = logging.getLogger(__name__)

TWEET_LIMIT = 280
DEFAULT_PROJECT = "Content Creation"

REPLY_SETTINGS = {
    "everyone": "following",
    "followers": "following",
    "mentioned-users": "mentionedUsers",
    "verified-accounts": "verified",
}

_PROJECT_FLAG = re.compile(r"--project[=\s]+(?:\"([^\"]+)\"|([^\s]+))", re.IGNORECASE)
_SCHEDULE_FLAG = re.compile(r"--schedule[=\s]+(?:\"([^\"]+)\"|([^\s]+))", re.IGNORECASE)
_SETTINGS_FLAG = re.compile(r"--settings[=\s]+([^\s]+)", re.IGNORECASE)


def parse_post_parameters(text: str) -> dict[str, Any]:
    params: dict[str, Any] = {"content": text, "project": None, "schedule": None, "settings": None}

    match = _PROJECT_FLAG.search(params["content"])
    if match:
        params["project"] = match.group(1) or match.group(2)
        params["content"] = params["content"].replace(match.group(0), "")

    match = _SCHEDULE_FLAG.search(params["content"])
    if match:
        params["schedule"] = match.group(1) or match.group(2)
        params["content"] = params["content"].replace(match.group(0), "")

    match = _SETTINGS_FLAG.search(params["content"])
    if match:
        params["settings"] = match.group(1)
        params["content"] = params["content"].replace(match.group(0), "")

    params["content"] = re.sub(r"[ \t]{2,}", " ", params["content"]).strip()
    return params


def map_reply_settings(settings: str | None) -> str:
    if not settings:
        return "following"
    return REPLY_SETTINGS.get(settings.lower(), "following")


def parse_schedule(schedule: str, now: datetime) -> datetime | None:
    """'tomorrow [2pm]', 'in N hours|days', or an ISO timestamp. None when unparseable."""
    text = schedule.strip().lower()

    relative = re.fullmatch(r"in\s+(\d+)\s+(hour|day)s?", text)
    if relative:
        amount = int(relative.group(1))
        return now + (timedelta(hours=amount) if relative.group(2) == "hour" else timedelta(days=amount))

    tomorrow = re.fullmatch(r"tomorrow(?:\s+(?:at\s+)?(\d{1,2})(?::(\d{2}))?\s*(am|pm)?)?", text)
    if tomorrow:
        hour = int(tomorrow.group(1)) if tomorrow.group(1) else 9
        minute = int(tomorrow.group(2)) if tomorrow.group(2) else 0
        if tomorrow.group(3) == "pm" and hour < 12:
            hour += 12
        elif tomorrow.group(3) == "am" and hour == 12:
            hour = 0
        if hour > 23 or minute > 59:
            return None
        return (now + timedelta(days=1)).replace(hour=hour, minute=minute, second=0, microsecond=0)

    try:
        parsed = datetime.fromisoformat(schedule.strip())
    except ValueError:
        return None
    if parsed.tzinfo is None and now.tzinfo is not None:
        parsed = parsed.replace(tzinfo=now.tzinfo)
    return parsed


def split_thread(content: str) -> list[str]:
    """Thread parts on blank lines when the text is long or already paragraphed."""
    if len(content) <= TWEET_LIMIT and "\n\n" not in content:
        return [content]
    parts = [part.strip() for part in content.split("\n\n") if part.strip()]
    return parts if len(parts) > 1 else [content]


def post_file_name(content: str, max_words: int = 3) -> str:
    words = re.findall(r"[A-Za-z0-9]+", content)[:max_words]
    return (slugify(" ".join(words)) or "twitter-post") + ".x"


class TwitterPostCapability(Capability):
    info = CapabilityInfo(
        id="twitter-post",
        name="Twitter Post",
        description="Creates X/Twitter post drafts with optional scheduling",
        icon="Twitter",
        operations=[
            Operation(
                id="create-twitter-post",
                command="/twitter",
                name="Create Twitter Post",
                description="Create a post, e.g. '/twitter Launch day! --project Launch --schedule \"tomorrow 2pm\"'",
                parameters=[
                    OperationParameter(name="content", required=True, description="Post text"),
                    OperationParameter(name="project", description="Target project (--project)"),
                    OperationParameter(name="schedule", description="When to publish (--schedule)"),
                    OperationParameter(
                        name="settings",
                        kind="enum",
                        choices=list(REPLY_SETTINGS),
                        default="everyone",
                        description="Who can reply (--settings)",
                    ),
                ],
            )
        ],
    )

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self._clock = clock

    async def execute(
        self,
        operation: Operation,
        input_text: str,
        commands: CommandInterface,
        session_id: str | None = None,
    ) -> CapabilityOutput:
        params = parse_post_parameters(strip_command(input_text, operation.command))
        content = params["content"]
        if not content:
            return failure(
                "Please provide content for the post, e.g. /twitter Excited to share our launch!",
                usage="/twitter <content> [--project name] [--schedule when] [--settings everyone]",
            )

        when = None
        if params["schedule"]:
            when = parse_schedule(params["schedule"], self._clock())
            if when is None:
                return failure(
                    f"Could not understand the schedule \"{params['schedule']}\". "
                    "Try 'tomorrow 2pm', 'in 3 hours' or an ISO date.",
                    schedule=params["schedule"],
                )

        project = await self._target_project(params["project"], commands)
        thread = split_thread(content)
        record = await commands.create_file(
            name=post_file_name(content),
            file_type="post",
            project_id=str(project.get("id", "")),
            content=content,
            platform="twitter",
            post_status="draft",
            reply_settings=map_reply_settings(params["settings"]),
            thread=thread if len(thread) > 1 else [],
        )
        logger.info("Created twitter post %s in project %s", record.get("id"), project.get("name"))

        status = "Draft"
        if when is not None:
            record = await commands.schedule_post(str(record.get("id", "")), when)
            status = f"Scheduled for {when.strftime('%Y-%m-%d %H:%M')}"

        preview = content if len(content) <= 100 else content[:100] + "..."
        lines = [
            "Twitter post created",
            f"Content: \"{preview}\"",
            f"Project: {project.get('name', '')}",
            f"File: {record.get('name', '')}",
            f"Status: {status}",
            f"Reply settings: {map_reply_settings(params['settings'])}",
        ]
        if len(thread) > 1:
            lines.append(f"Thread: {len(thread)} tweets")
        return success("\n".join(lines), post=record)

    @staticmethod
    async def _target_project(name: str | None, commands: CommandInterface) -> dict[str, Any]:
        if name:
            return await ensure_project(commands, name, description=f"Posts for {name}")
        projects = await commands.get_projects()
        existing = find_project(projects, DEFAULT_PROJECT)
        if existing is not None:
            return existing
        if projects:
            return projects[0]
        return await ensure_project(commands, DEFAULT_PROJECT, description="Social media content")
