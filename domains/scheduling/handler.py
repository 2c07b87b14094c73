"""
Content Scheduler — schedules and analyzes unscheduled social posts.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable

from commands.interface import CommandInterface
from domains.base import Capability, strip_command, success
from domains.scheduling.strategies import (
    RECOMMENDATIONS,
    build_schedule,
    parse_schedule_params,
    platform_counts,
    post_platform,
    unscheduled_posts,
)
from shared.errors import CommandError, NotFound
from shared.models import CapabilityInfo, CapabilityOutput, Operation, OperationParameter, utc_now

logger = logging.getLogger(__name__)

_PLATFORMS = ["all", "twitter", "reddit", "linkedin", "instagram", "facebook"]


def _nothing_found(platform: str) -> str:
    return "content" if platform == "all" else f"{platform} posts"


class ContentSchedulerCapability(Capability):
    info = CapabilityInfo(
        id="content-scheduler",
        name="Content Scheduler",
        description="Schedules unscheduled posts at optimal times",
        icon="Calendar",
        operations=[
            Operation(
                id="schedule-content",
                command="/schedule",
                name="Schedule Content",
                description="Schedule drafts, e.g. '/schedule platform: twitter strategy: spread timeframe: 3 days'",
                parameters=[
                    OperationParameter(name="platform", kind="enum", choices=_PLATFORMS, default="all"),
                    OperationParameter(
                        name="strategy", kind="enum", choices=["optimal", "spread", "custom"], default="optimal"
                    ),
                    OperationParameter(name="timeframe", default="next week"),
                    OperationParameter(name="frequency", default="daily"),
                ],
            ),
            Operation(
                id="analyze-content",
                command="/analyze-content",
                name="Analyze Content",
                description="Summarize unscheduled posts per platform",
                parameters=[
                    OperationParameter(name="platform", kind="enum", choices=_PLATFORMS, default="all"),
                ],
            ),
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
        text = strip_command(input_text, operation.command)
        if operation.id == "schedule-content":
            return await self.schedule_content(text, commands)
        if operation.id == "analyze-content":
            return await self.analyze_content(text, commands)
        raise NotFound(f"Unknown operation: {operation.id}", capability=self.id, operation=operation.id)

    async def schedule_content(self, text: str, commands: CommandInterface) -> CapabilityOutput:
        params = parse_schedule_params(text)
        posts = unscheduled_posts(await commands.get_all_files(), params.platform)
        if not posts:
            return success(
                f"No unscheduled {_nothing_found(params.platform)} found. All content appears to be scheduled.",
                scheduled=[],
                failed=[],
            )

        schedule = build_schedule(posts, params, self._clock())
        scheduled: list[dict[str, Any]] = []
        failed: list[dict[str, Any]] = []
        for post, when in schedule:
            try:
                await commands.schedule_post(str(post.get("id", "")), when)
            except CommandError as e:
                logger.warning("Failed to schedule %s: %s", post.get("name"), e)
                failed.append({"file_id": post.get("id"), "name": post.get("name"), "error": str(e)})
                continue
            scheduled.append({"file_id": post.get("id"), "name": post.get("name"), "scheduled_for": when.isoformat()})

        lines = [
            "Scheduling completed:",
            f"Successfully scheduled: {len(scheduled)} posts",
        ]
        if failed:
            lines.append(f"Errors: {len(failed)} posts")
        lines.append("")
        lines.append(f"Schedule ({params.strategy}):")
        for index, (post, when) in enumerate(schedule, start=1):
            lines.append(
                f"{index}. [{post_platform(post).upper()}] {when.strftime('%Y-%m-%d %H:%M')} - {post.get('name', '')}"
            )

        output = success("\n".join(lines), scheduled=scheduled, failed=failed, strategy=params.strategy)
        if scheduled:
            return output
        return output.model_copy(update={"status": "failure", "confidence": 0.0})

    async def analyze_content(self, text: str, commands: CommandInterface) -> CapabilityOutput:
        params = parse_schedule_params(text)
        posts = unscheduled_posts(await commands.get_all_files(), params.platform)
        if not posts:
            return success(f"No unscheduled {_nothing_found(params.platform)} found to analyze.", counts={})

        counts = platform_counts(posts)
        lines = ["Content Analysis Report", "", f"Total unscheduled posts: {len(posts)}", "", "By platform:"]
        lines.extend(f"  - {platform.upper()}: {count} posts" for platform, count in counts.items())

        recommendations = [(p, RECOMMENDATIONS[p]) for p in counts if p in RECOMMENDATIONS]
        if recommendations:
            lines.append("")
            lines.append("Scheduling recommendations:")
            lines.extend(f"  - {platform.title()}: {tip}" for platform, tip in recommendations)

        lines.append("")
        lines.append("Unscheduled posts:")
        for index, post in enumerate(posts, start=1):
            content = str(post.get("content", ""))
            preview = content if len(content) <= 50 else content[:50] + "..."
            lines.append(f"  {index}. [{post_platform(post).upper()}] {post.get('name', '')}")
            lines.append(f"     Content: \"{preview}\"")
            lines.append(f"     Status: {post.get('post_status', 'draft')}")
        lines.append("")
        lines.append("Use /schedule to schedule these posts automatically.")

        return success("\n".join(lines), counts=counts, total=len(posts))
