"""
Campaign Director — bulk campaign generation driven through the Batch Processor.

Phase 1 asks for the campaign name, phase 2 for an instructions file (plus
optional settings). Finalization creates the campaign project, generates
weeks x 7 x posts-per-day posts and creates them batch by batch.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable

from commands.interface import CommandInterface
from conversation.session_engine import ConversationFlow, ConversationSession, PhaseSpec
from domains.base import SessionCapability, clarification, ensure_project, failure, success
from domains.director.planner import (
    CampaignPost,
    CampaignSettings,
    find_instruction_file,
    generate_posts,
    parse_campaign_settings,
    parse_instruction_selection,
    post_file_name,
)
from execution.batch_processor import BatchProcessor
from shared.models import CapabilityInfo, CapabilityOutput, Operation, OperationParameter, utc_now

logger = logging.getLogger(__name__)

NAME_PROMPT = (
    "Campaign Director\n\n"
    "I'll orchestrate a multi-platform campaign with 100+ scheduled posts.\n\n"
    "Step 1: What would you like to name your campaign project? "
    '(e.g. "Q4 Product Launch")'
)


def _instructions_prompt(session: ConversationSession) -> str:
    return (
        f"Campaign project: {session.data.get('campaign_name', '')}\n\n"
        "Step 2: Which instructions file holds your campaign guidelines? "
        "Reply with its file name (e.g. marketing-campaign-strategy-2025-01-31.md).\n\n"
        "Optional settings on following lines:\n"
        "duration: 4 weeks\n"
        "platforms: twitter, linkedin, instagram, facebook\n"
        "posts per day: 3"
    )


def extract_campaign_name(text: str) -> dict[str, Any]:
    name = text.strip().splitlines()[0].strip() if text.strip() else ""
    if not name or name.startswith("/") or name.lower().startswith("selected file:"):
        return {}
    return {"campaign_name": name}


def extract_instructions_and_settings(text: str) -> dict[str, Any]:
    selection = parse_instruction_selection(text)
    lines = text.strip().splitlines()
    settings_text = "\n".join(lines[1:]) if selection else text
    return {"instructions_file": selection, **parse_campaign_settings(settings_text)}


class DirectorFlow(ConversationFlow):
    capability_id = "director"
    timeout_seconds = 30 * 60

    def __init__(
        self,
        batch_processor: BatchProcessor | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.batch_processor = batch_processor or BatchProcessor()
        self._clock = clock

    @property
    def phases(self) -> list[PhaseSpec]:
        return [
            PhaseSpec(1, NAME_PROMPT, extract_campaign_name, next_phase=2),
            PhaseSpec(
                2,
                _instructions_prompt,
                extract_instructions_and_settings,
                correction_prompt=_instructions_prompt,
            ),
        ]

    def initial_extractor(self, text: str) -> dict[str, Any]:
        return parse_campaign_settings(text)

    def idle_message(self) -> str:
        return "Campaign has already been generated and scheduled. Use /director to start a new campaign."

    async def finalize(self, session: ConversationSession, commands: CommandInterface) -> CapabilityOutput:
        file_name = session.data.get("instructions_file", "")
        if not file_name:
            return clarification("Please reply with the name of an instructions file.")

        instruction_file = find_instruction_file(await commands.get_all_files(), file_name)
        if instruction_file is None:
            return clarification(f"File \"{file_name}\" not found. Please select a valid instructions file.")

        settings = CampaignSettings.from_data(session.data)
        project = await ensure_project(
            commands, settings.name, description=f"Marketing campaign project: {settings.name}"
        )
        project_id = str(project.get("id", ""))
        now = self._clock()
        campaign_id = f"campaign_{int(now.timestamp())}"
        posts = generate_posts(
            settings,
            str(instruction_file.get("content", "")),
            campaign_id,
            start=now,
            batch_size=self.batch_processor.batch_size,
        )
        logger.info(
            "Generating campaign %s: %d posts across %s",
            campaign_id,
            len(posts),
            ", ".join(settings.platforms),
        )

        async def create_post(post: CampaignPost) -> dict[str, Any]:
            return await commands.create_file(
                name=post_file_name(settings.name, post),
                file_type="post",
                project_id=project_id,
                content=post.content,
                extension=post.platform,
                platform=post.platform,
                post_status="scheduled",
                scheduled_at=post.scheduled_at.isoformat(),
                path=f"/campaigns/{settings.name}/{post.platform}/",
                hashtags=post.hashtags,
                campaign_id=post.campaign_id,
                batch_id=post.batch_id,
                campaign_phase=post.phase,
                content_type=post.content_type,
            )

        async def report_progress(payload: dict[str, Any]) -> None:
            await commands.store_message(
                role="assistant",
                content=(
                    f"Processed batch {payload['batch_index']} of {payload['batch_count']} "
                    f"({payload['processed']}/{payload['total']} posts, {payload['failed']} failed)"
                ),
                session_id=session.session_id,
                metadata={"campaign_id": campaign_id, "batch_id": payload["batch_id"]},
            )

        run = await self.batch_processor.run(campaign_id, posts, create_post, progress_callback=report_progress)

        summary = (
            f"Campaign: {settings.name}\n"
            f"Campaign ID: {campaign_id}\n"
            f"Total posts: {run.total_count}\n"
            f"Created: {run.succeeded_count}\n"
            f"Failed: {run.failed_count}\n"
            f"Platforms: {', '.join(settings.platforms)}\n"
            f"Duration: {settings.weeks} weeks\n"
            f"Batches processed: {len(run.batches)}"
        )
        result = {
            "campaign_id": campaign_id,
            "project": project,
            "total_posts": run.total_count,
            "created": run.succeeded_count,
            "failed": run.failed_count,
            "batches": [b.model_dump(mode="json", exclude={"items"}) for b in run.batches],
            "errors": run.errors,
        }
        if run.total_count and run.succeeded_count == 0:
            return failure(f"Campaign generation failed: no posts were created.\n\n{summary}", **result)
        return success(f"Campaign successfully created.\n\n{summary}", **result)


class DirectorCapability(SessionCapability):
    info = CapabilityInfo(
        id="director",
        name="Campaign Director",
        description="Orchestrates large-scale marketing campaigns with 100+ posts across multiple platforms",
        icon="Clapperboard",
        operations=[
            Operation(
                id="orchestrate-campaign",
                command="/director",
                name="Orchestrate Campaign",
                description="Create and schedule a complete campaign from an instructions file",
                parameters=[
                    OperationParameter(name="campaign_name", description="Campaign project name"),
                    OperationParameter(name="instructions_file", description="Instructions document to follow"),
                    OperationParameter(name="weeks", kind="number", default=4),
                    OperationParameter(name="posts_per_day", kind="number", default=3),
                ],
            )
        ],
    )

    def __init__(
        self,
        batch_processor: BatchProcessor | None = None,
        clock: Callable[[], datetime] = utc_now,
        **kwargs: Any,
    ):
        super().__init__(DirectorFlow(batch_processor=batch_processor, clock=clock), clock=clock, **kwargs)

    async def start(self, session_id: str, text: str, commands: CommandInterface) -> CapabilityOutput:
        name = extract_campaign_name(text)
        if name:
            settings = parse_campaign_settings("\n".join(text.strip().splitlines()[1:]))
            return self.engine.begin(session_id, "", seed_data={**name, **settings}, phase=2)
        return self.engine.begin(session_id, text)
