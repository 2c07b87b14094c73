"""
CMO — five-phase conversational campaign planner.

Phases: objectives & audience, platforms & content, timeline & budget,
measurement & brand, review. The review phase accepts corrections until the
user asks to "generate report", which stores the campaign report as an
instruction file.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable

from commands.interface import CommandInterface
from conversation.session_engine import ConversationFlow, ConversationSession, PhaseSpec
from domains.base import SessionCapability, clarification, success
from domains.cmo import extractors
from domains.cmo.report import campaign_summary, render_report, report_file_name
from domains.instructions.handler import create_instruction_file
from shared.models import CapabilityInfo, CapabilityOutput, Operation, OperationParameter, utc_now

logger = logging.getLogger(__name__)

WELCOME = (
    "Welcome to the CMO planner. I'll help you build a multi-platform marketing campaign strategy.\n\n"
    "Tell me about your campaign: what you want to achieve, who the audience is and which platforms "
    "you are considering.\n\n"
    "Example: /cmo launch a new SaaS product for small business owners on LinkedIn and Twitter"
)

PHASE_1_PROMPT = """Phase 1: Campaign Objectives & Target Audience

1. Primary objective: brand awareness, lead generation, sales conversion, customer retention or product launch?
2. Target audience: demographics, pain points, where they spend time online
3. Success metrics: how will you measure campaign success?"""

PHASE_2_PROMPT = """Phase 2: Platform Selection & Content Strategy

Available platforms: Facebook, Instagram, LinkedIn, Twitter/X, TikTok, Reddit

1. Which platforms are you considering or already using?
2. Content preferences: video, images, text or a mix?
3. Brand voice: professional, casual, humorous, educational?"""

PHASE_3_PROMPT = """Phase 3: Timeline & Posting Strategy

1. Campaign duration: when do you start and how long should it run (4 weeks, 3 months, ongoing)?
2. Posting frequency you can sustain per platform
3. Budget: any paid advertising, and in what range?"""

PHASE_4_PROMPT = """Phase 4: Measurement & Brand Guidelines

1. KPIs: engagement, reach, traffic, leads, conversions?
2. Brand guidelines: colours, voice, messaging to keep consistent
3. Competitive context: main competitors and campaigns to differentiate from"""


def _review_prompt(session: ConversationSession) -> str:
    return (
        "Phase 5: Final Review & Report Generation\n\n"
        f"Campaign summary:\n{campaign_summary(session.data)}\n\n"
        'Type "generate report" to create your Marketing Campaign Possibilities Report, '
        "or send corrections to the summary above."
    )


def _corrections_prompt(session: ConversationSession) -> str:
    return (
        "Updates applied.\n\n"
        f"{campaign_summary(session.data)}\n\n"
        'Type "generate report" when you are ready.'
    )


class CampaignFlow(ConversationFlow):
    capability_id = "cmo"
    timeout_seconds = 30 * 60

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self._clock = clock

    @property
    def phases(self) -> list[PhaseSpec]:
        return [
            PhaseSpec(1, PHASE_1_PROMPT, extractors.extract_initial_info, next_phase=2),
            PhaseSpec(2, PHASE_2_PROMPT, extractors.extract_platform_info, next_phase=3),
            PhaseSpec(3, PHASE_3_PROMPT, extractors.extract_timeline_info, next_phase=4),
            PhaseSpec(4, PHASE_4_PROMPT, extractors.extract_measurement_info, next_phase=5),
            PhaseSpec(
                5,
                _review_prompt,
                extractors.extract_corrections,
                finalize_when=extractors.wants_report,
                correction_prompt=_corrections_prompt,
            ),
        ]

    def initial_extractor(self, text: str) -> dict[str, Any]:
        return extractors.extract_initial_info(text)

    def expired_message(self) -> str:
        return (
            "Your campaign planning session has expired. "
            "Type /cmo [your campaign idea] to begin a fresh campaign strategy session."
        )

    def idle_message(self) -> str:
        return "Your campaign report has already been generated. Start a new plan with /cmo [your campaign idea]."

    async def finalize(self, session: ConversationSession, commands: CommandInterface) -> CapabilityOutput:
        today = self._clock().date().isoformat()
        file_name = report_file_name(today)
        objective = session.data.get("objective") or "Campaign Planning"
        record = await create_instruction_file(
            commands,
            file_name,
            render_report(session.data, today),
            topic=f"Marketing Campaign Strategy: {objective}",
            audience="marketing",
        )
        logger.info("Generated campaign report %s for session %s", file_name, session.session_id)
        return success(
            "Marketing campaign report generated\n"
            f"File: {file_name}\n"
            "Location: Instructions project\n"
            f"Campaign: {objective}\n\n"
            f"Run /director to turn it into scheduled posts.",
            file=record,
            campaign=dict(session.data),
        )


class CMOCapability(SessionCapability):
    info = CapabilityInfo(
        id="cmo",
        name="CMO",
        description="Marketing campaign strategy and planning with multi-platform recommendations",
        icon="TrendingUp",
        operations=[
            Operation(
                id="define-campaign",
                command="/cmo",
                name="Define Marketing Campaign",
                description="Interactive campaign planning, e.g. '/cmo product launch for developers on Reddit'",
                parameters=[
                    OperationParameter(
                        name="campaign_request",
                        required=True,
                        description="Campaign needs or goals",
                    )
                ],
            )
        ],
    )

    def __init__(self, clock: Callable[[], datetime] = utc_now, **kwargs: Any):
        super().__init__(CampaignFlow(clock=clock), clock=clock, **kwargs)

    async def start(self, session_id: str, text: str, commands: CommandInterface) -> CapabilityOutput:
        if not text:
            return clarification(WELCOME)
        return self.engine.begin(session_id, text)
