"""
Instructions — generates markdown instruction documents in the Instructions project.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable

from commands.interface import CommandInterface
from domains.base import Capability, ensure_project, failure, slugify, strip_command, success
from shared.models import CapabilityInfo, CapabilityOutput, Operation, OperationParameter, utc_now

logger = logging.getLogger(__name__)

INSTRUCTIONS_PROJECT = "Instructions"

INSTRUCTION_TEMPLATE = """# Instructions: {topic}

*Generated on {date}*

## Overview
This document provides instructions for: **{topic}**

## Prerequisites
- [ ] Ensure you have the necessary permissions
- [ ] Verify system requirements are met
- [ ] Check for any dependencies

## Step-by-Step Instructions

### Step 1: Preparation
1. Review the current setup
2. Back up any existing configuration
3. Prepare the necessary tools and resources

### Step 2: Implementation
1. Follow the specific procedures for {topic}
2. Monitor progress and verify each step
3. Document any deviations or issues

### Step 3: Verification
1. Test the implementation
2. Validate the results
3. Confirm everything is working as expected

## Best Practices
- Test in a development environment first
- Keep detailed logs of all changes
- Document any customizations

## Troubleshooting
- Check the documentation
- Review system logs
- Contact the support team if needed

---

*Last updated: {date}*
"""


def instruction_file_name(topic: str, today: str) -> str:
    return f"{slugify(topic) or 'instructions'}-{today}.md"


def render_instructions(topic: str, today: str) -> str:
    return INSTRUCTION_TEMPLATE.format(topic=topic, date=today)


async def create_instruction_file(
    commands: CommandInterface,
    file_name: str,
    content: str,
    topic: str,
    audience: str = "general",
) -> dict[str, Any]:
    """Store a document in the Instructions project, creating the project if needed.

    Shared with the CMO report and the Director, which read instruction files back.
    """
    project = await ensure_project(
        commands, INSTRUCTIONS_PROJECT, description="Project instructions and documentation"
    )
    return await commands.create_file(
        name=file_name,
        file_type="note",
        project_id=str(project.get("id", "")),
        content=content,
        topic=topic,
        audience=audience,
        category="instructions",
    )


class InstructionsCapability(Capability):
    info = CapabilityInfo(
        id="instructions",
        name="Instructions",
        description="Generates and maintains project instructions and documentation",
        icon="FileText",
        operations=[
            Operation(
                id="generate-instructions",
                command="/instructions",
                name="Generate Instructions",
                description="Create an instruction document, e.g. '/instructions onboarding new writers'",
                parameters=[
                    OperationParameter(name="topic", required=True, description="What the instructions cover"),
                    OperationParameter(
                        name="audience",
                        kind="enum",
                        choices=["developers", "users", "administrators", "general"],
                        default="general",
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
        topic = strip_command(input_text, operation.command)
        if not topic:
            return failure(
                "Please specify what you'd like instructions for, "
                "e.g. /instructions How to set up the development environment"
            )

        today = self._clock().date().isoformat()
        file_name = instruction_file_name(topic, today)
        content = render_instructions(topic, today)
        record = await create_instruction_file(commands, file_name, content, topic)
        logger.info("Created instruction file %s", file_name)

        preview = "\n".join(content.splitlines()[:3])
        return success(
            f"Instructions created: {file_name}\n"
            f"Topic: {topic}\n"
            f"Location: /instructions/{file_name}\n\n{preview}...",
            file=record,
        )
