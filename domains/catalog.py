"""
The closed set of built-in capabilities, wired with shared collaborators.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable

from conversation.session_engine import SessionStore
from domains.base import Capability
from domains.cmo.handler import CMOCapability
from domains.director.handler import DirectorCapability
from domains.file_creator.handler import FileCreatorCapability
from domains.instructions.handler import InstructionsCapability
from domains.project_creator.handler import ProjectCreatorCapability
from domains.scheduling.handler import ContentSchedulerCapability
from domains.social_post.handler import TwitterPostCapability
from execution.batch_processor import BatchProcessor
from shared.models import utc_now


def build_capabilities(
    batch_processor: BatchProcessor | None = None,
    store: SessionStore | None = None,
    clock: Callable[[], datetime] = utc_now,
    session_timeout_seconds: float | None = None,
) -> list[Capability]:
    """All capabilities in routing order.

    session_timeout_seconds overrides the long-running conversations (CMO and
    Director); the short pending-input flows keep their own timeouts.
    """
    store = store or SessionStore()
    return [
        TwitterPostCapability(clock=clock),
        ProjectCreatorCapability(store=store, clock=clock),
        InstructionsCapability(clock=clock),
        CMOCapability(clock=clock, store=store, timeout_seconds=session_timeout_seconds),
        ContentSchedulerCapability(clock=clock),
        FileCreatorCapability(clock=clock, store=store),
        DirectorCapability(
            batch_processor=batch_processor,
            clock=clock,
            store=store,
            timeout_seconds=session_timeout_seconds,
        ),
    ]
