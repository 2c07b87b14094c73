"""
Intent Router — maps free text to ranked capability candidates.

Responsibility:
- Score a fixed, ordered table of trigger-keyword groups against the input
- Normalize scores into 0-1 confidence values
- Apply the caller policy (execute / disambiguate / guide)

Prohibitions:
- No execution
- No statistical matching: identical input always yields identical output
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from registry.capability_registry import CapabilityRegistry
from shared.models import RouteCandidate, RoutingDecision

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TriggerGroup:
    triggers: tuple[str, ...]
    capability_id: str
    operation_id: str
    weight: int
    reason: str = ""


DEFAULT_TRIGGER_GROUPS: tuple[TriggerGroup, ...] = (
    TriggerGroup(
        ("twitter", "tweet", "social", "post", "x.com"),
        "twitter-post", "create-twitter-post", 10, "Creating social media content",
    ),
    TriggerGroup(
        ("project", "create project", "new project", "folder"),
        "project-creator", "natural-language-creator", 9, "Creating a new project",
    ),
    TriggerGroup(
        ("instructions", "guidelines", "brand guide", "rules"),
        "instructions", "generate-instructions", 9, "Generating instructions and guidelines",
    ),
    TriggerGroup(
        ("campaign", "marketing", "strategy", "cmo"),
        "cmo", "define-campaign", 9, "Marketing strategy and campaign planning",
    ),
    TriggerGroup(
        ("schedule", "calendar", "timing"),
        "content-scheduler", "schedule-content", 8, "Planning and scheduling content",
    ),
    TriggerGroup(
        ("file", "create file", "new file", "document"),
        "file-creator", "create-file", 8, "Creating a file inside a project",
    ),
    TriggerGroup(
        ("bulk", "director", "orchestrate"),
        "director", "orchestrate-campaign", 6, "Generating a full multi-week campaign",
    ),
)


def _trigger_pattern(trigger: str) -> re.Pattern[str]:
    return re.compile(r"(?<![a-z0-9])" + re.escape(trigger.lower()) + r"(?![a-z0-9])")


class IntentRouter:
    """Deterministic keyword router over a declared trigger table."""

    def __init__(
        self,
        registry: CapabilityRegistry,
        groups: tuple[TriggerGroup, ...] | list[TriggerGroup] = DEFAULT_TRIGGER_GROUPS,
        auto_execute_threshold: float = 0.8,
        disambiguate_threshold: float = 0.5,
    ):
        self.registry = registry
        self.groups = tuple(groups)
        self.auto_execute_threshold = auto_execute_threshold
        self.disambiguate_threshold = disambiguate_threshold
        self.max_weight = max((g.weight for g in self.groups), default=1) or 1
        self._patterns = {
            trigger: _trigger_pattern(trigger)
            for group in self.groups
            for trigger in group.triggers
        }

    def score(self, input_text: str, group: TriggerGroup) -> int:
        text = input_text.lower()
        matched = {t for t in group.triggers if self._patterns[t].search(text)}
        return len(matched) * group.weight

    def route(self, input_text: str) -> list[RouteCandidate]:
        """Ranked candidates, best first. Ties keep declaration order."""
        scored: list[tuple[float, int, RouteCandidate]] = []
        seen: set[tuple[str, str]] = set()

        for index, group in enumerate(self.groups):
            points = self.score(input_text, group)
            if points <= 0:
                continue
            capability = self.registry.get(group.capability_id)
            if capability is None:
                continue
            info = capability.describe()
            operation = info.find_operation(group.operation_id)
            if operation is None:
                continue
            key = (group.capability_id, group.operation_id)
            if key in seen:
                continue
            seen.add(key)
            confidence = min(1.0, points / self.max_weight)
            scored.append((
                confidence,
                index,
                RouteCandidate(
                    capability_id=info.id,
                    operation_id=operation.id,
                    command=operation.command,
                    capability_name=info.name,
                    confidence=confidence,
                    reason=group.reason,
                ),
            ))

        scored.sort(key=lambda item: (-item[0], item[1]))
        candidates = [candidate for _, _, candidate in scored]
        if candidates:
            logger.debug(
                "Routed %r -> %s (%.2f)", input_text, candidates[0].capability_id, candidates[0].confidence
            )
        return candidates

    def decide(self, input_text: str) -> RoutingDecision:
        return self.decide_from(self.route(input_text))

    def decide_from(self, candidates: list[RouteCandidate]) -> RoutingDecision:
        """Apply the caller policy to candidates already ranked by route()."""
        if not candidates:
            return RoutingDecision(action="guide", candidates=[])

        top = candidates[0].confidence
        if top >= self.auto_execute_threshold:
            return RoutingDecision(action="execute", candidates=candidates)
        if top >= self.disambiguate_threshold:
            return RoutingDecision(action="disambiguate", candidates=candidates[:3])
        return RoutingDecision(action="guide", candidates=candidates[:3])
