"""
Pure scheduling rules: parameter parsing, post selection and slot generation.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

PLATFORM_OPTIMAL_HOURS: dict[str, tuple[int, ...]] = {
    "twitter": (9, 13, 15),
    "reddit": (6, 12, 19),
}

RECOMMENDATIONS: dict[str, str] = {
    "twitter": "Best times are 9 AM, 1 PM, 3 PM weekdays",
    "reddit": "Best times are 6-8 AM, 12-2 PM, 7-9 PM",
}

STRATEGIES = ("optimal", "spread", "custom")


@dataclass(frozen=True)
class ScheduleParams:
    platform: str = "all"
    strategy: str = "optimal"
    timeframe: str = "next week"
    frequency: str = "daily"


def _param(text: str, key: str, multiword: bool = False) -> str | None:
    pattern = rf"{key}:\s*(.+?)(?=\s+\w+:|$)" if multiword else rf"{key}:\s*(\w+)"
    match = re.search(pattern, text, re.IGNORECASE)
    return match.group(1).strip() if match else None


def parse_schedule_params(text: str) -> ScheduleParams:
    """Reads 'platform: x strategy: y timeframe: ... frequency: ...'."""
    defaults = ScheduleParams()
    strategy = (_param(text, "strategy") or defaults.strategy).lower()
    return ScheduleParams(
        platform=(_param(text, "platform") or defaults.platform).lower(),
        strategy=strategy if strategy in STRATEGIES else "custom",
        timeframe=_param(text, "timeframe", multiword=True) or defaults.timeframe,
        frequency=_param(text, "frequency", multiword=True) or defaults.frequency,
    )


def parse_timeframe(timeframe: str) -> int:
    """Days covered by a timeframe phrase."""
    lowered = timeframe.lower()
    if "week" in lowered:
        return 7
    if "day" in lowered:
        match = re.search(r"(\d+)\s*day", lowered)
        return int(match.group(1)) if match else 1
    if lowered.strip() == "tomorrow":
        return 1
    return 7


def parse_frequency(frequency: str) -> int:
    """Hours between posts."""
    lowered = frequency.lower()
    if "twice daily" in lowered:
        return 12
    if "daily" in lowered:
        return 24
    match = re.search(r"every\s*(\d+)\s*hour", lowered)
    if match and int(match.group(1)) > 0:
        return int(match.group(1))
    return 24


def post_platform(post: dict[str, Any]) -> str:
    return str(post.get("platform") or post.get("type") or "").lower()


def is_post(record: dict[str, Any]) -> bool:
    return record.get("type") == "post" or bool(record.get("platform"))


def is_unscheduled(post: dict[str, Any]) -> bool:
    return not post.get("scheduled_at") or post.get("post_status") == "draft"


def unscheduled_posts(files: list[dict[str, Any]], platform: str = "all") -> list[dict[str, Any]]:
    return [
        f for f in files
        if is_post(f) and is_unscheduled(f) and (platform == "all" or post_platform(f) == platform)
    ]


def sort_for_scheduling(posts: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Twitter first; otherwise keep the original order."""
    return sorted(posts, key=lambda p: 0 if post_platform(p) == "twitter" else 1)


def skip_weekend(moment: datetime) -> datetime:
    while moment.weekday() >= 5:
        moment += timedelta(days=1)
    return moment


def optimal_time(platform: str, base: datetime, index: int) -> datetime:
    moment = base + timedelta(days=index // 3)
    hours = PLATFORM_OPTIMAL_HOURS.get(platform)
    if hours:
        moment = moment.replace(hour=hours[index % len(hours)], minute=0, second=0, microsecond=0)
    return skip_weekend(moment)


def spread_time(base: datetime, timeframe_days: int, index: int, total: int) -> datetime:
    interval = timeframe_days / total
    moment = base + timedelta(days=math.floor(interval * index))
    return moment.replace(hour=9 + (index % 8), minute=0, second=0, microsecond=0)


def custom_time(base: datetime, frequency_hours: int, index: int) -> datetime:
    return base + timedelta(hours=frequency_hours * index)


def build_schedule(
    posts: list[dict[str, Any]],
    params: ScheduleParams,
    now: datetime,
) -> list[tuple[dict[str, Any], datetime]]:
    ordered = sort_for_scheduling(posts)
    days = parse_timeframe(params.timeframe)
    hours = parse_frequency(params.frequency)

    schedule: list[tuple[dict[str, Any], datetime]] = []
    for index, post in enumerate(ordered):
        if params.strategy == "optimal":
            when = optimal_time(post_platform(post), now, index)
        elif params.strategy == "spread":
            when = spread_time(now, days, index, len(ordered))
        else:
            when = custom_time(now, hours, index)
        schedule.append((post, when))
    return schedule


def platform_counts(posts: list[dict[str, Any]]) -> dict[str, int]:
    counts: dict[str, int] = {}
    for post in posts:
        platform = post_platform(post) or "unknown"
        counts[platform] = counts.get(platform, 0) + 1
    return counts
