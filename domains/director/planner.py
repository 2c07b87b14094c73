"""
Campaign post planning: pure functions turning settings plus an instructions
document into a dated, tagged list of posts.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

DEFAULT_PLATFORMS = ("twitter", "linkedin", "instagram", "facebook")
DEFAULT_WEEKS = 4
DEFAULT_POSTS_PER_DAY = 3
MAX_WEEKS = 12
MAX_POSTS_PER_DAY = 10
DEFAULT_CAMPAIGN_NAME = "Marketing Campaign"

DAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
PHASES = ("awareness", "consideration", "conversion", "retention")
CONTENT_TYPES = ("educational", "promotional", "engagement", "announcement")

OPTIMAL_TIMES: dict[str, tuple[str, ...]] = {
    "twitter": ("09:00", "12:00", "15:00", "18:00"),
    "linkedin": ("08:00", "12:00", "17:00"),
    "instagram": ("11:00", "14:00", "17:00", "19:00"),
    "facebook": ("09:00", "13:00", "15:00"),
}

BASE_HASHTAGS = ("marketing", "business", "growth")
PHASE_HASHTAGS = {
    "awareness": ("brandawareness", "introduction"),
    "consideration": ("solutions", "evaluation"),
    "conversion": ("getstarted", "action"),
    "retention": ("community", "success"),
}
CONTENT_HASHTAGS = {
    "educational": ("tips", "learning"),
    "promotional": ("offer", "featured"),
    "engagement": ("discussion", "question"),
    "announcement": ("news", "update"),
}

BRAND_VOICES = ("professional", "friendly", "innovative", "trusted", "expert", "reliable")
AUDIENCES = ("businesses", "professionals", "teams", "companies", "organizations", "users")

TWEET_LIMIT = 250


@dataclass
class CampaignPost:
    platform: str
    content: str
    scheduled_at: datetime
    week: int
    day_of_week: str
    phase: str
    content_type: str
    hashtags: list[str] = field(default_factory=list)
    campaign_id: str = ""
    batch_id: str = ""


def _clamp(value: Any, upper: int) -> int:
    return min(upper, max(1, int(value)))


@dataclass(frozen=True)
class CampaignSettings:
    name: str = DEFAULT_CAMPAIGN_NAME
    weeks: int = DEFAULT_WEEKS
    posts_per_day: int = DEFAULT_POSTS_PER_DAY
    platforms: tuple[str, ...] = DEFAULT_PLATFORMS
    goals: str = "Brand awareness and lead generation"

    @property
    def total_posts(self) -> int:
        return self.weeks * 7 * self.posts_per_day

    @classmethod
    def from_data(cls, data: dict[str, Any]) -> "CampaignSettings":
        defaults = cls()
        return cls(
            name=data.get("campaign_name") or defaults.name,
            weeks=_clamp(data.get("weeks") or defaults.weeks, MAX_WEEKS),
            posts_per_day=_clamp(data.get("posts_per_day") or defaults.posts_per_day, MAX_POSTS_PER_DAY),
            platforms=tuple(data.get("platforms") or defaults.platforms),
            goals=data.get("goals") or defaults.goals,
        )


def parse_campaign_settings(text: str) -> dict[str, Any]:
    """Settings lines such as 'duration: 2 weeks', 'platforms: twitter, linkedin', '5 posts per day'."""
    settings: dict[str, Any] = {}
    for raw in text.splitlines():
        line = raw.strip()
        lowered = line.lower()
        if not line:
            continue
        if lowered.startswith("name:"):
            settings["campaign_name"] = line.split(":", 1)[1].strip()
            continue
        if lowered.startswith("goals:"):
            settings["goals"] = line.split(":", 1)[1].strip()
            continue

        weeks = re.search(r"(?:duration:\s*)?(\d+)\s*weeks?\b", lowered) or re.search(r"duration:\s*(\d+)", lowered)
        if weeks:
            settings["weeks"] = int(weeks.group(1))
        per_day = re.search(r"(\d+)\s*posts?\s*(?:per|a|/)\s*day", lowered) or re.search(
            r"posts per day:\s*(\d+)", lowered
        )
        if per_day:
            settings["posts_per_day"] = int(per_day.group(1))
        platforms = re.findall(r"\b(twitter|linkedin|facebook|instagram)\b", lowered)
        if platforms:
            settings["platforms"] = list(dict.fromkeys(platforms))
    return settings


def parse_instruction_selection(text: str) -> str:
    """File name from 'Selected file: x.md' or a bare name on the first line."""
    first = text.strip().splitlines()[0] if text.strip() else ""
    first = re.sub(r"^selected file:\s*", "", first, flags=re.IGNORECASE).strip().strip("\"'")
    if ":" in first or re.search(r"\bposts?\s+(?:per|a)\s+day\b|\bweeks?\b", first, re.IGNORECASE):
        return ""
    return first


def find_instruction_file(files: list[dict[str, Any]], file_name: str) -> dict[str, Any] | None:
    for candidate in (file_name, f"{file_name}.md"):
        for record in files:
            if record.get("name") == candidate:
                return record
        if "." in file_name:
            break
    return None


def extract_brand_voice(instructions: str) -> str:
    lowered = instructions.lower()
    return next((v.capitalize() for v in BRAND_VOICES if v in lowered), "Professional")


def extract_audience(instructions: str) -> str:
    lowered = instructions.lower()
    return next((a for a in AUDIENCES if a in lowered), "professionals")


def optimal_post_time(platform: str, day_index: int) -> str:
    times = OPTIMAL_TIMES.get(platform, OPTIMAL_TIMES["twitter"])
    return times[day_index % len(times)]


def campaign_phase(week: int, weeks: int) -> str:
    index = math.floor((week - 1) / (weeks / len(PHASES)))
    return PHASES[min(index, len(PHASES) - 1)]


def generate_hashtags(phase: str, content_type: str) -> list[str]:
    return [*BASE_HASHTAGS, *PHASE_HASHTAGS[phase], *CONTENT_HASHTAGS[content_type]][:5]


def platform_content(platform: str, phase: str, content_type: str, instructions: str, week: int, day: str) -> str:
    content = (
        f"{extract_brand_voice(instructions)} content for {extract_audience(instructions)} - "
        f"Week {week}, {day}. Phase: {phase}, Type: {content_type}. Platform: {platform}"
    )
    if platform == "twitter":
        return content if len(content) <= TWEET_LIMIT else content[: TWEET_LIMIT - 3] + "..."
    if platform == "linkedin":
        return f"{content}\n\n#LinkedInEngagement #ProfessionalGrowth"
    if platform == "instagram":
        return f"{content}\n\n#InstagramBusiness #VisualContent"
    if platform == "facebook":
        return f"{content}\n\nWhat do you think? Share your thoughts below!"
    return content


def generate_posts(
    settings: CampaignSettings,
    instructions: str,
    campaign_id: str,
    start: datetime,
    batch_size: int = 10,
) -> list[CampaignPost]:
    total = settings.total_posts
    platforms = settings.platforms
    posts: list[CampaignPost] = []
    for i in range(total):
        platform = platforms[i % len(platforms)]
        week = math.floor(i / (total / settings.weeks)) + 1
        day_index = i % 7
        day = DAYS[day_index]
        phase = campaign_phase(week, settings.weeks)
        content_type = CONTENT_TYPES[i % len(CONTENT_TYPES)]

        hour, minute = (int(part) for part in optimal_post_time(platform, day_index).split(":"))
        date = start + timedelta(days=i // len(platforms))
        posts.append(
            CampaignPost(
                platform=platform,
                content=platform_content(platform, phase, content_type, instructions, week, day),
                scheduled_at=date.replace(hour=hour, minute=minute, second=0, microsecond=0),
                week=week,
                day_of_week=day,
                phase=phase,
                content_type=content_type,
                hashtags=generate_hashtags(phase, content_type),
                campaign_id=campaign_id,
                batch_id=f"batch_{i // batch_size}",
            )
        )
    return posts


def post_file_name(project_name: str, post: CampaignPost) -> str:
    return f"{project_name or 'campaign'}_{post.platform}_week{post.week}_{post.day_of_week}"
