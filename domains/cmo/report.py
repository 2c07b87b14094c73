"""
Marketing Campaign Possibilities Report rendering.
"""

from __future__ import annotations

from typing import Any

DEFAULT_PLATFORMS = ["LinkedIn", "Twitter/X"]
DEFAULT_KPIS = ["engagement rate", "reach", "website traffic"]

PLATFORM_STRATEGIES: dict[str, dict[str, str]] = {
    "LinkedIn": {
        "content": "Professional insights, industry analysis, thought leadership articles, company updates",
        "cadence": "3-4 posts per week",
        "recommendations": "Focus on business value, engage in relevant groups, use LinkedIn native video",
    },
    "Facebook": {
        "content": "Long-form content, community discussions, behind-the-scenes content, customer stories",
        "cadence": "4-5 posts per week",
        "recommendations": "Build community through Groups, use Live for real-time engagement",
    },
    "Instagram": {
        "content": "High-quality visuals, Stories, Reels, carousel posts, user-generated content",
        "cadence": "Daily Stories, 4-5 feed posts per week",
        "recommendations": "Use relevant hashtags, collaborate with micro-influencers, create engaging Reels",
    },
    "Twitter/X": {
        "content": "Real-time updates, industry commentary, quick tips, thread discussions",
        "cadence": "Multiple posts per day",
        "recommendations": "Join relevant conversations, use hashtags sparingly, share quick insights",
    },
    "TikTok": {
        "content": "Short-form entertaining videos, educational content, trending challenges",
        "cadence": "Daily posts",
        "recommendations": "Stay current with trends, use popular sounds, create educational series",
    },
    "Reddit": {
        "content": "Valuable discussions, AMAs, helpful resources, authentic community participation",
        "cadence": "2-3 posts per week",
        "recommendations": "Follow subreddit rules, provide genuine value, avoid over-promotion",
    },
}

CONTENT_RECOMMENDATIONS = {
    "video": "Focus on short-form videos, tutorials, behind-the-scenes content and live streams",
    "images": "High-quality graphics, infographics, carousel posts and visual storytelling",
    "text": "In-depth articles, thought leadership posts, industry insights and detailed guides",
    "mix": "Balanced content approach with platform-specific optimization",
}


def report_file_name(today: str) -> str:
    return f"marketing-campaign-strategy-{today}.md"


def campaign_summary(data: dict[str, Any]) -> str:
    timeline = data.get("timeline") or {}
    platforms = ", ".join(data.get("platforms") or []) or "Not specified"
    return (
        f"- Objective: {data.get('objective') or 'Not specified'}\n"
        f"- Target Audience: {data.get('target_audience') or 'Not specified'}\n"
        f"- Platforms: {platforms}\n"
        f"- Timeline: {timeline.get('start_date') or 'Not specified'} - {timeline.get('end_date') or 'Not specified'}\n"
        f"- Budget: {data.get('budget') or 'Not specified'}"
    )


def platform_strategies(platforms: list[str]) -> str:
    sections = []
    for platform in platforms:
        strategy = PLATFORM_STRATEGIES.get(platform)
        if strategy is None:
            sections.append(f"### {platform}\n*Platform strategy to be developed*\n")
            continue
        sections.append(
            f"### {platform}\n\n"
            f"**Content Type Recommendations:** {strategy['content']}\n\n"
            f"**Posting Cadence:** {strategy['cadence']}\n\n"
            f"**Specific Recommendations:** {strategy['recommendations']}\n"
        )
    return "\n".join(sections)


def render_report(data: dict[str, Any], today: str) -> str:
    timeline = data.get("timeline") or {}
    preferred = (data.get("content_types") or {}).get("preferred")
    content_types = CONTENT_RECOMMENDATIONS.get(
        preferred or "", "Mix of visual and text content optimized for each platform"
    )
    kpis = data.get("kpis") or DEFAULT_KPIS
    kpi_lines = "\n".join(f"- {k[:1].upper() + k[1:]}" for k in kpis)

    return f"""# Marketing Campaign Possibilities Report

*Generated on {today}*

## Executive Summary

A multi-platform campaign strategy built around the objectives, audience and
resources gathered during planning.

## Campaign Objectives

**Primary Objective:** {data.get('objective') or 'To be defined'}

**Success Definition:** {', '.join(data.get('kpis') or []) or 'Standard engagement and conversion metrics'}

## Target Audience

**Demographics & Characteristics:** {data.get('target_audience') or 'Target audience to be refined'}

## Multi-Platform Strategy

{platform_strategies(data.get('platforms') or DEFAULT_PLATFORMS)}
## Content Strategy & Messaging

**Content Types:** {content_types}

**Brand Voice:** {data.get('brand_guidelines') or 'Professional yet approachable, focusing on value delivery'}

**Competitive Context:** {data.get('competitive_context') or 'Not provided'}

## Campaign Timeline

**Duration:** {timeline.get('start_date') or 'To be determined'} - {timeline.get('end_date') or 'Ongoing'}

**Key Milestones:**
- Week 1-2: Content foundation and initial engagement
- Week 3-4: Community building and relationship development
- Month 2+: Conversion optimization and scaling

## Budget Considerations

**Allocation:** {data.get('budget') or 'Budget to be determined based on platform performance'}

**Recommended Distribution:**
- 60% Content creation and management
- 30% Paid advertising and promotion
- 10% Analytics and optimization tools

## Key Performance Indicators (KPIs)

{kpi_lines}

**Reporting Frequency:** Weekly performance reviews with monthly strategic assessments

## Implementation Next Steps

1. Build a 30-day content calendar with platform-specific posts
2. Optimize profiles and set up analytics on every selected platform
3. Define engagement guidelines and response templates
4. Review performance weekly and adjust
"""
