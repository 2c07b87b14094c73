"""
Pure keyword extractors for the campaign planning conversation.

Each function maps one free-text reply to a partial campaign data dict.
Keys absent from the result are left untouched by the session merge.
"""

from __future__ import annotations

import re
from typing import Any

OBJECTIVE_KEYWORDS: dict[str, tuple[str, ...]] = {
    "brand awareness": ("brand awareness", "awareness", "visibility", "recognition"),
    "lead generation": ("lead generation", "leads", "prospects", "capture"),
    "sales conversion": ("sales", "conversion", "revenue", "purchase"),
    "product launch": ("launch", "new product", "introduce", "debut"),
    "customer retention": ("retention", "loyalty", "existing customers", "repeat"),
}

PLATFORM_KEYWORDS: dict[str, tuple[str, ...]] = {
    "LinkedIn": ("linkedin", "linked in"),
    "Facebook": ("facebook", "fb"),
    "Instagram": ("instagram", "ig", "insta"),
    "Twitter/X": ("twitter", "x.com", "x"),
    "TikTok": ("tiktok", "tik tok"),
    "Reddit": ("reddit",),
}

AUDIENCE_KEYWORDS = (
    "small business", "entrepreneurs", "professionals", "developers",
    "students", "parents", "millennials", "gen z", "b2b", "b2c",
)

CONTENT_KEYWORDS: dict[str, tuple[str, ...]] = {
    "video": ("video", "videos", "reels", "stories"),
    "images": ("images", "photos", "graphics", "visual"),
    "text": ("text", "articles", "posts", "written"),
    "mix": ("mix", "combination", "variety", "all types"),
}

TIMELINE_KEYWORDS = (
    "4 weeks", "3 months", "ongoing", "immediately", "next month",
    "daily", "weekly", "twice a week", "3 times per week",
)

KPI_KEYWORDS = (
    "engagement", "reach", "impressions", "traffic", "leads",
    "conversions", "sales", "followers", "brand awareness",
)

REPORT_TRIGGERS = ("generate report", "create report")


def contains(text: str, keyword: str) -> bool:
    """Word-bounded, case-insensitive keyword test."""
    return re.search(rf"(?<![\w]){re.escape(keyword)}(?![\w])", text, re.IGNORECASE) is not None


def extract_objective(text: str) -> str | None:
    for objective, keywords in OBJECTIVE_KEYWORDS.items():
        if any(contains(text, k) for k in keywords):
            return objective
    return None


def extract_platforms(text: str) -> list[str]:
    return [p for p, keywords in PLATFORM_KEYWORDS.items() if any(contains(text, k) for k in keywords)]


def extract_audience(text: str) -> str | None:
    return next((k for k in AUDIENCE_KEYWORDS if contains(text, k)), None)


def extract_initial_info(text: str) -> dict[str, Any]:
    """Objective, platforms and audience. Also used for phase 1 and corrections."""
    data: dict[str, Any] = {}
    objective = extract_objective(text)
    if objective:
        data["objective"] = objective
    platforms = extract_platforms(text)
    if platforms:
        data["platforms"] = platforms
    audience = extract_audience(text)
    if audience:
        data["target_audience"] = audience
    return data


def extract_platform_info(text: str) -> dict[str, Any]:
    data: dict[str, Any] = {}
    platforms = extract_platforms(text)
    if platforms:
        data["platforms"] = platforms
    for content_type, keywords in CONTENT_KEYWORDS.items():
        if any(contains(text, k) for k in keywords):
            data["content_types"] = {"preferred": content_type}
            break
    return data


def extract_timeline_info(text: str) -> dict[str, Any]:
    data: dict[str, Any] = {}
    for keyword in TIMELINE_KEYWORDS:
        if contains(text, keyword):
            if "week" in keyword or "month" in keyword:
                data["timeline"] = {"end_date": keyword}
            break

    lowered = text.lower()
    if "budget" in lowered or "$" in text:
        amount = re.search(r"\$[\d,]+", text)
        if amount:
            data["budget"] = amount.group(0)
        elif "no budget" in lowered or contains(text, "free"):
            data["budget"] = "Organic only"
        else:
            data["budget"] = "Budget mentioned but amount not specified"
    return data


def extract_measurement_info(text: str) -> dict[str, Any]:
    data: dict[str, Any] = {}
    kpis = [k for k in KPI_KEYWORDS if contains(text, k)]
    if kpis:
        data["kpis"] = kpis
    lowered = text.lower()
    if "brand" in lowered or "guideline" in lowered:
        data["brand_guidelines"] = "Brand guidelines mentioned"
    if "competitor" in lowered or "competition" in lowered:
        data["competitive_context"] = "Competitive context provided"
    return data


def extract_corrections(text: str) -> dict[str, Any]:
    return extract_initial_info(text)


def wants_report(text: str) -> bool:
    lowered = text.lower()
    return any(trigger in lowered for trigger in REPORT_TRIGGERS)
