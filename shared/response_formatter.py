from __future__ import annotations

import re
from typing import Any

from shared.models import CapabilityInfo, CapabilityMetrics, CapabilityOutput, RouteCandidate, SystemHealth


def _round_value(value: Any, decimals: int = 2) -> Any:
    if isinstance(value, float):
        return round(value, decimals)
    if isinstance(value, dict):
        return {k: _round_value(v, decimals=decimals) for k, v in value.items()}
    if isinstance(value, list):
        return [_round_value(item, decimals=decimals) for item in value]
    return value


def _round_numbers_in_text(text: str) -> str:
    if not text:
        return ""

    def repl(match: re.Match[str]) -> str:
        return f"{float(match.group(0)):.2f}"

    return re.sub(r"-?\d+\.\d{3,}", repl, text)


def format_output(output: CapabilityOutput) -> str:
    """
    Normalize capability output for the CLI and API:
    - no raw JSON
    - rounded numeric values (2 decimals)
    """
    explanation = _round_numbers_in_text(str(output.explanation or "").strip())

    if output.status == "success":
        return explanation or "Done."

    if output.status == "clarification":
        return explanation or "I need a few more details to continue."

    # failure
    if explanation:
        return f"Could not complete the request: {explanation}"
    err = str(output.metadata.get("error", "")).strip() if isinstance(output.metadata, dict) else ""
    if err:
        return f"Could not complete the request: {_round_numbers_in_text(err)}"
    return "Could not complete the request."


def format_candidates(candidates: list[RouteCandidate]) -> str:
    return "\n".join(
        f"  {c.command:<18} {c.capability_name} ({c.confidence:.0%})" + (f" - {c.reason}" if c.reason else "")
        for c in candidates
    )


def format_capabilities(capabilities: list[CapabilityInfo]) -> str:
    lines = ["Available capabilities:"]
    for info in capabilities:
        lines.append(f"- {info.name} [{info.id}]: {info.description}")
        for operation in info.operations:
            lines.append(f"    {operation.command:<18} {operation.description or operation.name}")
    return "\n".join(lines)


def format_metrics(metrics: CapabilityMetrics) -> str:
    data = _round_value(metrics.model_dump())
    line = (
        f"{data['capability_name'] or data['capability_id']}: {data['invocation_count']} runs, "
        f"{data['success_rate']}% success, avg {data['average_response_time_ms']} ms"
    )
    if metrics.error_log:
        line += f", last error: {metrics.error_log[-1].error}"
    return line


def format_health(health: SystemHealth, metrics: list[CapabilityMetrics] | None = None) -> str:
    lines = [
        "System health",
        f"  Overall success rate: {health.overall_success_rate:.2f}%",
        f"  Average response time: {health.avg_response_time_ms:.2f} ms",
        f"  Active capabilities: {health.active_capabilities}",
        f"  Total executions: {health.total_executions}",
    ]
    used = [m for m in metrics or [] if m.invocation_count]
    if used:
        lines.append("")
        lines.extend(f"  {format_metrics(m)}" for m in used)
    return "\n".join(lines)
