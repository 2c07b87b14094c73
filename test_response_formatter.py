from __future__ import annotations

from shared.models import (
    CapabilityMetrics,
    CapabilityOutput,
    ErrorLogEntry,
    RouteCandidate,
    SystemHealth,
)
from shared.response_formatter import format_candidates, format_health, format_metrics, format_output


def test_format_output_rounds_long_decimals():
    out = CapabilityOutput(status="success", explanation="Average engagement 3.14159 per post")

    assert format_output(out) == "Average engagement 3.14 per post"


def test_format_output_defaults_by_status():
    assert format_output(CapabilityOutput(status="success")) == "Done."
    assert format_output(CapabilityOutput(status="clarification")) == "I need a few more details to continue."
    assert format_output(CapabilityOutput(status="failure", explanation="Backend down")) == (
        "Could not complete the request: Backend down"
    )
    assert format_output(
        CapabilityOutput(status="failure", metadata={"error": "timeout after 30.000001 s"})
    ) == "Could not complete the request: timeout after 30.00 s"


def test_format_candidates_shows_command_and_percentage():
    candidate = RouteCandidate(
        capability_id="director",
        operation_id="orchestrate-campaign",
        command="/director",
        capability_name="Campaign Director",
        confidence=0.6,
        reason="Generating a full multi-week campaign",
    )

    assert format_candidates([candidate]) == (
        "  /director          Campaign Director (60%) - Generating a full multi-week campaign"
    )


def test_format_metrics_and_health():
    metrics = CapabilityMetrics(
        capability_id="twitter-post",
        capability_name="Twitter Post",
        invocation_count=3,
        success_count=2,
        error_count=1,
        average_response_time_ms=12.3456,
        error_log=[ErrorLogEntry(error="quota exceeded", input_text="/twitter hi")],
    )
    idle = CapabilityMetrics(capability_id="cmo", capability_name="CMO")

    assert format_metrics(metrics) == (
        "Twitter Post: 3 runs, 66.67% success, avg 12.35 ms, last error: quota exceeded"
    )

    text = format_health(
        SystemHealth(overall_success_rate=66.666, avg_response_time_ms=12.3456, active_capabilities=1, total_executions=3),
        [metrics, idle],
    )
    assert "Overall success rate: 66.67%" in text
    assert "Total executions: 3" in text
    assert "Twitter Post: 3 runs" in text
    assert "CMO" not in text
