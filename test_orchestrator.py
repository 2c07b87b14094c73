import asyncio
from datetime import datetime, timedelta, timezone

from commands.interface import InMemoryCommandInterface
from main import build_pipeline
from shared.errors import CommandError
from shared.models import EntryRequest, utc_now
from shared.settings import AgentSettings


class FakeClock:
    def __init__(self):
        self.now = datetime(2025, 1, 6, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> None:
        self.now += timedelta(**delta)


def _pipeline(commands=None, clock=utc_now, **overrides):
    settings = AgentSettings(batch_delay_seconds=0, **overrides)
    return build_pipeline(settings, commands or InMemoryCommandInterface(), clock=clock)


async def _say(pipeline, text: str, session_id: str = "s1"):
    return await pipeline.orchestrator.handle(
        EntryRequest(session_id=session_id, input_text=text), pipeline.commands
    )


def test_free_text_project_request_auto_executes():
    async def _run() -> None:
        pipeline = _pipeline()

        output = await _say(pipeline, "create a project called Launch Plan")

        assert output.status == "success"
        assert output.metadata["routed_by"] == "router"
        assert output.metadata["capability_id"] == "project-creator"
        assert output.metadata["route_confidence"] == 0.9
        assert [p["name"] for p in pipeline.commands.projects.values()] == ["Launch Plan"]

        metrics = pipeline.tracker.get_metrics("project-creator")
        assert metrics.invocation_count == 1
        assert metrics.success_count == 1
        assert [m["role"] for m in pipeline.commands.messages] == ["user", "assistant"]

    asyncio.run(_run())


def test_slash_commands_and_legacy_aliases():
    async def _run() -> None:
        pipeline = _pipeline()

        output = await _say(pipeline, "/create Marketing Hub")
        assert output.status == "success"
        assert output.metadata["routed_by"] == "command"
        assert output.result["project"]["name"] == "Marketing Hub"
        assert pipeline.tracker.history()[0].command == "/create-project"

        unknown = await _say(pipeline, "/launch-rocket now")
        assert unknown.status == "failure"
        assert "Unknown command: /launch-rocket" in unknown.explanation
        assert "/create-project" in unknown.explanation

    asyncio.run(_run())


def test_command_parameters_may_follow_a_line_break_or_tab():
    async def _run() -> None:
        pipeline = _pipeline()

        output = await _say(pipeline, "/create-project\nLaunch Plan")
        assert output.status == "success"
        assert output.metadata["routed_by"] == "command"

        aliased = await _say(pipeline, "/create\tAtlas Rollout")
        assert aliased.status == "success"

        names = sorted(p["name"] for p in pipeline.commands.projects.values())
        assert names == ["Atlas Rollout", "Launch Plan"]
        assert "/create-project Atlas Rollout" in [e.input_text for e in pipeline.tracker.history()]

    asyncio.run(_run())


def test_free_text_after_finalization_gets_idle_reply():
    async def _run() -> None:
        pipeline = _pipeline()

        ask = await _say(pipeline, "/create-project")
        assert ask.status == "clarification"
        created = await _say(pipeline, "Launch Plan")
        assert created.status == "success"
        assert pipeline.session_store.owner_of("s1") is None

        idle = await _say(pipeline, "ok thanks")
        assert idle.status == "success"
        assert idle.metadata["idle"] is True
        assert idle.metadata["capability_id"] == "project-creator"
        assert idle.explanation.startswith("No project is waiting for a name")

        other = await _say(pipeline, "ok thanks", session_id="s2")
        assert other.metadata["routing"] == "guide"

        routed = await _say(pipeline, "create a project called Atlas")
        assert routed.metadata["routed_by"] == "router"
        assert len(pipeline.commands.projects) == 2

    asyncio.run(_run())


def test_expired_session_answers_with_restart_prompt():
    async def _run() -> None:
        clock = FakeClock()
        pipeline = _pipeline(clock=clock, session_timeout_seconds=60)

        await _say(pipeline, "/cmo grow leads for small business")
        assert pipeline.session_store.owner_of("s1") == "cmo"

        clock.advance(seconds=61)
        output = await _say(pipeline, "we mostly want brand awareness")

        assert output.status == "clarification"
        assert output.metadata["expired"] is True
        assert output.metadata["routed_by"] == "session"
        assert output.metadata["capability_id"] == "cmo"
        assert pipeline.session_store.owner_of("s1") is None

        restarted = await _say(pipeline, "/cmo grow leads for small business")
        assert restarted.explanation.startswith("Phase 1")

    asyncio.run(_run())


def test_cleanup_prunes_old_executions_sessions_and_workflows():
    async def _run() -> None:
        clock = FakeClock()
        pipeline = _pipeline(clock=clock)
        pipeline.orchestrator.cleanup_interval = None

        await _say(pipeline, "/create-project Old Plan")
        await _say(pipeline, "/workflow launch social media content")
        await _say(pipeline, "/cmo grow leads", session_id="abandoned")
        await _say(pipeline, "/create-project", session_id="named")
        await _say(pipeline, "Named Plan", session_id="named")

        clock.advance(days=8)
        await _say(pipeline, "/cmo fresh idea", session_id="fresh")

        removed = pipeline.orchestrator.cleanup(timedelta(days=7))

        assert removed["workflows"] == 1
        assert removed["sessions"] == 2
        assert removed["executions"] >= 4
        assert pipeline.workflow_engine.list_workflows() == []
        assert pipeline.session_store.finalized_owner("named") is None
        assert [s.session_id for s in pipeline.session_store.live_sessions()] == ["fresh"]
        assert [e.session_id for e in pipeline.tracker.history()] == ["fresh"]

    asyncio.run(_run())


def test_handle_sweeps_stale_state_once_the_interval_passes():
    async def _run() -> None:
        clock = FakeClock()
        pipeline = _pipeline(clock=clock)
        await _say(pipeline, "/workflow launch social media content")

        clock.advance(days=8)
        await _say(pipeline, "/help")

        assert pipeline.workflow_engine.list_workflows() == []
        assert pipeline.tracker.history() == []

    asyncio.run(_run())


def test_ambiguous_and_unmatched_input():
    async def _run() -> None:
        pipeline = _pipeline()

        ambiguous = await _say(pipeline, "please orchestrate everything")
        assert ambiguous.status == "clarification"
        assert ambiguous.metadata["routing"] == "disambiguate"
        assert "/director" in ambiguous.explanation

        unmatched = await _say(pipeline, "good morning")
        assert unmatched.status == "clarification"
        assert unmatched.metadata["routing"] == "guide"
        assert unmatched.result["candidates"] == []

        empty = await _say(pipeline, "   ")
        assert empty.metadata["routing"] == "guide"
        assert pipeline.tracker.history() == []

    asyncio.run(_run())


def test_campaign_conversation_then_director_run():
    async def _run() -> None:
        pipeline = _pipeline()

        first = await _say(pipeline, "/cmo launch a new product for developers on LinkedIn and Twitter")
        assert first.status == "clarification"
        assert first.explanation.startswith("Phase 1")

        for reply in (
            "we mostly want brand awareness",
            "short videos and images",
            "run it for 4 weeks, no budget",
            "track engagement and followers",
        ):
            output = await _say(pipeline, reply)
            assert output.status == "clarification"
            assert output.metadata["routed_by"] == "session"
        assert output.explanation.startswith("Phase 5")

        report = await _say(pipeline, "generate report")
        assert report.status == "success"
        report_name = report.result["file"]["name"]
        assert report_name.startswith("marketing-campaign-strategy-")
        assert pipeline.session_store.owner_of("s1") is None

        again = await _say(pipeline, "generate report")
        assert again.status == "success"
        assert again.metadata["idle"] is True
        assert again.metadata["routed_by"] == "session"
        assert again.explanation.startswith("Your campaign report has already been generated")
        report_files = [f for f in pipeline.commands.files.values() if f["name"] == report_name]
        assert len(report_files) == 1

        ask = await _say(pipeline, "/director Q4 Launch\nplatforms: twitter\nduration: 1 weeks\nposts per day: 1")
        assert "Step 2" in ask.explanation
        done = await _say(pipeline, report_name)

        assert done.status == "success"
        assert done.result["created"] == 7
        posts = [f for f in pipeline.commands.files.values() if f["type"] == "post"]
        assert len(posts) == 7
        assert pipeline.tracker.get_metrics("director").success_count == 1

    asyncio.run(_run())


def test_explicit_command_breaks_out_of_live_session():
    async def _run() -> None:
        pipeline = _pipeline()
        await _say(pipeline, "/cmo grow leads for small business")
        assert pipeline.session_store.owner_of("s1") == "cmo"

        output = await _say(pipeline, "/instructions Writing style")

        assert output.status == "success"
        assert output.metadata["capability_id"] == "instructions"
        assert pipeline.session_store.owner_of("s1") == "cmo"

    asyncio.run(_run())


def test_sessions_are_isolated_by_session_id():
    async def _run() -> None:
        pipeline = _pipeline()
        await _say(pipeline, "/cmo grow leads", session_id="alice")

        output = await _say(pipeline, "post a tweet about pancakes", session_id="bob")

        assert output.metadata["capability_id"] == "twitter-post"
        assert pipeline.session_store.owner_of("bob") is None

    asyncio.run(_run())


def test_builtin_commands():
    async def _run() -> None:
        pipeline = _pipeline()

        help_output = await _say(pipeline, "/help")
        assert help_output.status == "success"
        assert "/analyze-content" in help_output.explanation
        assert "/workflow" in help_output.explanation

        workflow = await _say(pipeline, "/workflow launch social media content")
        assert workflow.status == "success"
        workflow_id = workflow.metadata["workflow_id"]
        assert pipeline.workflow_engine.get(workflow_id).status == "completed"

        cancelled = await _say(pipeline, f"/cancel-workflow {workflow_id}")
        assert cancelled.status == "success"

        missing = await _say(pipeline, "/cancel-workflow workflow_nope")
        assert missing.status == "failure"
        assert missing.metadata["error_type"] == "NotFound"

        status = await _say(pipeline, "/status")
        assert "System health" in status.explanation
        assert status.result["health"]["total_executions"] == 2

        ask = await _say(pipeline, "/workflow")
        assert ask.status == "clarification"

    asyncio.run(_run())


def test_backend_errors_become_failure_outputs():
    class BrokenBackend(InMemoryCommandInterface):
        async def create_project(self, name, description="", status="active"):
            raise CommandError("backend unavailable", command="create_project")

    async def _run() -> None:
        pipeline = _pipeline(commands=BrokenBackend())

        output = await _say(pipeline, "/create-project Atlas")

        assert output.status == "failure"
        assert output.explanation == "backend unavailable"
        assert output.metadata["error_type"] == "CommandError"
        assert pipeline.tracker.get_metrics("project-creator").error_count == 1

    asyncio.run(_run())


def test_message_storage_can_be_disabled():
    async def _run() -> None:
        pipeline = _pipeline(store_messages=False)
        await _say(pipeline, "/instructions Release process")

        assert pipeline.commands.messages == []

    asyncio.run(_run())
