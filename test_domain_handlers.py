import asyncio
from datetime import datetime, timedelta, timezone

from commands.interface import InMemoryCommandInterface
from domains.file_creator.handler import (
    FileCreatorCapability,
    detect_file_type,
    extract_file_details,
    select_project,
)
from domains.instructions.handler import InstructionsCapability, instruction_file_name
from domains.project_creator.handler import ProjectCreatorCapability, extract_project_details
from domains.scheduling.handler import ContentSchedulerCapability
from domains.scheduling.strategies import (
    parse_frequency,
    parse_schedule_params,
    parse_timeframe,
    skip_weekend,
)
from domains.social_post.handler import (
    TwitterPostCapability,
    parse_post_parameters,
    parse_schedule,
    post_file_name,
    split_thread,
)
from shared.errors import CommandError

NOW = datetime(2025, 1, 6, 9, 0, tzinfo=timezone.utc)


def _clock() -> datetime:
    return NOW


def _op(capability, index: int = 0):
    return capability.info.operations[index]


# ─── Project Creator ───────────────────────────────────────────

def test_project_details_from_natural_language():
    details = extract_project_details("create a project called Launch Plan for the Q4 marketing push with $5,000")

    assert details["name"] == "Launch Plan"
    assert details["project_type"] == "marketing"
    assert details["budget"] == 5000
    assert details["description"].startswith("the Q4 marketing push")


def test_project_creator_asks_for_missing_name_then_creates():
    async def _run() -> None:
        capability = ProjectCreatorCapability(clock=_clock)
        commands = InMemoryCommandInterface()

        ask = await capability.execute(_op(capability), "/create-project new project", commands, session_id="s1")
        assert ask.status == "clarification"
        assert commands.projects == {}

        done = await capability.execute(_op(capability), "Orion Rebrand", commands, session_id="s1")
        assert done.status == "success"
        assert [p["name"] for p in commands.projects.values()] == ["Orion Rebrand"]

        idle = await capability.execute(_op(capability), "another one", commands, session_id="s1")
        assert "No project is waiting" in idle.explanation

    asyncio.run(_run())


def test_project_creator_explicit_command_creates_immediately():
    async def _run() -> None:
        capability = ProjectCreatorCapability(clock=_clock)
        commands = InMemoryCommandInterface()

        output = await capability.execute(_op(capability), "/create-project Marketing Hub", commands)

        assert output.status == "success"
        assert output.result["project"]["name"] == "Marketing Hub"

    asyncio.run(_run())


# ─── File Creator ──────────────────────────────────────────────

def test_file_type_detection_and_details():
    assert detect_file_type("quarterly budget spreadsheet") == ("spreadsheet", ".xlsx", "document")
    assert detect_file_type("kickoff slides") == ("presentation", ".pptx", "document")
    assert detect_file_type("random thoughts") == ("markdown", ".md", "note")

    details = extract_file_details('create meeting notes in project "Launch"')
    assert details["file_name"] == "meeting.md"
    assert details["file_type"] == "notes"
    assert details["project_name"] == "Launch"


def test_select_project_by_number_or_name():
    projects = [{"id": "p1", "name": "Alpha Site"}, {"id": "p2", "name": "Beta App"}]

    assert select_project("2", projects)["id"] == "p2"
    assert select_project("use beta", projects)["id"] == "p2"
    assert select_project("alpha", projects)["id"] == "p1"
    assert select_project("9", projects) is None
    assert select_project("gamma", projects) is None


def test_file_creator_with_named_project():
    async def _run() -> None:
        capability = FileCreatorCapability(clock=_clock)
        commands = InMemoryCommandInterface()
        project = await commands.create_project("Launch")

        output = await capability.execute(
            _op(capability), '/create-file create meeting notes in project "Launch"', commands
        )

        assert output.status == "success"
        record = output.result["file"]
        assert record["name"] == "meeting.md"
        assert record["type"] == "note"
        assert record["project_id"] == project["id"]
        assert "Meeting Notes - 2025-01-06" in record["content"]

    asyncio.run(_run())


def test_file_creator_prompts_for_project_selection():
    async def _run() -> None:
        capability = FileCreatorCapability(clock=_clock)
        commands = InMemoryCommandInterface()
        await commands.create_project("Alpha")
        beta = await commands.create_project("Beta")

        ask = await capability.execute(_op(capability), "/create-file create budget spreadsheet", commands, session_id="s1")
        assert ask.status == "clarification"
        assert "1. Alpha\n2. Beta" in ask.explanation

        retry = await capability.execute(_op(capability), "Gamma", commands, session_id="s1")
        assert retry.status == "clarification"
        assert "Project not found" in retry.explanation

        done = await capability.execute(_op(capability), "2", commands, session_id="s1")
        assert done.status == "success"
        assert done.result["file"]["name"] == "budget.xlsx"
        assert done.result["file"]["project_id"] == beta["id"]
        assert done.result["file"]["extension"] == "xlsx"

    asyncio.run(_run())


def test_file_creator_failures():
    async def _run() -> None:
        capability = FileCreatorCapability(clock=_clock)
        commands = InMemoryCommandInterface()

        no_projects = await capability.execute(_op(capability), "/create-file create a plan", commands)
        assert no_projects.status == "failure"

        await commands.create_project("Alpha")
        missing = await capability.execute(
            _op(capability), '/create-file create notes in project "Ghost"', commands
        )
        assert missing.status == "failure"
        assert "1. Alpha" in missing.explanation

        empty = await capability.execute(_op(capability), "/create-file", commands)
        assert empty.status == "clarification"

    asyncio.run(_run())


# ─── Twitter Post ──────────────────────────────────────────────

def test_post_parameter_parsing():
    params = parse_post_parameters('Big news --project "Launch Team" --schedule "tomorrow 2pm" --settings followers')

    assert params == {
        "content": "Big news",
        "project": "Launch Team",
        "schedule": "tomorrow 2pm",
        "settings": "followers",
    }


def test_schedule_parsing():
    assert parse_schedule("tomorrow 2pm", NOW) == datetime(2025, 1, 7, 14, 0, tzinfo=timezone.utc)
    assert parse_schedule("tomorrow", NOW) == datetime(2025, 1, 7, 9, 0, tzinfo=timezone.utc)
    assert parse_schedule("in 3 hours", NOW) == NOW + timedelta(hours=3)
    assert parse_schedule("in 2 days", NOW) == NOW + timedelta(days=2)
    assert parse_schedule("2025-02-01T10:30:00", NOW) == datetime(2025, 2, 1, 10, 30, tzinfo=timezone.utc)
    assert parse_schedule("whenever", NOW) is None


def test_thread_splitting_and_file_name():
    assert split_thread("short") == ["short"]
    assert split_thread("first part\n\nsecond part") == ["first part", "second part"]
    assert post_file_name("Big launch today! More soon") == "big-launch-today.x"


def test_twitter_post_scheduled_in_named_project():
    async def _run() -> None:
        capability = TwitterPostCapability(clock=_clock)
        commands = InMemoryCommandInterface()

        output = await capability.execute(
            _op(capability),
            '/twitter Big launch today! --project Launch --schedule "tomorrow 2pm" --settings verified-accounts',
            commands,
        )

        assert output.status == "success"
        assert "Scheduled for 2025-01-07 14:00" in output.explanation
        post = next(iter(commands.files.values()))
        assert post["name"] == "big-launch-today.x"
        assert post["type"] == "post"
        assert post["platform"] == "twitter"
        assert post["post_status"] == "scheduled"
        assert post["scheduled_at"] == "2025-01-07T14:00:00+00:00"
        assert post["reply_settings"] == "verified"
        assert [p["name"] for p in commands.projects.values()] == ["Launch"]

    asyncio.run(_run())


def test_twitter_post_defaults_to_content_creation_project():
    async def _run() -> None:
        capability = TwitterPostCapability(clock=_clock)
        commands = InMemoryCommandInterface()

        output = await capability.execute(_op(capability), "/twitter hello world", commands)

        assert output.status == "success"
        assert "Status: Draft" in output.explanation
        assert [p["name"] for p in commands.projects.values()] == ["Content Creation"]
        assert next(iter(commands.files.values()))["post_status"] == "draft"

    asyncio.run(_run())


def test_twitter_post_rejects_empty_content_and_bad_schedule():
    async def _run() -> None:
        capability = TwitterPostCapability(clock=_clock)
        commands = InMemoryCommandInterface()

        empty = await capability.execute(_op(capability), "/twitter --settings everyone", commands)
        assert empty.status == "failure"

        bad = await capability.execute(_op(capability), "/twitter hi --schedule someday", commands)
        assert bad.status == "failure"
        assert bad.metadata["schedule"] == "someday"
        assert commands.files == {}

    asyncio.run(_run())


# ─── Instructions ──────────────────────────────────────────────

def test_instructions_create_file_in_instructions_project():
    async def _run() -> None:
        capability = InstructionsCapability(clock=_clock)
        commands = InMemoryCommandInterface()

        first = await capability.execute(_op(capability), "/instructions Onboarding new writers", commands)
        second = await capability.execute(_op(capability), "/instructions Release checklist", commands)

        assert first.status == "success"
        assert first.result["file"]["name"] == "onboarding-new-writers-2025-01-06.md"
        assert "# Instructions: Onboarding new writers" in first.result["file"]["content"]
        assert second.result["file"]["project_id"] == first.result["file"]["project_id"]
        assert [p["name"] for p in commands.projects.values()] == ["Instructions"]

        empty = await capability.execute(_op(capability), "/instructions", commands)
        assert empty.status == "failure"

    asyncio.run(_run())


def test_instruction_file_name():
    assert instruction_file_name("API Setup & Deploy!", "2025-01-06") == "api-setup-deploy-2025-01-06.md"


# ─── Content Scheduler ─────────────────────────────────────────

async def _seed_posts(commands: InMemoryCommandInterface) -> dict[str, dict]:
    project = await commands.create_project("Content")
    posts = {}
    for name, platform in (("a", "twitter"), ("b", "reddit"), ("c", "twitter")):
        posts[name] = await commands.create_file(
            name=name,
            file_type="post",
            project_id=project["id"],
            content=f"post {name}",
            platform=platform,
            post_status="draft",
        )
    return posts


def test_schedule_params_parsing():
    params = parse_schedule_params("platform: Twitter strategy: spread timeframe: 3 days frequency: twice daily")

    assert params.platform == "twitter"
    assert params.strategy == "spread"
    assert params.timeframe == "3 days"
    assert params.frequency == "twice daily"
    assert parse_schedule_params("strategy: random").strategy == "custom"
    assert parse_schedule_params("").strategy == "optimal"

    assert parse_timeframe("3 days") == 3
    assert parse_timeframe("next week") == 7
    assert parse_frequency("every 6 hours") == 6
    assert parse_frequency("twice daily") == 12


def test_skip_weekend_moves_to_monday():
    saturday = datetime(2025, 1, 11, 9, 0, tzinfo=timezone.utc)
    assert skip_weekend(saturday) == datetime(2025, 1, 13, 9, 0, tzinfo=timezone.utc)


def test_schedule_content_optimal_strategy():
    async def _run() -> None:
        capability = ContentSchedulerCapability(clock=_clock)
        commands = InMemoryCommandInterface()
        posts = await _seed_posts(commands)

        output = await capability.execute(_op(capability), "/schedule", commands)

        assert output.status == "success"
        assert "Successfully scheduled: 3 posts" in output.explanation
        scheduled = {f["name"]: f["scheduled_at"] for f in commands.files.values()}
        assert scheduled == {
            "a": "2025-01-06T09:00:00+00:00",
            "c": "2025-01-06T13:00:00+00:00",
            "b": "2025-01-06T19:00:00+00:00",
        }
        assert commands.files[posts["a"]["id"]]["post_status"] == "scheduled"

        again = await capability.execute(_op(capability), "/schedule", commands)
        assert "No unscheduled content found" in again.explanation

    asyncio.run(_run())


def test_schedule_content_filters_platform_and_uses_custom_frequency():
    async def _run() -> None:
        capability = ContentSchedulerCapability(clock=_clock)
        commands = InMemoryCommandInterface()
        posts = await _seed_posts(commands)

        output = await capability.execute(
            _op(capability), "/schedule platform: twitter strategy: custom frequency: every 6 hours", commands
        )

        assert output.result["strategy"] == "custom"
        assert [s["name"] for s in output.result["scheduled"]] == ["a", "c"]
        assert commands.files[posts["c"]["id"]]["scheduled_at"] == "2025-01-06T15:00:00+00:00"
        assert commands.files[posts["b"]["id"]]["post_status"] == "draft"

    asyncio.run(_run())


def test_schedule_content_isolates_backend_failures():
    class FlakyCommands(InMemoryCommandInterface):
        async def schedule_post(self, file_id, scheduled_for):
            if self.files[file_id]["name"] == "b":
                raise CommandError("backend rejected", command="schedule_post")
            return await super().schedule_post(file_id, scheduled_for)

    class DownCommands(InMemoryCommandInterface):
        async def schedule_post(self, file_id, scheduled_for):
            raise CommandError("backend down", command="schedule_post")

    async def _run() -> None:
        capability = ContentSchedulerCapability(clock=_clock)

        flaky = FlakyCommands()
        await _seed_posts(flaky)
        partial = await capability.execute(_op(capability), "/schedule", flaky)
        assert partial.status == "success"
        assert len(partial.result["scheduled"]) == 2
        assert partial.result["failed"][0]["name"] == "b"

        down = DownCommands()
        await _seed_posts(down)
        failed = await capability.execute(_op(capability), "/schedule", down)
        assert failed.status == "failure"
        assert len(failed.result["failed"]) == 3

    asyncio.run(_run())


def test_analyze_content_counts_by_platform():
    async def _run() -> None:
        capability = ContentSchedulerCapability(clock=_clock)
        commands = InMemoryCommandInterface()
        await _seed_posts(commands)

        output = await capability.execute(_op(capability, 1), "/analyze-content", commands)

        assert output.result["counts"] == {"twitter": 2, "reddit": 1}
        assert output.result["total"] == 3
        assert "Best times are 9 AM, 1 PM, 3 PM weekdays" in output.explanation

    asyncio.run(_run())
