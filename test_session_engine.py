import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from commands.interface import InMemoryCommandInterface
from conversation.session_engine import (
    ConversationFlow,
    PhaseSpec,
    SessionEngine,
    SessionStore,
    merge_data,
)
from shared.errors import NotFound, SessionExpired
from shared.models import CapabilityOutput


class FakeClock:
    def __init__(self):
        self.now = datetime(2025, 1, 6, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> None:
        self.now += timedelta(**delta)


class SignupFlow(ConversationFlow):
    capability_id = "signup"
    timeout_seconds = 60

    def __init__(self):
        self.finalized = []

    @property
    def phases(self):
        return [
            PhaseSpec(1, "What is your name?", lambda text: {"name": text.strip()}, next_phase=2),
            PhaseSpec(
                2,
                lambda session: f"Sign up {session.data['name']}? Reply yes to confirm.",
                lambda text: {"name": text.split("name:", 1)[1].strip()} if "name:" in text else {},
                finalize_when=lambda text: text.strip().lower() == "yes",
                correction_prompt="Updated. Reply yes to confirm.",
            ),
        ]

    def initial_extractor(self, text):
        return {"source": text.strip()}

    async def finalize(self, session, commands):
        if session.data.get("name") == "nobody":
            return CapabilityOutput(status="clarification", explanation="Give me a real name.")
        self.finalized.append(dict(session.data))
        return CapabilityOutput(status="success", explanation=f"Signed up {session.data['name']}")


def _engine(clock=None, store=None):
    flow = SignupFlow()
    return flow, SessionEngine(flow, store=store, clock=clock or FakeClock())


def test_full_conversation_reaches_finalization():
    async def _run() -> None:
        flow, engine = _engine()
        commands = InMemoryCommandInterface()

        first = engine.begin("s1", "from the website")
        assert first.status == "clarification"
        assert first.explanation == "What is your name?"
        assert first.metadata["phase"] == 1
        assert engine.status("s1") == "live"

        second = await engine.continue_session("s1", "Ada", commands)
        assert second.explanation == "Sign up Ada? Reply yes to confirm."
        assert second.metadata["phase"] == 2

        done = await engine.continue_session("s1", "yes", commands)
        assert done.status == "success"
        assert done.metadata["session_id"] == "s1"
        assert flow.finalized == [{"source": "from the website", "name": "Ada"}]
        assert engine.status("s1") == "finalized"
        assert engine.get("s1") is None

    asyncio.run(_run())


def test_terminal_phase_treats_other_input_as_correction():
    async def _run() -> None:
        flow, engine = _engine()
        commands = InMemoryCommandInterface()
        engine.begin("s1")
        await engine.continue_session("s1", "Ada", commands)

        corrected = await engine.continue_session("s1", "name: Grace", commands)
        assert corrected.status == "clarification"
        assert corrected.explanation == "Updated. Reply yes to confirm."
        assert corrected.metadata["corrected"] is True
        assert engine.get("s1").data["name"] == "Grace"
        assert flow.finalized == []

        done = await engine.continue_session("s1", "YES", commands)
        assert done.explanation == "Signed up Grace"

    asyncio.run(_run())


def test_responses_are_recorded_in_order():
    async def _run() -> None:
        _, engine = _engine()
        engine.begin("s1", "hello")
        await engine.continue_session("s1", "Ada", InMemoryCommandInterface())

        assert engine.get("s1").responses == ["hello", "Ada"]

    asyncio.run(_run())


def test_non_success_finalization_keeps_session_live():
    async def _run() -> None:
        _, engine = _engine()
        commands = InMemoryCommandInterface()
        engine.begin("s1")
        await engine.continue_session("s1", "nobody", commands)

        output = await engine.continue_session("s1", "yes", commands)

        assert output.status == "clarification"
        assert engine.status("s1") == "live"

    asyncio.run(_run())


def test_idle_session_expires_on_access():
    async def _run() -> None:
        clock = FakeClock()
        _, engine = _engine(clock=clock)
        engine.begin("s1")

        clock.advance(seconds=61)
        assert engine.status("s1") == "expired"

        with pytest.raises(SessionExpired) as exc_info:
            await engine.continue_session("s1", "Ada", InMemoryCommandInterface())
        assert exc_info.value.context["session_id"] == "s1"
        assert engine.status("s1") == "absent"

        restarted = engine.begin("s1")
        assert restarted.metadata["phase"] == 1
        assert restarted.result == {"data": {}}
        assert engine.get("s1").responses == []
        assert engine.status("s1") == "live"

    asyncio.run(_run())


def test_activity_resets_the_timeout():
    async def _run() -> None:
        clock = FakeClock()
        _, engine = _engine(clock=clock)
        engine.begin("s1")

        clock.advance(seconds=50)
        await engine.continue_session("s1", "Ada", InMemoryCommandInterface())
        clock.advance(seconds=50)

        assert engine.status("s1") == "live"

    asyncio.run(_run())


def test_continue_without_session_raises_not_found():
    async def _run() -> None:
        _, engine = _engine()
        with pytest.raises(NotFound):
            await engine.continue_session("ghost", "hi", InMemoryCommandInterface())

    asyncio.run(_run())


def test_continue_after_finalization_returns_idle_message():
    async def _run() -> None:
        _, engine = _engine()
        commands = InMemoryCommandInterface()
        engine.begin("s1")
        await engine.continue_session("s1", "Ada", commands)
        await engine.continue_session("s1", "yes", commands)

        output = await engine.continue_session("s1", "hello again", commands)

        assert output.status == "success"
        assert output.metadata["idle"] is True

    asyncio.run(_run())


def test_begin_replaces_existing_session():
    async def _run() -> None:
        _, engine = _engine()
        engine.begin("s1", "first")
        await engine.continue_session("s1", "Ada", InMemoryCommandInterface())

        restarted = engine.begin("s1", "second")

        assert restarted.metadata["phase"] == 1
        assert engine.get("s1").data == {"source": "second"}

    asyncio.run(_run())


def test_begin_can_seed_data_and_skip_to_a_phase():
    _, engine = _engine()
    output = engine.begin("s1", seed_data={"name": "Lin"}, phase=2)

    assert output.explanation == "Sign up Lin? Reply yes to confirm."
    assert engine.get("s1").phase == 2


def test_timeout_override():
    clock = FakeClock()
    engine = SessionEngine(SignupFlow(), clock=clock, timeout_seconds=600)
    engine.begin("s1")
    clock.advance(seconds=120)

    assert engine.status("s1") == "live"


def test_merge_data_never_clears_fields():
    data = {"objective": "product launch", "platforms": ["LinkedIn"]}
    merge_data(data, {"objective": "", "platforms": [], "budget": "$500", "timeline": None})

    assert data == {"objective": "product launch", "platforms": ["LinkedIn"], "budget": "$500"}


def test_store_tracks_owner_by_latest_activity():
    clock = FakeClock()
    store = SessionStore()
    _, signup = _engine(clock=clock, store=store)

    class OtherFlow(SignupFlow):
        capability_id = "other"

    other = SessionEngine(OtherFlow(), store=store, clock=clock)

    signup.begin("s1")
    clock.advance(seconds=1)
    other.begin("s1")

    assert store.owner_of("s1") == "other"
    assert store.owner_of("s2") is None
    assert len(store.live_sessions()) == 2
    assert len(store.live_sessions("signup")) == 1

    other.discard("s1")
    assert store.owner_of("s1") == "signup"


def test_store_remembers_which_capability_finalized_last():
    async def _run() -> None:
        clock = FakeClock()
        store = SessionStore()
        _, signup = _engine(clock=clock, store=store)
        commands = InMemoryCommandInterface()

        assert store.finalized_owner("s1") is None

        signup.begin("s1")
        await signup.continue_session("s1", "Ada", commands)
        assert store.finalized_owner("s1") is None

        await signup.continue_session("s1", "yes", commands)
        assert store.finalized_owner("s1") == "signup"
        assert store.owner_of("s1") is None
        assert store.finalized_owner("s2") is None

        signup.begin("s1")
        assert store.finalized_owner("s1") is None

    asyncio.run(_run())


def test_store_cleanup_drops_idle_sessions_and_old_markers():
    async def _run() -> None:
        clock = FakeClock()
        store = SessionStore()
        _, signup = _engine(clock=clock, store=store)
        commands = InMemoryCommandInterface()

        signup.begin("done")
        await signup.continue_session("done", "Ada", commands)
        await signup.continue_session("done", "yes", commands)
        signup.begin("abandoned")

        clock.advance(days=2)
        signup.begin("fresh")

        assert store.cleanup(clock(), timedelta(days=1)) == 2
        assert store.finalized_owner("done") is None
        assert signup.status("done") == "absent"
        assert signup.status("abandoned") == "absent"
        assert signup.status("fresh") == "live"

        assert store.cleanup(clock(), timedelta(days=1)) == 0

    asyncio.run(_run())
