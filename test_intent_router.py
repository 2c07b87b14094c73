from commands.interface import InMemoryCommandInterface
from domains.catalog import build_capabilities
from intent.router import DEFAULT_TRIGGER_GROUPS, IntentRouter, TriggerGroup
from main import build_pipeline, show_route
from registry.capability_registry import CapabilityRegistry
from shared.settings import AgentSettings


def _router(**kwargs) -> IntentRouter:
    registry = CapabilityRegistry()
    for capability in build_capabilities():
        registry.register(capability)
    return IntentRouter(registry, **kwargs)


def test_project_request_auto_executes():
    decision = _router().decide("create a project called Launch Plan")

    assert decision.action == "execute"
    assert decision.top.capability_id == "project-creator"
    assert decision.top.operation_id == "natural-language-creator"
    assert decision.top.command == "/create-project"
    assert decision.top.confidence == 0.9


def test_multiple_triggers_accumulate_and_cap_at_one():
    candidates = _router().route("post a tweet about our launch")

    assert candidates[0].capability_id == "twitter-post"
    assert candidates[0].confidence == 1.0


def test_confidence_is_relative_to_heaviest_group():
    candidates = _router().route("set up a content calendar")

    assert [c.capability_id for c in candidates] == ["content-scheduler"]
    assert candidates[0].confidence == 0.8


def test_mid_confidence_disambiguates():
    decision = _router().decide("please orchestrate everything")

    assert decision.action == "disambiguate"
    assert decision.top.capability_id == "director"
    assert decision.top.confidence == 0.6


def test_no_match_guides_with_empty_candidates():
    decision = _router().decide("good morning")

    assert decision.action == "guide"
    assert decision.candidates == []


def test_ties_keep_declaration_order():
    candidates = _router().route("campaign project")

    assert [c.capability_id for c in candidates[:2]] == ["project-creator", "cmo"]
    assert candidates[0].confidence == candidates[1].confidence


def test_triggers_match_whole_words_only():
    router = _router()
    assert router.route("postpone the filesystem migration") == []
    assert router.route("projection") == []


def test_routing_is_deterministic():
    router = _router()
    text = "marketing strategy with a schedule for new file templates"
    assert router.route(text) == router.route(text)


def test_thresholds_are_configurable():
    decision = _router(auto_execute_threshold=0.95).decide("create a project called Launch Plan")
    assert decision.action == "disambiguate"

    decision = _router(disambiguate_threshold=0.7).decide("please orchestrate everything")
    assert decision.action == "guide"
    assert decision.top.capability_id == "director"


def test_groups_for_unregistered_capabilities_are_skipped():
    router = IntentRouter(CapabilityRegistry())
    assert router.route("tweet about the project") == []


def test_custom_trigger_table():
    groups = (
        TriggerGroup(("roadmap",), "project-creator", "natural-language-creator", 5, "Planning a roadmap"),
        TriggerGroup(("brief",), "file-creator", "create-file", 10, "Writing a brief"),
    )
    router = _router(groups=groups)
    candidates = router.route("roadmap")

    assert router.max_weight == 10
    assert candidates[0].capability_id == "project-creator"
    assert candidates[0].confidence == 0.5
    assert candidates[0].reason == "Planning a roadmap"


def test_default_table_weights():
    weights = {g.capability_id: g.weight for g in DEFAULT_TRIGGER_GROUPS}
    assert weights == {
        "twitter-post": 10,
        "project-creator": 9,
        "instructions": 9,
        "cmo": 9,
        "content-scheduler": 8,
        "file-creator": 8,
        "director": 6,
    }


def test_decide_from_applies_policy_to_ranked_candidates():
    router = _router()
    candidates = router.route("please orchestrate everything")

    assert router.decide_from(candidates) == router.decide("please orchestrate everything")
    assert router.decide_from([]).action == "guide"


def test_show_route_scores_the_input_once(monkeypatch):
    pipeline = build_pipeline(AgentSettings(), InMemoryCommandInterface())
    calls = []
    original = pipeline.router.route

    def counting_route(text):
        calls.append(text)
        return original(text)

    monkeypatch.setattr(pipeline.router, "route", counting_route)

    decision = show_route("create a project called Launch Plan", pipeline)

    assert calls == ["create a project called Launch Plan"]
    assert decision.action == "execute"
    assert decision.top.capability_id == "project-creator"
