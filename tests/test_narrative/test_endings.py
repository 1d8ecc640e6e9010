import pytest
from narrative.conditions import ConditionEvaluator
from narrative.content import StoryContent
from narrative.endings import EndingResolver
from narrative.errors import ContentError
from narrative.state import GameState


@pytest.fixture
def resolver(pirate_endings, config):
    content = StoryContent.from_dict({"endings": pirate_endings})
    return EndingResolver(content, ConditionEvaluator(), config)


def pirate_state(**flags):
    return GameState(
        player_stats={"reputation_pirate": 16, "reputation_crown": 2},
        flags=flags,
    )


def test_highest_priority_match_wins(resolver):
    state = pirate_state(defeated_naval_commander=True)
    assert resolver.resolve(state).id == "ending_pirate_king"


def test_falls_through_to_unconditional_ending(resolver):
    state = pirate_state()
    assert resolver.resolve(state).id == "ending_default_neutral"


def test_resolution_is_deterministic(resolver):
    state = pirate_state(defeated_naval_commander=True)
    assert {resolver.resolve(state).id for _ in range(10)} == {"ending_pirate_king"}


def test_equal_priority_goes_to_first_declared(config):
    content = StoryContent.from_dict({"endings": [
        {"id": "ending_b", "priority": 5},
        {"id": "ending_a", "priority": 5},
    ]})
    resolver = EndingResolver(content, ConditionEvaluator(), config)
    assert resolver.resolve(GameState()).id == "ending_b"


def test_fallback_when_nothing_matches(config):
    content = StoryContent.from_dict({"endings": [
        {"id": "ending_gold", "priority": 1,
         "conditions": [{"type": "money_check", "operator": ">=", "amount": 1000}]},
        {"id": "ending_poor", "priority": 50,
         "conditions": [{"type": "money_check", "operator": "<", "amount": 0}]},
    ]})
    resolver = EndingResolver(content, ConditionEvaluator(), config)
    assert resolver.resolve(GameState()).id == "ending_poor"

    config.fallback_ending_id = "ending_gold"
    assert resolver.resolve(GameState()).id == "ending_gold"


def test_no_endings_is_content_error(config):
    resolver = EndingResolver(StoryContent(), ConditionEvaluator(), config)
    with pytest.raises(ContentError):
        resolver.resolve(GameState())


def test_explicit_selection(resolver):
    state = pirate_state()
    assert resolver.select("ending_loyal_servant", state).id == "ending_loyal_servant"
    assert resolver.select("ending_nonexistent", state).id == "ending_default_neutral"
    assert resolver.select(None, state).id == "ending_default_neutral"
