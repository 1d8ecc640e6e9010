import pytest
from narrative.achievements import AchievementTracker
from narrative.conditions import ConditionEvaluator
from narrative.content import StoryContent
from narrative.state import GameState
from storyengine.core.events import NarrativeEvent


@pytest.fixture
def achievements():
    return [
        {"id": "ach_first_step", "points": 5,
         "conditions": [{"type": "scene_visited", "scene_id": "scene_01_start"}]},
        {"id": "ach_rich", "points": 20,
         "conditions": [{"type": "money_check", "operator": ">=", "amount": 100}]},
        {"id": "ach_collector", "hidden": True,
         "conditions": [{"type": "item_check", "item_id": "rusty_gear", "quantity": 5}]},
        {"id": "ach_pirate_legend", "points": 50},
    ]


@pytest.fixture
def tracker(achievements, event_bus):
    content = StoryContent.from_dict({"achievements": achievements})
    return AchievementTracker(content, ConditionEvaluator(), event_bus)


def test_check_unlocks_every_satisfied_achievement(tracker, recorder):
    state = GameState(money=150, visited_scene_ids=["scene_01_start"])

    assert tracker.check(state) == ["ach_first_step", "ach_rich"]
    assert state.unlocked_achievement_ids == ["ach_first_step", "ach_rich"]

    unlocked = [e for e in recorder if e.type == NarrativeEvent.ACHIEVEMENT_UNLOCKED]
    assert [e["achievement_id"] for e in unlocked] == ["ach_first_step", "ach_rich"]
    assert unlocked[1]["points"] == 20


def test_check_is_idempotent(tracker):
    state = GameState(money=150)
    tracker.check(state)
    assert tracker.check(state) == []
    assert state.unlocked_achievement_ids == ["ach_rich"]


def test_unconditional_achievement_needs_explicit_unlock(tracker):
    state = GameState()
    assert tracker.check(state) == []

    assert tracker.unlock("ach_pirate_legend", state)
    assert not tracker.unlock("ach_pirate_legend", state)
    assert state.is_unlocked("ach_pirate_legend")


def test_unlock_unknown_achievement(tracker):
    state = GameState()
    assert not tracker.unlock("ach_made_up", state)
    assert state.unlocked_achievement_ids == []


def test_hidden_flag_is_published(tracker, recorder):
    tracker.check(GameState(inventory={"rusty_gear": 5}))
    event = next(e for e in recorder if e.type == NarrativeEvent.ACHIEVEMENT_UNLOCKED)
    assert event["achievement_id"] == "ach_collector"
    assert event["hidden"] is True
