import os
import random
import sys
import pytest
from unittest.mock import MagicMock, patch

# Ensure packages can be imported when running from the repo root
sys.path.append(os.getcwd())


@pytest.fixture(autouse=True)
def mock_pygame():
    """
    Global mock for pygame to allow headless testing.
    Autoused for all tests so no audio device is ever opened.
    """
    with patch('pygame.init'), \
         patch('pygame.display'), \
         patch('pygame.event'), \
         patch('pygame.time'), \
         patch('pygame.mixer'):
        import pygame
        pygame.time.get_ticks = MagicMock(return_value=0)
        yield


@pytest.fixture
def event_bus():
    """Fresh EventBus for each test."""
    from storyengine.core.events import EventBus
    return EventBus()


@pytest.fixture
def config():
    """Config with the stat ceilings of the sample game."""
    from storyengine.core.config import GameConfig
    return GameConfig(
        initial_scene_id="scene_01_start",
        initial_player_stats={"karma": 0, "reputation_pirate": 0, "reputation_crown": 0, "sanity": 100},
        initial_world_stats={"alarmLevel": 0, "suspicionLevel": 0},
        player_stat_max_values={
            "karma": 10, "strength": 10, "reputation_pirate": 20,
            "reputation_crown": 20, "sanity": 100,
        },
        world_stat_max_values={"alarmLevel": 3, "suspicionLevel": 10},
    )


@pytest.fixture
def items():
    return [
        {"id": "rusty_gear", "stackable": True, "max_stack": 10},
        {"id": "ancient_artifact", "stackable": False, "quest_item": True},
        {"id": "bread", "stackable": True},
    ]


@pytest.fixture
def pirate_endings():
    return [
        {
            "id": "ending_default_neutral",
            "cutscene_sequence_ids": ["cutscene_ending_neutral_01", "cutscene_ending_neutral_02"],
            "conditions": [],
            "priority": 100,
        },
        {
            "id": "ending_pirate_king",
            "cutscene_sequence_ids": ["cutscene_ending_pirate_01", "cutscene_ending_pirate_02"],
            "conditions": [
                {"type": "player_stat_check", "stat": "reputation_pirate", "operator": ">=", "value": 15},
                {"type": "player_stat_check", "stat": "reputation_crown", "operator": "<", "value": 5},
                {"type": "flag_check", "flag_name": "defeated_naval_commander", "value": True},
            ],
            "priority": 10,
            "unlocks_achievement_id": "ach_pirate_legend",
        },
        {
            "id": "ending_loyal_servant",
            "conditions": [
                {"type": "player_stat_check", "stat": "reputation_crown", "operator": ">=", "value": 15},
                {"type": "flag_check", "flag_name": "exposed_pirate_conspiracy", "value": True},
            ],
            "priority": 10,
        },
    ]


@pytest.fixture
def audio():
    """Audio sink double recording every cue."""
    from storyengine.audio.sink import AudioSink
    return MagicMock(spec=AudioSink)


@pytest.fixture
def make_content(items, pirate_endings):
    """Build StoryContent from raw scene records plus shared items and endings."""
    from narrative.content import StoryContent

    def _make(scenes, **categories):
        data = {"items": items, "endings": pirate_endings, "achievements": [
            {"id": "ach_pirate_legend", "points": 50},
        ]}
        data.update(categories)
        data["scenes"] = scenes
        return StoryContent.from_dict(data)

    return _make


@pytest.fixture
def make_engine(make_content, config, event_bus, audio):
    """Build a StoryEngine over raw scene records."""
    from narrative.traversal import StoryEngine

    def _make(scenes, config_overrides=None, **categories):
        engine_config = config
        for key, value in (config_overrides or {}).items():
            setattr(engine_config, key, value)
        return StoryEngine(
            make_content(scenes, **categories),
            engine_config,
            event_bus=event_bus,
            audio=audio,
            rng=random.Random(1234),
        )

    return _make


@pytest.fixture
def recorder(event_bus):
    """Records every narrative event published on the bus, in order."""
    from storyengine.core.events import NarrativeEvent

    events = []

    def handler(event):
        events.append(event)

    for event_type in NarrativeEvent:
        event_bus.subscribe(event_type, handler, weak=False)
    return events