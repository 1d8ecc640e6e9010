import pytest
from pydantic import TypeAdapter
from unittest.mock import MagicMock
from narrative.effects import EffectProcessor
from narrative.models import ChapterProgress, Effect, ItemDefinition, TriggerEnding
from narrative.state import GameState
from storyengine.audio.sink import AudioSink

effects = TypeAdapter(list[Effect])


@pytest.fixture
def processor(config, items, audio):
    definitions = {d.id: d for d in TypeAdapter(list[ItemDefinition]).validate_python(items)}
    return EffectProcessor(config, definitions, audio)


@pytest.fixture
def state(config):
    return GameState.from_config(config)


def run(processor, state, *raw):
    return processor.apply(effects.validate_python(list(raw)), state)


def test_stat_change_clamps_to_range(processor, state):
    run(processor, state, {"type": "player_stat_change", "stat": "karma", "value": 1_000_000})
    assert state.player_stats["karma"] == 10

    run(processor, state, {"type": "player_stat_change", "stat": "karma", "value": -1_000_000})
    assert state.player_stats["karma"] == 0

    run(processor, state, {"type": "world_stat_change", "stat": "alarmLevel", "value": 7})
    assert state.world_stats["alarmLevel"] == 3


def test_stat_without_ceiling_is_created(processor, state):
    run(processor, state, {"type": "stat_change", "stat": "luck", "value": 12})
    assert state.player_stats["luck"] == 12


def test_negative_stats_when_allowed(processor, state, config):
    config.allow_negative_stats = True
    run(processor, state, {"type": "player_stat_change", "stat": "karma", "value": -4})
    assert state.player_stats["karma"] == -4


def test_item_add_caps_at_max_stack(processor, state):
    state.inventory["rusty_gear"] = 10
    outcome = run(processor, state, {"type": "item_add", "item_id": "rusty_gear", "quantity": 1})
    assert state.inventory["rusty_gear"] == 10
    assert outcome.changed


def test_non_stackable_item_holds_one(processor, state):
    run(processor, state, {"type": "item_add", "item_id": "ancient_artifact", "quantity": 3})
    assert state.inventory["ancient_artifact"] == 1


def test_default_stack_limit(processor, state):
    run(processor, state, {"type": "item_add", "item_id": "bread", "quantity": 150})
    assert state.inventory["bread"] == 99
    assert processor.stack_limit("unknown_item") == 99


def test_clamp_brings_state_within_limits(processor, state):
    state.player_stats["karma"] = 40
    state.player_stats["sanity"] = -3
    state.world_stats["alarmLevel"] = 9
    state.inventory.update({"rusty_gear": 25, "ancient_artifact": 2, "bread": 5})
    state.money = -50

    processor.clamp(state)

    assert state.player_stats["karma"] == 10
    assert state.player_stats["sanity"] == 0
    assert state.world_stats["alarmLevel"] == 3
    assert state.inventory == {"rusty_gear": 10, "ancient_artifact": 1, "bread": 5}
    assert state.money == 0


def test_item_remove_drops_empty_entries(processor, state):
    state.inventory["rusty_gear"] = 2
    run(processor, state, {"type": "item_remove", "item_id": "rusty_gear", "quantity": 5})
    assert "rusty_gear" not in state.inventory

    outcome = run(processor, state, {"type": "item_remove", "item_id": "rusty_gear"})
    assert not outcome.changed


def test_money_floor(processor, state):
    run(processor, state, {"type": "money_subtract", "amount": 500})
    assert state.money == 0

    run(processor, state, {"type": "money_add", "amount": 30}, {"type": "money_add", "amount": -10})
    assert state.money == 20


def test_effects_apply_in_order(processor, state):
    run(
        processor, state,
        {"type": "flag_set", "flag_name": "door_open"},
        {"type": "flag_set", "flag_name": "door_open", "value": False},
    )
    assert state.flags["door_open"] is False


def test_first_terminal_wins(processor, state):
    outcome = run(
        processor, state,
        {"type": "trigger_ending", "ending_id": "ending_pirate_king"},
        {"type": "money_add", "amount": 5},
        {"type": "chapter_progress", "chapter_id": "ch2"},
    )
    assert isinstance(outcome.terminal, TriggerEnding)
    assert outcome.terminal.ending_id == "ending_pirate_king"
    assert state.money == 105


def test_chapter_progress_is_terminal(processor, state):
    outcome = run(processor, state, {"type": "chapter_progress"})
    assert isinstance(outcome.terminal, ChapterProgress)
    assert not outcome.changed


def test_unknown_effect_is_skipped(processor, state):
    outcome = run(processor, state, {"type": "teleport", "where": "moon"}, {"type": "money_add", "amount": 1})
    assert state.money == 101
    assert outcome.terminal is None


def test_audio_cues_reach_sink(processor, state, audio):
    outcome = run(
        processor, state,
        {"type": "sfx_play", "sound_id": "coin"},
        {"type": "music_change", "track_id": "tavern"},
    )
    audio.play_sfx.assert_called_once_with("coin")
    audio.change_music.assert_called_once_with("tavern")
    assert not outcome.changed


def test_audio_failure_does_not_abort_list(config, state):
    sink = MagicMock(spec=AudioSink)
    sink.play_sfx.side_effect = RuntimeError("mixer gone")
    processor = EffectProcessor(config, audio=sink)

    run(processor, state, {"type": "sfx_play", "sound_id": "coin"}, {"type": "money_add", "amount": 5})
    assert state.money == 105
    assert not processor.applying
