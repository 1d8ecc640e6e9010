import pytest
from datetime import datetime, timedelta
from narrative.hall_of_fame import HallOfFame
from narrative.models import Achievement


@pytest.fixture
def achievements():
    return {
        "ach_pirate_legend": Achievement(id="ach_pirate_legend", points=50),
        "ach_first_step": Achievement(id="ach_first_step", points=5),
        "ach_plain": Achievement(id="ach_plain"),
    }


def test_score(achievements):
    hall = HallOfFame(score_per_achievement=10)
    assert hall.score([], achievements) == 0
    assert hall.score(["ach_pirate_legend", "ach_first_step"], achievements) == 55
    assert hall.score(["ach_plain", "ach_unknown"], achievements) == 20


def test_entries_sorted_by_score_then_recency(achievements):
    hall = HallOfFame()
    start = datetime(2024, 5, 1, 12, 0)

    hall.record("Anne", "ending_default_neutral", ["ach_first_step"], achievements, completed_at=start)
    hall.record("Jack", "ending_pirate_king", ["ach_pirate_legend"], achievements, completed_at=start)
    hall.record("Mary", "ending_default_neutral", ["ach_first_step"], achievements,
                completed_at=start + timedelta(days=1))

    assert [e.player_name for e in hall.entries] == ["Jack", "Mary", "Anne"]
    assert hall.entries[0].score == 50
    assert hall.entries[0].achievements_unlocked == 1


def test_entries_trimmed(achievements):
    hall = HallOfFame(max_entries=3)
    for points in range(5):
        hall.record(f"Player {points}", "ending_default_neutral", ["ach_plain"] * points, achievements)

    assert len(hall.entries) == 3
    assert [e.score for e in hall.entries] == [40, 30, 20]


def test_persistence(tmp_path, achievements, config):
    path = tmp_path / "hall_of_fame.json"
    hall = HallOfFame.from_config(config, path)
    entry = hall.record(
        "Anne", "ending_pirate_king", ["ach_pirate_legend"], achievements,
        final_stats={"money": 10}, save_slot_id=2,
    )

    reloaded = HallOfFame(path)
    assert reloaded.entries == [entry]
    assert reloaded.entries[0].final_stats == {"money": 10}

    reloaded.clear()
    assert HallOfFame(path).entries == []


def test_corrupt_file_starts_empty(tmp_path):
    path = tmp_path / "hall_of_fame.json"
    path.write_text("not json")
    assert HallOfFame(path).entries == []


def test_engine_records_ending(make_content, config, event_bus, recorder):
    from narrative.traversal import StoryEngine
    from storyengine.core.events import NarrativeEvent

    hall = HallOfFame.from_config(config)
    content = make_content([{"id": "scene_01_start", "choices": [
        {"id": "c_end", "effects": [{"type": "trigger_ending", "ending_id": "ending_pirate_king"}]},
    ]}])
    engine = StoryEngine(content, config, event_bus=event_bus, hall_of_fame=hall, player_name="Anne")
    engine.start()
    engine.choose("c_end")

    (entry,) = hall.entries
    assert entry.player_name == "Anne"
    assert entry.ending_id == "ending_pirate_king"
    assert entry.score == 50
    assert entry.final_stats["money"] == 100

    resolved = next(e for e in recorder if e.type == NarrativeEvent.ENDING_RESOLVED)
    assert resolved["hall_of_fame_entry"] == entry
