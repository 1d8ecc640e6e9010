import pytest
import json
from pathlib import Path
from storyengine.resources.database import ContentDatabase

@pytest.fixture
def story_path(tmp_path):
    for category in ContentDatabase.CATEGORIES:
        (tmp_path / "story" / category).mkdir(parents=True)
    return tmp_path

def write(path: Path, data):
    with open(path, "w") as f:
        json.dump(data, f)

def test_load_all(story_path):
    write(story_path / "story" / "items" / "gears.json", [
        {"id": "rusty_gear", "stackable": True, "max_stack": 10}
    ])

    db = ContentDatabase(story_path)
    records = db.load_all()

    assert records["items"][0]["id"] == "rusty_gear"
    assert db.get("items", "rusty_gear")["max_stack"] == 10
    assert db.get("items", "missing") is None
    assert records["scenes"] == []

def test_validation_error(story_path):
    write(story_path / "story" / "scenes" / "broken.json", [
        {"id": "scene_ok"},
        {"id": "scene_bad", "auto_proceed_delay": -5},
        {"id": "scene_rule", "on_enter_effects": [{"value": 1}]},
    ])

    db = ContentDatabase(story_path)
    db.load_all()

    assert [r["id"] for r in db.records["scenes"]] == ["scene_ok"]
    assert db.rejected == ["scenes/scene_bad", "scenes/scene_rule"]

def test_declaration_order(story_path):
    write(story_path / "story" / "endings" / "b.json", [{"id": "ending_3"}])
    write(story_path / "story" / "endings" / "a.json", [{"id": "ending_1"}, {"id": "ending_2"}])
    write(story_path / "story" / "endings" / "c.json", {"id": "ending_4"})

    db = ContentDatabase(story_path)
    db.load_all()

    assert [r["id"] for r in db.records["endings"]] == ["ending_1", "ending_2", "ending_3", "ending_4"]

def test_malformed_file_skipped(story_path):
    (story_path / "story" / "chapters" / "bad.json").write_text("{not json")
    write(story_path / "story" / "chapters" / "good.json", [{"id": "ch1", "scene_ids": ["s1"]}])

    db = ContentDatabase(story_path)
    db.load_all()

    assert [r["id"] for r in db.records["chapters"]] == ["ch1"]

def test_missing_schema(story_path, tmp_path):
    write(story_path / "story" / "items" / "gears.json", [{"id": "rusty_gear"}])
    empty_schemas = tmp_path / "no_schemas"
    empty_schemas.mkdir()

    db = ContentDatabase(story_path, schema_path=empty_schemas)
    db.load_all()

    assert db.records["items"] == []

def test_load_strings(story_path):
    (story_path / "locales").mkdir()
    write(story_path / "locales" / "en.json", {"greeting": "Hello"})
    write(story_path / "locales" / "it.json", {"greeting": "Ciao"})

    strings = ContentDatabase(story_path).load_strings()

    assert strings == {"en": {"greeting": "Hello"}, "it": {"greeting": "Ciao"}}
