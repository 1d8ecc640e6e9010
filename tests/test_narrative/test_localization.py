import json
import pytest
from narrative.localization import Localizer


@pytest.fixture
def localizer():
    return Localizer({
        "en": {
            "greeting": "Hello, {player_name}!",
            "gold": "You have {money} coins and {gems} gems.",
            "farewell": "Goodbye",
        },
        "it": {"greeting": "Ciao, {player_name}!"},
    }, language="it")


def test_current_language_first(localizer):
    assert localizer.get("greeting", player_name="Anne") == "Ciao, Anne!"


def test_falls_back_to_fallback_language(localizer):
    assert localizer.get("farewell") == "Goodbye"


def test_missing_key(localizer, caplog):
    with caplog.at_level("WARNING"):
        assert localizer("no_such_key") == "[no_such_key]"
    assert "no_such_key" in caplog.text


def test_unknown_placeholders_left_alone(localizer):
    localizer.set_language("en")
    assert localizer.get("gold", money=5) == "You have 5 coins and {gems} gems."


def test_unknown_language_falls_back(localizer):
    assert localizer.set_language("klingon") == "en"
    assert localizer.language == "en"
    assert localizer.has("farewell")
    assert not localizer.has("no_such_key")


def test_from_directory(tmp_path):
    with open(tmp_path / "en.json", "w") as f:
        json.dump({"title": "The Harbour"}, f)
    with open(tmp_path / "it.json", "w") as f:
        json.dump({"title": "Il Porto"}, f)

    localizer = Localizer.from_directory(tmp_path, language="it")
    assert localizer.languages == ["en", "it"]
    assert localizer.get("title") == "Il Porto"


def test_engine_text_uses_state_values(make_engine):
    engine = make_engine([{"id": "scene_01_start", "text_key": "status",
                           "choices": [{"id": "c_stay", "target_scene_id": "scene_01_start"}]}])
    engine.localizer = Localizer({"en": {"status": "{player_name}: {money} coins, karma {karma}"}})
    engine.player_name = "Anne"
    engine.start()

    assert engine.presentation.text == "Anne: 100 coins, karma 0"
    assert engine.presentation.choice_texts == {"c_stay": ""}
