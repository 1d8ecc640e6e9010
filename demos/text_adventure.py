"""
Text Adventure Demo: the sample story in a terminal.

Demonstrates:
- Loading schema-validated story content
- Driving StoryEngine from host events
- Auto-proceed timers via update(dt), including while waiting at the prompt
- Saving to a slot and recording the Hall of Fame

Run: python -m demos.text_adventure [data_dir]
"""

import logging
import sys
import time
from pathlib import Path

from narrative import HallOfFame, Localizer, SaveManager, StoryEngine, load_story
from narrative.traversal import EngineStatus
from storyengine.audio import NullAudioSink
from storyengine.core import EventBus, GameConfig, NarrativeEvent


class TerminalHost:
    """Prints engine events and reads choices from stdin."""

    def __init__(self, engine: StoryEngine):
        self.engine = engine
        bus = engine.event_bus
        bus.subscribe(NarrativeEvent.CHOICES_READY, self.on_choices_ready)
        bus.subscribe(NarrativeEvent.AUTO_PROCEED_SCHEDULED, self.on_auto_proceed)
        bus.subscribe(NarrativeEvent.CUTSCENE_REQUESTED, self.on_cutscene)
        bus.subscribe(NarrativeEvent.CHAPTER_STARTED, self.on_chapter_started)
        bus.subscribe(NarrativeEvent.ACHIEVEMENT_UNLOCKED, self.on_achievement)
        bus.subscribe(NarrativeEvent.ENDING_RESOLVED, self.on_ending)
        bus.subscribe(NarrativeEvent.HOST_INSTRUCTION, self.on_instruction)
        bus.subscribe(NarrativeEvent.CONTENT_ERROR, self.on_error)

    def on_choices_ready(self, event) -> None:
        presentation = event["presentation"]
        print(f"\n{presentation.text}")
        for index, choice in enumerate(presentation.choices, 1):
            print(f"  {index}. {presentation.choice_texts[choice.id]}")

    def on_auto_proceed(self, event) -> None:
        print(f"\n{self.engine.presentation.text}")

    def on_cutscene(self, event) -> None:
        print(f"[cutscene: {event['cutscene_id']}]")

    def on_chapter_started(self, event) -> None:
        chapter = self.engine.content.chapters[event["chapter_id"]]
        print(f"\n=== {self.engine.text(chapter.title_key)} ===")

    def on_achievement(self, event) -> None:
        achievement = self.engine.content.achievements[event["achievement_id"]]
        print(f"* Achievement unlocked: {self.engine.text(achievement.name_key)}")

    def on_ending(self, event) -> None:
        ending = self.engine.content.endings[event["ending_id"]]
        print(f"\n*** {self.engine.text(ending.title_key)} ***")
        entry = event.get("hall_of_fame_entry")
        if entry:
            print(f"Score: {entry.score}")

    def on_instruction(self, event) -> None:
        print(f"[host instruction: {event['instruction']}]")

    def on_error(self, event) -> None:
        print(f"Story error: {event['message']}")

    def read_choice(self) -> str | None:
        choices = self.engine.presentation.choices
        raw = input("> ").strip().lower()
        if raw in ("q", "quit"):
            return None
        if raw in ("s", "save"):
            return "save"
        if raw.isdigit() and 1 <= int(raw) <= len(choices):
            return choices[int(raw) - 1].id
        print("Pick a number, 's' to save or 'q' to quit.")
        return ""


def play(engine: StoryEngine, host: TerminalHost, saves: SaveManager,
         clock=time.monotonic, sleep=time.sleep) -> None:
    """
    Run the input loop until the story finishes or the player quits.

    Time spent at the prompt counts toward the scene's auto-proceed
    timer. If it ran out, the typed choice is dropped.
    """
    while not engine.is_finished:
        if engine.status == EngineStatus.AUTO_PROCEEDING:
            sleep(0.1)
            engine.update(0.1)
            continue
        asked_at = clock()
        selection = host.read_choice()
        if selection is None:
            break
        if engine.update(clock() - asked_at):
            print("Too late, the moment has passed.")
            continue
        if selection == "save":
            saves.save_game(1, engine.snapshot(), name=engine.state.current_scene_id)
            print("Saved to slot 1.")
        elif selection:
            engine.choose(selection)


def main() -> None:
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")
    data_dir = Path(sys.argv[1]) if len(sys.argv) > 1 else Path("data")

    config = GameConfig.from_json(data_dir / "config.json")
    content = load_story(data_dir)
    content.validate(config)

    saves = SaveManager(data_dir.parent / "saves", config=config)
    preferences = saves.load_preferences()
    engine = StoryEngine(
        content,
        config,
        event_bus=EventBus(),
        audio=NullAudioSink(),
        localizer=Localizer.from_directory(data_dir / "locales", language=preferences.language),
        hall_of_fame=HallOfFame.from_config(config, data_dir.parent / "saves" / "hall_of_fame.json"),
        save_manager=saves,
    )
    host = TerminalHost(engine)
    engine.start()
    play(engine, host, saves)


if __name__ == "__main__":
    main()
