"""
Story content aggregate and load-time validation.

Provides:
- StoryContent: every definition a playthrough needs, keyed by id in
  canonical declaration order
- validate(): fatal ContentErrors for unresolvable targets and dead ends,
  ConfigurationWarnings for soft problems
"""

from __future__ import annotations

import logging
import warnings
from pathlib import Path
from typing import Any, Iterable, Iterator

from pydantic import TypeAdapter, ValidationError

from narrative.errors import ConfigurationWarning, ContentError
from narrative.models import (
    Achievement,
    Chapter,
    ChapterCheck,
    ChapterProgress,
    Ending,
    ItemAdd,
    ItemCheck,
    ItemDefinition,
    ItemRemove,
    Scene,
    SideQuest,
    TriggerEnding,
    UnknownCondition,
    UnknownEffect,
)
from storyengine.core.config import GameConfig
from storyengine.resources.database import ContentDatabase

logger = logging.getLogger(__name__)

CATEGORIES: dict[str, type] = {
    "scenes": Scene,
    "chapters": Chapter,
    "side_quests": SideQuest,
    "endings": Ending,
    "achievements": Achievement,
    "items": ItemDefinition,
}


def _index(kind: str, records: Iterable[Any]) -> dict[str, Any]:
    """Key records by id, keeping the first of any duplicates."""
    indexed: dict[str, Any] = {}
    for record in records:
        if record.id in indexed:
            logger.warning(f"Duplicate {kind} id '{record.id}' ignored")
            continue
        indexed[record.id] = record
    return indexed


class StoryContent:
    """
    Immutable story definitions.

    Dicts preserve declaration order, which is the tie-break order for
    ending resolution and the iteration order for chapters.
    """

    def __init__(
        self,
        scenes: Iterable[Scene] = (),
        chapters: Iterable[Chapter] = (),
        side_quests: Iterable[SideQuest] = (),
        endings: Iterable[Ending] = (),
        achievements: Iterable[Achievement] = (),
        items: Iterable[ItemDefinition] = (),
    ):
        self.scenes: dict[str, Scene] = _index("scene", scenes)
        self.chapters: dict[str, Chapter] = _index("chapter", chapters)
        self.side_quests: dict[str, SideQuest] = _index("side quest", side_quests)
        self.endings: dict[str, Ending] = _index("ending", endings)
        self.achievements: dict[str, Achievement] = _index("achievement", achievements)
        self.items: dict[str, ItemDefinition] = _index("item", items)

    @classmethod
    def from_dict(cls, data: dict[str, list[dict[str, Any]]]) -> StoryContent:
        """
        Build content from raw records grouped by category.

        Raises:
            pydantic.ValidationError: if a record is malformed
        """
        kwargs = {}
        for category, model in CATEGORIES.items():
            adapter = TypeAdapter(list[model])
            kwargs[category] = adapter.validate_python(data.get(category, []))
        return cls(**kwargs)

    def __repr__(self) -> str:
        return (
            f"StoryContent(scenes={len(self.scenes)}, chapters={len(self.chapters)}, "
            f"side_quests={len(self.side_quests)}, endings={len(self.endings)}, "
            f"achievements={len(self.achievements)}, items={len(self.items)})"
        )

    # --- Lookups ---

    def chapter_of(self, scene_id: str) -> Chapter | None:
        for chapter in self.chapters.values():
            if scene_id in chapter.scene_ids:
                return chapter
        return None

    def next_chapter(self, chapter_id: str | None) -> Chapter | None:
        """Chapter declared after `chapter_id`, or the first one for None."""
        ordered = list(self.chapters.values())
        if chapter_id is None:
            return ordered[0] if ordered else None
        ids = [c.id for c in ordered]
        if chapter_id not in ids:
            return None
        position = ids.index(chapter_id) + 1
        return ordered[position] if position < len(ordered) else None

    def quests_starting_at(self, scene_id: str) -> list[SideQuest]:
        return [q for q in self.side_quests.values() if q.starting_scene_id == scene_id]

    def quest_exits(self) -> set[str]:
        """Scene ids whose exit is governed by a side-quest return point."""
        return {q.last_scene_id for q in self.side_quests.values()}

    # --- Validation ---

    def resolves(self, target: str, config: GameConfig) -> bool:
        return target in self.scenes or target in self.endings or config.is_sentinel(target)

    def validate(self, config: GameConfig) -> None:
        """
        Check that the story graph is fully resolvable.

        Raises:
            ContentError: for the first unknown target or dead-end scene
        Warns:
            ConfigurationWarning: for unknown condition/effect types and
            references to undefined items, chapters, endings or achievements
        """
        if config.initial_scene_id not in self.scenes:
            raise ContentError(
                f"Initial scene '{config.initial_scene_id}' is not defined",
                config.initial_scene_id,
            )

        quest_exits = self.quest_exits()
        for scene in self.scenes.values():
            for choice in scene.choices:
                if choice.target_scene_id and not self.resolves(choice.target_scene_id, config):
                    raise ContentError(
                        f"Choice '{choice.id}' in scene '{scene.id}' targets unknown "
                        f"scene '{choice.target_scene_id}'",
                        choice.target_scene_id,
                    )
                if not choice.target_scene_id and not scene.next_scene_default \
                        and scene.id not in quest_exits \
                        and not self._has_terminal((*scene.on_exit_effects, *choice.effects)):
                    raise ContentError(
                        f"Choice '{choice.id}' in scene '{scene.id}' leads nowhere",
                        choice.id,
                    )

            if scene.next_scene_default and not self.resolves(scene.next_scene_default, config):
                raise ContentError(
                    f"Scene '{scene.id}' defaults to unknown scene '{scene.next_scene_default}'",
                    scene.next_scene_default,
                )

            if not scene.choices and not scene.next_scene_default and scene.id not in quest_exits \
                    and not self._has_terminal(scene.on_enter_effects):
                raise ContentError(f"Scene '{scene.id}' is a dead end", scene.id)

        for chapter in self.chapters.values():
            for scene_id in chapter.scene_ids:
                if scene_id not in self.scenes:
                    raise ContentError(
                        f"Chapter '{chapter.id}' lists unknown scene '{scene_id}'", scene_id
                    )

        for quest in self.side_quests.values():
            point = quest.return_point
            for scene_id in (
                quest.starting_scene_id,
                *quest.scene_sequence,
                point.return_scene_id_default,
                point.return_scene_id_if_completed,
                point.return_scene_id_if_failed,
            ):
                if scene_id and not self.resolves(scene_id, config):
                    raise ContentError(
                        f"Side quest '{quest.id}' references unknown scene '{scene_id}'", scene_id
                    )

        for problem in self._soft_problems():
            warnings.warn(problem, ConfigurationWarning, stacklevel=2)
            logger.warning(problem)

    @staticmethod
    def _has_terminal(effects: Iterable[Any]) -> bool:
        return any(isinstance(e, (ChapterProgress, TriggerEnding)) for e in effects)

    def _rule_lists(self) -> Iterator[tuple[str, Iterable[Any]]]:
        for scene in self.scenes.values():
            yield f"scene '{scene.id}'", scene.on_enter_effects
            yield f"scene '{scene.id}'", scene.on_exit_effects
            for choice in scene.choices:
                yield f"choice '{choice.id}'", choice.effects
                yield f"choice '{choice.id}'", choice.conditions
        for chapter in self.chapters.values():
            yield f"chapter '{chapter.id}'", chapter.unlock_conditions
        for quest in self.side_quests.values():
            yield f"side quest '{quest.id}'", quest.rewards_on_completion
            yield f"side quest '{quest.id}'", quest.availability_conditions
        for ending in self.endings.values():
            yield f"ending '{ending.id}'", ending.conditions
        for achievement in self.achievements.values():
            yield f"achievement '{achievement.id}'", achievement.conditions

    def _soft_problems(self) -> Iterator[str]:
        for owner, rules in self._rule_lists():
            for rule in rules:
                if isinstance(rule, (UnknownCondition, UnknownEffect)):
                    yield f"{owner} uses unknown rule type '{rule.type}'"
                elif isinstance(rule, (ItemAdd, ItemRemove, ItemCheck)) and self.items \
                        and rule.item_id not in self.items:
                    yield f"{owner} references undefined item '{rule.item_id}'"
                elif isinstance(rule, (ChapterCheck, ChapterProgress)) and rule.chapter_id \
                        and rule.chapter_id not in self.chapters:
                    yield f"{owner} references undefined chapter '{rule.chapter_id}'"
                elif isinstance(rule, TriggerEnding) and rule.ending_id \
                        and rule.ending_id not in self.endings:
                    yield f"{owner} triggers undefined ending '{rule.ending_id}'"

        for ending in self.endings.values():
            if ending.unlocks_achievement_id and ending.unlocks_achievement_id not in self.achievements:
                yield f"ending '{ending.id}' unlocks undefined achievement '{ending.unlocks_achievement_id}'"


def load_story(data_path: str | Path, schema_path: str | Path | None = None) -> StoryContent:
    """
    Load and type story content from `<data_path>/story/<category>/*.json`.

    Records rejected by the JSON schemas are logged and skipped.

    Raises:
        ContentError: if a schema-valid record cannot be typed
    """
    database = ContentDatabase(data_path, schema_path)
    database.load_all()
    try:
        return StoryContent.from_dict(database.records)
    except ValidationError as e:
        raise ContentError(f"Malformed story content in {data_path}: {e}") from e
