"""
Chapter and side-quest tracking.

Provides:
- ChapterTracker: the non-branching chapter overlay, with opening and
  closing cutscene hand-offs
- SideQuestTracker: activation of optional branches and their return
  into the main scene graph
"""

from __future__ import annotations

import logging
from typing import Optional

from narrative.conditions import ConditionEvaluator
from narrative.content import StoryContent
from narrative.effects import EffectOutcome, EffectProcessor
from narrative.models import Chapter, SideQuest
from narrative.state import GameState
from storyengine.core.config import GameConfig
from storyengine.core.events import EventBus, NarrativeEvent

logger = logging.getLogger(__name__)


class ChapterTracker:
    """Advances `current_chapter_id` and announces chapter boundaries."""

    def __init__(
        self,
        content: StoryContent,
        evaluator: ConditionEvaluator,
        config: GameConfig,
        event_bus: EventBus | None = None,
    ):
        self.content = content
        self.evaluator = evaluator
        self.config = config
        self.event_bus = event_bus

    def initial_chapter(self) -> Chapter | None:
        if self.config.initial_chapter_id:
            chapter = self.content.chapters.get(self.config.initial_chapter_id)
            if chapter is None:
                logger.warning(f"Initial chapter '{self.config.initial_chapter_id}' is not defined")
            return chapter
        return self.content.chapter_of(self.config.initial_scene_id) or self.content.next_chapter(None)

    def begin(self, state: GameState) -> None:
        """Enter the first chapter of a new game."""
        chapter = self.initial_chapter()
        if chapter is not None:
            self.enter(chapter, state)

    def enter(self, chapter: Chapter, state: GameState) -> None:
        """Make a chapter current. The opening cutscene plays on first entry only."""
        state.current_chapter_id = chapter.id
        if not state.mark_chapter_started(chapter.id):
            return
        logger.info(f"Chapter started: {chapter.id}")
        self._publish(NarrativeEvent.CHAPTER_STARTED, chapter_id=chapter.id)
        if chapter.opening_cutscene_id:
            self._publish(
                NarrativeEvent.CUTSCENE_REQUESTED,
                cutscene_id=chapter.opening_cutscene_id,
                chapter_id=chapter.id,
                reason="chapter_opening",
            )

    def complete(self, state: GameState) -> None:
        """Close the current chapter."""
        chapter = self.content.chapters.get(state.current_chapter_id or "")
        if chapter is None or chapter.id in state.completed_chapter_ids:
            return
        state.mark_chapter_completed(chapter.id)
        logger.info(f"Chapter completed: {chapter.id}")
        self._publish(NarrativeEvent.CHAPTER_COMPLETED, chapter_id=chapter.id)
        if chapter.closing_cutscene_id:
            self._publish(
                NarrativeEvent.CUTSCENE_REQUESTED,
                cutscene_id=chapter.closing_cutscene_id,
                chapter_id=chapter.id,
                reason="chapter_closing",
            )

    def unlocked(self, chapter: Chapter, state: GameState) -> bool:
        return self.evaluator.all_hold(chapter.unlock_conditions, state)

    def progress(self, chapter_id: Optional[str], state: GameState) -> Optional[str]:
        """
        Handle a chapter_progress effect.

        Returns:
            First scene of the target chapter, or None if the move was
            refused (unknown, locked or empty chapter).
        """
        if chapter_id:
            target = self.content.chapters.get(chapter_id)
            if target is None:
                logger.warning(f"chapter_progress to unknown chapter '{chapter_id}' ignored")
                return None
        else:
            target = self.content.next_chapter(state.current_chapter_id)
            if target is None:
                logger.warning(f"No chapter follows '{state.current_chapter_id}'")
                return None

        # Unlock conditions see the chapter being left as completed
        leaving = state.model_copy(deep=True)
        if state.current_chapter_id:
            leaving.mark_chapter_completed(state.current_chapter_id)
        if not self.unlocked(target, leaving):
            logger.warning(f"Chapter '{target.id}' is locked, chapter_progress ignored")
            return None
        if not target.scene_ids:
            logger.warning(f"Chapter '{target.id}' has no scenes, chapter_progress ignored")
            return None

        self.complete(state)
        self.enter(target, state)
        return target.scene_ids[0]

    def on_scene_exit(self, scene_id: str, state: GameState) -> None:
        """Leaving the last scene of the current chapter completes it."""
        chapter = self.content.chapters.get(state.current_chapter_id or "")
        if chapter is None or not chapter.scene_ids or chapter.scene_ids[-1] != scene_id:
            return
        self.complete(state)
        following = self.content.next_chapter(chapter.id)
        if following is not None and self.unlocked(following, state):
            self.enter(following, state)

    def _publish(self, event_type: NarrativeEvent, **data) -> None:
        if self.event_bus:
            self.event_bus.publish(event_type, **data)


class SideQuestTracker:
    """Starts side quests and routes their exits back to the main story."""

    def __init__(
        self,
        content: StoryContent,
        evaluator: ConditionEvaluator,
        event_bus: EventBus | None = None,
    ):
        self.content = content
        self.evaluator = evaluator
        self.event_bus = event_bus

    def active(self, state: GameState) -> SideQuest | None:
        if state.active_side_quest_id is None:
            return None
        return self.content.side_quests.get(state.active_side_quest_id)

    def available(self, quest: SideQuest, state: GameState) -> bool:
        return self.evaluator.all_hold(quest.availability_conditions, state)

    def maybe_start(self, target_scene_id: str, state: GameState) -> SideQuest | None:
        """Activate the first available quest that starts at the target scene."""
        if state.active_side_quest_id is not None:
            return None
        for quest in self.content.quests_starting_at(target_scene_id):
            if not self.available(quest, state):
                logger.debug(f"Side quest '{quest.id}' not available")
                continue
            state.active_side_quest_id = quest.id
            logger.info(f"Side quest started: {quest.id}")
            if self.event_bus:
                self.event_bus.publish(NarrativeEvent.SIDE_QUEST_STARTED, quest_id=quest.id)
            return quest
        return None

    def is_exit(self, scene_id: str, state: GameState) -> bool:
        """True if leaving `scene_id` ends the active quest."""
        quest = self.active(state)
        return quest is not None and quest.last_scene_id == scene_id

    def finish(
        self, quest: SideQuest, state: GameState, processor: EffectProcessor
    ) -> tuple[str, EffectOutcome]:
        """
        Close the active quest.

        Rewards are applied only when the completion flag is set.

        Returns:
            (return scene id, outcome of the reward effects)
        """
        point = quest.return_point
        completed = state.flag(point.flag_for_completion)
        outcome = EffectOutcome()
        if completed:
            outcome = processor.apply(quest.rewards_on_completion, state)
        state.flags[quest.completion_flag] = True
        state.active_side_quest_id = None

        destination = point.destination(completed)
        logger.info(f"Side quest finished: {quest.id} (completed={completed}) -> {destination}")
        if self.event_bus:
            self.event_bus.publish(
                NarrativeEvent.SIDE_QUEST_FINISHED,
                quest_id=quest.id,
                completed=completed,
                return_scene_id=destination,
            )
        return destination, outcome
