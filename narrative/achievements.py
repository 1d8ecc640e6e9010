"""
Achievement evaluation.
"""

from __future__ import annotations

import logging

from narrative.conditions import ConditionEvaluator
from narrative.content import StoryContent
from narrative.state import GameState
from storyengine.core.events import EventBus, NarrativeEvent

logger = logging.getLogger(__name__)


class AchievementTracker:
    """
    Unlocks achievements as their conditions come true.

    check() scans every locked achievement, never stopping at the first
    unlock, so a single state change can unlock several at once.
    """

    def __init__(
        self,
        content: StoryContent,
        evaluator: ConditionEvaluator,
        event_bus: EventBus | None = None,
    ):
        self.content = content
        self.evaluator = evaluator
        self.event_bus = event_bus

    def check(self, state: GameState) -> list[str]:
        """Unlock every achievement whose conditions now hold."""
        newly_unlocked = []
        for achievement in self.content.achievements.values():
            if state.is_unlocked(achievement.id):
                continue
            # An achievement with no conditions is only granted explicitly
            if not achievement.conditions:
                continue
            if self.evaluator.all_hold(achievement.conditions, state):
                self._grant(achievement.id, state)
                newly_unlocked.append(achievement.id)
        return newly_unlocked

    def unlock(self, achievement_id: str, state: GameState) -> bool:
        """Grant an achievement directly (e.g. from an ending)."""
        if achievement_id not in self.content.achievements:
            logger.warning(f"Cannot unlock unknown achievement '{achievement_id}'")
            return False
        if state.is_unlocked(achievement_id):
            return False
        self._grant(achievement_id, state)
        return True

    def _grant(self, achievement_id: str, state: GameState) -> None:
        state.unlock(achievement_id)
        achievement = self.content.achievements[achievement_id]
        logger.info(f"Achievement unlocked: {achievement_id}")
        if self.event_bus:
            self.event_bus.publish(
                NarrativeEvent.ACHIEVEMENT_UNLOCKED,
                achievement_id=achievement_id,
                hidden=achievement.hidden,
                points=achievement.points,
            )
