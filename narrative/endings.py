"""
Ending resolution.

Implicit resolution keeps every ending whose conditions all hold and
picks the lowest priority number. Ties go to the ending declared
first. When nothing matches, the configured fallback ending is used,
or else the ending with the highest priority number.
"""

from __future__ import annotations

import logging

from narrative.conditions import ConditionEvaluator
from narrative.content import StoryContent
from narrative.errors import ContentError
from narrative.models import Ending
from narrative.state import GameState
from storyengine.core.config import GameConfig

logger = logging.getLogger(__name__)


class EndingResolver:
    """Selects the ending that applies to a finished playthrough."""

    def __init__(self, content: StoryContent, evaluator: ConditionEvaluator, config: GameConfig):
        self.content = content
        self.evaluator = evaluator
        self.config = config

    def candidates(self, state: GameState) -> list[Ending]:
        """Endings whose conditions all hold, in declaration order."""
        return [
            ending for ending in self.content.endings.values()
            if self.evaluator.all_hold(ending.conditions, state)
        ]

    def resolve(self, state: GameState) -> Ending:
        """
        Pick an ending by priority.

        Raises:
            ContentError: if no endings are defined at all
        """
        if not self.content.endings:
            raise ContentError("No endings defined", self.config.resolve_ending_target)

        matches = self.candidates(state)
        if matches:
            # min() keeps the first of equal priorities
            ending = min(matches, key=lambda e: e.priority)
            logger.debug(f"{len(matches)} endings matched, selected '{ending.id}'")
            return ending

        return self.fallback()

    def fallback(self) -> Ending:
        """Catch-all ending used when no conditions match."""
        fallback_id = self.config.fallback_ending_id
        if fallback_id:
            if fallback_id in self.content.endings:
                return self.content.endings[fallback_id]
            logger.warning(f"Configured fallback ending '{fallback_id}' is not defined")
        ending = max(self.content.endings.values(), key=lambda e: e.priority)
        logger.info(f"No ending conditions met, falling back to '{ending.id}'")
        return ending

    def select(self, ending_id: str | None, state: GameState) -> Ending:
        """Explicit selection by id, or implicit resolution when absent or unknown."""
        if ending_id:
            ending = self.content.endings.get(ending_id)
            if ending is not None:
                return ending
            logger.warning(f"Unknown ending '{ending_id}' triggered, resolving by conditions")
        return self.resolve(state)
