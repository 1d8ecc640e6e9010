"""
Condition evaluation.

A condition list holds when every condition in it holds. There is no
OR: alternatives are expressed as separate choices or endings.
"""

from __future__ import annotations

import logging
import operator
import random
from typing import Any, Callable, Hashable, Iterable

from narrative.models import (
    ChapterCheck,
    FlagCheck,
    ItemCheck,
    MoneyCheck,
    RandomChance,
    SceneVisited,
    StatCheck,
)
from narrative.state import GameState

logger = logging.getLogger(__name__)

OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    ">=": operator.ge,
    "<=": operator.le,
    ">": operator.gt,
    "<": operator.lt,
    "==": operator.eq,
    "!=": operator.ne,
}


def compare(left: int | float, op: str, right: int | float) -> bool:
    """Numeric comparison. Unknown operators fail closed."""
    func = OPERATORS.get(op)
    if func is None:
        logger.warning(f"Unknown comparison operator '{op}', condition fails")
        return False
    return func(left, right)


class ChanceCache:
    """
    Remembers random_chance outcomes for one scene presentation.

    Recomputing visible choices inside the same presentation reuses the
    first draw for each key, so choices never flicker in and out.
    """

    def __init__(self, rng: random.Random | None = None):
        self._rng = rng or random.Random()
        self._outcomes: dict[Hashable, bool] = {}

    def roll(self, key: Hashable, percentage: float) -> bool:
        if key not in self._outcomes:
            self._outcomes[key] = self._rng.random() * 100 < percentage
        return self._outcomes[key]

    def clear(self) -> None:
        self._outcomes.clear()

    def __len__(self) -> int:
        return len(self._outcomes)


class ConditionEvaluator:
    """Pure predicate evaluation over GameState."""

    def __init__(self, rng: random.Random | None = None):
        self.rng = rng or random.Random()
        self._handlers: dict[type, Callable[..., bool]] = {
            StatCheck: self._stat_check,
            ItemCheck: self._item_check,
            FlagCheck: self._flag_check,
            MoneyCheck: self._money_check,
            RandomChance: self._random_chance,
            ChapterCheck: self._chapter_check,
            SceneVisited: self._scene_visited,
        }

    def evaluate(
        self,
        condition: Any,
        state: GameState,
        cache: ChanceCache | None = None,
        key: Hashable | None = None,
    ) -> bool:
        """
        Evaluate a single condition.

        Args:
            condition: Condition model
            state: Current game state (never mutated)
            cache: Presentation cache for random_chance draws
            key: Cache key identifying this condition within the presentation
        """
        handler = self._handlers.get(type(condition))
        if handler is None:
            logger.warning(
                f"Unknown condition type '{getattr(condition, 'type', condition)}', treated as not met"
            )
            return False
        if isinstance(condition, RandomChance):
            return handler(condition, cache, key)
        return handler(condition, state)

    def all_hold(
        self,
        conditions: Iterable[Any],
        state: GameState,
        cache: ChanceCache | None = None,
        scope: Hashable | None = None,
    ) -> bool:
        """True if every condition holds. An empty list always holds."""
        for index, condition in enumerate(conditions):
            key = (scope, index) if scope is not None else None
            if not self.evaluate(condition, state, cache, key):
                return False
        return True

    # --- Handlers ---

    def _stat_check(self, condition: StatCheck, state: GameState) -> bool:
        stats = state.stats(world=condition.scope == "world")
        if condition.stat not in stats:
            logger.debug(f"Stat '{condition.stat}' not set, condition not met")
            return False
        return compare(stats[condition.stat], condition.operator, condition.value)

    def _item_check(self, condition: ItemCheck, state: GameState) -> bool:
        quantity = state.item_count(condition.item_id)
        if condition.present is False:
            return quantity == 0
        return quantity > 0 and compare(quantity, condition.operator, condition.quantity)

    def _flag_check(self, condition: FlagCheck, state: GameState) -> bool:
        return state.flag(condition.flag_name) == condition.value

    def _money_check(self, condition: MoneyCheck, state: GameState) -> bool:
        return compare(state.money, condition.operator, condition.amount)

    def _random_chance(
        self, condition: RandomChance, cache: ChanceCache | None, key: Hashable | None
    ) -> bool:
        if cache is not None and key is not None:
            return cache.roll(key, condition.percentage)
        return self.rng.random() * 100 < condition.percentage

    def _chapter_check(self, condition: ChapterCheck, state: GameState) -> bool:
        if condition.status == "completed":
            return condition.chapter_id in state.completed_chapter_ids
        if condition.status == "started":
            return condition.chapter_id in state.started_chapter_ids
        return state.current_chapter_id == condition.chapter_id

    def _scene_visited(self, condition: SceneVisited, state: GameState) -> bool:
        return state.has_visited(condition.scene_id) == condition.visited
