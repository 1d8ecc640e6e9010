"""
Effect processing.

Effects in a list are applied strictly in order. Clamps, stack caps and
the money floor are applied after each individual effect. Terminal
effects (trigger_ending, chapter_progress) are never applied here: the
first one in a list is reported back to the caller once every
state-changing effect in that list has run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping, Optional

from narrative.models import (
    TERMINAL_EFFECTS,
    FlagSet,
    ItemAdd,
    ItemDefinition,
    ItemRemove,
    MoneyAdd,
    MoneySubtract,
    MusicChange,
    SfxPlay,
    StatChange,
)
from narrative.state import GameState
from storyengine.audio.sink import AudioSink, NullAudioSink
from storyengine.core.config import GameConfig

logger = logging.getLogger(__name__)


@dataclass
class EffectOutcome:
    """Result of applying one effect list."""
    terminal: Optional[Any] = None
    changed: bool = False


class EffectProcessor:
    """Applies effect lists to GameState and dispatches audio cues."""

    def __init__(
        self,
        config: GameConfig,
        items: Mapping[str, ItemDefinition] | None = None,
        audio: AudioSink | None = None,
    ):
        self.config = config
        self.items = items or {}
        self.audio = audio or NullAudioSink()
        self.applying = False
        self._handlers: dict[type, Callable[[Any, GameState], bool]] = {
            StatChange: self._stat_change,
            ItemAdd: self._item_add,
            ItemRemove: self._item_remove,
            FlagSet: self._flag_set,
            MoneyAdd: self._money_add,
            MoneySubtract: self._money_subtract,
            SfxPlay: self._sfx_play,
            MusicChange: self._music_change,
        }

    def apply(self, effects: Iterable[Any], state: GameState) -> EffectOutcome:
        """
        Apply an ordered effect list.

        Returns:
            EffectOutcome with the first terminal effect (if any) and
            whether the state was modified.
        """
        outcome = EffectOutcome()
        self.applying = True
        try:
            for effect in effects:
                if isinstance(effect, TERMINAL_EFFECTS):
                    if outcome.terminal is None:
                        outcome.terminal = effect
                    else:
                        logger.warning(
                            f"Ignoring extra terminal effect '{effect.type}' "
                            f"after '{outcome.terminal.type}' in the same list"
                        )
                    continue

                handler = self._handlers.get(type(effect))
                if handler is None:
                    logger.warning(
                        f"Unknown effect type '{getattr(effect, 'type', effect)}', skipped"
                    )
                    continue
                if handler(effect, state):
                    outcome.changed = True
        finally:
            self.applying = False
        return outcome

    # --- Limits ---

    def stack_limit(self, item_id: str) -> int:
        definition = self.items.get(item_id)
        if definition is None:
            return self.config.default_max_stack
        return definition.stack_limit(self.config.default_max_stack)

    def _clamp_stat(self, stat: str, value: int, world: bool) -> int:
        if not self.config.allow_negative_stats:
            value = max(0, value)
        upper = self.config.stat_max(stat, world=world)
        if upper is not None:
            value = min(upper, value)
        return value

    def clamp(self, state: GameState) -> None:
        """Bring stats, stacks and money within the configured limits."""
        for world in (False, True):
            stats = state.stats(world=world)
            for stat, value in stats.items():
                stats[stat] = self._clamp_stat(stat, value, world)
        for item_id, quantity in state.inventory.items():
            limit = self.stack_limit(item_id)
            if quantity > limit:
                logger.info(f"Item '{item_id}' capped at max stack {limit}")
                state.inventory[item_id] = limit
        self._set_money(state, state.money)

    # --- Handlers ---

    def _stat_change(self, effect: StatChange, state: GameState) -> bool:
        world = effect.scope == "world"
        stats = state.stats(world=world)
        current = stats.get(effect.stat, 0)
        stats[effect.stat] = self._clamp_stat(effect.stat, current + effect.value, world)
        logger.debug(f"{effect.scope}.{effect.stat}: {current} -> {stats[effect.stat]}")
        return True

    def _item_add(self, effect: ItemAdd, state: GameState) -> bool:
        if effect.item_id not in self.items:
            logger.warning(f"Unknown item '{effect.item_id}', using default stack limit")
        limit = self.stack_limit(effect.item_id)
        current = state.item_count(effect.item_id)
        new_quantity = min(limit, current + effect.quantity)
        if current + effect.quantity > limit:
            logger.info(f"Item '{effect.item_id}' capped at max stack {limit}")
        if new_quantity > 0:
            state.inventory[effect.item_id] = new_quantity
        return True

    def _item_remove(self, effect: ItemRemove, state: GameState) -> bool:
        current = state.item_count(effect.item_id)
        if current == 0:
            logger.debug(f"Item '{effect.item_id}' not in inventory, nothing removed")
            return False
        remaining = max(0, current - effect.quantity)
        if remaining:
            state.inventory[effect.item_id] = remaining
        else:
            del state.inventory[effect.item_id]
        return True

    def _flag_set(self, effect: FlagSet, state: GameState) -> bool:
        state.flags[effect.flag_name] = effect.value
        return True

    def _set_money(self, state: GameState, value: int) -> None:
        if not self.config.allow_negative_money:
            value = max(0, value)
        state.money = value

    def _money_add(self, effect: MoneyAdd, state: GameState) -> bool:
        self._set_money(state, state.money + effect.amount)
        return True

    def _money_subtract(self, effect: MoneySubtract, state: GameState) -> bool:
        self._set_money(state, state.money - effect.amount)
        return True

    def _sfx_play(self, effect: SfxPlay, state: GameState) -> bool:
        try:
            self.audio.play_sfx(effect.sound_id)
        except Exception as e:
            logger.warning(f"Audio sink failed to play sfx '{effect.sound_id}': {e}")
        return False

    def _music_change(self, effect: MusicChange, state: GameState) -> bool:
        self.change_music(effect.track_id)
        return False

    def change_music(self, track_id: str) -> None:
        """Switch music without letting a sink failure escape."""
        try:
            self.audio.change_music(track_id)
        except Exception as e:
            logger.warning(f"Audio sink failed to change music to '{track_id}': {e}")
