"""
Game configuration.

Holds every tunable the narrative engine reads: starting values,
stat ceilings, stacking defaults, sentinel handling, persistence and
Hall of Fame limits.
"""

from __future__ import annotations

import inspect
import json
import logging
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)


class GameConfig:
    """Configuration for the narrative engine."""

    def __init__(
        self,
        initial_scene_id: str = "scene_01_start",
        initial_chapter_id: Optional[str] = None,
        intro_cutscene_id: Optional[str] = None,
        initial_money: int = 100,
        initial_player_stats: Optional[dict[str, int]] = None,
        initial_world_stats: Optional[dict[str, int]] = None,
        initial_flags: Optional[dict[str, bool]] = None,
        initial_inventory: Optional[dict[str, int]] = None,
        player_stat_max_values: Optional[dict[str, int]] = None,
        world_stat_max_values: Optional[dict[str, int]] = None,
        default_stat_max: Optional[int] = None,
        allow_negative_stats: bool = False,
        allow_negative_money: bool = False,
        default_max_stack: int = 99,
        sentinel_prefixes: tuple[str, ...] = ("action_",),
        resolve_ending_target: str = "action_resolve_ending",
        fallback_ending_id: Optional[str] = None,
        max_save_slots: int = 5,
        auto_save_slot: int = 99,
        autosave_on_scene_change: bool = False,
        max_hall_of_fame_entries: int = 20,
        score_per_achievement: int = 10,
        default_player_name: str = "Anonymous Hero",
        default_language: str = "en",
        fallback_language: str = "en",
        max_auto_transitions: int = 1000,
    ):
        self.initial_scene_id = initial_scene_id
        self.initial_chapter_id = initial_chapter_id
        self.intro_cutscene_id = intro_cutscene_id
        self.initial_money = initial_money
        self.initial_player_stats = dict(initial_player_stats or {})
        self.initial_world_stats = dict(initial_world_stats or {})
        self.initial_flags = dict(initial_flags or {})
        self.initial_inventory = dict(initial_inventory or {})
        self.player_stat_max_values = dict(player_stat_max_values or {})
        self.world_stat_max_values = dict(world_stat_max_values or {})
        self.default_stat_max = default_stat_max
        self.allow_negative_stats = allow_negative_stats
        self.allow_negative_money = allow_negative_money
        self.default_max_stack = default_max_stack
        self.sentinel_prefixes = tuple(sentinel_prefixes)
        self.resolve_ending_target = resolve_ending_target
        self.fallback_ending_id = fallback_ending_id
        self.max_save_slots = max_save_slots
        self.auto_save_slot = auto_save_slot
        self.autosave_on_scene_change = autosave_on_scene_change
        self.max_hall_of_fame_entries = max_hall_of_fame_entries
        self.score_per_achievement = score_per_achievement
        self.default_player_name = default_player_name
        self.default_language = default_language
        self.fallback_language = fallback_language
        self.max_auto_transitions = max_auto_transitions

    def stat_max(self, stat: str, world: bool = False) -> Optional[int]:
        """Ceiling for a stat, or None when it has no upper bound."""
        limits = self.world_stat_max_values if world else self.player_stat_max_values
        return limits.get(stat, self.default_stat_max)

    def is_sentinel(self, target_id: str) -> bool:
        """Check if a target id is an opaque host instruction."""
        return target_id == self.resolve_ending_target or any(
            target_id.startswith(prefix) for prefix in self.sentinel_prefixes
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GameConfig:
        """Build a config from a mapping, ignoring unknown keys."""
        known = inspect.signature(cls).parameters
        kwargs = {}
        for key, value in data.items():
            if key in known:
                kwargs[key] = value
            else:
                logger.warning(f"Unknown config key ignored: {key}")
        if 'sentinel_prefixes' in kwargs:
            kwargs['sentinel_prefixes'] = tuple(kwargs['sentinel_prefixes'])
        return cls(**kwargs)

    @classmethod
    def from_json(cls, path: str | Path) -> GameConfig:
        """Load a config from a JSON file."""
        with open(path, 'r', encoding='utf-8') as f:
            return cls.from_dict(json.load(f))
