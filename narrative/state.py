"""
Mutable game state for a single playthrough.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from storyengine.core.config import GameConfig


class GameState(BaseModel):
    """
    Everything that changes while a story is played.

    Owned by the StoryEngine, mutated only by the effect processor and
    the traversal engine, replaced wholesale on load.
    """
    model_config = ConfigDict(validate_assignment=True, extra='forbid')

    player_stats: dict[str, int] = Field(default_factory=dict)
    world_stats: dict[str, int] = Field(default_factory=dict)
    inventory: dict[str, int] = Field(default_factory=dict)
    flags: dict[str, bool] = Field(default_factory=dict)
    money: int = 0

    current_scene_id: Optional[str] = None
    current_chapter_id: Optional[str] = None
    active_side_quest_id: Optional[str] = None

    started_chapter_ids: list[str] = Field(default_factory=list)
    completed_chapter_ids: list[str] = Field(default_factory=list)
    visited_scene_ids: list[str] = Field(default_factory=list)
    unlocked_achievement_ids: list[str] = Field(default_factory=list)

    save_name: str = ""
    playtime_seconds: float = 0.0

    @classmethod
    def from_config(cls, config: GameConfig) -> GameState:
        """Fresh state from the configured initial values."""
        return cls(
            player_stats=dict(config.initial_player_stats),
            world_stats=dict(config.initial_world_stats),
            inventory={k: v for k, v in config.initial_inventory.items() if v > 0},
            flags=dict(config.initial_flags),
            money=config.initial_money,
        )

    # --- Queries ---

    def stats(self, world: bool = False) -> dict[str, int]:
        return self.world_stats if world else self.player_stats

    def item_count(self, item_id: str) -> int:
        return self.inventory.get(item_id, 0)

    def flag(self, name: str) -> bool:
        """Absent flags read as False."""
        return self.flags.get(name, False)

    def has_visited(self, scene_id: str) -> bool:
        return scene_id in self.visited_scene_ids

    def is_unlocked(self, achievement_id: str) -> bool:
        return achievement_id in self.unlocked_achievement_ids

    # --- Bookkeeping ---

    def mark_visited(self, scene_id: str) -> None:
        if scene_id not in self.visited_scene_ids:
            self.visited_scene_ids.append(scene_id)

    def mark_chapter_started(self, chapter_id: str) -> bool:
        """Record a chapter start. Returns True the first time only."""
        if chapter_id in self.started_chapter_ids:
            return False
        self.started_chapter_ids.append(chapter_id)
        return True

    def mark_chapter_completed(self, chapter_id: str) -> None:
        if chapter_id not in self.completed_chapter_ids:
            self.completed_chapter_ids.append(chapter_id)

    def unlock(self, achievement_id: str) -> bool:
        """Add an achievement. Returns False if it was already unlocked."""
        if achievement_id in self.unlocked_achievement_ids:
            return False
        self.unlocked_achievement_ids.append(achievement_id)
        return True
