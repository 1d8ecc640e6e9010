"""
Hall of Fame - record of finished playthroughs.

Provides:
- HallOfFameEntry records
- Scoring from unlocked achievements
- Ordering by score then recency, trimmed to a maximum size
- JSON persistence
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from narrative.models import Achievement
from storyengine.core.config import GameConfig

logger = logging.getLogger(__name__)


class HallOfFameEntry(BaseModel):
    model_config = ConfigDict(extra='ignore')

    player_name: str
    ending_id: str
    date_completed: str
    achievements_unlocked: int = 0
    unlocked_achievement_ids: list[str] = Field(default_factory=list)
    score: int = 0
    save_slot_id: Optional[int] = None
    final_stats: dict[str, Any] = Field(default_factory=dict)


class HallOfFame:
    """
    Leaderboard of completed runs.

    Entries are kept sorted by score (highest first), newer entries
    first among equal scores. Only the best `max_entries` are kept.
    """

    def __init__(
        self,
        path: str | Path | None = None,
        max_entries: int = 20,
        score_per_achievement: int = 10,
    ):
        self.path = Path(path) if path else None
        self.max_entries = max_entries
        self.score_per_achievement = score_per_achievement
        self._entries: list[HallOfFameEntry] = []
        if self.path:
            self.load()

    @classmethod
    def from_config(cls, config: GameConfig, path: str | Path | None = None) -> HallOfFame:
        return cls(
            path=path,
            max_entries=config.max_hall_of_fame_entries,
            score_per_achievement=config.score_per_achievement,
        )

    @property
    def entries(self) -> list[HallOfFameEntry]:
        return list(self._entries)

    def score(
        self,
        achievement_ids: Iterable[str],
        achievements: Mapping[str, Achievement] | None = None,
    ) -> int:
        """Sum of point values; achievements without points count the default."""
        achievements = achievements or {}
        total = 0
        for achievement_id in achievement_ids:
            achievement = achievements.get(achievement_id)
            if achievement is not None and achievement.points is not None:
                total += achievement.points
            else:
                total += self.score_per_achievement
        return total

    def record(
        self,
        player_name: str,
        ending_id: str,
        unlocked_achievement_ids: Iterable[str],
        achievements: Mapping[str, Achievement] | None = None,
        final_stats: dict[str, Any] | None = None,
        save_slot_id: int | None = None,
        completed_at: datetime | None = None,
    ) -> HallOfFameEntry:
        """Add an entry, re-sort, trim and persist."""
        unlocked = list(unlocked_achievement_ids)
        entry = HallOfFameEntry(
            player_name=player_name,
            ending_id=ending_id,
            date_completed=(completed_at or datetime.now()).isoformat(),
            achievements_unlocked=len(unlocked),
            unlocked_achievement_ids=unlocked,
            score=self.score(unlocked, achievements),
            save_slot_id=save_slot_id,
            final_stats=final_stats or {},
        )
        self._entries.append(entry)
        self._sort_and_trim()
        logger.info(f"Hall of Fame: {player_name} reached {ending_id} with score {entry.score}")
        self.save()
        return entry

    def clear(self) -> None:
        self._entries.clear()
        self.save()

    def _sort_and_trim(self) -> None:
        self._entries.sort(key=lambda e: (e.score, e.date_completed), reverse=True)
        del self._entries[self.max_entries:]

    # --- Persistence ---

    def load(self) -> None:
        if not self.path or not self.path.exists():
            return
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                raw = json.load(f)
            self._entries = [HallOfFameEntry.model_validate(item) for item in raw]
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.error(f"Failed to load Hall of Fame from {self.path}: {e}")
            self._entries = []
            return
        self._sort_and_trim()

    def save(self) -> bool:
        if not self.path:
            return True
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, 'w', encoding='utf-8') as f:
                json.dump([e.model_dump() for e in self._entries], f, indent=2)
            return True
        except OSError as e:
            logger.error(f"Failed to write Hall of Fame to {self.path}: {e}")
            return False
