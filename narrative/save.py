"""
Save/Load system - game state persistence.

Provides:
- Save/load GameState snapshots to JSON slot files
- Numbered save slots (max_save_slots from config) plus an auto-save slot
- Save integrity validation (checksum)
- Lightweight metadata files for slot listing
- User preferences (language, volume, audio enabled)
"""

from __future__ import annotations

import base64
import hashlib
import json
import logging
import os
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from narrative.errors import PersistenceError
from narrative.state import GameState
from storyengine.core.config import GameConfig
from storyengine.core.events import EventBus, SaveEvent

logger = logging.getLogger(__name__)


@dataclass
class SaveMetadata:
    """Metadata about a save file."""
    slot: int
    name: str
    timestamp: str
    playtime_seconds: float
    scene_id: str = ""
    chapter_id: str = ""


class UserPreferences(BaseModel):
    model_config = ConfigDict(validate_assignment=True, extra='ignore')

    language: str = "en"
    audio_enabled: bool = True
    master_volume: float = Field(default=1.0, ge=0.0, le=1.0)
    music_volume: float = Field(default=1.0, ge=0.0, le=1.0)
    sfx_volume: float = Field(default=1.0, ge=0.0, le=1.0)

    def audio_settings(self) -> dict[str, Any]:
        """Volume settings in the shape AudioManager.apply_settings expects."""
        master = self.master_volume if self.audio_enabled else 0.0
        return {"master": master, "categories": {"bgm": self.music_volume, "sfx": self.sfx_volume}}


class SaveManager:
    """
    Manages saving and loading game state.

    Features:
    - Numbered save slots plus an auto-save slot
    - Checksum validation for save integrity
    - Event publishing for save/load operations
    - Failed saves never touch in-memory state

    Usage:
        save_mgr = SaveManager("saves", config=config, event_bus=event_bus)
        save_mgr.save_game(1, engine.snapshot(), name="Harbour")
        state = save_mgr.load_game(1)
        if state:
            engine.restore(state)
    """

    VERSION = "1.0"
    PREFERENCES_FILE = "preferences.json"

    def __init__(
        self,
        save_path: str | Path = "saves",
        config: Optional[GameConfig] = None,
        event_bus: Optional[EventBus] = None,
    ):
        config = config or GameConfig()
        self.save_path = Path(save_path)
        self.event_bus = event_bus
        self.max_slots = config.max_save_slots
        self.auto_save_slot = config.auto_save_slot
        self.default_language = config.default_language
        self._current_slot: Optional[int] = None

    def _get_slot_path(self, slot: int) -> Path:
        return self.save_path / f"save_{slot:02d}.json"

    def _get_metadata_path(self, slot: int) -> Path:
        return self.save_path / f"save_{slot:02d}_meta.json"

    def _check_slot(self, slot: int) -> None:
        if slot != self.auto_save_slot and not 1 <= slot <= self.max_slots:
            raise PersistenceError(f"Invalid save slot {slot} (1-{self.max_slots})")

    def _publish(self, event_type: SaveEvent, **data: Any) -> None:
        if self.event_bus:
            self.event_bus.publish(event_type, **data)

    # --- Slots ---

    def get_save_slots(self) -> list[Optional[SaveMetadata]]:
        """Metadata for slots 1..max_slots; None for empty or unreadable slots."""
        slots: list[Optional[SaveMetadata]] = []
        for slot in range(1, self.max_slots + 1):
            slots.append(self.get_metadata(slot))
        return slots

    def get_metadata(self, slot: int) -> Optional[SaveMetadata]:
        meta_path = self._get_metadata_path(slot)
        if not meta_path.exists():
            return None
        try:
            with open(meta_path, 'r', encoding='utf-8') as f:
                return SaveMetadata(**json.load(f))
        except (OSError, json.JSONDecodeError, TypeError) as e:
            logger.warning(f"Unreadable save metadata for slot {slot}: {e}")
            return None

    def save_game(self, slot: int, state: GameState, name: Optional[str] = None) -> bool:
        """
        Save a game state snapshot.

        Args:
            slot: Save slot number (1..max_slots, or the auto-save slot)
            state: Snapshot to persist (not modified)
            name: Display name for the save

        Returns:
            True if save was successful
        """
        self._publish(SaveEvent.SAVE_STARTED, slot=slot)

        try:
            self._check_slot(slot)
            metadata = SaveMetadata(
                slot=slot,
                name=name or state.save_name or f"Slot {slot}",
                timestamp=datetime.now().isoformat(),
                playtime_seconds=state.playtime_seconds,
                scene_id=state.current_scene_id or "",
                chapter_id=state.current_chapter_id or "",
            )
            save_dict = {
                'version': self.VERSION,
                'metadata': asdict(metadata),
                'state': state.model_dump(mode='json'),
            }
            save_dict['checksum'] = self._calculate_checksum(save_dict)

            self._write_json(self._get_slot_path(slot), save_dict)
            self._write_json(self._get_metadata_path(slot), asdict(metadata))
        except PersistenceError as e:
            logger.error(f"Save to slot {slot} failed: {e}")
            self._publish(SaveEvent.SAVE_FAILED, slot=slot, error=str(e))
            return False

        self._current_slot = slot
        logger.info(f"Saved game to slot {slot}")
        self._publish(SaveEvent.SAVE_COMPLETED, slot=slot)
        return True

    def load_game(self, slot: int, validate: bool = True) -> Optional[GameState]:
        """
        Load a saved game state.

        Args:
            slot: Save slot number
            validate: Whether to validate checksum

        Returns:
            The restored GameState, or None if the slot is empty or corrupt
        """
        save_path = self._get_slot_path(slot)
        if not save_path.exists():
            return None

        self._publish(SaveEvent.LOAD_STARTED, slot=slot)

        try:
            save_dict = self._read_json(save_path)
            if validate:
                checksum = save_dict.get('checksum')
                if checksum and not self._verify_checksum(save_dict, checksum):
                    raise PersistenceError("Checksum validation failed")
            state = GameState.model_validate(save_dict['state'])
        except (PersistenceError, KeyError, ValidationError) as e:
            logger.error(f"Load from slot {slot} failed: {e}")
            self._publish(SaveEvent.LOAD_FAILED, slot=slot, error=str(e))
            return None

        self._current_slot = slot
        logger.info(f"Loaded game from slot {slot}")
        self._publish(SaveEvent.LOAD_COMPLETED, slot=slot)
        return state

    def delete_save(self, slot: int) -> bool:
        """Delete a save slot."""
        try:
            for path in (self._get_slot_path(slot), self._get_metadata_path(slot)):
                if path.exists():
                    path.unlink()
        except OSError as e:
            logger.error(f"Failed to delete slot {slot}: {e}")
            return False
        if self._current_slot == slot:
            self._current_slot = None
        return True

    def auto_save(self, state: GameState) -> bool:
        """Save to the auto-save slot."""
        self._publish(SaveEvent.AUTO_SAVE_TRIGGERED)
        return self.save_game(self.auto_save_slot, state, name="Auto Save")

    def validate_save(self, slot: int) -> bool:
        """
        Validate a save file's integrity.

        Returns:
            True if save is valid, False if corrupted or missing
        """
        save_path = self._get_slot_path(slot)
        if not save_path.exists():
            return False
        try:
            data = self._read_json(save_path)
        except PersistenceError:
            return False
        checksum = data.get('checksum')
        if not checksum:
            return False
        return self._verify_checksum(data, checksum)

    # --- Preferences ---

    def load_preferences(self) -> UserPreferences:
        path = self.save_path / self.PREFERENCES_FILE
        if not path.exists():
            return UserPreferences(language=self.default_language)
        try:
            return UserPreferences.model_validate(self._read_json(path))
        except (PersistenceError, ValidationError) as e:
            logger.warning(f"Preferences unreadable, using defaults: {e}")
            return UserPreferences(language=self.default_language)

    def save_preferences(self, preferences: UserPreferences) -> bool:
        try:
            self._write_json(self.save_path / self.PREFERENCES_FILE, preferences.model_dump())
        except PersistenceError as e:
            logger.error(f"Failed to save preferences: {e}")
            return False
        return True

    # --- File access ---

    def _write_json(self, path: Path, data: dict) -> None:
        """Write via a temporary file so a failed write leaves the old file intact."""
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, path)
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(f"Cannot write {path}: {e}") from e

    def _read_json(self, path: Path) -> dict:
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Cannot read {path}: {e}") from e

    # --- Checksum validation ---

    def _calculate_checksum(self, data: dict) -> str:
        """Calculate checksum for save data."""
        json_str = json.dumps(data, sort_keys=True, separators=(',', ':'))
        hash_bytes = hashlib.sha256(json_str.encode('utf-8')).digest()
        return base64.b64encode(hash_bytes).decode('ascii')

    def _verify_checksum(self, data: dict, expected_checksum: str) -> bool:
        data_copy = data.copy()
        data_copy.pop('checksum', None)
        return self._calculate_checksum(data_copy) == expected_checksum

    # --- Properties ---

    @property
    def current_slot(self) -> Optional[int]:
        """Slot last saved to or loaded from."""
        return self._current_slot

    @property
    def has_auto_save(self) -> bool:
        return self._get_slot_path(self.auto_save_slot).exists()
