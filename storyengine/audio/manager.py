"""
Pygame-backed audio sink.
"""

from __future__ import annotations

import logging
from pathlib import Path

import pygame

from storyengine.audio.music import MusicPlayer
from storyengine.audio.sink import AudioSink
from storyengine.core.events import AudioEvent, EventBus

AUDIO_EXTENSIONS = (".ogg", ".mp3", ".wav")


class AudioManager(AudioSink):
    """
    Plays narrative audio cues through pygame.mixer.

    Handles:
    - Resolving sound/track ids to files under an audio directory
    - SFX caching and playback
    - BGM via MusicPlayer
    - Volume categories (master, bgm, sfx)

    Missing files and mixer failures are logged, never raised.
    """

    def __init__(
        self,
        audio_dir: str | Path = "data/audio",
        event_bus: EventBus | None = None,
        fade_ms: int = 1000,
    ):
        self.audio_dir = Path(audio_dir)
        self.music = MusicPlayer()
        self.event_bus = event_bus
        self.fade_ms = fade_ms

        self._master_volume: float = 1.0
        self._category_volumes: dict[str, float] = {"bgm": 1.0, "sfx": 1.0}
        self._sound_cache: dict[str, pygame.mixer.Sound] = {}
        self._current_track_id: str = ""
        self._initialized: bool = False

    def init(self, frequency: int = 44100, size: int = -16, channels: int = 2, buffer: int = 512) -> None:
        """Initialize the audio system."""
        if pygame.mixer.get_init():
            self._initialized = True
            return

        try:
            pygame.mixer.init(frequency=frequency, size=size, channels=channels, buffer=buffer)
            pygame.mixer.set_num_channels(16)
            self._initialized = True
            logging.info("Audio system initialized.")
        except pygame.error as e:
            logging.error(f"Failed to initialize audio system: {e}")

    def quit(self) -> None:
        """Shutdown audio system."""
        pygame.mixer.quit()
        self._initialized = False

    # --- Volume Control ---

    def set_master_volume(self, volume: float) -> None:
        """Set master volume (0.0 to 1.0)."""
        self._master_volume = max(0.0, min(1.0, volume))
        self._update_music_volume()

    def set_category_volume(self, category: str, volume: float) -> None:
        """Set volume for a specific category."""
        if category in self._category_volumes:
            self._category_volumes[category] = max(0.0, min(1.0, volume))
            if category == "bgm":
                self._update_music_volume()

    def _update_music_volume(self) -> None:
        self.music.volume = self._master_volume * self._category_volumes["bgm"]

    def get_settings(self) -> dict:
        """Get all volume settings."""
        return {
            "master": self._master_volume,
            "categories": self._category_volumes.copy(),
        }

    def apply_settings(self, settings: dict) -> None:
        """Apply volume settings (e.g. from stored preferences)."""
        self.set_master_volume(settings.get("master", 1.0))
        for cat, vol in settings.get("categories", {}).items():
            self.set_category_volume(cat, vol)

    # --- AudioSink ---

    def resolve(self, audio_id: str, kind: str) -> Path | None:
        """Find the file for an id under <audio_dir>/<kind>/."""
        base = self.audio_dir / kind
        candidate = base / audio_id
        if candidate.suffix and candidate.exists():
            return candidate
        for ext in AUDIO_EXTENSIONS:
            path = base / f"{audio_id}{ext}"
            if path.exists():
                return path
        logging.warning(f"Audio file not found for '{audio_id}' in {base}")
        return None

    def change_music(self, track_id: str) -> None:
        """Crossfade to a new background track. Same track is a no-op."""
        if track_id == self._current_track_id and self.music.is_playing():
            return
        path = self.resolve(track_id, "music")
        if path is None:
            return
        if self.music.is_playing():
            self.music.stop(fade_ms=self.fade_ms)
        if self.music.play(str(path), fade_ms=self.fade_ms):
            self._current_track_id = track_id
            if self.event_bus:
                self.event_bus.publish(AudioEvent.BGM_STARTED, track_id=track_id)

    def stop_music(self) -> None:
        self.music.stop(fade_ms=self.fade_ms)
        self._current_track_id = ""
        if self.event_bus:
            self.event_bus.publish(AudioEvent.BGM_STOPPED)

    def _get_sound(self, path: Path) -> pygame.mixer.Sound | None:
        """Load or retrieve sound from cache."""
        key = str(path)
        if key not in self._sound_cache:
            try:
                self._sound_cache[key] = pygame.mixer.Sound(key)
            except pygame.error as e:
                logging.error(f"Failed to load sound {key}: {e}")
                return None
        return self._sound_cache[key]

    def play_sfx(self, sfx_id: str) -> None:
        """Play a sound effect by id."""
        if not self._initialized:
            return
        path = self.resolve(sfx_id, "sfx")
        if path is None:
            return
        sound = self._get_sound(path)
        if sound is None:
            return

        channel = pygame.mixer.find_channel(True)
        if channel is None:
            return
        channel.set_volume(self._master_volume * self._category_volumes["sfx"])
        channel.play(sound)

        if self.event_bus:
            self.event_bus.publish(AudioEvent.SFX_PLAYED, sfx_id=sfx_id)
