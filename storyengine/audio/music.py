"""
Music player wrapper for pygame.mixer.music.
Handles BGM streaming and track switching.
"""

from __future__ import annotations

import logging

import pygame


class MusicPlayer:
    """
    Handles background music playback using pygame.mixer.music.

    Features:
    - Streaming playback (OGG/MP3/WAV)
    - Volume control
    - Fade in/out on track change
    """

    def __init__(self):
        self._volume: float = 1.0
        self._current_track: str = ""

    @property
    def volume(self) -> float:
        """Get current music volume (0.0 to 1.0)."""
        return self._volume

    @volume.setter
    def volume(self, value: float) -> None:
        self._volume = max(0.0, min(1.0, value))
        if pygame.mixer.get_init():
            pygame.mixer.music.set_volume(self._volume)

    @property
    def current_track(self) -> str:
        """Path of the track last started."""
        return self._current_track

    def play(self, track_path: str, loops: int = -1, fade_ms: int = 0) -> bool:
        """
        Play a music track.

        Args:
            track_path: Path to the music file
            loops: Number of loops (-1 for infinite)
            fade_ms: Fade in duration in milliseconds

        Returns:
            True if playback started.
        """
        if not pygame.mixer.get_init():
            logging.warning("Audio system not initialized, cannot play music.")
            return False

        try:
            pygame.mixer.music.load(track_path)
            pygame.mixer.music.play(loops=loops, fade_ms=fade_ms)
            pygame.mixer.music.set_volume(self._volume)
            self._current_track = track_path
            logging.info(f"Playing BGM: {track_path}")
            return True
        except pygame.error as e:
            logging.error(f"Failed to load music '{track_path}': {e}")
            return False

    def stop(self, fade_ms: int = 0) -> None:
        """Stop playback."""
        if not pygame.mixer.get_init():
            return

        if fade_ms > 0:
            pygame.mixer.music.fadeout(fade_ms)
        else:
            pygame.mixer.music.stop()
        self._current_track = ""

    def is_playing(self) -> bool:
        """Check if music is playing."""
        return bool(pygame.mixer.get_init() and pygame.mixer.music.get_busy())
