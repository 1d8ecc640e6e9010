"""
Audio sink interface.

The narrative engine never touches a mixer directly. It hands sound
and music identifiers to an AudioSink and forgets about them.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class AudioSink(ABC):
    """Fire-and-forget receiver for audio cues."""

    @abstractmethod
    def play_sfx(self, sfx_id: str) -> None:
        """Play a one-shot sound effect."""

    @abstractmethod
    def change_music(self, track_id: str) -> None:
        """Switch the background track."""

    def stop_music(self) -> None:
        """Stop the background track, if any."""


class NullAudioSink(AudioSink):
    """Sink that discards every cue. Used when no audio host is attached."""

    def play_sfx(self, sfx_id: str) -> None:
        pass

    def change_music(self, track_id: str) -> None:
        pass
