"""
Audio output for narrative cues.
"""

from storyengine.audio.manager import AudioManager
from storyengine.audio.music import MusicPlayer
from storyengine.audio.sink import AudioSink, NullAudioSink

__all__ = [
    "AudioSink",
    "NullAudioSink",
    "AudioManager",
    "MusicPlayer",
]
