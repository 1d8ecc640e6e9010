"""
Core runtime services: event bus and configuration.
"""

from storyengine.core.config import GameConfig
from storyengine.core.events import (
    AudioEvent,
    Event,
    EventBus,
    EventHandler,
    NarrativeEvent,
    SaveEvent,
)

__all__ = [
    "GameConfig",
    "Event",
    "EventBus",
    "EventHandler",
    "NarrativeEvent",
    "AudioEvent",
    "SaveEvent",
]
