"""
Narrative state machine.

Modules:
- models: Immutable content definitions and condition/effect unions
- state: Mutable per-playthrough game state
- conditions: Condition evaluation
- effects: Effect processing
- traversal: Scene traversal engine
- progression: Chapters and side quests
- endings: Ending resolution
- achievements: Achievement evaluation
- content: Content aggregate, loading and validation
- save: Save slots and preferences
- hall_of_fame: Completed-run leaderboard
- localization: String lookup
"""

from narrative.content import StoryContent, load_story
from narrative.errors import (
    ConfigurationWarning,
    ContentError,
    EngineBusyError,
    NarrativeError,
    PersistenceError,
)
from narrative.hall_of_fame import HallOfFame, HallOfFameEntry
from narrative.localization import Localizer
from narrative.save import SaveManager, SaveMetadata, UserPreferences
from narrative.state import GameState
from narrative.traversal import EngineStatus, PendingTransition, Presentation, StoryEngine

__all__ = [
    "StoryEngine",
    "EngineStatus",
    "Presentation",
    "PendingTransition",
    "StoryContent",
    "load_story",
    "GameState",
    "SaveManager",
    "SaveMetadata",
    "UserPreferences",
    "HallOfFame",
    "HallOfFameEntry",
    "Localizer",
    "NarrativeError",
    "ContentError",
    "ConfigurationWarning",
    "PersistenceError",
    "EngineBusyError",
]
