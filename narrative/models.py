"""
Narrative content definitions.

Immutable records loaded once at startup:
- Conditions and Effects (closed tagged unions)
- Choice, Scene
- Chapter, SideQuest, ReturnPoint
- Ending, Achievement
- ItemDefinition
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    Tag,
    model_validator,
)


class Definition(BaseModel):
    """Base for immutable content records."""
    model_config = ConfigDict(frozen=True, extra="ignore")


# -- Conditions -------------------------------------------------------------

CONDITION_ALIASES = {
    "player_stat_check": "stat_check",
    "world_stat_check": "stat_check",
    "chapter_completed": "chapter_check",
}


class StatCheck(Definition):
    """Compare a player or world stat against a threshold."""
    type: Literal["stat_check"] = "stat_check"
    scope: Literal["player", "world"] = "player"
    stat: str
    operator: str = ">="
    value: int

    @model_validator(mode="before")
    @classmethod
    def _resolve_scope(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = dict(data)
            kind = data.get("type")
            if kind == "world_stat_check":
                data["scope"] = "world"
            elif kind == "player_stat_check":
                data["scope"] = "player"
            elif "player_stat" in data:
                data["scope"] = "player" if data.pop("player_stat") else "world"
            data["type"] = "stat_check"
        return data


class ItemCheck(Definition):
    """
    Check an inventory quantity.

    present=False means the item is absent. Otherwise the quantity is
    compared with `operator` (default >=) against `quantity` (default 1).
    """
    type: Literal["item_check"] = "item_check"
    item_id: str
    present: Optional[bool] = None
    operator: str = ">="
    quantity: int = 1


class FlagCheck(Definition):
    type: Literal["flag_check"] = "flag_check"
    flag_name: str
    value: bool = True


class MoneyCheck(Definition):
    type: Literal["money_check"] = "money_check"
    operator: str = ">="
    amount: int


class RandomChance(Definition):
    """Holds with `percentage` percent probability."""
    type: Literal["random_chance"] = "random_chance"
    percentage: float = Field(ge=0, le=100)


class ChapterCheck(Definition):
    """Check whether a chapter is current, has been started or is completed."""
    type: Literal["chapter_check"] = "chapter_check"
    chapter_id: str
    status: Literal["current", "started", "completed"] = "current"

    @model_validator(mode="before")
    @classmethod
    def _resolve_alias(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("type") == "chapter_completed":
            data = dict(data, type="chapter_check", status="completed")
        return data


class SceneVisited(Definition):
    type: Literal["scene_visited"] = "scene_visited"
    scene_id: str
    visited: bool = True


class UnknownCondition(BaseModel):
    """A condition of a type the engine does not understand. Always fails."""
    model_config = ConfigDict(frozen=True, extra="allow")
    type: str = "unknown"


def _condition_tag(value: Any) -> str:
    if isinstance(value, UnknownCondition):
        return "unknown"
    kind = value.get("type") if isinstance(value, dict) else getattr(value, "type", None)
    kind = CONDITION_ALIASES.get(kind, kind)
    return kind if kind in CONDITION_TYPES else "unknown"


Condition = Annotated[
    Union[
        Annotated[StatCheck, Tag("stat_check")],
        Annotated[ItemCheck, Tag("item_check")],
        Annotated[FlagCheck, Tag("flag_check")],
        Annotated[MoneyCheck, Tag("money_check")],
        Annotated[RandomChance, Tag("random_chance")],
        Annotated[ChapterCheck, Tag("chapter_check")],
        Annotated[SceneVisited, Tag("scene_visited")],
        Annotated[UnknownCondition, Tag("unknown")],
    ],
    Discriminator(_condition_tag),
]

CONDITION_TYPES = frozenset({
    "stat_check", "item_check", "flag_check", "money_check",
    "random_chance", "chapter_check", "scene_visited",
})


# -- Effects ----------------------------------------------------------------

EFFECT_ALIASES = {
    "world_stat_change": "stat_change",
    "player_stat_change": "stat_change",
}


class StatChange(Definition):
    """Add a signed delta to a player or world stat."""
    type: Literal["stat_change"] = "stat_change"
    scope: Literal["player", "world"] = "player"
    stat: str
    value: int

    @model_validator(mode="before")
    @classmethod
    def _resolve_scope(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = dict(data)
            kind = data.get("type")
            if kind == "world_stat_change":
                data["scope"] = "world"
            elif kind == "player_stat_change":
                data["scope"] = "player"
            elif "player_stat" in data:
                data["scope"] = "player" if data.pop("player_stat") else "world"
            data["type"] = "stat_change"
        return data


class ItemAdd(Definition):
    type: Literal["item_add"] = "item_add"
    item_id: str
    quantity: int = Field(default=1, ge=0)


class ItemRemove(Definition):
    type: Literal["item_remove"] = "item_remove"
    item_id: str
    quantity: int = Field(default=1, ge=0)


class FlagSet(Definition):
    type: Literal["flag_set"] = "flag_set"
    flag_name: str
    value: bool = True


class MoneyAdd(Definition):
    """Signed money delta. The result is floored at zero."""
    type: Literal["money_add"] = "money_add"
    amount: int


class MoneySubtract(Definition):
    type: Literal["money_subtract"] = "money_subtract"
    amount: int = Field(ge=0)


class SfxPlay(Definition):
    type: Literal["sfx_play"] = "sfx_play"
    sound_id: str


class MusicChange(Definition):
    type: Literal["music_change"] = "music_change"
    track_id: str


class ChapterProgress(Definition):
    """Move to a chapter. With no chapter_id, move to the next one."""
    type: Literal["chapter_progress"] = "chapter_progress"
    chapter_id: Optional[str] = None


class TriggerEnding(Definition):
    """Finish the story. With no ending_id, resolve the ending by conditions."""
    type: Literal["trigger_ending"] = "trigger_ending"
    ending_id: Optional[str] = None


class UnknownEffect(BaseModel):
    """An effect of a type the engine does not understand. Applied as a no-op."""
    model_config = ConfigDict(frozen=True, extra="allow")
    type: str = "unknown"


def _effect_tag(value: Any) -> str:
    if isinstance(value, UnknownEffect):
        return "unknown"
    kind = value.get("type") if isinstance(value, dict) else getattr(value, "type", None)
    kind = EFFECT_ALIASES.get(kind, kind)
    return kind if kind in EFFECT_TYPES else "unknown"


Effect = Annotated[
    Union[
        Annotated[StatChange, Tag("stat_change")],
        Annotated[ItemAdd, Tag("item_add")],
        Annotated[ItemRemove, Tag("item_remove")],
        Annotated[FlagSet, Tag("flag_set")],
        Annotated[MoneyAdd, Tag("money_add")],
        Annotated[MoneySubtract, Tag("money_subtract")],
        Annotated[SfxPlay, Tag("sfx_play")],
        Annotated[MusicChange, Tag("music_change")],
        Annotated[ChapterProgress, Tag("chapter_progress")],
        Annotated[TriggerEnding, Tag("trigger_ending")],
        Annotated[UnknownEffect, Tag("unknown")],
    ],
    Discriminator(_effect_tag),
]

EFFECT_TYPES = frozenset({
    "stat_change", "item_add", "item_remove", "flag_set", "money_add",
    "money_subtract", "sfx_play", "music_change", "chapter_progress",
    "trigger_ending",
})

TERMINAL_EFFECTS = (ChapterProgress, TriggerEnding)


# -- Story structure --------------------------------------------------------

class Choice(Definition):
    """A player-selectable option. Conditions filter visibility only."""
    id: str
    text_key: str = ""
    target_scene_id: Optional[str] = None
    effects: tuple[Effect, ...] = ()
    conditions: tuple[Condition, ...] = ()


class Scene(Definition):
    id: str
    text_key: str = ""
    background: Optional[str] = None
    music_track: Optional[str] = None
    choices: tuple[Choice, ...] = ()
    on_enter_effects: tuple[Effect, ...] = ()
    on_exit_effects: tuple[Effect, ...] = ()
    next_scene_default: Optional[str] = None
    auto_proceed_delay: Optional[int] = Field(default=None, ge=0)
    is_player_controllable: bool = True

    def get_choice(self, choice_id: str) -> Choice | None:
        for choice in self.choices:
            if choice.id == choice_id:
                return choice
        return None


class Chapter(Definition):
    id: str
    title_key: str = ""
    scene_ids: tuple[str, ...] = ()
    opening_cutscene_id: Optional[str] = None
    closing_cutscene_id: Optional[str] = None
    unlock_conditions: tuple[Condition, ...] = ()


class ReturnPoint(Definition):
    """Where traversal resumes once a side quest's sequence is exhausted."""
    flag_for_completion: str
    return_scene_id_if_completed: Optional[str] = None
    return_scene_id_if_failed: Optional[str] = None
    return_scene_id_default: str

    def destination(self, completed: bool) -> str:
        if completed and self.return_scene_id_if_completed:
            return self.return_scene_id_if_completed
        if not completed and self.return_scene_id_if_failed:
            return self.return_scene_id_if_failed
        return self.return_scene_id_default


class SideQuest(Definition):
    id: str
    title_key: str = ""
    description_key: str = ""
    starting_scene_id: str
    scene_sequence: tuple[str, ...] = ()
    return_point: ReturnPoint
    rewards_on_completion: tuple[Effect, ...] = ()
    availability_conditions: tuple[Condition, ...] = ()
    is_repeatable: bool = False

    @property
    def completion_flag(self) -> str:
        """Flag set by the engine once the quest has been finished."""
        return f"sq_{self.id}_completed"

    @property
    def last_scene_id(self) -> str:
        return self.scene_sequence[-1] if self.scene_sequence else self.starting_scene_id


class Ending(Definition):
    id: str
    title_key: str = ""
    cutscene_sequence_ids: tuple[str, ...] = ()
    conditions: tuple[Condition, ...] = ()
    priority: int = 999
    unlocks_achievement_id: Optional[str] = None


class Achievement(Definition):
    id: str
    name_key: str = ""
    description_key: str = ""
    conditions: tuple[Condition, ...] = ()
    hidden: bool = False
    points: Optional[int] = None


class ItemDefinition(Definition):
    id: str
    name_key: str = ""
    description_key: str = ""
    item_type: str = Field(default="collectible", validation_alias=AliasChoices("type", "item_type"))
    stackable: bool = False
    max_stack: Optional[int] = Field(default=None, ge=1)
    quest_item: bool = False

    def stack_limit(self, default_max_stack: int) -> int:
        """Largest quantity the inventory may hold."""
        if not self.stackable:
            return 1
        return self.max_stack if self.max_stack is not None else default_max_stack
