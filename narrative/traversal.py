"""
Scene traversal engine.

Provides:
- StoryEngine: the narrative state machine driving a playthrough
- Presentation: what the host should show for the current scene
- EngineStatus: where the engine is waiting
- PendingTransition: an auto-proceed timer

The engine never blocks. It stops at "await player choice" (or at a
pending auto-proceed) and publishes CHOICES_READY; the host answers by
calling choose(), continue_() or update(dt).

Usage:
    engine = StoryEngine(content, config, event_bus=bus, audio=audio)
    engine.start()
    engine.choose("choice_help_merchant")
    engine.update(dt)
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import TYPE_CHECKING, Any, Optional

from narrative.achievements import AchievementTracker
from narrative.conditions import ChanceCache, ConditionEvaluator
from narrative.content import StoryContent
from narrative.effects import EffectOutcome, EffectProcessor
from narrative.endings import EndingResolver
from narrative.errors import ContentError, EngineBusyError
from narrative.models import Choice, Ending, Scene, SideQuest, TriggerEnding
from narrative.progression import ChapterTracker, SideQuestTracker
from narrative.state import GameState
from storyengine.audio.sink import AudioSink
from storyengine.core.config import GameConfig
from storyengine.core.events import EventBus, NarrativeEvent

if TYPE_CHECKING:
    from narrative.hall_of_fame import HallOfFame
    from narrative.localization import Localizer
    from narrative.save import SaveManager

logger = logging.getLogger(__name__)


class EngineStatus(Enum):
    IDLE = auto()
    AWAITING_CHOICE = auto()
    AUTO_PROCEEDING = auto()
    ENDED = auto()
    HANDED_OFF = auto()
    HALTED = auto()


@dataclass
class PendingTransition:
    """Auto-proceed timer bound to the scene that scheduled it."""
    scene_id: str
    target: str
    delay_ms: int
    elapsed_ms: float = 0.0

    @property
    def remaining_ms(self) -> float:
        return max(0.0, self.delay_ms - self.elapsed_ms)

    @property
    def due(self) -> bool:
        return self.elapsed_ms >= self.delay_ms


@dataclass
class Presentation:
    """Current scene as the host should render it."""
    scene: Scene
    text: str
    choices: list[Choice] = field(default_factory=list)
    choice_texts: dict[str, str] = field(default_factory=dict)
    pending: Optional[PendingTransition] = None

    @property
    def scene_id(self) -> str:
        return self.scene.id

    @property
    def choice_ids(self) -> list[str]:
        return [c.id for c in self.choices]


class StoryEngine:
    """
    Drives a playthrough through the scene graph.

    Collaborators are injected: audio sink, localizer, Hall of Fame and
    save manager are all optional. Content errors halt the engine
    instead of raising into the host.
    """

    def __init__(
        self,
        content: StoryContent,
        config: GameConfig | None = None,
        event_bus: EventBus | None = None,
        audio: AudioSink | None = None,
        localizer: Localizer | None = None,
        hall_of_fame: HallOfFame | None = None,
        save_manager: SaveManager | None = None,
        rng: random.Random | None = None,
        player_name: str | None = None,
    ):
        self.content = content
        self.config = config or GameConfig()
        self.event_bus = event_bus or EventBus()
        self.localizer = localizer
        self.hall_of_fame = hall_of_fame
        self.save_manager = save_manager
        self.player_name = player_name or self.config.default_player_name

        self.evaluator = ConditionEvaluator(rng)
        self.processor = EffectProcessor(self.config, content.items, audio)
        self.achievements = AchievementTracker(content, self.evaluator, self.event_bus)
        self.endings = EndingResolver(content, self.evaluator, self.config)
        self.chapters = ChapterTracker(content, self.evaluator, self.config, self.event_bus)
        self.side_quests = SideQuestTracker(content, self.evaluator, self.event_bus)

        self.state: GameState = GameState.from_config(self.config)
        self.status = EngineStatus.IDLE
        self.presentation: Optional[Presentation] = None
        self.pending: Optional[PendingTransition] = None
        self.ending: Optional[Ending] = None
        self.error: Optional[ContentError] = None
        self.instruction: Optional[str] = None
        self._chances = ChanceCache(self.evaluator.rng)

    # --- Properties ---

    @property
    def current_scene(self) -> Scene | None:
        return self.content.scenes.get(self.state.current_scene_id or "")

    @property
    def is_halted(self) -> bool:
        return self.status == EngineStatus.HALTED

    @property
    def is_finished(self) -> bool:
        return self.status in (EngineStatus.ENDED, EngineStatus.HANDED_OFF, EngineStatus.HALTED)

    # --- Host entry points ---

    def start(self) -> bool:
        """Begin a new game from the configured initial values."""
        self._reset(GameState.from_config(self.config))
        self.processor.clamp(self.state)
        try:
            if self.config.intro_cutscene_id:
                self.event_bus.publish(
                    NarrativeEvent.CUTSCENE_REQUESTED,
                    cutscene_id=self.config.intro_cutscene_id,
                    reason="intro",
                )
            self.chapters.begin(self.state)
            self._run(self.config.initial_scene_id)
        except ContentError as e:
            self._halt(e)
            return False
        return True

    def choose(self, choice_id: str) -> bool:
        """
        Select a visible choice in the current scene.

        Returns:
            True if the choice was accepted.
        """
        if self.status != EngineStatus.AWAITING_CHOICE or self.presentation is None:
            logger.warning(f"Choice '{choice_id}' rejected: engine is {self.status.name}")
            return False

        choice = next((c for c in self.presentation.choices if c.id == choice_id), None)
        if choice is None:
            logger.warning(
                f"Choice '{choice_id}' is not visible in scene '{self.presentation.scene_id}'"
            )
            return False

        scene = self.presentation.scene
        self.event_bus.publish(
            NarrativeEvent.CHOICE_SELECTED, scene_id=scene.id, choice_id=choice.id
        )
        return self._transition(scene, choice)

    def continue_(self) -> bool:
        """Skip the wait on an auto-proceed scene."""
        if self.pending is None or self.is_finished:
            return False
        scene = self.current_scene
        if scene is None or scene.id != self.pending.scene_id:
            self.pending = None
            return False
        return self._transition(scene, None)

    def update(self, dt: float) -> bool:
        """
        Advance time by `dt` seconds.

        Returns:
            True if an auto-proceed transition fired.
        """
        if self.is_finished or self.presentation is None:
            return False
        self.state.playtime_seconds += dt

        pending = self.pending
        if pending is None:
            return False
        pending.elapsed_ms += dt * 1000.0
        if not pending.due:
            return False

        self.pending = None
        scene = self.current_scene
        if scene is None or scene.id != pending.scene_id:
            logger.debug(f"Stale auto-proceed timer for '{pending.scene_id}' discarded")
            return False
        logger.debug(f"Auto-proceeding from '{scene.id}' to '{pending.target}'")
        return self._transition(scene, None, cancel_timer=False)

    def resolve_ending(self) -> Ending | None:
        """Run implicit ending resolution at a host-designated terminal point."""
        if self.is_halted:
            return None
        try:
            ending = self.endings.resolve(self.state)
            self._finish(ending)
        except ContentError as e:
            self._halt(e)
            return None
        return ending

    def snapshot(self) -> GameState:
        """
        Deep copy of the current state, safe to persist.

        Raises:
            EngineBusyError: if effects are being applied
        """
        if self.processor.applying:
            raise EngineBusyError("Cannot snapshot while effects are being applied")
        return self.state.model_copy(deep=True)

    def restore(self, state: GameState) -> bool:
        """
        Replace the game state wholesale and present its current scene.

        onEnter effects are not replayed.
        """
        self._reset(state.model_copy(deep=True))
        try:
            scene = self.current_scene
            if scene is None:
                raise ContentError(
                    f"Restored scene '{state.current_scene_id}' is not defined",
                    state.current_scene_id,
                )
            self._run_from(self._present(scene, autosave=False))
        except ContentError as e:
            self._halt(e)
            return False
        self.event_bus.publish(NarrativeEvent.STATE_CHANGED, reason="restore")
        return True

    def text(self, key: str, **variables: Any) -> str:
        """Localized text, or the key itself when no localizer is attached."""
        if not key:
            return ""
        if self.localizer is None:
            return key
        return self.localizer.get(key, **variables)

    # --- Traversal ---

    def _reset(self, state: GameState) -> None:
        self.state = state
        self.status = EngineStatus.IDLE
        self.presentation = None
        self.pending = None
        self.ending = None
        self.error = None
        self.instruction = None
        self._chances = ChanceCache(self.evaluator.rng)

    def _halt(self, error: ContentError) -> None:
        self.pending = None
        self.status = EngineStatus.HALTED
        self.error = error
        logger.error(f"Content error, traversal halted: {error}")
        self.event_bus.publish(
            NarrativeEvent.CONTENT_ERROR, message=str(error), offending_id=error.offending_id
        )

    def _transition(self, scene: Scene, choice: Choice | None, cancel_timer: bool = True) -> bool:
        if self.is_halted:
            return False
        try:
            if cancel_timer:
                self._cancel_pending()
            self.status = EngineStatus.IDLE
            self._run_from(self._leave(scene, choice))
        except ContentError as e:
            self._halt(e)
            return False
        return True

    def _run_from(self, target: str | None) -> None:
        if target is not None:
            self._run(target)

    def _run(self, target: str) -> None:
        """Follow immediate transitions until the engine has to wait."""
        hops = 0
        next_target: str | None = target
        while next_target is not None:
            hops += 1
            if hops > self.config.max_auto_transitions:
                raise ContentError(
                    f"More than {self.config.max_auto_transitions} immediate transitions, "
                    f"stopped at '{next_target}'",
                    next_target,
                )
            next_target = self._go(next_target)

    def _go(self, target: str) -> str | None:
        scene = self.content.scenes.get(target)
        if scene is not None:
            return self._enter(scene)

        ending = self.content.endings.get(target)
        if ending is not None:
            self._finish(ending)
            return None

        if target == self.config.resolve_ending_target:
            self._finish(self.endings.resolve(self.state))
            return None

        if self.config.is_sentinel(target):
            self.instruction = target
            self.status = EngineStatus.HANDED_OFF
            logger.info(f"Handing off to host: {target}")
            self.event_bus.publish(
                NarrativeEvent.HOST_INSTRUCTION,
                instruction=target,
                scene_id=self.state.current_scene_id,
            )
            return None

        raise ContentError(f"Unknown scene '{target}'", target)

    def _enter(self, scene: Scene) -> str | None:
        self.state.current_scene_id = scene.id
        self.state.mark_visited(scene.id)
        self._chances = ChanceCache(self.evaluator.rng)
        logger.info(f"Entered scene: {scene.id}")

        if scene.music_track:
            self.processor.change_music(scene.music_track)
        self.event_bus.publish(
            NarrativeEvent.SCENE_ENTERED,
            scene_id=scene.id,
            chapter_id=self.state.current_chapter_id,
        )
        self.achievements.check(self.state)

        outcome = self._apply(scene.on_enter_effects)
        if outcome.terminal is not None:
            handled, target = self._terminal(outcome.terminal)
            if handled:
                return target
        return self._present(scene)

    def visible_choices(self, scene: Scene) -> list[Choice]:
        """Choices whose conditions all hold, stable within one presentation."""
        return [
            choice for choice in scene.choices
            if self.evaluator.all_hold(choice.conditions, self.state, self._chances, scope=choice.id)
        ]

    def _present(self, scene: Scene, autosave: bool = True) -> str | None:
        choices = self.visible_choices(scene)
        self.presentation = Presentation(
            scene=scene,
            text=self.text(scene.text_key, **self._text_variables()),
            choices=choices,
            choice_texts={c.id: self.text(c.text_key, **self._text_variables()) for c in choices},
        )

        destination = self._exit_destination(scene)
        if scene.is_player_controllable and choices:
            self.status = EngineStatus.AWAITING_CHOICE
            if scene.auto_proceed_delay and destination is not None:
                self._schedule(scene, destination)
            self.event_bus.publish(
                NarrativeEvent.CHOICES_READY,
                scene_id=scene.id,
                choices=choices,
                presentation=self.presentation,
            )
            if autosave:
                self._autosave()
            return None

        if destination is None:
            raise ContentError(f"Scene '{scene.id}' is a dead end", scene.id)

        if scene.auto_proceed_delay:
            self.status = EngineStatus.AUTO_PROCEEDING
            self._schedule(scene, destination)
            if autosave:
                self._autosave()
            return None

        return self._leave(scene, None)

    def _exit_destination(self, scene: Scene) -> str | None:
        """Where an exit without a choice leads."""
        if self.side_quests.is_exit(scene.id, self.state):
            quest = self.side_quests.active(self.state)
            return quest.return_point.destination(self.state.flag(quest.return_point.flag_for_completion))
        return scene.next_scene_default

    def _schedule(self, scene: Scene, target: str) -> None:
        self.pending = PendingTransition(scene.id, target, scene.auto_proceed_delay)
        self.presentation.pending = self.pending
        logger.debug(f"Auto-proceed from '{scene.id}' to '{target}' in {scene.auto_proceed_delay}ms")
        self.event_bus.publish(
            NarrativeEvent.AUTO_PROCEED_SCHEDULED,
            scene_id=scene.id,
            target=target,
            delay_ms=scene.auto_proceed_delay,
        )

    def _cancel_pending(self) -> None:
        if self.pending is None:
            return
        pending, self.pending = self.pending, None
        self.event_bus.publish(
            NarrativeEvent.AUTO_PROCEED_CANCELLED,
            scene_id=pending.scene_id,
            target=pending.target,
        )

    def _leave(self, scene: Scene, choice: Choice | None) -> str | None:
        """Run exit effects and work out the next target."""
        quest = None
        if self.side_quests.is_exit(scene.id, self.state):
            quest = self.side_quests.active(self.state)
        # Return point of a quest already closed by a refused terminal
        return_to: str | None = None

        outcome = self._apply(scene.on_exit_effects)
        if outcome.terminal is not None:
            if quest is not None:
                return_to, _ = self._close_quest(quest)
                quest = None
            handled, target = self._terminal(outcome.terminal)
            if handled:
                return target

        target = scene.next_scene_default
        if choice is not None:
            outcome = self._apply(choice.effects)
            if outcome.terminal is not None:
                if quest is not None:
                    return_to, _ = self._close_quest(quest)
                    quest = None
                handled, terminal_target = self._terminal(outcome.terminal)
                if handled:
                    return terminal_target
            target = choice.target_scene_id or scene.next_scene_default

        if quest is not None:
            target, outcome = self._close_quest(quest)
            if outcome.terminal is not None:
                handled, terminal_target = self._terminal(outcome.terminal)
                if handled:
                    return terminal_target
        elif return_to is not None:
            target = return_to
        elif choice is not None and target is not None:
            self.side_quests.maybe_start(target, self.state)

        self.chapters.on_scene_exit(scene.id, self.state)

        if target is None:
            raise ContentError(f"Scene '{scene.id}' has no exit", scene.id)
        return target

    def _close_quest(self, quest: SideQuest) -> tuple[str, EffectOutcome]:
        """
        End the active side quest, applying its rewards if it was completed.

        Returns:
            (return scene id, outcome of the reward effects). A terminal in
            the rewards is ignored when another terminal is already pending.
        """
        destination, outcome = self.side_quests.finish(quest, self.state, self.processor)
        self._after_effects(outcome)
        return destination, outcome

    def _apply(self, effects: Any) -> EffectOutcome:
        outcome = self.processor.apply(effects, self.state)
        self._after_effects(outcome)
        return outcome

    def _after_effects(self, outcome: EffectOutcome) -> None:
        if outcome.changed:
            self.event_bus.publish(NarrativeEvent.STATE_CHANGED, reason="effects")
        self.achievements.check(self.state)

    def _terminal(self, effect: Any) -> tuple[bool, str | None]:
        """
        Hand a terminal effect to the ending resolver or chapter tracker.

        Returns:
            (handled, next target). A refused chapter move is not handled.
        """
        self._cancel_pending()
        if isinstance(effect, TriggerEnding):
            self._finish(self.endings.select(effect.ending_id, self.state))
            return True, None

        target = self.chapters.progress(effect.chapter_id, self.state)
        if target is None:
            return False, None
        self.achievements.check(self.state)
        return True, target

    def _finish(self, ending: Ending) -> None:
        """Play the ending's cutscenes, unlock its achievement and record the run."""
        self._cancel_pending()
        for cutscene_id in ending.cutscene_sequence_ids:
            self.event_bus.publish(
                NarrativeEvent.CUTSCENE_REQUESTED,
                cutscene_id=cutscene_id,
                ending_id=ending.id,
                reason="ending",
            )
        if ending.unlocks_achievement_id:
            self.achievements.unlock(ending.unlocks_achievement_id, self.state)

        entry = None
        if self.hall_of_fame is not None:
            entry = self.hall_of_fame.record(
                player_name=self.player_name,
                ending_id=ending.id,
                unlocked_achievement_ids=self.state.unlocked_achievement_ids,
                achievements=self.content.achievements,
                final_stats=self._final_stats(),
                save_slot_id=self.save_manager.current_slot if self.save_manager else None,
            )

        self.ending = ending
        self.status = EngineStatus.ENDED
        logger.info(f"Ending resolved: {ending.id}")
        self.event_bus.publish(
            NarrativeEvent.ENDING_RESOLVED,
            ending_id=ending.id,
            unlocked_achievement_ids=list(self.state.unlocked_achievement_ids),
            hall_of_fame_entry=entry,
        )

    def _text_variables(self) -> dict[str, Any]:
        """Values available to `{name}` placeholders in scene and choice text."""
        return {
            **self.state.world_stats,
            **self.state.player_stats,
            "money": self.state.money,
            "player_name": self.player_name,
        }

    def _final_stats(self) -> dict[str, Any]:
        return {
            "player_stats": dict(self.state.player_stats),
            "world_stats": dict(self.state.world_stats),
            "money": self.state.money,
            "inventory": dict(self.state.inventory),
        }

    def _autosave(self) -> None:
        if self.config.autosave_on_scene_change and self.save_manager is not None:
            self.save_manager.auto_save(self.snapshot())
