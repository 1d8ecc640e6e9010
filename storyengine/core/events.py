"""
Typed event bus for decoupled communication between the narrative
engine and its host.

Event types are Enums so hosts subscribe to named members instead of
magic strings.

Usage:
    bus = EventBus()
    bus.subscribe(NarrativeEvent.CHOICES_READY, on_choices_ready)
    bus.publish(NarrativeEvent.CHOICES_READY, scene_id="scene_01", choices=[...])
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Callable
from weakref import WeakMethod, ref

logger = logging.getLogger(__name__)


class NarrativeEvent(Enum):
    """Events emitted by the story engine."""
    # Traversal
    SCENE_ENTERED = auto()
    CHOICES_READY = auto()
    CHOICE_SELECTED = auto()
    AUTO_PROCEED_SCHEDULED = auto()
    AUTO_PROCEED_CANCELLED = auto()
    HOST_INSTRUCTION = auto()
    CUTSCENE_REQUESTED = auto()

    # Progression
    CHAPTER_STARTED = auto()
    CHAPTER_COMPLETED = auto()
    SIDE_QUEST_STARTED = auto()
    SIDE_QUEST_FINISHED = auto()
    ACHIEVEMENT_UNLOCKED = auto()
    ENDING_RESOLVED = auto()

    # State
    STATE_CHANGED = auto()
    CONTENT_ERROR = auto()


class AudioEvent(Enum):
    """Audio sink events."""
    BGM_STARTED = auto()
    BGM_STOPPED = auto()
    SFX_PLAYED = auto()


class SaveEvent(Enum):
    """Persistence events."""
    SAVE_STARTED = auto()
    SAVE_COMPLETED = auto()
    SAVE_FAILED = auto()
    LOAD_STARTED = auto()
    LOAD_COMPLETED = auto()
    LOAD_FAILED = auto()
    AUTO_SAVE_TRIGGERED = auto()


@dataclass
class Event:
    """
    Event data container.

    Attributes:
        type: The event type (Enum member)
        data: Dictionary of event-specific data
        consumed: Whether the event has been handled
    """
    type: Enum
    data: dict[str, Any] = field(default_factory=dict)
    consumed: bool = False

    def consume(self) -> None:
        """Mark event as consumed (stops propagation)."""
        self.consumed = True

    def get(self, key: str, default: Any = None) -> Any:
        """Get event data by key."""
        return self.data.get(key, default)

    def __getitem__(self, key: str) -> Any:
        return self.data[key]


EventHandler = Callable[[Event], None]


class EventBus:
    """
    Central event bus for publish/subscribe messaging.

    Features:
    - Typed events (Enum-based)
    - Priority ordering
    - Weak references (auto-cleanup when handlers are deleted)
    - One-shot handlers
    - Event consumption (stops propagation)
    - Events published from inside a handler are queued, never nested
    """

    def __init__(self):
        # event type -> list of (priority, handler, one_shot)
        self._handlers: dict[Enum, list[tuple[int, Any, bool]]] = {}
        self._event_queue: list[Event] = []
        self._is_publishing = False

    def subscribe(
        self,
        event_type: Enum,
        handler: EventHandler,
        priority: int = 0,
        one_shot: bool = False,
        weak: bool = True,
    ) -> None:
        """
        Subscribe to an event type.

        Args:
            event_type: The event type to listen for
            handler: Callback function(event: Event)
            priority: Higher priority handlers are called first (default 0)
            one_shot: If True, handler is removed after first call
            weak: If True, use weak reference (handler auto-removed if deleted)
        """
        handlers = self._handlers.setdefault(event_type, [])

        if weak:
            if hasattr(handler, '__self__'):
                handler_ref = WeakMethod(handler)
            else:
                handler_ref = ref(handler)
        else:
            handler_ref = handler

        # Insert sorted by priority (highest first), stable for equal priority
        insert_idx = len(handlers)
        for i, (p, _, _) in enumerate(handlers):
            if priority > p:
                insert_idx = i
                break

        handlers.insert(insert_idx, (priority, handler_ref, one_shot))

    def unsubscribe(self, event_type: Enum, handler: EventHandler) -> None:
        """Remove a handler from an event type."""
        if event_type not in self._handlers:
            return

        self._handlers[event_type] = [
            (p, h, o) for p, h, o in self._handlers[event_type]
            if self._get_handler(h) != handler
        ]

    def publish(self, event_type: Enum, **data: Any) -> Event:
        """
        Publish an event.

        Returns:
            The Event object (check .consumed to see if it was handled)
        """
        event = Event(type=event_type, data=data)
        self.publish_event(event)
        return event

    def publish_event(self, event: Event) -> None:
        """Publish a pre-created event."""
        if self._is_publishing:
            self._event_queue.append(event)
        else:
            self._dispatch(event)

    def clear(self, event_type: Enum | None = None) -> None:
        """Clear handlers for one event type, or all of them."""
        if event_type is None:
            self._handlers.clear()
        elif event_type in self._handlers:
            del self._handlers[event_type]

    def has_subscribers(self, event_type: Enum) -> bool:
        return bool(self._handlers.get(event_type))

    def _dispatch(self, event: Event) -> None:
        self._is_publishing = True
        try:
            handlers = self._handlers.get(event.type, [])
            to_remove = []

            for i, (_, handler_ref, one_shot) in enumerate(handlers):
                handler = self._get_handler(handler_ref)

                if handler is None:
                    # Weak reference was garbage collected
                    to_remove.append(i)
                    continue

                try:
                    handler(event)
                except Exception:
                    logger.exception("Error in event handler for %s", event.type)

                if one_shot:
                    to_remove.append(i)

                if event.consumed:
                    break

            for i in reversed(to_remove):
                handlers.pop(i)
        finally:
            self._is_publishing = False

        while self._event_queue:
            self._dispatch(self._event_queue.pop(0))

    def _get_handler(self, handler_ref: Any) -> EventHandler | None:
        if isinstance(handler_ref, (ref, WeakMethod)):
            return handler_ref()
        return handler_ref
