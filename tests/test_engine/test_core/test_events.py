import pytest
from enum import Enum, auto
from storyengine.core.events import EventBus, Event, NarrativeEvent

class MockEvent(Enum):
    TEST_EVENT = auto()
    OTHER_EVENT = auto()

def test_event_bus_subscribe_publish(event_bus):
    received = []
    def handler(event):
        received.append(event)

    event_bus.subscribe(MockEvent.TEST_EVENT, handler)
    event_bus.publish(MockEvent.TEST_EVENT, data="test")

    assert len(received) == 1
    assert received[0].type == MockEvent.TEST_EVENT
    assert received[0]["data"] == "test"
    assert received[0].get("missing", 7) == 7

def test_event_bus_unsubscribe(event_bus):
    received = []
    def handler(event):
        received.append(event)

    event_bus.subscribe(MockEvent.TEST_EVENT, handler)
    event_bus.unsubscribe(MockEvent.TEST_EVENT, handler)
    event_bus.publish(MockEvent.TEST_EVENT)

    assert len(received) == 0

def test_event_priority(event_bus):
    order = []

    event_bus.subscribe(MockEvent.TEST_EVENT, lambda e: order.append("low"), priority=1, weak=False)
    event_bus.subscribe(MockEvent.TEST_EVENT, lambda e: order.append("high"), priority=10, weak=False)
    event_bus.subscribe(MockEvent.TEST_EVENT, lambda e: order.append("normal"), priority=5, weak=False)

    event_bus.publish(MockEvent.TEST_EVENT)

    assert order == ["high", "normal", "low"]

def test_event_consumption(event_bus):
    received = []

    def consumer(event):
        received.append("consumer")
        event.consume()

    def later_handler(event):
        received.append("later")

    event_bus.subscribe(MockEvent.TEST_EVENT, consumer, priority=10)
    event_bus.subscribe(MockEvent.TEST_EVENT, later_handler, priority=5)

    event = event_bus.publish(MockEvent.TEST_EVENT)

    assert received == ["consumer"]
    assert event.consumed

def test_one_shot_handler(event_bus):
    received = []
    def handler(event):
        received.append(event)

    event_bus.subscribe(MockEvent.TEST_EVENT, handler, one_shot=True)
    event_bus.publish(MockEvent.TEST_EVENT)
    event_bus.publish(MockEvent.TEST_EVENT)

    assert len(received) == 1
    assert not event_bus.has_subscribers(MockEvent.TEST_EVENT)

def test_weak_handler_released(event_bus):
    received = []

    class Listener:
        def on_event(self, event):
            received.append(event)

    listener = Listener()
    event_bus.subscribe(MockEvent.TEST_EVENT, listener.on_event)
    del listener
    event_bus.publish(MockEvent.TEST_EVENT)

    assert received == []

def test_nested_publish_is_queued(event_bus):
    order = []

    def first(event):
        order.append("first:start")
        event_bus.publish(MockEvent.OTHER_EVENT)
        order.append("first:end")

    def second(event):
        order.append("second")

    event_bus.subscribe(MockEvent.TEST_EVENT, first)
    event_bus.subscribe(MockEvent.OTHER_EVENT, second)
    event_bus.publish(MockEvent.TEST_EVENT)

    assert order == ["first:start", "first:end", "second"]

def test_handler_error_is_logged_not_raised(event_bus, caplog):
    received = []
    def broken(event):
        raise RuntimeError("boom")
    def healthy(event):
        received.append(event)

    event_bus.subscribe(NarrativeEvent.SCENE_ENTERED, broken, priority=10)
    event_bus.subscribe(NarrativeEvent.SCENE_ENTERED, healthy)

    with caplog.at_level("ERROR"):
        event_bus.publish(NarrativeEvent.SCENE_ENTERED, scene_id="s1")

    assert len(received) == 1
    assert "Error in event handler" in caplog.text

def test_clear(event_bus):
    def handler(event):
        pass

    event_bus.subscribe(MockEvent.TEST_EVENT, handler)
    event_bus.subscribe(MockEvent.OTHER_EVENT, handler)
    event_bus.clear(MockEvent.TEST_EVENT)
    assert not event_bus.has_subscribers(MockEvent.TEST_EVENT)
    assert event_bus.has_subscribers(MockEvent.OTHER_EVENT)

    event_bus.clear()
    assert not event_bus.has_subscribers(MockEvent.OTHER_EVENT)
