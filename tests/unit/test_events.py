"""
Unit tests for the pipeline event dispatcher.
"""

from unittest.mock import Mock

import pytest

from valpipe import EventDispatcher, PipelineEvent, PipelineEventType


class TestSubscription:
    """Tests for subscribing and unsubscribing."""

    def test_subscribe(self):
        dispatcher = EventDispatcher()
        handler = Mock()

        assert dispatcher.subscribe(PipelineEventType.CACHE_HIT, handler) is True
        assert dispatcher.subscribe(PipelineEventType.CACHE_HIT, handler) is False
        assert dispatcher.handler_count == 1

    def test_subscribe_by_string(self):
        dispatcher = EventDispatcher()
        handler = Mock()
        dispatcher.subscribe("rule:executed", handler)

        dispatcher.emit(PipelineEventType.RULE_EXECUTED, rule="r")
        handler.assert_called_once()

    def test_unknown_event_name_rejected(self):
        dispatcher = EventDispatcher()
        with pytest.raises(ValueError):
            dispatcher.subscribe("not:an:event", Mock())

    def test_unsubscribe(self):
        dispatcher = EventDispatcher()
        handler = Mock()
        dispatcher.subscribe(PipelineEventType.CACHE_HIT, handler)

        assert dispatcher.unsubscribe(PipelineEventType.CACHE_HIT, handler) is True
        assert dispatcher.unsubscribe(PipelineEventType.CACHE_HIT, handler) is False
        dispatcher.emit(PipelineEventType.CACHE_HIT, key="k")
        handler.assert_not_called()

    def test_subscribe_all(self):
        dispatcher = EventDispatcher()
        handler = Mock()
        dispatcher.subscribe_all(handler)

        dispatcher.emit(PipelineEventType.CACHE_HIT, key="k")
        dispatcher.emit(PipelineEventType.CACHE_MISS, key="k")

        assert handler.call_count == 2
        assert dispatcher.unsubscribe_all(handler) is True


class TestEmission:
    """Tests for delivering events."""

    def test_payload(self):
        dispatcher = EventDispatcher()
        received = []
        dispatcher.subscribe(PipelineEventType.VALIDATOR_EXECUTED, received.append)

        event = dispatcher.emit(
            PipelineEventType.VALIDATOR_EXECUTED, validator="v", result="ok",
        )

        assert received == [event]
        assert isinstance(event, PipelineEvent)
        assert event["validator"] == "v"
        assert event.get("missing", 5) == 5
        assert event.to_dict()["event_type"] == "validator:executed"

    def test_failing_listener_does_not_block_others(self):
        dispatcher = EventDispatcher()
        calls = []

        def broken(event):
            raise RuntimeError("listener bug")

        dispatcher.subscribe(PipelineEventType.CACHE_MISS, lambda e: calls.append("first"))
        dispatcher.subscribe(PipelineEventType.CACHE_MISS, broken)
        dispatcher.subscribe(PipelineEventType.CACHE_MISS, lambda e: calls.append("third"))
        dispatcher.subscribe_all(lambda e: calls.append("wildcard"))

        dispatcher.emit(PipelineEventType.CACHE_MISS, key="k")

        assert calls == ["first", "third", "wildcard"]
        assert dispatcher.failure_count == 1

    def test_unsubscribe_during_delivery(self):
        dispatcher = EventDispatcher()
        calls = []

        def once(event):
            calls.append("once")
            dispatcher.unsubscribe(PipelineEventType.CACHE_HIT, once)

        dispatcher.subscribe(PipelineEventType.CACHE_HIT, once)
        dispatcher.emit(PipelineEventType.CACHE_HIT, key="a")
        dispatcher.emit(PipelineEventType.CACHE_HIT, key="b")

        assert calls == ["once"]

    def test_pause_resume(self):
        dispatcher = EventDispatcher()
        handler = Mock()
        dispatcher.subscribe(PipelineEventType.CACHE_HIT, handler)

        dispatcher.pause()
        assert dispatcher.is_paused
        assert dispatcher.emit(PipelineEventType.CACHE_HIT, key="k") is None
        handler.assert_not_called()

        dispatcher.resume()
        dispatcher.emit(PipelineEventType.CACHE_HIT, key="k")
        handler.assert_called_once()


class TestHistory:
    """Tests for event history."""

    def test_history_limit(self):
        dispatcher = EventDispatcher(max_history=3)
        for i in range(5):
            dispatcher.emit(PipelineEventType.CACHE_MISS, key=str(i))

        history = dispatcher.get_history(limit=10)
        assert [e["key"] for e in history] == ["2", "3", "4"]

    def test_history_filter(self):
        dispatcher = EventDispatcher()
        dispatcher.emit(PipelineEventType.CACHE_MISS, key="a")
        dispatcher.emit(PipelineEventType.CACHE_HIT, key="a")

        hits = dispatcher.get_history(event_type=PipelineEventType.CACHE_HIT)
        assert len(hits) == 1
        dispatcher.clear_history()
        assert dispatcher.get_history() == []

    def test_clear_handlers(self):
        dispatcher = EventDispatcher()
        dispatcher.subscribe(PipelineEventType.CACHE_HIT, Mock())
        dispatcher.subscribe_all(Mock())
        dispatcher.clear_handlers()
        assert dispatcher.handler_count == 0
