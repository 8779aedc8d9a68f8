"""
Unit tests for the EventDispatcher.
"""

from unittest.mock import MagicMock

import pytest

from lmconductor.events.dispatcher import EventDispatcher
from lmconductor.events.types import EVENT_TYPES, ContentDelta, StreamEnd, TurnError


@pytest.fixture
def dispatcher():
    return EventDispatcher()


class TestRegistration:

    def test_listeners_run_in_registration_order(self, dispatcher):
        calls = []
        dispatcher.on(ContentDelta, lambda e: calls.append(("first", e.delta)))
        dispatcher.on("content", lambda e: calls.append(("second", e.delta)))

        dispatcher.emit(ContentDelta(delta="Hel"))

        assert calls == [("first", "Hel"), ("second", "Hel")]

    def test_unknown_event_name_rejected(self, dispatcher):
        with pytest.raises(ValueError, match="Unknown event"):
            dispatcher.on("contnet", lambda e: None)

    def test_on_is_chainable(self, dispatcher):
        assert dispatcher.on(ContentDelta, lambda e: None) is dispatcher

    def test_has_listeners(self, dispatcher):
        assert not dispatcher.has_listeners(StreamEnd)
        dispatcher.on(StreamEnd, lambda e: None)
        assert dispatcher.has_listeners("stream_end")

    def test_event_names_are_closed_set(self):
        assert {"content", "stream_end", "stream_error", "tool.executing", "error"} <= EVENT_TYPES.keys()


class TestRemoval:

    def test_off_removes_one_listener(self, dispatcher):
        keep, drop = MagicMock(), MagicMock()
        dispatcher.on(ContentDelta, keep).on(ContentDelta, drop)

        dispatcher.off(ContentDelta, drop)
        dispatcher.emit(ContentDelta(delta="x"))

        keep.assert_called_once()
        drop.assert_not_called()

    def test_off_without_listener_removes_all(self, dispatcher):
        listener = MagicMock()
        dispatcher.on(ContentDelta, listener).on(ContentDelta, listener)
        dispatcher.off(ContentDelta)
        dispatcher.emit(ContentDelta(delta="x"))
        listener.assert_not_called()

    def test_once_fires_once(self, dispatcher):
        listener = MagicMock()
        dispatcher.once(ContentDelta, listener)

        dispatcher.emit(ContentDelta(delta="a"))
        dispatcher.emit(ContentDelta(delta="b"))

        listener.assert_called_once_with(ContentDelta(delta="a"))

    def test_once_listener_can_be_removed_by_original(self, dispatcher):
        listener = MagicMock()
        dispatcher.once(ContentDelta, listener)
        dispatcher.off(ContentDelta, listener)
        assert not dispatcher.has_listeners(ContentDelta)

    def test_listener_may_unsubscribe_during_emit(self, dispatcher):
        second = MagicMock()

        def first(event):
            dispatcher.off(ContentDelta, first)

        dispatcher.on(ContentDelta, first).on(ContentDelta, second)
        dispatcher.emit(ContentDelta(delta="x"))

        second.assert_called_once()

    def test_clear(self, dispatcher):
        dispatcher.on(ContentDelta, lambda e: None).on(TurnError, lambda e: None)
        dispatcher.clear()
        assert not dispatcher.has_listeners(ContentDelta)
        assert not dispatcher.has_listeners(TurnError)


class TestEmit:

    def test_emit_without_listeners_is_noop(self, dispatcher):
        dispatcher.emit(ContentDelta(delta="x"))

    def test_listener_exceptions_propagate(self, dispatcher):
        """A misbehaving listener is not shielded; the emitter sees its exception."""
        later = MagicMock()

        def broken(event):
            raise RuntimeError("listener bug")

        dispatcher.on(ContentDelta, broken).on(ContentDelta, later)

        with pytest.raises(RuntimeError, match="listener bug"):
            dispatcher.emit(ContentDelta(delta="x"))
        later.assert_not_called()
