"""Synchronous pub/sub for lifecycle events."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

from lmconductor.events.types import EVENT_TYPES, Event

E = TypeVar("E", bound=Event)

Listener = Callable[[Any], None]


def _event_name(event: type[Event] | str) -> str:
    name = event if isinstance(event, str) else event.name
    if name not in EVENT_TYPES:
        raise ValueError(f"Unknown event '{name}'. Known events: {', '.join(sorted(EVENT_TYPES))}")
    return name


class EventDispatcher:
    """
    Routes events to listeners registered by event type or by event name.

    Listeners for one event run synchronously in registration order.
    Exceptions raised by a listener are not caught: they propagate to
    whoever emitted the event, which can abort a turn.

    Registration is expected to happen during setup; emitting is safe to
    share between concurrent turns as long as nobody registers meanwhile.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {}

    def on(self, event: type[E] | str, listener: Callable[[E], None]) -> EventDispatcher:
        """Register a listener for an event type (or its dotted name)."""
        self._listeners.setdefault(_event_name(event), []).append(listener)
        return self

    def once(self, event: type[E] | str, listener: Callable[[E], None]) -> EventDispatcher:
        """Register a listener that is removed after its first call."""
        name = _event_name(event)

        def wrapper(payload: E) -> None:
            self.off(name, wrapper)
            listener(payload)

        wrapper.__wrapped__ = listener  # type: ignore[attr-defined]
        return self.on(name, wrapper)

    def off(self, event: type[Event] | str, listener: Listener | None = None) -> EventDispatcher:
        """Remove one listener, or every listener of the event when none is given."""
        name = _event_name(event)
        if listener is None:
            self._listeners.pop(name, None)
            return self

        remaining = [
            registered
            for registered in self._listeners.get(name, [])
            if registered is not listener and getattr(registered, "__wrapped__", None) is not listener
        ]
        if remaining:
            self._listeners[name] = remaining
        else:
            self._listeners.pop(name, None)
        return self

    def emit(self, event: Event) -> None:
        """Deliver an event to its listeners."""
        # Copy so listeners may unsubscribe while being notified
        for listener in list(self._listeners.get(event.name, ())):
            listener(event)

    def has_listeners(self, event: type[Event] | str) -> bool:
        return bool(self._listeners.get(_event_name(event)))

    def listeners(self, event: type[Event] | str) -> list[Listener]:
        return list(self._listeners.get(_event_name(event), ()))

    def clear(self) -> None:
        """Remove every listener."""
        self._listeners.clear()
