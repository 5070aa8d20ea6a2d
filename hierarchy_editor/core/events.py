from __future__ import annotations

"""Small synchronous signal dispatcher.

Listener failures are logged and never propagate into the emitting operation,
so a broken subscriber cannot abort an edit half-way.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

__all__ = ["Event", "EventEmitter", "Listener"]


class Event(dict):
    """Payload passed to listeners.

    A plain mapping with the signal ``name`` attached and support for
    cancellation (``prevent_default``) and propagation stop.
    """

    def __init__(self, name: str, data: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(data or {})
        self.name = name
        self.default_prevented = False
        self.propagation_stopped = False

    def prevent_default(self) -> None:
        self.default_prevented = True

    def stop_propagation(self) -> None:
        self.propagation_stopped = True


Listener = Callable[[Event], Any]


class EventEmitter:
    """Named-signal registry with ``"*"`` wildcard listeners."""

    def __init__(self) -> None:
        self._listeners: Dict[str, List[Listener]] = {}
        self._wildcard: List[Callable[[str, Event], Any]] = []

    def on(self, name: str, listener: Callable) -> Callable:
        if name == "*":
            self._wildcard.append(listener)
        else:
            self._listeners.setdefault(name, []).append(listener)
        return listener

    def off(self, name: str, listener: Callable) -> None:
        bucket = self._wildcard if name == "*" else self._listeners.get(name, [])
        if listener in bucket:
            bucket.remove(listener)

    def once(self, name: str, listener: Listener) -> Listener:
        def wrapper(event: Event) -> None:
            self.off(name, wrapper)
            listener(event)

        return self.on(name, wrapper)

    def emit(self, name: str, data: Optional[Dict[str, Any]] = None) -> Event:
        """Dispatch ``name`` and return the event so callers can read cancellation."""
        event = data if isinstance(data, Event) else Event(name, data)
        for listener in list(self._listeners.get(name, [])):
            self._call(name, listener, event)
            if event.propagation_stopped:
                return event
        for listener in list(self._wildcard):
            self._call(name, listener, name, event)
            if event.propagation_stopped:
                break
        return event

    def listener_count(self, name: str) -> int:
        if name == "*":
            return len(self._wildcard)
        return len(self._listeners.get(name, []))

    def remove_all_listeners(self, name: Optional[str] = None) -> None:
        if name is None:
            self._listeners.clear()
            self._wildcard.clear()
        else:
            self._listeners.pop(name, None)

    @staticmethod
    def _call(name: str, listener: Callable, *args: Any) -> None:
        try:
            listener(*args)
        except Exception:
            logger.exception("Error in '%s' listener %r", name, listener)
