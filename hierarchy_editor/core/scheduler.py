from __future__ import annotations

"""Deferred-callback schedulers.

The editor never starts threads. Work that must happen "after the current
synchronous call unwinds" (readiness signals, debounced persistence) is handed
to a scheduler owned by the host:

- :class:`QueueScheduler` keeps callbacks until the host calls
  :meth:`QueueScheduler.run_pending`, e.g. once per UI loop iteration.
- :class:`TkScheduler` forwards to ``widget.after`` of a Tk widget.
"""

import itertools
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Protocol

logger = logging.getLogger(__name__)

__all__ = ["Scheduler", "ScheduledCall", "QueueScheduler", "TkScheduler"]


@dataclass
class ScheduledCall:
    """Handle returned by a scheduler; pass it back to ``cancel``."""

    callback: Callable[[], Any]
    due: float
    seq: int
    cancelled: bool = False
    token: Any = field(default=None, repr=False)


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], Any]) -> ScheduledCall: ...

    def cancel(self, handle: Optional[ScheduledCall]) -> None: ...


class QueueScheduler:
    """Cooperative scheduler drained explicitly by the host."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._queue: List[ScheduledCall] = []
        self._counter = itertools.count()

    def call_soon(self, callback: Callable[[], Any]) -> ScheduledCall:
        return self.call_later(0.0, callback)

    def call_later(self, delay: float, callback: Callable[[], Any]) -> ScheduledCall:
        handle = ScheduledCall(callback, self._clock() + max(0.0, delay), next(self._counter))
        self._queue.append(handle)
        return handle

    def cancel(self, handle: Optional[ScheduledCall]) -> None:
        if handle is None:
            return
        handle.cancelled = True
        if handle in self._queue:
            self._queue.remove(handle)

    def pending(self) -> int:
        return len(self._queue)

    def run_pending(self) -> int:
        """Run every callback that is due, in scheduling order. Returns the count run."""
        now = self._clock()
        due = sorted((h for h in self._queue if h.due <= now), key=lambda h: (h.due, h.seq))
        ran = 0
        for handle in due:
            if handle.cancelled:
                continue
            self._queue.remove(handle)
            try:
                handle.callback()
            except Exception:
                logger.exception("Deferred callback %r failed", handle.callback)
            ran += 1
        return ran


class TkScheduler:
    """Adapter over ``tkinter.Misc.after``."""

    def __init__(self, widget: Any) -> None:
        self._widget = widget
        self._counter = itertools.count()
        self._live: Dict[int, ScheduledCall] = {}

    def call_later(self, delay: float, callback: Callable[[], Any]) -> ScheduledCall:
        handle = ScheduledCall(callback, time.monotonic() + delay, next(self._counter))

        def fire() -> None:
            self._live.pop(handle.seq, None)
            if not handle.cancelled:
                callback()

        handle.token = self._widget.after(int(max(0.0, delay) * 1000), fire)
        self._live[handle.seq] = handle
        return handle

    def cancel(self, handle: Optional[ScheduledCall]) -> None:
        if handle is None or handle.cancelled:
            return
        handle.cancelled = True
        self._live.pop(handle.seq, None)
        if handle.token is not None:
            self._widget.after_cancel(handle.token)
