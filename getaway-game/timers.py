"""Cancellable scheduled tasks owned by a room: NPC debounce timers and the pursuit loop."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

log = logging.getLogger(__name__)

_background: set[asyncio.Task[object]] = set()


def spawn(coro: Awaitable[object], name: str | None = None) -> asyncio.Task[object]:
    """Run ``coro`` as a task that is kept referenced until it finishes."""
    task = asyncio.ensure_future(coro)
    if name:
        task.set_name(name)
    _background.add(task)
    task.add_done_callback(_background.discard)
    return task


class DebounceTimer:
    """One-shot timer calling ``callback()`` on the event loop when it fires.

    Cancelling only affects a timer that has not fired yet; work the callback
    already started keeps running.
    """

    def __init__(self, name: str = "") -> None:
        self._name = name
        self._handle: asyncio.TimerHandle | None = None

    @property
    def is_armed(self) -> bool:
        return self._handle is not None

    def arm(self, delay: float, callback: Callable[[], object]) -> None:
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(max(0.0, delay), self._fire, callback)

    def cancel(self) -> None:
        if self._handle is None:
            return
        self._handle.cancel()
        self._handle = None

    def _fire(self, callback: Callable[[], object]) -> None:
        self._handle = None
        try:
            callback()
        except Exception:
            log.exception("Timer %s callback failed", self._name or "<unnamed>")


class IntervalRunner:
    """Fixed-period loop awaiting ``tick()``; stops when it returns False."""

    def __init__(self, tick: Callable[[], Awaitable[bool]], interval_seconds: float, name: str = "") -> None:
        self._tick = tick
        self._interval_seconds = max(0.01, interval_seconds)
        self._name = name
        self._task: asyncio.Task[object] | None = None
        self._stopped = False

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done() and not self._stopped

    def start(self) -> None:
        if self.is_running:
            return
        self._stopped = False
        self._task = spawn(self._loop(), name=f"interval:{self._name}" if self._name else None)

    def stop(self) -> None:
        self._stopped = True
        task = self._task
        if task is None or task.done():
            return
        if task is not asyncio.current_task():
            task.cancel()

    async def _loop(self) -> None:
        while not self._stopped:
            try:
                keep_going = await self._tick()
            except Exception:
                log.exception("Interval %s failed, stopping", self._name or "<unnamed>")
                break
            if not keep_going or self._stopped:
                break
            await asyncio.sleep(self._interval_seconds)
        self._stopped = True
