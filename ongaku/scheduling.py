from __future__ import annotations

import asyncio
from collections import deque
from typing import Callable, Deque, Optional, Protocol


class Handle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Runs a callback later on the caller's own execution context."""

    def call_soon(self, callback: Callable[[], None]) -> Handle: ...


class _PendingCall:
    __slots__ = ("callback", "cancelled")

    def __init__(self, callback: Callable[[], None]) -> None:
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """FIFO of pending calls drained explicitly by the owner (CLI loop, tests)."""

    def __init__(self) -> None:
        self._queue: Deque[_PendingCall] = deque()

    def call_soon(self, callback: Callable[[], None]) -> _PendingCall:
        pending = _PendingCall(callback)
        self._queue.append(pending)
        return pending

    @property
    def pending(self) -> int:
        return sum(1 for call in self._queue if not call.cancelled)

    def run_once(self) -> bool:
        """Run the next live call; return False when nothing was pending."""
        while self._queue:
            call = self._queue.popleft()
            if call.cancelled:
                continue
            call.callback()
            return True
        return False

    def run_until_idle(self, limit: Optional[int] = None) -> int:
        ran = 0
        while limit is None or ran < limit:
            if not self.run_once():
                break
            ran += 1
        return ran


class AsyncioScheduler:
    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    def call_soon(self, callback: Callable[[], None]) -> asyncio.Handle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_soon(callback)
