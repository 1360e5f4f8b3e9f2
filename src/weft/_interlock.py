# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Condition variable shared by tasks and plain threads.

A task waiting on an :class:`Interlock` suspends through its scheduler's
``block``/``unblock`` pair, so other tasks keep running. A plain thread
blocks on a private lock. Either side may notify the other.

The lock must never be held across a suspension point; :meth:`Interlock.wait`
releases it before suspending and re-acquires it before returning.
"""

from __future__ import annotations

import threading
from collections import deque
from typing import TYPE_CHECKING, Protocol

from greenlet import getcurrent

from ._context import TaskGreenlet

if TYPE_CHECKING:
    from .scheduler import Scheduler

__all__ = ["Interlock"]


class _Waiter(Protocol):
    notified: bool

    def block(self, timeout: float | None) -> bool: ...

    def wake(self) -> None: ...


class _TaskWaiter:
    __slots__ = ("fiber", "notified", "scheduler")

    def __init__(self, fiber: TaskGreenlet, scheduler: Scheduler) -> None:
        self.fiber = fiber
        self.scheduler = scheduler
        self.notified = False

    def block(self, timeout: float | None) -> bool:
        return self.scheduler.block(self, timeout)

    def wake(self) -> None:
        self.scheduler.unblock(self, self.fiber)


class _ThreadWaiter:
    __slots__ = ("_lock", "notified")

    def __init__(self) -> None:
        self._lock = threading.Lock()
        _ = self._lock.acquire()
        self.notified = False

    def block(self, timeout: float | None) -> bool:
        if timeout is None:
            return self._lock.acquire()
        return self._lock.acquire(timeout=max(timeout, 0.0))

    def wake(self) -> None:
        self._lock.release()


def _current_waiter() -> _Waiter:
    fiber = getcurrent()
    if isinstance(fiber, TaskGreenlet):
        return _TaskWaiter(fiber, fiber.scheduler)
    return _ThreadWaiter()


class Interlock:
    """A condition variable over ``lock`` that understands tasks."""

    def __init__(self, lock: threading.Lock | None = None) -> None:
        self._lock = threading.Lock() if lock is None else lock
        self._waiters: deque[_Waiter] = deque()

    def __enter__(self) -> bool:
        return self._lock.acquire()

    def __exit__(self, *exc_info: object) -> None:
        self._lock.release()

    @property
    def waiting(self) -> int:
        return len(self._waiters)

    def wait(self, timeout: float | None = None) -> bool:
        """Release the lock, wait for a notification, then re-acquire it.

        Must be called with the lock held. Returns ``False`` if ``timeout``
        elapsed without a notification.
        """

        waiter = _current_waiter()
        self._waiters.append(waiter)
        self._lock.release()
        interrupted = True
        try:
            _ = waiter.block(timeout)
            interrupted = False
        finally:
            _ = self._lock.acquire()
            if not waiter.notified:
                self._waiters.remove(waiter)
            elif interrupted:
                # Hand the notification on to the next waiter.
                self.notify()
        return waiter.notified

    def notify(self, count: int = 1) -> None:
        """Wake up to ``count`` waiters. Must be called with the lock held."""

        while count > 0 and self._waiters:
            waiter = self._waiters.popleft()
            waiter.notified = True
            waiter.wake()
            count -= 1

    def notify_all(self) -> None:
        self.notify(len(self._waiters))
