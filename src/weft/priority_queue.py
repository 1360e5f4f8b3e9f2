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

"""Queue whose consumers are served by priority.

Items are stored in FIFO order. What is prioritized is the *consumer*:
when an item arrives, it goes to the waiting consumer with the highest
priority, ties broken by arrival order. Waiters that time out or are
stopped leave a tombstone in the heap, which later dispatches skip.
"""

from __future__ import annotations

import heapq
import itertools
import threading
from collections import deque
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ._context import current_clock
from ._interlock import Interlock
from .deadlines import Deadline
from .errors import QueueClosedError

if TYPE_CHECKING:
    from .node import Node
    from .task import TaskBody

__all__ = ["PriorityQueue"]


@dataclass(slots=True, eq=False)
class _Waiter:
    priority: float
    sequence: int
    condition: Interlock
    value: object = None
    delivered: bool = False
    alive: bool = True

    @property
    def key(self) -> tuple[float, int]:
        return (-self.priority, self.sequence)

    def deliver(self, value: object) -> None:
        self.value = value
        self.delivered = True
        self.condition.notify()


@dataclass(slots=True)
class _Entry:
    key: tuple[float, int]
    waiter: _Waiter = field(compare=False)

    def __lt__(self, other: _Entry) -> bool:
        return self.key < other.key


class PriorityQueue:
    """A FIFO item queue with priority-ordered consumers.

    Example::

        queue = PriorityQueue()

        def urgent(task):
            return queue.dequeue(priority=10)

        def background(task):
            return queue.dequeue(priority=1)

        queue.push("job")  # goes to ``urgent`` if both are waiting
    """

    def __init__(self, *, parent: Node | None = None) -> None:
        self._parent = parent
        self._items: deque[object] = deque()
        self._waiting: list[_Entry] = []
        self._sequence = itertools.count()
        self._closed = False
        self._mutex = threading.Lock()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} size={self.size} waiting={self.waiting} closed={self._closed}>"

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def size(self) -> int:
        return len(self._items)

    def __len__(self) -> int:
        return len(self._items)

    @property
    def empty(self) -> bool:
        return not self._items

    @property
    def items(self) -> list[object]:
        with self._mutex:
            return list(self._items)

    @property
    def waiting(self) -> int:
        """Number of live waiting consumers."""

        with self._mutex:
            return sum(1 for entry in self._waiting if entry.waiter.alive)

    def close(self) -> None:
        """Close the queue; every waiting consumer receives ``None``."""

        with self._mutex:
            self._closed = True
            while self._waiting:
                waiter = heapq.heappop(self._waiting).waiter
                if waiter.alive:
                    waiter.deliver(None)

    def push(self, item: object) -> None:
        """Add ``item`` and hand items to waiting consumers by priority.

        Raises:
            QueueClosedError: If the queue is closed.
        """

        self.enqueue(item)

    def enqueue(self, *items: object) -> None:
        with self._mutex:
            if self._closed:
                msg = "Cannot enqueue items to a closed queue!"
                raise QueueClosedError(msg)
            self._items.extend(items)
            self._dispatch()

    def dequeue(self, priority: float = 0, timeout: float | None = None) -> object:
        """Remove and return the next item, waiting with ``priority`` if needed.

        Returns ``None`` if ``timeout`` elapses first or the queue is closed
        and drained. With ``timeout=0`` the call never waits.
        """

        with self._mutex:
            if self._items:
                head = self._head()
                if head is None or priority > head.priority:
                    return self._items.popleft()

            if self._closed:
                return None
            if timeout is not None and timeout <= 0:
                return None

            waiter = _Waiter(priority, next(self._sequence), Interlock(self._mutex))
            heapq.heappush(self._waiting, _Entry(waiter.key, waiter))

            returned = False
            try:
                deadline = Deadline.start(timeout, clock=current_clock())
                while not waiter.delivered:
                    remaining = None
                    if deadline is not None:
                        remaining = deadline.remaining()
                        if remaining <= 0:
                            returned = True
                            return None
                    _ = waiter.condition.wait(remaining)
                returned = True
                return waiter.value
            finally:
                waiter.alive = False
                if waiter.delivered and not returned and waiter.value is not None:
                    # Interrupted after an item was handed over: put it back.
                    self._items.appendleft(waiter.value)
                    self._dispatch()

    def pop(self, priority: float = 0, timeout: float | None = None) -> object:
        return self.dequeue(priority, timeout)

    def signal(self, value: object = None) -> None:
        self.push(value)

    def wait(self, priority: float = 0) -> object:
        return self.dequeue(priority)

    def each(self, priority: float = 0) -> Iterator[object]:
        """Yield items with ``priority`` until the queue is closed and drained."""

        while (item := self.dequeue(priority)) is not None:
            yield item

    def __iter__(self) -> Iterator[object]:
        return self.each()

    def async_each(
        self,
        body: TaskBody,
        *,
        priority: float = 0,
        parent: Node | None = None,
        **options: object,
    ) -> None:
        """Run ``body(task, item)`` as a new task for every item until closed."""

        from .task import Task

        if parent is None:
            parent = self._parent if self._parent is not None else Task.current()

        for item in self.each(priority):
            _ = parent.async_(body, item, **options)  # type: ignore[attr-defined]

    def _head(self) -> _Waiter | None:
        while self._waiting:
            waiter = self._waiting[0].waiter
            if waiter.alive and not waiter.delivered:
                return waiter
            _ = heapq.heappop(self._waiting)
        return None

    def _dispatch(self) -> None:
        while self._items and (waiter := self._head()) is not None:
            _ = heapq.heappop(self._waiting)
            waiter.deliver(self._items.popleft())
