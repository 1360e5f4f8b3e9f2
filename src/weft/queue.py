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

"""FIFO queues usable from tasks and threads.

Both :class:`Queue` and :class:`LimitedQueue` delegate to a thread-safe
channel, so producers and consumers may live on different schedulers or
on plain threads. A task blocked on a queue only suspends itself; the rest
of its scheduler keeps running.

Closing a queue wakes every blocked consumer. Consumers drain what is left
and then receive ``None``; producers get :class:`~weft.errors.QueueClosedError`.
"""

from __future__ import annotations

import threading
from collections import deque
from collections.abc import Iterable, Iterator
from typing import TYPE_CHECKING, override

from ._context import current_clock
from ._interlock import Interlock
from .deadlines import Deadline
from .errors import QueueClosedError

if TYPE_CHECKING:
    from .node import Node
    from .task import TaskBody

__all__ = ["LimitedQueue", "Queue"]


class _Channel:
    """Thread-safe FIFO with an optional capacity limit."""

    def __init__(self, limit: int | None = None) -> None:
        self.limit = limit
        self._items: deque[object] = deque()
        self._closed = False
        self._waiting = 0
        self._mutex = threading.Lock()
        self._not_empty = Interlock(self._mutex)
        self._not_full = Interlock(self._mutex)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def size(self) -> int:
        return len(self._items)

    @property
    def waiting(self) -> int:
        return self._waiting

    def close(self) -> None:
        with self._mutex:
            self._closed = True
            self._not_empty.notify_all()
            self._not_full.notify_all()

    def push(self, items: Iterable[object]) -> None:
        with self._mutex:
            for item in items:
                if self.limit is not None:
                    while not self._closed and len(self._items) >= self.limit:
                        self._waiting += 1
                        try:
                            _ = self._not_full.wait()
                        finally:
                            self._waiting -= 1
                if self._closed:
                    msg = "Cannot enqueue items to a closed queue!"
                    raise QueueClosedError(msg)
                self._items.append(item)
                self._not_empty.notify()

    def pop(self, timeout: float | None = None) -> object:
        with self._mutex:
            deadline = Deadline.start(timeout, clock=current_clock())
            while not self._items:
                if self._closed:
                    return None
                remaining = None
                if deadline is not None:
                    remaining = deadline.remaining()
                    if remaining <= 0:
                        return None
                self._waiting += 1
                try:
                    _ = self._not_empty.wait(remaining)
                finally:
                    self._waiting -= 1

            item = self._items.popleft()
            self._not_full.notify()
            return item


class Queue:
    """An unbounded FIFO queue.

    ``None`` is reserved as the end-of-stream marker returned once a closed
    queue is drained, so it should not be enqueued as a regular item.

    Example::

        queue = Queue()

        def producer(task):
            for item in range(3):
                queue.push(item)
            queue.close()

        def consumer(task):
            for item in queue:
                print(item)
    """

    def __init__(self, *, parent: Node | None = None, limit: int | None = None) -> None:
        self._parent = parent
        self._channel = _Channel(limit)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} size={self.size} closed={self.closed}>"

    @property
    def closed(self) -> bool:
        return self._channel.closed

    def close(self) -> None:
        """Close the queue, waking every blocked consumer and producer."""

        self._channel.close()

    @property
    def size(self) -> int:
        return self._channel.size

    def __len__(self) -> int:
        return self._channel.size

    @property
    def empty(self) -> bool:
        return self._channel.size == 0

    @property
    def waiting_count(self) -> int:
        """Number of consumers and producers currently blocked."""

        return self._channel.waiting

    def push(self, item: object) -> None:
        """Add ``item`` to the end of the queue.

        Raises:
            QueueClosedError: If the queue is closed.
        """

        self._channel.push((item,))

    def enqueue(self, *items: object) -> None:
        """Add several items in order."""

        self._channel.push(items)

    def pop(self, timeout: float | None = None) -> object:
        """Remove and return the first item, waiting for one if necessary.

        Returns ``None`` once the queue is closed and drained, or if
        ``timeout`` elapses first.
        """

        return self._channel.pop(timeout)

    def dequeue(self, timeout: float | None = None) -> object:
        return self._channel.pop(timeout)

    def signal(self, value: object = None) -> None:
        self.push(value)

    def wait(self) -> object:
        return self.dequeue()

    def __iter__(self) -> Iterator[object]:
        """Yield items until the queue is closed and drained."""

        while (item := self.dequeue()) is not None:
            yield item

    def async_each(
        self,
        body: TaskBody,
        *,
        parent: Node | None = None,
        **options: object,
    ) -> None:
        """Run ``body(task, item)`` as a new task for every item until closed."""

        from .task import Task

        if parent is None:
            parent = self._parent if self._parent is not None else Task.current()

        for item in self:
            _ = parent.async_(body, item, **options)  # type: ignore[attr-defined]


class LimitedQueue(Queue):
    """A FIFO queue holding at most ``limit`` items.

    Producers block while the queue is full.
    """

    def __init__(self, limit: int = 1, *, parent: Node | None = None) -> None:
        if limit < 1:
            msg = "limit must be at least 1"
            raise ValueError(msg)
        super().__init__(parent=parent, limit=limit)

    @override
    def __repr__(self) -> str:
        return f"<{type(self).__name__} size={self.size} limit={self.limit} closed={self.closed}>"

    @property
    def limit(self) -> int:
        return self._channel.limit or 0

    @property
    def limited(self) -> bool:
        """Whether a push would currently block."""

        return not self.closed and self.size >= self.limit
