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

"""Counting semaphore for tasks."""

from __future__ import annotations

from collections.abc import Callable
from types import TracebackType
from typing import TYPE_CHECKING, Self

from ._context import current_context
from ._list import IntrusiveList
from .condition import FiberNode

if TYPE_CHECKING:
    from .node import Node
    from .task import Task, TaskBody

__all__ = ["Semaphore"]


class Semaphore:
    """Limits how many tasks hold the semaphore at once.

    Waiters are woken in the order they started waiting::

        semaphore = Semaphore(2)

        for url in urls:
            semaphore.async_(fetch, url, parent=task)

    It can also guard a block of code directly::

        with semaphore:
            ...
    """

    def __init__(self, limit: int = 1, *, parent: Node | None = None) -> None:
        self._count = 0
        self._limit = limit
        self._waiting: IntrusiveList[FiberNode] = IntrusiveList()
        self._parent = parent

    def __repr__(self) -> str:
        return f"<{type(self).__name__} count={self._count} limit={self._limit}>"

    @property
    def count(self) -> int:
        """Number of current holders."""

        return self._count

    @property
    def limit(self) -> int:
        return self._limit

    @limit.setter
    def limit(self, limit: int) -> None:
        difference = limit - self._limit
        self._limit = limit

        # Raising the limit may admit waiters immediately.
        for _ in range(difference):
            node = self._waiting.first()
            if node is None:
                break
            node.resume()

    @property
    def waiting(self) -> list[FiberNode]:
        return self._waiting.to_list()

    @property
    def empty(self) -> bool:
        """Whether nobody holds the semaphore."""

        return self._count == 0

    @property
    def blocking(self) -> bool:
        """Whether acquiring now would have to wait."""

        return self._count >= self._limit

    def async_(
        self,
        body: TaskBody,
        *args: object,
        parent: Node | None = None,
        **options: object,
    ) -> Task:
        """Wait for capacity, then run ``body`` as a task holding the semaphore."""

        from .task import Task

        self._wait()

        if parent is None:
            parent = self._parent if self._parent is not None else Task.current()

        def hold(task: Task, *args: object) -> object:
            self._count += 1
            try:
                return body(task, *args)
            finally:
                self.release()

        return parent.async_(hold, *args, **options)  # type: ignore[attr-defined]

    def acquire[T](self, fn: Callable[[], T] | None = None) -> T | None:
        """Acquire the semaphore, waiting if necessary.

        With ``fn``, the semaphore is held only while ``fn`` runs and its
        result is returned.
        """

        self._wait()
        self._count += 1

        if fn is None:
            return None
        try:
            return fn()
        finally:
            self.release()

    def release(self) -> None:
        """Release the semaphore and wake waiters while capacity remains."""

        self._count -= 1

        while self._limit - self._count > 0:
            node = self._waiting.first()
            if node is None:
                break
            if not node.alive:
                _ = self._waiting.remove(node)
                continue
            node.resume()

    def __enter__(self) -> Self:
        _ = self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()

    def _wait(self) -> None:
        if not self.blocking:
            return

        fiber, scheduler = current_context()
        with self._waiting.stack(FiberNode(fiber, scheduler)):
            while self.blocking:
                _ = scheduler.transfer()
