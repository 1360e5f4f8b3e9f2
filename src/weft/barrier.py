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

"""Wait for a group of tasks to finish, in completion order."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING

from ._list import IntrusiveList, ListNode
from .queue import Queue

if TYPE_CHECKING:
    from .node import Node
    from .task import Task, TaskBody

__all__ = ["Barrier"]


class _TaskNode(ListNode):
    def __init__(self, task: Task) -> None:
        self.task = task


class Barrier:
    """Tracks child tasks so they can be waited on or stopped together.

    Example::

        barrier = Barrier()
        try:
            for url in urls:
                barrier.async_(fetch, url)
            barrier.wait()
        finally:
            barrier.stop()
    """

    def __init__(self, *, parent: Node | None = None) -> None:
        self._tasks: IntrusiveList[_TaskNode] = IntrusiveList()
        self._finished = Queue()
        self._parent = parent

    def __repr__(self) -> str:
        return f"<{type(self).__name__} size={self.size}>"

    @property
    def size(self) -> int:
        """Number of tasks still tracked."""

        return self._tasks.size

    @property
    def tasks(self) -> list[Task]:
        return [node.task for node in self._tasks.to_list()]

    @property
    def empty(self) -> bool:
        return self._tasks.empty

    def async_(
        self,
        body: TaskBody,
        *args: object,
        parent: Node | None = None,
        **options: object,
    ) -> Task:
        """Run ``body`` as a tracked child task.

        Raises:
            RuntimeError: If the barrier was stopped.
        """

        from .task import Task

        if self._finished.closed:
            msg = "Barrier is closed!"
            raise RuntimeError(msg)

        if parent is None:
            parent = self._parent if self._parent is not None else Task.current()

        def tracked(task: Task, *args: object) -> object:
            node = self._tasks.append(_TaskNode(task))
            try:
                return body(task, *args)
            finally:
                if not self._finished.closed:
                    self._finished.signal(node)

        return parent.async_(tracked, *args, **options)  # type: ignore[attr-defined]

    def wait(self, handler: Callable[[Task], object] | None = None) -> None:
        """Wait for every tracked task, in the order they complete.

        Each finished task is passed to ``handler``; by default its result
        is awaited, re-raising its failure. A task remains tracked until it
        has been handled. Returns early if the barrier is stopped.
        """

        while not self._tasks.empty:
            node = self._finished.wait()
            if node is None:
                return
            assert isinstance(node, _TaskNode)  # noqa: S101

            task = node.task
            _ = self._tasks.remove_if_linked(node)
            if handler is None:
                _ = task.wait()
            else:
                _ = handler(task)

    def stop(self) -> None:
        """Stop every tracked task and close the barrier."""

        for node in self._tasks:
            _ = node.task.stop()

        self._finished.close()
