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

"""Barrier that releases after a given number of completions."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .condition import Condition

if TYPE_CHECKING:
    from .node import Node
    from .task import Task, TaskBody

__all__ = ["LimitedBarrier"]


class LimitedBarrier:
    """Waits for the first ``count`` tasks to finish, leaving the rest running.

    Example::

        barrier = LimitedBarrier()
        for mirror in mirrors:
            barrier.async_(download, mirror)

        first, second = barrier.wait(2)
    """

    def __init__(self, *, parent: Node | None = None, finished: Condition | None = None) -> None:
        self._finished = Condition() if finished is None else finished
        self._done: list[Task] = []
        self._parent = parent

    def __repr__(self) -> str:
        return f"<{type(self).__name__} done={len(self._done)}>"

    def async_(
        self,
        body: TaskBody,
        *args: object,
        parent: Node | None = None,
        **options: object,
    ) -> Task:
        from .task import Task

        if parent is None:
            parent = self._parent if self._parent is not None else Task.current()

        def tracked(task: Task, *args: object) -> object:
            try:
                return body(task, *args)
            finally:
                self._done.append(task)
                self._finished.signal()

        return parent.async_(tracked, *args, **options)  # type: ignore[attr-defined]

    def wait_for(self, count: int) -> list[Task]:
        """Wait until ``count`` tasks have finished and return them.

        The returned tasks are removed from the completion list.
        """

        while len(self._done) < count:
            _ = self._finished.wait()

        done = self._done[:count]
        del self._done[:count]
        return done

    def wait(self, count: int) -> list[object]:
        """Wait for ``count`` completions and return their results in order."""

        return [task.wait() for task in self.wait_for(count)]
