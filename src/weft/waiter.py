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

"""Wait for the first few of a set of tasks to finish."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .condition import Condition

if TYPE_CHECKING:
    from .node import Node
    from .task import Task, TaskBody

__all__ = ["Waiter"]


class Waiter:
    """Collects tasks as they finish so callers can take the first ``n``.

    Tasks that finish but are not taken remain available for later calls::

        waiter = Waiter()
        for host in hosts:
            waiter.async_(ping, host)

        fastest = waiter.wait()
    """

    def __init__(
        self,
        *,
        parent: Node | None = None,
        finished: Condition | None = None,
    ) -> None:
        self._finished = Condition() if finished is None else finished
        self._done: list[Task] = []
        self._parent = parent

    def __repr__(self) -> str:
        return f"<{type(self).__name__} done={len(self._done)}>"

    @property
    def done(self) -> list[Task]:
        """Finished tasks not yet taken, in completion order."""

        return list(self._done)

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

    def first(self, count: int | None = None) -> Task | list[Task]:
        """Wait until ``count`` tasks have finished and take them.

        Without ``count``, waits for and returns a single task.
        """

        minimum = 1 if count is None else count
        while len(self._done) < minimum:
            _ = self._finished.wait()

        if count is None:
            return self._done.pop(0)

        taken = self._done[:count]
        del self._done[:count]
        return taken

    def wait(self, count: int | None = None) -> object:
        """Like :meth:`first`, but return the tasks' results instead.

        Re-raises the failure of any taken task.
        """

        taken = self.first(count)
        if isinstance(taken, list):
            return [task.wait() for task in taken]
        return taken.wait()
