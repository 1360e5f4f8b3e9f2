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

"""Wait/signal rendezvous between tasks on the same scheduler."""

from __future__ import annotations

from typing import TYPE_CHECKING

from greenlet import greenlet

from ._context import current_context
from ._list import IntrusiveList, ListNode

if TYPE_CHECKING:
    from .scheduler import Scheduler

__all__ = ["Condition"]


class FiberNode(ListNode):
    """A suspended greenlet waiting in an intrusive list."""

    def __init__(self, fiber: greenlet, scheduler: Scheduler) -> None:
        self.fiber = fiber
        self.scheduler = scheduler

    @property
    def alive(self) -> bool:
        return not self.fiber.dead

    def resume(self, *args: object) -> None:
        if not self.fiber.dead:
            _ = self.scheduler.resume(self.fiber, *args)


class Condition:
    """A synchronization primitive which blocks tasks until signalled.

    Signalling wakes every task that was waiting at the time of the call,
    in the order they started waiting, and delivers the same value to
    each. Tasks that start waiting while a signal is being delivered wait
    for the next one.

    Example::

        condition = Condition()

        def consumer(task):
            value = condition.wait()

        def producer(task):
            condition.signal("ready")
    """

    def __init__(self) -> None:
        self._waiting: IntrusiveList[FiberNode] = IntrusiveList()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} waiting={self._waiting.size}>"

    @property
    def waiting(self) -> int:
        return self._waiting.size

    @property
    def empty(self) -> bool:
        """Whether no task is currently waiting."""

        return self._waiting.empty

    def wait(self) -> object:
        """Suspend the current task until the next :meth:`signal`.

        Returns the value passed to :meth:`signal`.
        """

        fiber, scheduler = current_context()
        with self._waiting.stack(FiberNode(fiber, scheduler)):
            return scheduler.transfer()

    def signal(self, value: object = None) -> None:
        """Resume every waiting task with ``value``.

        Each waiter runs until it next suspends before the following waiter
        is resumed.
        """

        if self._waiting.empty:
            return

        waiting = self._exchange()
        for node in waiting:
            if node.alive:
                _ = node.scheduler.resume(node.fiber, value)

    def _exchange(self) -> IntrusiveList[FiberNode]:
        waiting = self._waiting
        self._waiting = IntrusiveList()
        return waiting
