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

"""Deferred condition signalling."""

from __future__ import annotations

from typing import override

from ._list import IntrusiveList
from .condition import Condition, FiberNode

__all__ = ["Notification"]


class _Signal:
    """Ready entry that resumes a batch of waiters from the event loop."""

    __slots__ = ("_value", "_waiting")

    def __init__(self, waiting: IntrusiveList[FiberNode], value: object) -> None:
        self._waiting = waiting
        self._value = value

    @property
    def alive(self) -> bool:
        return True

    def transfer(self) -> None:
        for node in self._waiting:
            if node.alive:
                _ = node.fiber.switch(self._value)


class Notification(Condition):
    """A condition whose signal is delivered on the next loop iteration.

    :meth:`signal` never switches away from the caller, so it can be used
    from timer callbacks or code that must not be suspended.
    """

    @override
    def signal(self, value: object = None) -> None:
        if self._waiting.empty:
            return

        waiting = self._exchange()
        first = waiting.first()
        if first is not None:
            first.scheduler.push(_Signal(waiting, value))
