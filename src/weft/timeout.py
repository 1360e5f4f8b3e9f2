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

"""Adjustable handle over a pending scheduler timeout."""

from __future__ import annotations

from collections.abc import Callable

from ._timers import TimerHandle, Timers
from .errors import TimeoutCancelledError

__all__ = ["Timeout"]


class Timeout:
    """A timeout that can be extended, shortened or cancelled while pending.

    Yielded by :meth:`Scheduler.with_timeout`::

        with scheduler.with_timeout(5.0) as timeout:
            timeout.adjust(2.0)  # now due in ~7 seconds
    """

    def __init__(self, timers: Timers, handle: TimerHandle) -> None:
        self._timers = timers
        self._handle = handle

    def __repr__(self) -> str:
        state = "cancelled" if self.cancelled else f"time={self._handle.time}"
        return f"<{type(self).__name__} {state}>"

    @property
    def time(self) -> float:
        """Absolute monotonic time at which the timeout fires."""

        return self._handle.time

    @time.setter
    def time(self, value: float) -> None:
        self._reschedule(value)

    @property
    def duration(self) -> float:
        """Seconds remaining until the timeout fires."""

        return self._handle.time - self.now()

    @duration.setter
    def duration(self, value: float) -> None:
        self._reschedule(self.now() + value)

    def now(self) -> float:
        return self._timers.now()

    def adjust(self, duration: float) -> float:
        """Shift the timeout by ``duration`` seconds and return the new time."""

        return self._reschedule(self._handle.time + duration)

    @property
    def cancelled(self) -> bool:
        return self._handle.cancelled

    def cancel(self) -> None:
        self._handle.cancel()

    def _reschedule(self, time: float) -> float:
        callback: Callable[[], object] | None = self._handle.callback
        if callback is None:
            msg = "Cannot reschedule a cancelled timeout!"
            raise TimeoutCancelledError(msg)
        self._handle.cancel()
        self._handle = self._timers.schedule(time, callback)
        return time
