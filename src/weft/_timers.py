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

"""Monotonic timer set backing sleeps and timeouts."""

from __future__ import annotations

import heapq
import itertools
from collections.abc import Callable
from dataclasses import dataclass, field

from .clock import SYSTEM_CLOCK, MonotonicClock

__all__ = ["TimerHandle", "Timers"]


@dataclass(slots=True, eq=False)
class TimerHandle:
    """A scheduled callback. Cancelling only marks it; the heap drops it lazily."""

    time: float
    callback: Callable[[], object] | None

    @property
    def cancelled(self) -> bool:
        return self.callback is None

    def cancel(self) -> None:
        self.callback = None


@dataclass(slots=True)
class Timers:
    """Min-heap of :class:`TimerHandle` ordered by due time.

    Handles due at the same time fire in scheduling order.
    """

    clock: MonotonicClock = field(default=SYSTEM_CLOCK)
    _heap: list[tuple[float, int, TimerHandle]] = field(default_factory=list, repr=False)
    _sequence: itertools.count[int] = field(default_factory=itertools.count, repr=False)

    def __len__(self) -> int:
        self._prune()
        return len(self._heap)

    def now(self) -> float:
        return self.clock.monotonic()

    def schedule(self, time: float, callback: Callable[[], object]) -> TimerHandle:
        """Run ``callback`` once the clock reaches ``time``."""

        handle = TimerHandle(time, callback)
        heapq.heappush(self._heap, (time, next(self._sequence), handle))
        return handle

    def after(self, offset: float, callback: Callable[[], object]) -> TimerHandle:
        """Run ``callback`` ``offset`` seconds from now."""

        return self.schedule(self.now() + offset, callback)

    def wait_interval(self, now: float | None = None) -> float | None:
        """Seconds until the next live timer is due, or ``None`` without timers.

        The interval is negative when a timer is overdue.
        """

        self._prune()
        if not self._heap:
            return None
        if now is None:
            now = self.now()
        return self._heap[0][0] - now

    def fire(self, now: float | None = None) -> int:
        """Invoke every timer due at ``now``. Returns how many fired."""

        if now is None:
            now = self.now()
        fired = 0
        while self._heap and self._heap[0][0] <= now:
            _, _, handle = heapq.heappop(self._heap)
            callback = handle.callback
            if callback is None:
                continue
            handle.callback = None
            fired += 1
            callback()
        return fired

    def _prune(self) -> None:
        while self._heap and self._heap[0][2].cancelled:
            heapq.heappop(self._heap)
