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

"""Time sources for the scheduler.

Timers, load accounting and :class:`~weft.deadlines.Deadline` read time
through :class:`MonotonicClock` only. Passing a :class:`FakeClock` to a
timer set or a deadline makes them deterministic::

    clock = FakeClock()
    timers = Timers(clock)
    timers.after(5, callback)
    clock.advance(5)
    timers.fire()  # runs callback

The event loop itself still blocks in real time while waiting for I/O, so
a scheduler driven by a fake clock only sees time move when the test
advances it.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Final, Protocol, runtime_checkable

__all__ = [
    "SYSTEM_CLOCK",
    "Clock",
    "FakeClock",
    "MonotonicClock",
    "SystemClock",
]


@runtime_checkable
class MonotonicClock(Protocol):
    """Source of monotonically increasing seconds with an arbitrary origin."""

    def monotonic(self) -> float: ...


@runtime_checkable
class Clock(MonotonicClock, Protocol):
    """A monotonic clock that can also block the calling thread."""

    def sleep(self, seconds: float) -> None: ...


@dataclass(frozen=True, slots=True)
class SystemClock:
    """Wall-independent process clock backed by :func:`time.monotonic`."""

    def monotonic(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float) -> None:
        time.sleep(seconds)


SYSTEM_CLOCK: Final[Clock] = SystemClock()


@dataclass
class FakeClock:
    """Manually advanced clock.

    ``sleep`` returns immediately after moving time forward. All methods
    may be called from any thread.
    """

    now: float = 0.0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def monotonic(self) -> float:
        with self._lock:
            return self.now

    def sleep(self, seconds: float) -> None:
        _ = self.advance(seconds)

    def advance(self, seconds: float) -> float:
        """Move time forward by ``seconds`` and return the new time.

        Raises:
            ValueError: If ``seconds`` is negative.
        """

        if seconds < 0:
            msg = "Monotonic time cannot go backwards"
            raise ValueError(msg)
        with self._lock:
            self.now += seconds
            return self.now
