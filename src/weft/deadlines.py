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

"""Remaining-time accounting for compound bounded waits."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Final

from .clock import SYSTEM_CLOCK, MonotonicClock

__all__ = ["ZERO", "Deadline", "ZeroDeadline"]


@dataclass(slots=True, frozen=True)
class ZeroDeadline:
    """Deadline for immediate timeouts (zero or negative)."""

    @property
    def expired(self) -> bool:
        return True

    def remaining(self) -> float:
        return 0.0


ZERO: Final[ZeroDeadline] = ZeroDeadline()


@dataclass(slots=True)
class Deadline:
    """Countdown timer shared by several operations under one timeout.

    Each call to :meth:`remaining` consumes the time elapsed since the
    previous call, so a sequence of waits bounded by the same deadline
    never exceeds the caller's original timeout.
    """

    _remaining: float
    clock: MonotonicClock = field(default=SYSTEM_CLOCK)
    _start: float = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._start = self.clock.monotonic()

    @classmethod
    def start(
        cls, timeout: float | None, *, clock: MonotonicClock = SYSTEM_CLOCK
    ) -> Deadline | ZeroDeadline | None:
        """Create a deadline for ``timeout`` seconds.

        Returns ``None`` when there is no timeout and :data:`ZERO` when the
        timeout is zero or negative.
        """

        if timeout is None:
            return None
        if timeout <= 0:
            return ZERO
        return cls(timeout, clock=clock)

    def remaining(self) -> float:
        """Return the remaining time, consuming time elapsed since the last call.

        The result may be negative once the deadline has expired.
        """

        now = self.clock.monotonic()
        self._remaining -= now - self._start
        self._start = now
        return self._remaining

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0
