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

"""Tests for :mod:`weft.deadlines`."""

from __future__ import annotations

from weft.clock import FakeClock
from weft.deadlines import ZERO, Deadline


def test_start_without_timeout() -> None:
    assert Deadline.start(None) is None


def test_start_with_non_positive_timeout() -> None:
    assert Deadline.start(0) is ZERO
    assert Deadline.start(-1) is ZERO
    assert ZERO.expired
    assert ZERO.remaining() == 0


def test_remaining_consumes_elapsed_time(fake_clock: FakeClock) -> None:
    deadline = Deadline.start(5, clock=fake_clock)
    assert isinstance(deadline, Deadline)

    _ = fake_clock.advance(2)
    assert deadline.remaining() == 3

    # Time already accounted for is not subtracted twice.
    assert deadline.remaining() == 3

    _ = fake_clock.advance(1)
    assert not deadline.expired
    assert deadline.remaining() == 2


def test_expired_once_time_runs_out(fake_clock: FakeClock) -> None:
    deadline = Deadline(1, clock=fake_clock)

    _ = fake_clock.advance(1.5)

    assert deadline.expired
    assert deadline.remaining() == -0.5
