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

from __future__ import annotations

from collections.abc import Iterator

import pytest

from weft.clock import FakeClock
from weft.scheduler import Scheduler


@pytest.fixture
def scheduler() -> Iterator[Scheduler]:
    """Return a scheduler that is closed when the test finishes."""

    scheduler = Scheduler()
    try:
        yield scheduler
    finally:
        scheduler.close()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_scheduler(fake_clock: FakeClock) -> Iterator[Scheduler]:
    """Return a scheduler whose timers follow ``fake_clock``."""

    scheduler = Scheduler(clock=fake_clock)
    try:
        yield scheduler
    finally:
        scheduler.close()
