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

"""Execution contexts for tasks.

Each task runs on its own :class:`TaskGreenlet`. The greenlet carries the
task and the scheduler that drives it, so the running task is always
derived from :func:`greenlet.getcurrent` rather than from global state.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING

from greenlet import getcurrent, greenlet

from .clock import SYSTEM_CLOCK, MonotonicClock

if TYPE_CHECKING:
    from .scheduler import Scheduler
    from .task import Task

__all__ = ["TaskGreenlet", "current_clock", "current_context", "current_task"]


class TaskGreenlet(greenlet):
    """Greenlet bound to a task and its scheduler."""

    def __init__(
        self,
        run: Callable[[], object],
        parent: greenlet,
        *,
        task: Task,
        scheduler: Scheduler,
    ) -> None:
        super().__init__(run, parent)
        self.task = task
        self.scheduler = scheduler


def current_task() -> Task | None:
    """Return the task running on the current greenlet, if any."""

    fiber = getcurrent()
    if isinstance(fiber, TaskGreenlet):
        return fiber.task
    return None


def current_context() -> tuple[TaskGreenlet, Scheduler]:
    """Return the current task greenlet and its scheduler.

    Raises:
        RuntimeError: When called outside of a task.
    """

    fiber = getcurrent()
    if not isinstance(fiber, TaskGreenlet):
        msg = "No async task available!"
        raise RuntimeError(msg)
    return fiber, fiber.scheduler


def current_clock() -> MonotonicClock:
    """Return the running scheduler's clock, or the system clock outside a task."""

    fiber = getcurrent()
    if isinstance(fiber, TaskGreenlet):
        return fiber.scheduler.clock
    return SYSTEM_CLOCK
