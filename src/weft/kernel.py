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

"""Top-level entry points.

These functions work both inside and outside of a running task. Outside,
they create a scheduler, run it to completion and close it. Inside, they
reuse the current task's scheduler.
"""

from __future__ import annotations

from collections.abc import Callable

from ._context import current_task
from .barrier import Barrier
from .condition import Condition
from .config import SchedulerConfig
from .scheduler import Scheduler
from .task import Task, TaskBody

__all__ = ["run", "run_barrier", "sync"]


def run(
    body: TaskBody,
    *args: object,
    config: SchedulerConfig | None = None,
    **options: object,
) -> Task:
    """Run ``body`` as a task.

    Inside a task this starts a child task and returns immediately.
    Otherwise it runs a new scheduler until all work is done, then closes
    it and returns the (finished) task.
    """

    parent = current_task()
    if parent is not None:
        return parent.async_(body, *args, **options)  # type: ignore[arg-type]

    scheduler = Scheduler(config=config)
    try:
        task = scheduler.run(body, *args, **options)
    finally:
        scheduler.close()
    assert task is not None  # noqa: S101
    return task


def sync(
    body: TaskBody,
    *args: object,
    config: SchedulerConfig | None = None,
    annotation: str | None = None,
) -> object:
    """Run ``body`` and return its result, raising its failure.

    Inside a task, ``body`` is simply called with the current task.
    """

    task = current_task()
    if task is not None:
        if annotation is not None:
            with task.annotate(annotation):
                return body(task, *args)
        return body(task, *args)

    scheduler = Scheduler(config=config)
    try:
        initial = scheduler.run(body, *args, finished=Condition(), annotation=annotation)
    finally:
        scheduler.close()
    assert initial is not None  # noqa: S101
    return initial.wait()


def run_barrier[T](body: Callable[[Barrier], T], *, parent: Task | None = None) -> T:
    """Call ``body`` with a fresh :class:`Barrier` and wait for its tasks.

    Tasks still running when ``body`` or the wait raises are stopped.
    """

    def scoped(task: Task) -> T:
        barrier = Barrier(parent=task if parent is None else parent)
        try:
            result = body(barrier)
            barrier.wait()
            return result
        finally:
            barrier.stop()

    return sync(scoped)  # type: ignore[return-value]
