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

"""Tests for task groups: barriers and waiters."""

from __future__ import annotations

import pytest

from weft.barrier import Barrier
from weft.limited_barrier import LimitedBarrier
from weft.scheduler import Scheduler
from weft.task import Task
from weft.waiter import Waiter

DELAYS = (0.03, 0.01, 0.02)


def sleeper(task: Task, delay: float) -> float:
    task.sleep(delay)
    return delay


def failing(task: Task) -> None:
    task.sleep(0.01)
    raise ValueError("boom")


class TestBarrier:
    def test_wait_handles_tasks_in_completion_order(self, scheduler: Scheduler) -> None:
        def body(task: Task) -> list[object]:
            barrier = Barrier()
            order: list[object] = []
            for delay in DELAYS:
                _ = barrier.async_(sleeper, delay)
            assert barrier.size == 3
            barrier.wait(lambda done: order.append(done.wait()))
            assert barrier.empty
            return order

        task = scheduler.run(body)

        assert task is not None
        assert task.wait() == [0.01, 0.02, 0.03]

    def test_wait_reraises_failures(self, scheduler: Scheduler) -> None:
        def body(task: Task) -> str:
            barrier = Barrier()
            _ = barrier.async_(failing)
            try:
                barrier.wait()
            except ValueError as error:
                return str(error)
            return "no error"

        task = scheduler.run(body)

        assert task is not None
        assert task.wait() == "boom"

    def test_stop_closes_the_barrier(self, scheduler: Scheduler) -> None:
        def body(task: Task) -> list[Task]:
            barrier = Barrier()
            tasks = [barrier.async_(sleeper, 10) for _ in range(2)]
            barrier.stop()
            with pytest.raises(RuntimeError, match="Barrier is closed"):
                _ = barrier.async_(sleeper, 0)
            barrier.wait()
            return tasks

        task = scheduler.run(body)

        assert task is not None
        tasks = task.wait()
        assert isinstance(tasks, list)
        assert all(child.stopped for child in tasks)

    def test_stop_from_another_task_releases_waiter(self, scheduler: Scheduler) -> None:
        barriers: list[Barrier] = []
        children: list[Task] = []

        def waiter(task: Task) -> tuple[str, bool]:
            barrier = Barrier()
            barriers.append(barrier)
            children.extend(barrier.async_(sleeper, 10) for _ in range(3))
            barrier.wait()
            return "released", barrier.empty

        def stopper(task: Task) -> None:
            task.sleep(0.01)
            barriers[0].stop()

        waiting = scheduler.async_(waiter)
        stopping = scheduler.async_(stopper)
        _ = scheduler.run()

        assert waiting.wait() == ("released", True)
        assert stopping.completed
        assert len(children) == 3
        assert all(child.stopped for child in children)
        assert not scheduler.has_children

    def test_explicit_parent(self, scheduler: Scheduler) -> None:
        def body(task: Task) -> bool:
            barrier = Barrier(parent=scheduler)
            child = barrier.async_(sleeper, 0.01)
            attached = child.parent is scheduler
            barrier.wait()
            return attached

        task = scheduler.run(body)

        assert task is not None
        assert task.wait() is True


class TestWaiter:
    def test_first_finished_wins(self, scheduler: Scheduler) -> None:
        def body(task: Task) -> tuple[object, object]:
            waiter = Waiter()
            for delay in DELAYS:
                _ = waiter.async_(sleeper, delay)
            return waiter.wait(), waiter.wait(2)

        task = scheduler.run(body)

        assert task is not None
        assert task.wait() == (0.01, [0.02, 0.03])

    def test_unclaimed_tasks_stay_available(self, scheduler: Scheduler) -> None:
        def body(task: Task) -> list[Task]:
            waiter = Waiter()
            _ = waiter.async_(sleeper, 0.01)
            _ = waiter.async_(sleeper, 0.01)
            task.sleep(0.02)
            return waiter.done

        task = scheduler.run(body)

        assert task is not None
        done = task.wait()
        assert isinstance(done, list)
        assert len(done) == 2

    def test_failure_is_reraised(self, scheduler: Scheduler) -> None:
        def body(task: Task) -> str:
            waiter = Waiter()
            _ = waiter.async_(failing)
            try:
                _ = waiter.wait()
            except ValueError as error:
                return str(error)
            return "no error"

        task = scheduler.run(body)

        assert task is not None
        assert task.wait() == "boom"


class TestLimitedBarrier:
    def test_wait_for_leaves_remaining_tasks_running(self, scheduler: Scheduler) -> None:
        tasks: list[Task] = []

        def body(task: Task) -> list[object]:
            barrier = LimitedBarrier()
            for delay in DELAYS:
                tasks.append(barrier.async_(sleeper, delay))
            results = barrier.wait(2)
            assert tasks[0].running
            return results

        task = scheduler.run(body)

        assert task is not None
        assert task.wait() == [0.01, 0.02]
        assert tasks[0].completed

    def test_wait_for_returns_tasks(self, scheduler: Scheduler) -> None:
        def body(task: Task) -> bool:
            barrier = LimitedBarrier()
            fast = barrier.async_(sleeper, 0.01)
            _ = barrier.async_(sleeper, 0.02)
            return barrier.wait_for(1) == [fast]

        task = scheduler.run(body)

        assert task is not None
        assert task.wait() is True
