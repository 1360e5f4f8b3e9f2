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

"""Tests for the top-level entry points."""

from __future__ import annotations

import pytest

from weft.barrier import Barrier
from weft.kernel import run, run_barrier, sync
from weft.scheduler import Scheduler
from weft.task import Task


class TestRun:
    def test_runs_to_completion_outside_task(self) -> None:
        def body(task: Task) -> str:
            task.sleep(0.001)
            return "done"

        task = run(body)

        assert task.completed
        assert task.parent is None
        assert task.wait() == "done"

    def test_starts_child_inside_task(self, scheduler: Scheduler) -> None:
        def body(task: Task) -> object:
            child = run(lambda child, value: (child.parent is task, value * 2), 21)
            return child.wait()

        task = scheduler.run(body)

        assert task is not None
        assert task.wait() == (True, 42)


class TestSync:
    def test_returns_result(self) -> None:
        assert sync(lambda task, value: value + 1, 1) == 2

    def test_raises_failure(self) -> None:
        def body(task: Task) -> None:
            raise ValueError("boom")

        with pytest.raises(ValueError, match="boom"):
            _ = sync(body)

    def test_calls_body_inline_inside_task(self, scheduler: Scheduler) -> None:
        def body(task: Task) -> object:
            return sync(lambda inner: (inner is task, inner.annotation), annotation="inline")

        task = scheduler.run(body)

        assert task is not None
        assert task.wait() == (True, "inline")
        assert task.annotation is None


class TestRunBarrier:
    def test_waits_for_spawned_tasks(self) -> None:
        finished: list[int] = []

        def work(task: Task, index: int) -> None:
            task.sleep(0.001 * (3 - index))
            finished.append(index)

        def body(barrier: Barrier) -> str:
            for index in range(3):
                _ = barrier.async_(work, index)
            return "spawned"

        assert run_barrier(body) == "spawned"
        assert sorted(finished) == [0, 1, 2]

    def test_failure_stops_remaining_tasks(self) -> None:
        started: list[str] = []

        def fail(task: Task) -> None:
            raise ValueError("boom")

        def slow(task: Task) -> None:
            started.append("slow")
            task.sleep(10)
            started.append("unreachable")

        def body(barrier: Barrier) -> None:
            _ = barrier.async_(slow)
            _ = barrier.async_(fail)

        with pytest.raises(ValueError, match="boom"):
            run_barrier(body)

        assert started == ["slow"]
