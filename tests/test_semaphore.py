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

from weft.scheduler import Scheduler
from weft.semaphore import Semaphore
from weft.task import Task


class _Tracker:
    def __init__(self) -> None:
        self.active = 0
        self.peak = 0
        self.acquired: list[int] = []

    def enter(self, index: int) -> None:
        self.active += 1
        self.peak = max(self.peak, self.active)
        self.acquired.append(index)

    def exit(self) -> None:
        self.active -= 1


def test_limits_concurrent_holders(scheduler: Scheduler) -> None:
    semaphore = Semaphore(2)
    tracker = _Tracker()

    def worker(task: Task, index: int) -> None:
        with semaphore:
            tracker.enter(index)
            task.sleep(0.01)
            tracker.exit()

    for index in range(5):
        _ = scheduler.async_(worker, index)

    assert semaphore.blocking
    assert len(semaphore.waiting) == 3

    _ = scheduler.run()

    assert tracker.peak == 2
    assert tracker.acquired == [0, 1, 2, 3, 4]
    assert semaphore.empty
    assert semaphore.waiting == []


def test_acquire_with_function_releases(scheduler: Scheduler) -> None:
    semaphore = Semaphore()

    task = scheduler.run(lambda task: (semaphore.acquire(lambda: semaphore.count), semaphore.count))

    assert task is not None
    assert task.wait() == (1, 0)


def test_async_waits_for_capacity(scheduler: Scheduler) -> None:
    semaphore = Semaphore(1)
    tracker = _Tracker()

    def worker(task: Task, index: int) -> None:
        tracker.enter(index)
        task.sleep(0.01)
        tracker.exit()

    def spawner(task: Task) -> list[Task]:
        return [semaphore.async_(worker, index) for index in range(3)]

    parent = scheduler.run(spawner)

    assert parent is not None
    children = parent.wait()
    assert isinstance(children, list)
    assert all(child.completed for child in children)
    assert tracker.peak == 1
    assert tracker.acquired == [0, 1, 2]
    assert semaphore.count == 0


def test_raising_limit_admits_waiters(scheduler: Scheduler) -> None:
    semaphore = Semaphore(1)
    admitted: list[str] = []

    def holder(task: Task, name: str) -> None:
        with semaphore:
            admitted.append(name)
            task.sleep(10)

    _ = scheduler.async_(holder, "first")
    _ = scheduler.async_(holder, "second")
    assert admitted == ["first"]

    semaphore.limit = 2

    assert admitted == ["first", "second"]
    assert semaphore.count == 2

    _ = scheduler.stop()
    assert semaphore.count == 0


def test_stopped_waiter_is_not_admitted(scheduler: Scheduler) -> None:
    semaphore = Semaphore(1)
    admitted: list[str] = []

    def holder(task: Task, name: str, duration: float) -> None:
        with semaphore:
            admitted.append(name)
            task.sleep(duration)

    _ = scheduler.async_(holder, "first", 0.01)
    stopped = scheduler.async_(holder, "stopped", 0.01)
    _ = scheduler.async_(holder, "last", 0.01)
    _ = stopped.stop()

    _ = scheduler.run()

    assert admitted == ["first", "last"]
    assert semaphore.count == 0
