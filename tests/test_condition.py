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

"""Tests for conditions, notifications and variables."""

from __future__ import annotations

import pytest

from weft.condition import Condition
from weft.notification import Notification
from weft.scheduler import Scheduler
from weft.task import Task
from weft.variable import Variable


class TestCondition:
    def test_signal_wakes_waiters_in_order(self, scheduler: Scheduler) -> None:
        condition = Condition()
        results: list[tuple[str, object]] = []

        def waiter(task: Task, name: str) -> None:
            results.append((name, condition.wait()))

        for name in "abc":
            _ = scheduler.async_(waiter, name)

        assert condition.waiting == 3
        _ = scheduler.async_(lambda task: condition.signal("go"))
        _ = scheduler.run()

        assert results == [("a", "go"), ("b", "go"), ("c", "go")]
        assert condition.empty

    def test_rewaiting_during_signal_waits_for_next(self, scheduler: Scheduler) -> None:
        condition = Condition()
        results: list[tuple[object, object]] = []

        def waiter(task: Task) -> None:
            first = condition.wait()
            second = condition.wait()
            results.append((first, second))

        def signaller(task: Task) -> None:
            condition.signal("one")
            condition.signal("two")

        _ = scheduler.async_(waiter)
        _ = scheduler.async_(signaller)
        _ = scheduler.run()

        assert results == [("one", "two")]

    def test_stopped_waiter_leaves_the_list(self, scheduler: Scheduler) -> None:
        condition = Condition()
        results: list[object] = []

        stopped = scheduler.async_(lambda task: results.append(condition.wait()))
        _ = scheduler.async_(lambda task: results.append(condition.wait()))
        _ = stopped.stop()

        assert condition.waiting == 1
        _ = scheduler.async_(lambda task: condition.signal("value"))
        _ = scheduler.run()

        assert results == ["value"]

    def test_signal_without_waiters_is_a_noop(self) -> None:
        condition = Condition()
        condition.signal("ignored")

        assert condition.empty

    def test_wait_outside_task_raises(self) -> None:
        with pytest.raises(RuntimeError, match="No async task available"):
            _ = Condition().wait()


class TestNotification:
    def test_signal_is_delivered_on_next_iteration(self, scheduler: Scheduler) -> None:
        notification = Notification()
        results: list[object] = []

        _ = scheduler.async_(lambda task: results.append(notification.wait()))

        notification.signal("later")
        assert results == []
        assert notification.empty

        _ = scheduler.run()

        assert results == ["later"]

    def test_signal_from_task_does_not_switch(self, scheduler: Scheduler) -> None:
        notification = Notification()
        events: list[str] = []

        def waiter(task: Task) -> None:
            _ = notification.wait()
            events.append("woken")

        def signaller(task: Task) -> None:
            notification.signal()
            events.append("signalled")

        _ = scheduler.async_(waiter)
        _ = scheduler.async_(signaller)
        _ = scheduler.run()

        assert events == ["signalled", "woken"]


class TestVariable:
    def test_waiters_receive_resolved_value(self, scheduler: Scheduler) -> None:
        variable = Variable()
        results: list[object] = []

        for _ in range(2):
            _ = scheduler.async_(lambda task: results.append(variable.wait()))

        _ = scheduler.async_(lambda task: variable.resolve(42))
        _ = scheduler.run()

        assert results == [42, 42]
        assert variable.resolved
        assert variable.value == 42

    def test_resolve_twice_raises(self) -> None:
        variable = Variable()
        assert variable.resolve() is True

        with pytest.raises(RuntimeError, match="already resolved"):
            _ = variable.resolve(False)

    def test_wait_after_resolution_does_not_suspend(self) -> None:
        variable = Variable()
        _ = variable.resolve("ready")

        assert variable.wait() == "ready"
