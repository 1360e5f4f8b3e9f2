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

"""Cooperative task scheduling on greenlets.

Tasks form a tree rooted at a :class:`Scheduler`; each runs on its own
greenlet and suspends only at explicit points (waiting on a primitive,
sleeping, waiting for I/O). The package also provides the synchronization
primitives tasks use to coordinate.
"""

from __future__ import annotations

from .barrier import Barrier
from .clock import SYSTEM_CLOCK, Clock, FakeClock, MonotonicClock, SystemClock
from .condition import Condition
from .config import SchedulerConfig
from .deadlines import Deadline
from .errors import (
    FinishedError,
    PromiseCancel,
    PromiseCancelled,
    QueueClosedError,
    SchedulerClosedError,
    Stop,
    TimeoutCancelledError,
    TimeoutExpired,
    WeftError,
)
from .idler import Idler
from .kernel import run, run_barrier, sync
from .limited_barrier import LimitedBarrier
from .logging import configure_logging, get_logger
from .node import Node
from .notification import Notification
from .priority_queue import PriorityQueue
from .promise import Promise, PromiseState
from .queue import LimitedQueue, Queue
from .scheduler import Scheduler
from .selector import READABLE, WRITABLE
from .semaphore import Semaphore
from .task import Task, TaskStatus
from .timeout import Timeout
from .variable import Variable
from .waiter import Waiter

__all__ = [
    "READABLE",
    "SYSTEM_CLOCK",
    "WRITABLE",
    "Barrier",
    "Clock",
    "Condition",
    "Deadline",
    "FakeClock",
    "FinishedError",
    "Idler",
    "LimitedBarrier",
    "LimitedQueue",
    "MonotonicClock",
    "Node",
    "Notification",
    "PriorityQueue",
    "Promise",
    "PromiseCancel",
    "PromiseCancelled",
    "PromiseState",
    "Queue",
    "QueueClosedError",
    "Scheduler",
    "SchedulerClosedError",
    "SchedulerConfig",
    "Semaphore",
    "Stop",
    "SystemClock",
    "Task",
    "TaskStatus",
    "Timeout",
    "TimeoutCancelledError",
    "TimeoutExpired",
    "Variable",
    "Waiter",
    "WeftError",
    "configure_logging",
    "get_logger",
    "run",
    "run_barrier",
    "sync",
]
