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

"""Base exception hierarchy for :mod:`weft`."""

from __future__ import annotations


class WeftError(Exception):
    """Base class for all weft exceptions.

    This class serves as the root of the exception hierarchy, allowing callers
    to catch all library-specific exceptions with a single handler while letting
    standard Python exceptions propagate normally.

    Cancellation is deliberately *not* part of this hierarchy: :class:`Stop`
    derives from :class:`BaseException` so that ``except Exception`` blocks in
    task bodies never absorb it.

    Example:
        Catch any weft-specific error::

            try:
                queue.push(item)
            except WeftError as e:
                logger.error("Runtime error: %s", e)
    """


class Stop(BaseException):  # noqa: N818
    """Raised inside a task when it is stopped.

    The signal is injected at the task's current suspension point (or raised
    directly when a task stops itself) and unwinds the task body. The task
    records the ``stopped`` status instead of a failure, so callers waiting
    on the task receive ``None`` rather than an exception.
    """

    def __init__(self, message: str = "Task was stopped") -> None:
        super().__init__(message)


class TimeoutExpired(WeftError, TimeoutError):  # noqa: N818
    """Raised when an operation cannot complete before its timeout.

    Timeouts are realized through the scheduler's timer set: when the timer
    fires first, this exception is injected into the waiting task.

    Example::

        with scheduler.with_timeout(1.0):
            queue.dequeue()  # raises TimeoutExpired after 1 second
    """

    def __init__(self, message: str = "execution expired") -> None:
        super().__init__(message)


class SchedulerClosedError(WeftError, RuntimeError):
    """Raised when work is submitted to a scheduler that was closed."""

    def __init__(self, message: str = "Scheduler is closed!") -> None:
        super().__init__(message)


class QueueClosedError(WeftError, RuntimeError):
    """Raised when items are pushed to a closed queue."""


class FinishedError(WeftError, RuntimeError):
    """Raised when creating a child task within a task that has finished."""

    def __init__(
        self,
        message: str = "Cannot create child task within a task that has finished execution!",
    ) -> None:
        super().__init__(message)


class TimeoutCancelledError(WeftError, RuntimeError):
    """Raised when attempting to reschedule a cancelled timeout."""


class PromiseCancel(BaseException):  # noqa: N818
    """Cancellation signal accepted by :meth:`Promise.fulfill`.

    Raising this inside a fulfilling block resolves the promise to the
    ``cancelled`` state instead of ``failed``.
    """


class PromiseCancelled(WeftError):
    """Raised by :meth:`Promise.wait` when the promise was cancelled."""

    def __init__(self, message: str = "Promise was cancelled!") -> None:
        super().__init__(message)


__all__ = [
    "FinishedError",
    "PromiseCancel",
    "PromiseCancelled",
    "QueueClosedError",
    "SchedulerClosedError",
    "Stop",
    "TimeoutCancelledError",
    "TimeoutExpired",
    "WeftError",
]
