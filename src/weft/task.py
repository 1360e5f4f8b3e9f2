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

"""Tasks: units of concurrent work running on their own greenlet.

A task moves through ``initialized -> running`` and then into exactly one
terminal status: ``completed`` (the body returned), ``failed`` (the body
raised) or ``stopped`` (the task was stopped). Failures are stored on the
task and re-raised by :meth:`Task.wait`; they never propagate into the
code that spawned the task.

Stopping is cooperative: :class:`~weft.errors.Stop` is injected at the
task's current suspension point and unwinds the body like any other
exception. A task can postpone stop requests with :meth:`Task.defer_stop`.
"""

from __future__ import annotations

import traceback
from collections.abc import Callable, Iterator
from contextlib import AbstractContextManager, contextmanager
from enum import StrEnum
from typing import TYPE_CHECKING, override

from greenlet import GreenletExit, getcurrent
from greenlet import error as GreenletError  # noqa: N812

from ._context import TaskGreenlet, current_task
from .condition import Condition
from .errors import FinishedError, Stop, TimeoutExpired
from .logging import StructuredLogger, get_logger
from .node import Node

if TYPE_CHECKING:
    from .scheduler import Scheduler
    from .timeout import Timeout

__all__ = ["Task", "TaskStatus"]

logger: StructuredLogger = get_logger(__name__, context={"component": "task"})

type TaskBody = Callable[..., object]


class TaskStatus(StrEnum):
    INITIALIZED = "initialized"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    STOPPED = "stopped"


class _StopLater:
    """Ready entry that stops a task from the event loop."""

    __slots__ = ("_task",)

    def __init__(self, task: Task) -> None:
        self._task = task

    @property
    def alive(self) -> bool:
        return True

    def transfer(self) -> None:
        _ = self._task.stop(False)


class Task(Node):
    """A unit of work running concurrently under a scheduler.

    Tasks are usually created with :meth:`Scheduler.async_` or
    :meth:`Task.async_`. The body receives the task as its first argument::

        def fetch(task, url):
            ...

        task = scheduler.async_(fetch, "https://example.com")
        result = task.wait()
    """

    def __init__(
        self,
        body: TaskBody,
        parent: Node,
        *,
        finished: Condition | None = None,
        transient: bool = False,
        annotation: str | None = None,
    ) -> None:
        super().__init__(parent, annotation=annotation, transient=transient)

        self._status = TaskStatus.INITIALIZED
        self._result: object = None
        self._finished = finished
        self._body: TaskBody | None = body
        self._fiber: TaskGreenlet | None = None
        # None: not deferring; False: deferring; True: a stop was deferred.
        self._defer_stop: bool | None = None

    @staticmethod
    def current() -> Task:
        """Return the task running on the current greenlet.

        Raises:
            RuntimeError: When called outside of a task.
        """

        task = current_task()
        if task is None:
            msg = "No async task available!"
            raise RuntimeError(msg)
        return task

    @staticmethod
    def current_or_none() -> Task | None:
        return current_task()

    @override
    def __repr__(self) -> str:
        return f"<{self.description} ({self._status})>"

    @property
    def scheduler(self) -> Scheduler:
        """The scheduler at the root of this task's tree."""

        from .scheduler import Scheduler

        root = self.root
        if not isinstance(root, Scheduler):
            msg = "Task is not attached to a scheduler!"
            raise RuntimeError(msg)
        return root

    @property
    def status(self) -> TaskStatus:
        return self._status

    @property
    def result(self) -> object:
        """The body's return value or stored exception, without waiting."""

        return self._result

    @property
    def fiber(self) -> TaskGreenlet | None:
        return self._fiber

    @property
    def alive(self) -> bool:
        return self._fiber is not None and not self._fiber.dead

    @property
    def is_current(self) -> bool:
        return self._fiber is not None and getcurrent() is self._fiber

    @property
    def running(self) -> bool:
        return self._status is TaskStatus.RUNNING

    @property
    def completed(self) -> bool:
        return self._status is TaskStatus.COMPLETED

    @property
    def failed(self) -> bool:
        return self._status is TaskStatus.FAILED

    @property
    @override
    def stopped(self) -> bool:
        return self._status is TaskStatus.STOPPED

    @property
    def stop_deferred(self) -> bool:
        return bool(self._defer_stop)

    @property
    @override
    def finished(self) -> bool:
        return super().finished and self._body is None and self._fiber is None

    @override
    def backtrace(self) -> list[str] | None:
        fiber = self._fiber
        if fiber is None or fiber.gr_frame is None:
            return None
        return traceback.format_stack(fiber.gr_frame)

    def run(self, *args: object) -> None:
        """Start the task. Only valid once, from ``initialized``."""

        if self._status is not TaskStatus.INITIALIZED:
            msg = "Task already running!"
            raise RuntimeError(msg)

        body = self._body
        assert body is not None  # noqa: S101
        self._status = TaskStatus.RUNNING
        self._schedule(lambda: body(self, *args))

    def async_(
        self,
        body: TaskBody,
        *args: object,
        finished: Condition | None = None,
        transient: bool = False,
        annotation: str | None = None,
    ) -> Task:
        """Run ``body`` as a child of this task. Starts immediately."""

        if self.finished:
            raise FinishedError()

        task = Task(
            body,
            self,
            finished=finished,
            transient=transient,
            annotation=annotation,
        )
        task.run(*args)
        return task

    def wait(self) -> object:
        """Wait for the task to finish and return its result.

        Raises the stored exception if the task failed and returns ``None``
        if it was stopped.
        """

        if self.is_current:
            msg = "Cannot wait on own fiber!"
            raise RuntimeError(msg)

        if self._body is not None or self._fiber is not None:
            if self._finished is None:
                self._finished = Condition()
            _ = self._finished.wait()

        if self._status is TaskStatus.FAILED:
            raise self._result  # type: ignore[misc]
        return self._result

    def yield_(self) -> None:
        """Let other ready tasks run before continuing."""

        self.scheduler.yield_()

    def sleep(self, duration: float | None = None) -> None:
        """Suspend for ``duration`` seconds, or until stopped if ``None``."""

        self.scheduler.kernel_sleep(duration)

    def with_timeout(
        self,
        duration: float,
        exception: type[BaseException] = TimeoutExpired,
        message: str = "execution expired",
    ) -> AbstractContextManager[Timeout]:
        """Raise ``exception`` in this task if the block outlives ``duration``."""

        return self.scheduler.with_timeout(duration, exception, message)

    @override
    def stop(self, later: bool = False) -> bool | None:
        """Stop the task and all of its non-transient children.

        If the task is running, :class:`Stop` is injected at its suspension
        point, or raised directly when the task stops itself. With
        ``later=True`` a task stopping itself is stopped on the next loop
        iteration instead. Returns ``False`` if the stop was deferred.
        """

        if self.stopped:
            if self._stopped():
                msg = "Stopping current task!"
                raise Stop(msg)
            return None

        if self._status in (TaskStatus.COMPLETED, TaskStatus.FAILED):
            self.stop_children(later)
            return None

        fiber = self._fiber
        if fiber is not None and not fiber.dead:
            # An exiting task keeps the loop alive until it has finished.
            self.transient = False

            if self._defer_stop is False:
                self._defer_stop = True
                return False

            scheduler = fiber.scheduler
            if self.is_current:
                if later:
                    scheduler.push(_StopLater(self))
                else:
                    msg = "Stopping current task!"
                    raise Stop(msg)
            else:
                try:
                    _ = scheduler.raise_(fiber, Stop())
                except GreenletError:
                    scheduler.push(_StopLater(self))
        else:
            self._stop_now()
        return None

    @contextmanager
    def defer_stop(self) -> Iterator[None]:
        """Postpone stop requests until the block exits.

        A stop requested inside the block is raised as :class:`Stop` when
        the block exits. Nested blocks defer to the outermost one.
        """

        if self._defer_stop is not None:
            yield
            return

        self._defer_stop = False
        try:
            yield
        except Stop:
            self._defer_stop = None
            raise
        finally:
            deferred = self._defer_stop
            self._defer_stop = None
            if deferred:
                msg = "Stopping current task (was deferred)!"
                raise Stop(msg)

    def _schedule(self, block: Callable[[], object]) -> None:
        scheduler = self.scheduler

        def run() -> None:
            try:
                self._completed(block())
            except Stop:
                self._stopped()
            except GreenletExit:
                self._stopped()
                raise
            except Exception as error:
                self._failed(error)
            except BaseException as error:
                self._failed(error)
                raise
            finally:
                self._finish()

        self._fiber = TaskGreenlet(run, scheduler.loop, task=self, scheduler=scheduler)
        _ = scheduler.resume(self._fiber)

    def _completed(self, result: object) -> None:
        self._status = TaskStatus.COMPLETED
        self._result = result

    def _failed(self, error: BaseException) -> None:
        self._status = TaskStatus.FAILED
        self._result = error

    def _stopped(self) -> bool:
        """Enter the stopped status and stop the children.

        Returns ``True`` if the current task was asked to stop while its
        children were being stopped.
        """

        self._status = TaskStatus.STOPPED
        stopped = False
        while True:
            try:
                self.stop_children(True)
            except Stop:
                stopped = True
                continue
            return stopped

    def _stop_now(self) -> None:
        try:
            stopped = self._stopped()
        finally:
            self._finish()
        if stopped:
            msg = "Stopping current task!"
            raise Stop(msg)

    def _finish(self) -> None:
        root = self.root
        self._fiber = None
        self._body = None
        self.consume()

        finished = self._finished
        if self._status is TaskStatus.FAILED and finished is None:
            self._warn_unhandled(root)

        if finished is not None:
            self._finished = None
            finished.signal(self)

    def _warn_unhandled(self, root: Node) -> None:
        error = self._result
        if not isinstance(error, Exception):
            return
        config = getattr(root, "config", None)
        if config is not None and not config.warn_unhandled_failures:
            return
        logger.warning(
            "Task may have ended with unhandled exception.",
            event="task.unhandled_failure",
            context={"task": repr(self), "error": repr(error)},
            exc_info=(type(error), error, error.__traceback__),
        )
