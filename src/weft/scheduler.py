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

"""The event loop and root of the task tree.

A :class:`Scheduler` drives its task greenlets from the greenlet that
created it. Each iteration of the loop resumes ready entries, waits for
I/O readiness or the next timer, and fires due timers::

    scheduler = Scheduler()

    def hello(task):
        task.sleep(0.1)
        return "hello"

    try:
        task = scheduler.run(hello)
    finally:
        scheduler.close()

    assert task.wait() == "hello"

Blocking primitives that may be woken from other threads use
:meth:`Scheduler.block` and :meth:`Scheduler.unblock`. A wakeup that arrives
after the blocked task was already resumed by other means (for example a
timeout) is discarded.
"""

from __future__ import annotations

import io
import os
import signal
import socket
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from types import FrameType, TracebackType
from typing import Final, Self, override

from greenlet import getcurrent, greenlet

from ._timers import Timers
from ._worker_pool import WorkerPool
from .clock import SYSTEM_CLOCK, MonotonicClock
from .condition import Condition
from .config import SchedulerConfig
from .errors import SchedulerClosedError, TimeoutExpired
from .logging import StructuredLogger, get_logger
from .node import Node
from .selector import FileLike, Ready, SelectSelector, Selector
from .task import Task, TaskBody
from .timeout import Timeout

__all__ = ["Scheduler"]

logger: StructuredLogger = get_logger(__name__, context={"component": "scheduler"})

_NOT_BLOCKED: Final = object()


class _Wakeup:
    """Ready entry resuming a task blocked on ``blocker``, if it still is."""

    __slots__ = ("_blocker", "_fiber", "_scheduler")

    def __init__(self, scheduler: Scheduler, blocker: object, fiber: greenlet) -> None:
        self._scheduler = scheduler
        self._blocker = blocker
        self._fiber = fiber

    @property
    def alive(self) -> bool:
        if self._fiber.dead:
            return False
        return self._scheduler._blocking.get(self._fiber, _NOT_BLOCKED) is self._blocker

    def transfer(self) -> object:
        return self._fiber.switch(True)


class _Nudge:
    """Ready entry that never runs."""

    __slots__ = ()

    @property
    def alive(self) -> bool:
        return False

    def transfer(self) -> object:
        return None


_NUDGE: Final = _Nudge()


@contextmanager
def _deferred_interrupts() -> Iterator[None]:
    """Hold back SIGINT until the block exits.

    Only the main thread receives signals, so elsewhere this is a no-op.
    """

    if threading.current_thread() is not threading.main_thread():
        yield
        return

    received: list[int] = []

    def handler(signum: int, frame: FrameType | None) -> None:
        _ = frame
        received.append(signum)

    previous = signal.signal(signal.SIGINT, handler)
    try:
        yield
    finally:
        _ = signal.signal(signal.SIGINT, previous)
    if received:
        raise KeyboardInterrupt


class Scheduler(Node):
    """Event loop driving tasks cooperatively on one thread.

    The scheduler must be used from the thread and greenlet that created
    it. Only :meth:`unblock` and :meth:`interrupt` may be called from other
    threads.
    """

    def __init__(
        self,
        parent: Node | None = None,
        *,
        config: SchedulerConfig | None = None,
        selector: Selector | None = None,
        clock: MonotonicClock = SYSTEM_CLOCK,
        worker_pool: WorkerPool | None = None,
    ) -> None:
        super().__init__(parent)

        self.config = SchedulerConfig() if config is None else config
        self._clock = clock
        self._selector: Selector | None = (
            SelectSelector(getcurrent(), clock=clock) if selector is None else selector
        )
        self._timers = Timers(clock)
        self._worker_pool = (
            WorkerPool(max_workers=self.config.worker_pool_size)
            if worker_pool is None
            else worker_pool
        )

        self._busy_time = 0.0
        self._idle_time = 0.0
        self._interrupted = False
        self._blocked = 0
        self._blocking: dict[greenlet, object] = {}

    @override
    def __repr__(self) -> str:
        return f"<{self.description} blocked={self._blocked}>"

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    @property
    def selector(self) -> Selector:
        selector = self._selector
        if selector is None:
            raise SchedulerClosedError()
        return selector

    @property
    def loop(self) -> greenlet:
        """The greenlet driving this scheduler."""

        return self.selector.loop

    @property
    def timers(self) -> Timers:
        return self._timers

    @property
    def clock(self) -> MonotonicClock:
        return self._clock

    @property
    def closed(self) -> bool:
        return self._selector is None

    @property
    def blocked(self) -> int:
        """Number of operations currently suspended in :meth:`block`."""

        return self._blocked

    @property
    def busy_time(self) -> float:
        return self._busy_time

    @property
    def idle_time(self) -> float:
        return self._idle_time

    def load(self) -> float:
        """Fraction of recent time spent running tasks rather than waiting.

        The accumulators are rescaled to ``config.load_window`` once they
        exceed it, so the value reflects recent activity.
        """

        total = self._busy_time + self._idle_time
        if total == 0:
            return 0.0

        window = self.config.load_window
        if total > window:
            ratio = window / total
            self._busy_time *= ratio
            self._idle_time *= ratio
            return self._busy_time / window

        return self._busy_time / total

    # Greenlet transfer primitives.

    def transfer(self) -> object:
        """Suspend the current task until something resumes it."""

        return self.selector.transfer()

    def resume(self, fiber: greenlet, *args: object) -> object:
        return self.selector.resume(fiber, *args)

    def yield_(self) -> None:
        self.selector.yield_()

    def push(self, entry: Ready | greenlet) -> None:
        self.selector.push(entry)

    def raise_(self, fiber: greenlet, exception: BaseException) -> object:
        return self.selector.raise_(fiber, exception)

    def wakeup(self) -> bool:
        selector = self._selector
        if selector is None:
            return False
        return selector.wakeup()

    # Blocking operations.

    def block(self, blocker: object, timeout: float | None = None) -> bool:
        """Suspend the current task until :meth:`unblock` or ``timeout``.

        Returns ``False`` if the timeout elapsed first.
        """

        fiber = getcurrent()
        timer = None
        if timeout is not None:

            def expire() -> None:
                if self._blocking.get(fiber, _NOT_BLOCKED) is blocker:
                    _ = fiber.switch(False)

            timer = self._timers.after(timeout, expire)

        self._blocking[fiber] = blocker
        self._blocked += 1
        try:
            return self.transfer() is not False
        finally:
            self._blocked -= 1
            _ = self._blocking.pop(fiber, None)
            if timer is not None:
                timer.cancel()

    def unblock(self, blocker: object, fiber: greenlet) -> None:
        """Wake ``fiber`` if it is still blocked on ``blocker``.

        Safe to call from any thread. After close this is a no-op.
        """

        selector = self._selector
        if selector is None:
            logger.debug(
                "Ignoring unblock after scheduler was closed.",
                event="scheduler.unblock_after_close",
                context={"blocker": repr(blocker)},
            )
            return
        selector.push(_Wakeup(self, blocker, fiber))
        _ = selector.wakeup()

    def kernel_sleep(self, duration: float | None = None) -> None:
        """Suspend the current task for ``duration`` seconds.

        Without a duration the task sleeps until something resumes it.
        """

        if duration is None:
            _ = self.transfer()
        else:
            _ = self.block(None, duration)

    def io_wait(
        self, fileobj: FileLike, events: int, timeout: float | None = None
    ) -> int | bool:
        """Wait for ``fileobj`` to become ready for ``events``.

        Returns the ready event mask, or ``False`` on timeout.
        """

        fiber = getcurrent()
        timer = None
        if timeout is not None:
            timer = self._timers.after(timeout, lambda: fiber.switch(False))
        try:
            return self.selector.io_wait(fiber, fileobj, events)
        finally:
            if timer is not None:
                timer.cancel()

    def blocking_operation_wait[T](self, work: Callable[[], T]) -> T:
        """Run blocking ``work`` on the worker pool without stalling the loop.

        Outside of a task the work simply runs inline.
        """

        fiber = getcurrent()
        if getattr(fiber, "scheduler", None) is not self:
            return work()
        return self._worker_pool.call(self, work)

    def process_wait(self, pid: int, flags: int = 0) -> tuple[int, int]:
        """Wait for child process ``pid`` without blocking other tasks."""

        return self.blocking_operation_wait(lambda: os.waitpid(pid, flags))

    def address_resolve(self, hostname: str) -> list[str]:
        """Resolve ``hostname`` to a list of unique IP addresses."""

        host = hostname.split("%", 1)[0]

        def resolve() -> list[str]:
            addresses: list[str] = []
            for *_, sockaddr in socket.getaddrinfo(host, None):
                address = str(sockaddr[0])
                if address not in addresses:
                    addresses.append(address)
            return addresses

        return self.blocking_operation_wait(resolve)

    @contextmanager
    def with_timeout(
        self,
        duration: float,
        exception: type[BaseException] = TimeoutExpired,
        message: str = "execution expired",
    ) -> Iterator[Timeout]:
        """Raise ``exception`` in the current task if the block outlives ``duration``.

        Yields a :class:`Timeout` that can adjust or cancel the deadline.
        """

        fiber = getcurrent()

        def expire() -> None:
            if not fiber.dead:
                _ = self.raise_(fiber, exception(message))

        timeout = Timeout(self._timers, self._timers.after(duration, expire))
        try:
            yield timeout
        finally:
            timeout.cancel()

    # Task management.

    def async_(
        self,
        body: TaskBody,
        *args: object,
        parent: Node | None = None,
        finished: Condition | None = None,
        transient: bool = False,
        annotation: str | None = None,
    ) -> Task:
        """Start ``body`` as a new task, by default a direct child of the scheduler.

        The task runs immediately until it first suspends.
        """

        if self._selector is None:
            raise SchedulerClosedError()

        task = Task(
            body,
            self if parent is None else parent,
            finished=finished,
            transient=transient,
            annotation=annotation,
        )
        task.run(*args)
        return task

    @override
    def stop(self, later: bool = False) -> bool | None:
        """Stop every child task, transient ones included."""

        if self._children is not None:
            for child in self._children:
                _ = child.stop(later)
        return None

    @override
    def terminate(self) -> bool:
        if self._children is not None:
            for child in self._children:
                _ = child.terminate()
        return not self.has_children

    def interrupt(self) -> None:
        """Ask :meth:`run` to return after the current iteration. Thread safe."""

        self._interrupted = True
        selector = self._selector
        if selector is not None:
            # Keeps a select that is about to start from blocking.
            selector.push(_NUDGE)
            _ = selector.wakeup()

    def run_once(self, timeout: float | None = None) -> bool:
        """Run one iteration of the loop.

        Returns ``False`` when no non-transient work remains.
        """

        selector = self.selector
        if getcurrent() is not selector.loop:
            msg = "Running scheduler on non-blocking fiber!"
            raise RuntimeError(msg)

        if self.finished:
            return False

        return self._run_once(timeout)

    def run(self, body: TaskBody | None = None, *args: object, **options: object) -> Task | None:
        """Run the loop until all non-transient work has finished.

        When ``body`` is given it is started as the initial task, which is
        returned.
        """

        if self._selector is None:
            raise SchedulerClosedError()

        initial_task = None
        if body is not None:
            initial_task = self.async_(body, *args, **options)  # type: ignore[arg-type]

        self._run_loop()
        return initial_task

    def close(self) -> None:
        """Terminate every task, then release the selector and worker pool.

        Raises:
            RuntimeError: If operations are still blocked once all tasks
                have been terminated.
        """

        if self._selector is None:
            return

        try:
            with _deferred_interrupts():
                while not self.terminate():
                    _ = self._run_once()

            if self._blocked > 0:
                msg = "Closing scheduler with blocked operations!"
                raise RuntimeError(msg)
        finally:
            selector = self._selector
            self._selector = None
            if selector is not None:
                selector.close()
            self._worker_pool.shutdown(wait=False)
            self.consume()
            logger.debug(
                "Scheduler closed.",
                event="scheduler.closed",
                context={"scheduler": repr(self)},
            )

    def _check_interrupted(self) -> bool:
        if self._interrupted:
            self._interrupted = False
            return True
        return False

    def _run_loop(self) -> None:
        try:
            while not self._check_interrupted():
                if not self.run_once():
                    break
        except KeyboardInterrupt:
            logger.debug(
                "Scheduler interrupted.",
                event="scheduler.interrupted",
                context={"hierarchy": self._hierarchy()},
            )
            with _deferred_interrupts():
                _ = self.stop()
            raise

    def _run_once(self, timeout: float | None = None) -> bool:
        selector = self.selector
        start = self._clock.monotonic()

        interval = self._timers.wait_interval()
        if interval is None:
            interval = timeout
        elif interval < 0:
            interval = 0
        elif timeout is not None and interval > timeout:
            interval = timeout

        try:
            _ = selector.select(interval)
        except InterruptedError:
            pass

        _ = self._timers.fire()

        idle = selector.idle_duration
        busy = (self._clock.monotonic() - start) - idle
        self._busy_time += max(busy, 0.0)
        self._idle_time += idle
        return True

    def _hierarchy(self) -> str:
        buffer = io.StringIO()
        self.print_hierarchy(buffer, backtrace=False)
        return buffer.getvalue()
