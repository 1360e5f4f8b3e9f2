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

"""Ready queue and I/O readiness multiplexing for the scheduler.

The selector owns the *event loop greenlet*: the greenlet that created it
and from which :meth:`SelectSelector.select` is driven. Tasks never switch
to each other directly for scheduling purposes. A task that suspends
switches back to the loop, and the loop resumes whatever is ready.

Ready entries implement the :class:`Ready` protocol. A task that resumes
another one first queues an :class:`OptionalResume` entry for itself, so it is
picked up again by the loop unless something else resumed it earlier.
"""

from __future__ import annotations

import selectors
import socket
import threading
from collections import deque
from dataclasses import dataclass
from typing import IO, Final, Protocol, override

from greenlet import getcurrent, greenlet

from .clock import SYSTEM_CLOCK, MonotonicClock

__all__ = [
    "READABLE",
    "WRITABLE",
    "OptionalResume",
    "Ready",
    "SelectSelector",
    "Selector",
]

READABLE: Final[int] = selectors.EVENT_READ
WRITABLE: Final[int] = selectors.EVENT_WRITE

type FileLike = int | IO[bytes] | IO[str] | socket.socket


class Ready(Protocol):
    """An entry in the ready queue."""

    @property
    def alive(self) -> bool: ...

    def transfer(self) -> object: ...


class Selector(Protocol):
    """What the scheduler needs from its selector."""

    @property
    def loop(self) -> greenlet: ...

    @property
    def idle_duration(self) -> float: ...

    def transfer(self) -> object: ...

    def resume(self, fiber: greenlet, *args: object) -> object: ...

    def yield_(self) -> None: ...

    def push(self, entry: Ready | greenlet) -> None: ...

    def raise_(self, fiber: greenlet, exception: BaseException) -> object: ...

    def ready(self) -> bool: ...

    def select(self, timeout: float | None) -> int: ...

    def wakeup(self) -> bool: ...

    def io_wait(self, fiber: greenlet, fileobj: FileLike, events: int) -> int | bool: ...

    def close(self) -> None: ...


class OptionalResume:
    """Ready entry for a greenlet that may be resumed through another path."""

    __slots__ = ("_fiber",)

    def __init__(self, fiber: greenlet) -> None:
        self._fiber: greenlet | None = fiber

    @property
    def alive(self) -> bool:
        fiber = self._fiber
        return fiber is not None and not fiber.dead

    def transfer(self) -> object:
        fiber = self._fiber
        if fiber is None:
            return None
        return fiber.switch(None)

    def nullify(self) -> None:
        self._fiber = None


class _Resume:
    """Ready entry that unconditionally resumes a greenlet."""

    __slots__ = ("_fiber",)

    def __init__(self, fiber: greenlet) -> None:
        self._fiber = fiber

    @property
    def alive(self) -> bool:
        return not self._fiber.dead

    def transfer(self) -> object:
        return self._fiber.switch(None)


@dataclass(slots=True, eq=False)
class _IoWaiter:
    fiber: greenlet
    events: int
    pending: bool = True


class SelectSelector:
    """Selector built on :mod:`selectors` with a socket pair for wakeups.

    Only :meth:`push` and :meth:`wakeup` may be called from other threads.
    """

    def __init__(
        self,
        loop: greenlet | None = None,
        *,
        clock: MonotonicClock = SYSTEM_CLOCK,
    ) -> None:
        self._loop = getcurrent() if loop is None else loop
        self._clock = clock
        self._ready: deque[Ready] = deque()
        self._selector = selectors.DefaultSelector()
        self._waiting: dict[int, list[_IoWaiter]] = {}
        self._idle_duration = 0.0
        self._blocked = False
        self._closed = False
        self._wakeup_lock = threading.Lock()

        self._wakeup_reader, self._wakeup_writer = socket.socketpair()
        self._wakeup_reader.setblocking(False)
        self._wakeup_writer.setblocking(False)
        self._selector.register(self._wakeup_reader, READABLE)

    @override
    def __repr__(self) -> str:
        return f"<{type(self).__name__} ready={len(self._ready)} waiting={len(self._waiting)}>"

    @property
    def loop(self) -> greenlet:
        return self._loop

    @property
    def idle_duration(self) -> float:
        """Time spent blocked in the most recent :meth:`select` call."""

        return self._idle_duration

    @property
    def closed(self) -> bool:
        return self._closed

    def transfer(self) -> object:
        """Suspend the current greenlet and return control to the loop."""

        if getcurrent() is self._loop:
            msg = "Cannot transfer from the event loop!"
            raise RuntimeError(msg)
        return self._loop.switch()

    def resume(self, fiber: greenlet, *args: object) -> object:
        """Switch to ``fiber``, queueing the caller to be resumed later."""

        optional = OptionalResume(getcurrent())
        self._ready.append(optional)
        try:
            return fiber.switch(*args)
        finally:
            optional.nullify()

    def yield_(self) -> None:
        """Let every other ready greenlet run before continuing."""

        fiber = getcurrent()
        if fiber is self._loop:
            msg = "Cannot yield from the event loop!"
            raise RuntimeError(msg)
        optional = OptionalResume(fiber)
        self._ready.append(optional)
        try:
            _ = self._loop.switch()
        finally:
            optional.nullify()

    def push(self, entry: Ready | greenlet) -> None:
        """Queue ``entry`` to be resumed on the next loop iteration."""

        if isinstance(entry, greenlet):
            entry = _Resume(entry)
        self._ready.append(entry)

    def raise_(self, fiber: greenlet, exception: BaseException) -> object:
        """Raise ``exception`` inside ``fiber``, queueing the caller to resume."""

        optional = OptionalResume(getcurrent())
        self._ready.append(optional)
        try:
            return fiber.throw(exception)
        finally:
            optional.nullify()

    def ready(self) -> bool:
        return bool(self._ready)

    def wakeup(self) -> bool:
        """Interrupt a blocking :meth:`select`. Safe to call from any thread."""

        if not self._blocked or self._closed:
            return False
        with self._wakeup_lock:
            try:
                self._wakeup_writer.send(b"\0")
            except OSError:
                # Buffer full or already closed: a wakeup is pending anyway.
                return False
        return True

    def io_wait(self, fiber: greenlet, fileobj: FileLike, events: int) -> int | bool:
        """Suspend ``fiber`` until ``fileobj`` is ready for ``events``.

        Returns the ready event mask, or whatever the greenlet was resumed
        with if something else resumed it first.
        """

        fd = fileobj if isinstance(fileobj, int) else fileobj.fileno()
        waiter = _IoWaiter(fiber, events)
        waiters = self._waiting.setdefault(fd, [])
        waiters.append(waiter)
        self._update_registration(fd)
        try:
            return self.transfer()  # type: ignore[return-value]
        finally:
            waiter.pending = False
            if waiter in waiters:
                waiters.remove(waiter)
            self._update_registration(fd)

    def select(self, timeout: float | None) -> int:
        """Run ready entries, then wait up to ``timeout`` for I/O readiness."""

        if self._pop_ready():
            timeout = 0

        self._blocked = True
        try:
            if self._ready:
                timeout = 0
            start = self._clock.monotonic()
            events = self._selector.select(timeout)
            self._idle_duration = self._clock.monotonic() - start
        finally:
            self._blocked = False

        count = 0
        for key, mask in events:
            if key.fileobj is self._wakeup_reader:
                self._drain_wakeups()
                continue
            count += 1
            for waiter in list(self._waiting.get(key.fd, ())):
                ready = waiter.events & mask
                if ready and waiter.pending and not waiter.fiber.dead:
                    waiter.pending = False
                    _ = waiter.fiber.switch(ready)
        return count

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._selector.close()
        self._wakeup_reader.close()
        self._wakeup_writer.close()

    def _pop_ready(self) -> bool:
        if not self._ready:
            return False
        # Entries pushed while draining run on the next iteration.
        for _ in range(len(self._ready)):
            entry = self._ready.popleft()
            if entry.alive:
                _ = entry.transfer()
        return True

    def _drain_wakeups(self) -> None:
        try:
            while self._wakeup_reader.recv(1024):
                pass
        except BlockingIOError:
            pass

    def _update_registration(self, fd: int) -> None:
        if self._closed:
            return
        waiters = self._waiting.get(fd)
        mask = 0
        for waiter in waiters or ():
            mask |= waiter.events
        registered = fd in self._selector.get_map()

        if mask == 0:
            _ = self._waiting.pop(fd, None)
            if registered:
                self._selector.unregister(fd)
        elif registered:
            self._selector.modify(fd, mask)
        else:
            self._selector.register(fd, mask)
