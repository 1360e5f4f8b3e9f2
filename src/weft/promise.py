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

"""Thread-safe, single-assignment result container."""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from enum import StrEnum

from ._interlock import Interlock
from .errors import PromiseCancel, PromiseCancelled

__all__ = ["Promise", "PromiseState"]


class PromiseState(StrEnum):
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class Promise:
    """A value that is resolved exactly once, from any task or thread.

    The first of :meth:`resolve`, :meth:`reject` or :meth:`cancel` wins;
    later calls are ignored. Waiters may be tasks or plain threads::

        promise = Promise()

        def worker(task):
            promise.fulfill(compute)

        result = promise.wait()
    """

    def __init__(self) -> None:
        self._state: PromiseState | None = None
        self._value: object = None
        self._waiting = 0
        self._mutex = threading.Lock()
        self._condition = Interlock(self._mutex)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} state={self._state}>"

    @property
    def state(self) -> PromiseState | None:
        return self._state

    @property
    def resolved(self) -> bool:
        return self._state is not None

    @property
    def completed(self) -> bool:
        return self._state is PromiseState.COMPLETED

    @property
    def failed(self) -> bool:
        return self._state is PromiseState.FAILED

    @property
    def cancelled(self) -> bool:
        return self._state is PromiseState.CANCELLED

    @property
    def waiting(self) -> bool:
        """Whether anyone is currently blocked in :meth:`wait`."""

        return self._waiting > 0

    @property
    def value(self) -> object:
        """The resolved value or exception, or ``None`` if unresolved."""

        return self._value if self._state is not None else None

    def wait(self) -> object:
        """Wait for resolution and return the value.

        Raises:
            PromiseCancelled: If the promise was cancelled.
            BaseException: The exception the promise was rejected with.
        """

        with self._mutex:
            self._waiting += 1
            try:
                while self._state is None:
                    _ = self._condition.wait()
            finally:
                self._waiting -= 1

            state, value = self._state, self._value

        if state is PromiseState.COMPLETED:
            return value
        if state is PromiseState.CANCELLED:
            raise PromiseCancelled()
        raise value  # type: ignore[misc]

    def resolve(self, value: object) -> object:
        """Complete the promise with ``value`` unless already resolved."""

        self._settle(PromiseState.COMPLETED, value)
        return value

    def reject(self, exception: BaseException) -> None:
        """Fail the promise with ``exception`` unless already resolved."""

        self._settle(PromiseState.FAILED, exception)

    def cancel(self, exception: BaseException | None = None) -> None:
        """Cancel the promise unless already resolved."""

        self._settle(PromiseState.CANCELLED, exception)

    def fulfill[T](self, fn: Callable[..., T], *args: object) -> T | None:
        """Resolve the promise with the outcome of ``fn(*args)``.

        A :class:`PromiseCancel` raised by ``fn`` cancels the promise and
        ordinary exceptions reject it; both are absorbed. Other
        :class:`BaseException` subclasses reject the promise and propagate.
        If ``fn`` resolves nothing, the promise completes with ``None``.

        Raises:
            RuntimeError: If the promise is already resolved.
        """

        if self.resolved:
            msg = "Promise already resolved!"
            raise RuntimeError(msg)

        try:
            result = fn(*args)
            _ = self.resolve(result)
            return result
        except PromiseCancel as cancel:
            self.cancel(cancel)
        except Exception as error:
            self.reject(error)
        except BaseException as error:
            self.reject(error)
            raise
        finally:
            if not self.resolved:
                _ = self.resolve(None)
        return None

    @contextmanager
    def fulfilling(self) -> Iterator[Promise]:
        """Block form of :meth:`fulfill`.

        The body may resolve the promise itself; otherwise it completes
        with ``None`` when the block exits::

            with promise.fulfilling():
                promise.resolve(compute())
        """

        if self.resolved:
            msg = "Promise already resolved!"
            raise RuntimeError(msg)

        try:
            yield self
        except PromiseCancel as cancel:
            self.cancel(cancel)
        except Exception as error:
            self.reject(error)
        except BaseException as error:
            self.reject(error)
            raise
        finally:
            if not self.resolved:
                _ = self.resolve(None)

    @staticmethod
    def fulfill_optional[T](promise: Promise | None, fn: Callable[[], T]) -> T | None:
        """Fulfill ``promise`` with ``fn`` if given, otherwise just call ``fn``."""

        if promise is None:
            return fn()
        return promise.fulfill(fn)

    def _settle(self, state: PromiseState, value: object) -> None:
        with self._mutex:
            if self._state is not None:
                return
            self._value = value
            self._state = state
            self._condition.notify_all()
