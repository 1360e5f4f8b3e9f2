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

"""Thread pool for offloading blocking calls out of the event loop."""

from __future__ import annotations

from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from greenlet import getcurrent

if TYPE_CHECKING:
    from .scheduler import Scheduler

__all__ = ["WorkerPool"]


@dataclass
class WorkerPool:
    """Runs blocking work on threads while the calling task is suspended.

    The pool is created lazily on first use. The calling task blocks on the
    scheduler until the work completes, so other tasks keep running.
    """

    max_workers: int | None = None
    thread_name_prefix: str = "weft-worker"
    _executor: ThreadPoolExecutor | None = field(default=None, repr=False)

    def _ensure_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.max_workers,
                thread_name_prefix=self.thread_name_prefix,
            )
        return self._executor

    def call[T](self, scheduler: Scheduler, work: Callable[[], T]) -> T:
        """Run ``work`` on a worker thread and return its result.

        If the calling task is stopped while waiting, work that has not
        started yet is cancelled.
        """

        future: Future[T] = self._ensure_executor().submit(work)
        fiber = getcurrent()
        future.add_done_callback(lambda _: scheduler.unblock(future, fiber))

        try:
            while not future.done():
                _ = scheduler.block(future, None)
        finally:
            _ = future.cancel()

        return future.result()

    def shutdown(self, *, wait: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait, cancel_futures=True)
            self._executor = None
