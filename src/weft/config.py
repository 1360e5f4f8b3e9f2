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

"""Scheduler configuration."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

__all__ = ["SchedulerConfig"]

_LOAD_WINDOW_ENV = "WEFT_LOAD_WINDOW"
_WORKER_POOL_SIZE_ENV = "WEFT_WORKER_POOL_SIZE"
_WARN_UNHANDLED_ENV = "WEFT_WARN_UNHANDLED"
_TRUTHY = frozenset({"1", "true", "yes", "on"})
_FALSY = frozenset({"0", "false", "no", "off"})


@dataclass(frozen=True, slots=True)
class SchedulerConfig:
    """Configuration for a :class:`~weft.scheduler.Scheduler`.

    Attributes:
        load_window: Width of the rolling window, in seconds, over which
            :meth:`Scheduler.load` reports the busy ratio. Once the busy and
            idle accumulators exceed this window they are rescaled to it.
        worker_pool_size: Number of threads used to offload blocking
            operations. ``None`` lets the thread pool pick its default.
        warn_unhandled_failures: Log a warning when a task fails and no one
            is waiting on it at the time it finishes.
    """

    load_window: float = 1.0
    worker_pool_size: int | None = None
    warn_unhandled_failures: bool = True

    def __post_init__(self) -> None:
        if self.load_window <= 0:
            msg = "load_window must be positive"
            raise ValueError(msg)
        if self.worker_pool_size is not None and self.worker_pool_size < 1:
            msg = "worker_pool_size must be at least 1"
            raise ValueError(msg)

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> SchedulerConfig:
        """Build a configuration from ``WEFT_*`` environment variables.

        Unset variables keep their defaults.
        """

        env = os.environ if env is None else env
        defaults = cls()

        load_window = defaults.load_window
        if (raw := env.get(_LOAD_WINDOW_ENV)) is not None:
            try:
                load_window = float(raw)
            except ValueError:
                msg = f"{_LOAD_WINDOW_ENV} must be a number, got {raw!r}"
                raise ValueError(msg) from None

        worker_pool_size = defaults.worker_pool_size
        if (raw := env.get(_WORKER_POOL_SIZE_ENV)) is not None:
            try:
                worker_pool_size = int(raw)
            except ValueError:
                msg = f"{_WORKER_POOL_SIZE_ENV} must be an integer, got {raw!r}"
                raise ValueError(msg) from None

        warn_unhandled = defaults.warn_unhandled_failures
        if (raw := env.get(_WARN_UNHANDLED_ENV)) is not None:
            value = raw.strip().lower()
            if value in _TRUTHY:
                warn_unhandled = True
            elif value in _FALSY:
                warn_unhandled = False
            else:
                msg = f"{_WARN_UNHANDLED_ENV} must be a boolean, got {raw!r}"
                raise ValueError(msg)

        return cls(
            load_window=load_window,
            worker_pool_size=worker_pool_size,
            warn_unhandled_failures=warn_unhandled,
        )
