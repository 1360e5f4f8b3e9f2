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

"""Throttle task creation while the scheduler is busy."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ._context import current_context

if TYPE_CHECKING:
    from .node import Node
    from .task import Task, TaskBody

__all__ = ["Idler"]


@dataclass(slots=True)
class Idler:
    """Delays new work until :meth:`Scheduler.load` drops below ``maximum_load``.

    The first busy check yields to other tasks; further checks sleep with
    an exponentially growing backoff starting at ``backoff`` seconds.
    """

    maximum_load: float = 0.8
    backoff: float = 0.01
    parent: Node | None = field(default=None, repr=False)

    def async_(
        self,
        body: TaskBody,
        *args: object,
        parent: Node | None = None,
        **options: object,
    ) -> Task:
        from .task import Task

        self.wait()

        if parent is None:
            parent = self.parent if self.parent is not None else Task.current()
        return parent.async_(body, *args, **options)  # type: ignore[attr-defined]

    def wait(self) -> None:
        """Return once the scheduler's load is below ``maximum_load``."""

        _, scheduler = current_context()
        backoff: float | None = None

        while scheduler.load() >= self.maximum_load:
            if backoff is None:
                scheduler.yield_()
                backoff = self.backoff
            else:
                scheduler.kernel_sleep(backoff)
                backoff *= 2.0
