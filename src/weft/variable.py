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

"""Single-assignment value that tasks can wait on."""

from __future__ import annotations

from .condition import Condition

__all__ = ["Variable"]


class Variable:
    """A value that is resolved once; readers wait until it is."""

    def __init__(self, condition: Condition | None = None) -> None:
        self._condition: Condition | None = Condition() if condition is None else condition
        self._value: object = None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} resolved={self.resolved}>"

    @property
    def resolved(self) -> bool:
        return self._condition is None

    def resolve(self, value: object = True) -> object:
        """Set the value and wake every waiting task.

        Raises:
            RuntimeError: If the variable was already resolved.
        """

        condition = self._condition
        if condition is None:
            msg = "Variable already resolved!"
            raise RuntimeError(msg)

        self._value = value
        self._condition = None
        condition.signal(value)
        return value

    def wait(self) -> object:
        """Return the value, waiting for it to be resolved if necessary."""

        condition = self._condition
        if condition is not None:
            _ = condition.wait()
        return self._value

    @property
    def value(self) -> object:
        return self.wait()
