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

"""Intrusive doubly-linked list.

Payload objects embed their own links by subclassing :class:`ListNode`, so
insertion and removal are O(1) without any wrapper allocation. A node
belongs to at most one list at a time.

Links are named by direction: ``head`` points at the previous element and
``tail`` at the next one. The list itself is the sentinel of the ring, so
its ``tail`` is the first element and its ``head`` the last.

Iteration tolerates arbitrary insertion and removal while it is suspended,
including removal of the element currently yielded. It does so by threading
a private cursor node through the ring; cursors are invisible to
:meth:`IntrusiveList.size`, :meth:`first`, :meth:`last` and :meth:`to_list`.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, cast, override

__all__ = ["IntrusiveList", "ListNode"]


class ListNode:
    """Base class for anything stored in an :class:`IntrusiveList`."""

    head: ListNode | None = None
    tail: ListNode | None = None
    owner: IntrusiveList[Any] | None = None

    @property
    def linked(self) -> bool:
        return self.head is not None


class IntrusiveList[T: ListNode](ListNode):
    """A circular doubly-linked list whose elements carry their own links."""

    def __init__(self) -> None:
        self.head = self
        self.tail = self
        self._size = 0

    @override
    def __repr__(self) -> str:
        return f"<{type(self).__name__} size={self._size}>"

    def __len__(self) -> int:
        return self._size

    @property
    def size(self) -> int:
        return self._size

    @property
    def empty(self) -> bool:
        return self._size == 0

    def added(self, node: T) -> T:
        """Hook invoked after ``node`` was linked into the list."""

        self._size += 1
        return node

    def removed(self, node: T) -> T:
        """Hook invoked after ``node`` was unlinked from the list."""

        self._size -= 1
        return node

    def append(self, node: T) -> T:
        """Add ``node`` to the end of the list."""

        if node.head is not None:
            msg = "Node is already in a list!"
            raise ValueError(msg)

        last = cast(ListNode, self.head)
        node.tail = self
        node.head = last
        last.tail = node
        self.head = node
        node.owner = self

        return self.added(node)

    def prepend(self, node: T) -> T:
        """Add ``node`` to the start of the list."""

        if node.head is not None:
            msg = "Node is already in a list!"
            raise ValueError(msg)

        first = cast(ListNode, self.tail)
        node.head = self
        node.tail = first
        first.head = node
        self.tail = node
        node.owner = self

        return self.added(node)

    @contextmanager
    def stack(self, node: T) -> Iterator[T]:
        """Keep ``node`` appended for the duration of the block.

        The node is unlinked on every exit path. If something else already
        removed it, exit is a no-op.
        """

        _ = self.append(node)
        try:
            yield node
        finally:
            if node.owner is self:
                _ = self._unlink(node)

    def remove(self, node: T) -> T:
        """Unlink ``node``, raising :class:`ValueError` unless it is in this list."""

        if node.owner is not self:
            msg = "Node is not in a list!" if node.owner is None else "Node is in another list!"
            raise ValueError(msg)
        return self._unlink(node)

    def remove_if_linked(self, node: T) -> T | None:
        """Unlink ``node`` if it is linked, otherwise do nothing.

        Raises:
            ValueError: If ``node`` is linked into a different list.
        """

        if node.owner is None:
            return None
        return self.remove(node)

    def shift(self) -> T | None:
        """Remove and return the first element, or ``None`` when empty."""

        node = self.first()
        if node is None:
            return None
        return self._unlink(node)

    def first(self) -> T | None:
        node = self.tail
        while node is not self:
            if not isinstance(node, _Cursor):
                return cast(T, node)
            node = cast(ListNode, node).tail
        return None

    def last(self) -> T | None:
        node = self.head
        while node is not self:
            if not isinstance(node, _Cursor):
                return cast(T, node)
            node = cast(ListNode, node).head
        return None

    def __iter__(self) -> Iterator[T]:
        if self._size == 0:
            return
        cursor = _Cursor(self)
        try:
            yield from cursor.each()
        finally:
            cursor.detach()

    def __contains__(self, node: object) -> bool:
        return any(item is node for item in self)

    def to_list(self) -> list[T]:
        items: list[T] = []
        node = self.tail
        while node is not self:
            if not isinstance(node, _Cursor):
                items.append(cast(T, node))
            node = cast(ListNode, node).tail
        return items

    def _unlink(self, node: T) -> T:
        previous = cast(ListNode, node.head)
        following = cast(ListNode, node.tail)
        previous.tail = following
        following.head = previous
        node.head = None
        node.tail = None
        node.owner = None
        return self.removed(node)


class _Cursor(ListNode):
    """Placeholder node marking an iteration position inside a list."""

    def __init__(self, owner: IntrusiveList[Any]) -> None:
        self._owner = owner
        first = cast(ListNode, owner.tail)
        self.head = owner
        self.tail = first
        first.head = self
        owner.tail = self

    def detach(self) -> None:
        if self.head is None:
            return
        previous = cast(ListNode, self.head)
        following = cast(ListNode, self.tail)
        previous.tail = following
        following.head = previous
        self.head = None
        self.tail = None

    def _advance(self) -> None:
        # Swap places with the following node.
        previous = cast(ListNode, self.head)
        following = cast(ListNode, self.tail)
        previous.tail = following
        following.head = previous

        after = cast(ListNode, following.tail)
        self.head = following
        self.tail = after
        following.tail = self
        after.head = self

    def _current(self) -> ListNode | None:
        while True:
            following = self.tail
            if following is self._owner:
                return None
            if isinstance(following, _Cursor):
                self._advance()
                continue
            return following

    def each(self) -> Iterator[Any]:
        while (current := self._current()) is not None:
            yield current
            # A removed node already advanced the cursor implicitly.
            if self.tail is current:
                self._advance()
