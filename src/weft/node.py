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

"""Hierarchy of schedulable units.

Every task and the scheduler itself is a :class:`Node`. A node owns its
children, can be stopped as a subtree, and is collected out of the tree
once it and all of its non-transient descendants are finished.

Transient children do not keep their parent alive: when a parent finishes
while a transient child is still running, the child is handed up to the
grandparent instead of being stopped.
"""

from __future__ import annotations

import sys
from collections.abc import Iterator
from typing import TextIO, override

from ._list import IntrusiveList, ListNode

__all__ = ["Children", "Node"]


class Children(IntrusiveList["Node"]):
    """Child list that also counts how many of its members are transient."""

    def __init__(self) -> None:
        super().__init__()
        self._transient_count = 0

    @property
    def transient_count(self) -> int:
        return self._transient_count

    @property
    def transients(self) -> bool:
        """Whether any child is transient."""

        return self._transient_count > 0

    @property
    def finished(self) -> bool:
        """Whether every remaining child is transient."""

        return self.size == self._transient_count

    def adjust_transient_count(self, transient: bool) -> None:
        if transient:
            self._transient_count += 1
        else:
            self._transient_count -= 1

    @override
    def added(self, node: Node) -> Node:
        if node.transient:
            self._transient_count += 1
        return super().added(node)

    @override
    def removed(self, node: Node) -> Node:
        if node.transient:
            self._transient_count -= 1
        return super().removed(node)


class _AnnotationScope:
    """Restores a node's previous annotation when used as a context manager."""

    __slots__ = ("_node", "_previous")

    def __init__(self, node: Node, previous: str | None) -> None:
        self._node = node
        self._previous = previous

    def __enter__(self) -> Node:
        return self._node

    def __exit__(self, *exc_info: object) -> None:
        self._node._annotation = self._previous


class Node(ListNode):
    """A node in the task hierarchy."""

    def __init__(
        self,
        parent: Node | None = None,
        *,
        annotation: str | None = None,
        transient: bool = False,
    ) -> None:
        self._parent: Node | None = None
        self._children: Children | None = None
        self._annotation = annotation
        self._transient = transient

        if parent is not None:
            parent.add_child(self)

    @property
    def parent(self) -> Node | None:
        return self._parent

    @parent.setter
    def parent(self, parent: Node | None) -> None:
        if self._parent is parent:
            return
        if self._parent is not None:
            self._parent.remove_child(self)
        if parent is not None:
            parent.add_child(self)

    @property
    def children(self) -> Children | None:
        return self._children

    @property
    def has_children(self) -> bool:
        return self._children is not None and not self._children.empty

    @property
    def root(self) -> Node:
        node = self
        while node._parent is not None:
            node = node._parent
        return node

    @property
    def transient(self) -> bool:
        """Transient nodes do not keep their parent from finishing."""

        return self._transient

    @transient.setter
    def transient(self, transient: bool) -> None:
        if transient == self._transient:
            return
        self._transient = transient
        parent = self._parent
        if parent is not None and parent._children is not None:
            parent._children.adjust_transient_count(transient)

    @property
    def annotation(self) -> str | None:
        return self._annotation

    def annotate(self, annotation: str) -> _AnnotationScope:
        """Attach a human readable note to this node.

        The note persists unless the return value is used as a context
        manager, in which case the previous note is restored on exit::

            with task.annotate("fetching page"):
                ...
        """

        previous = self._annotation
        self._annotation = annotation
        return _AnnotationScope(self, previous)

    @property
    def description(self) -> str:
        description = f"{type(self).__name__}:0x{id(self):016x}"
        if self._annotation:
            description = f"{description} {self._annotation}"
        return description

    @override
    def __repr__(self) -> str:
        return f"<{self.description}>"

    def backtrace(self) -> list[str] | None:
        """Return the current stack of this node, if it has one."""

        return None

    def add_child(self, child: Node) -> Node:
        if self._children is None:
            self._children = Children()
        _ = self._children.append(child)
        child._parent = self
        return child

    def remove_child(self, child: Node) -> Node:
        if self._children is not None:
            _ = self._children.remove(child)
        child._parent = None
        return child

    @property
    def finished(self) -> bool:
        """Whether this node no longer needs to stay in the tree.

        A plain node is finished when all of its remaining children are
        transient.
        """

        return self._children is None or self._children.finished

    def consume(self) -> None:
        """Remove this node from its parent if it has finished.

        Unfinished (transient) children are re-parented onto this node's
        parent; finished children are simply dropped. Collection then
        continues upward.
        """

        parent = self._parent
        if parent is None or not self.finished:
            return

        _ = parent.remove_child(self)

        children = self._children
        if children is not None:
            while (child := children.shift()) is not None:
                if child.finished:
                    child._parent = None
                else:
                    _ = parent.add_child(child)
            self._children = None

        parent.consume()

    def traverse(self, level: int = 0) -> Iterator[tuple[Node, int]]:
        """Depth-first pre-order walk yielding ``(node, depth)`` pairs."""

        yield self, level
        if self._children is not None:
            for child in self._children:
                yield from child.traverse(level + 1)

    def stop(self, later: bool = False) -> bool | None:
        """Stop this node by stopping its non-transient children."""

        self.stop_children(later)
        return None

    def stop_children(self, later: bool = False) -> None:
        if self._children is None:
            return
        for child in self._children:
            if not child.transient:
                _ = child.stop(later)

    @property
    def stopped(self) -> bool:
        return not self.has_children

    def terminate(self) -> bool:
        """Stop this node and every descendant, including transient ones.

        Returns ``True`` once the node has no children left.
        """

        _ = self.stop(False)
        if self._children is not None:
            for child in self._children:
                _ = child.terminate()
        return not self.has_children

    def print_hierarchy(self, out: TextIO | None = None, *, backtrace: bool = True) -> None:
        """Write an indented dump of this subtree to ``out``."""

        out = sys.stdout if out is None else out
        for node, level in self.traverse():
            indent = "\t" * level
            print(f"{indent}{node!r}", file=out)
            if backtrace and (frames := node.backtrace()):
                for frame in frames:
                    for line in frame.rstrip().splitlines():
                        print(f"{indent}  {line}", file=out)
