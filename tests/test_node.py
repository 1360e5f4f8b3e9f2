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

"""Tests for :mod:`weft.node`."""

from __future__ import annotations

import io
import re

from hypothesis import given, strategies as st

from weft.node import Node


class Leaf(Node):
    """A node that stays unfinished until told otherwise."""

    def __init__(self, parent: Node | None = None, *, transient: bool = False) -> None:
        super().__init__(parent, transient=transient)
        self.done = False
        self.stops: list[bool] = []

    @property
    def finished(self) -> bool:
        return self.done and super().finished

    def stop(self, later: bool = False) -> bool | None:
        self.stops.append(later)
        return super().stop(later)


def _reachable(root: Node) -> set[int]:
    return {id(node) for node, _ in root.traverse()}


class TestTreeStructure:
    """Parent pointers, children and re-parenting."""

    def test_add_child_sets_parent(self) -> None:
        root = Node()
        child = Node(root)

        assert child.parent is root
        assert root.children is not None
        assert root.children.to_list() == [child]
        assert child.root is root

    def test_parent_setter_reparents(self) -> None:
        first = Node()
        second = Node()
        child = Node(first)

        child.parent = second

        assert child.parent is second
        assert not first.has_children
        assert second.children is not None
        assert child in second.children

    def test_transient_setter_updates_parent_count(self) -> None:
        root = Node()
        child = Leaf(root)
        assert root.children is not None
        assert not root.children.transients

        child.transient = True

        assert root.children.transients
        assert root.finished

    def test_traverse_is_depth_first(self) -> None:
        root = Node()
        a = Node(root)
        a1 = Node(a)
        b = Node(root)

        assert [(node, level) for node, level in root.traverse()] == [
            (root, 0),
            (a, 1),
            (a1, 2),
            (b, 1),
        ]


class TestFinishedAndConsume:
    """Collection of finished nodes."""

    def test_transient_children_do_not_block_finishing(self) -> None:
        root = Node()
        parent = Node(root)
        _ = Leaf(parent, transient=True)

        assert parent.finished

    def test_consume_moves_unfinished_children_to_grandparent(self) -> None:
        root = Node()
        parent = Node(root)
        busy = Leaf(parent, transient=True)
        idle = Leaf(parent)
        idle.done = True

        # The last non-transient child finishing collects the parent too.
        idle.consume()

        assert parent.parent is None
        assert busy.parent is root
        assert idle.parent is None
        assert root.children is not None
        assert root.children.to_list() == [busy]

    def test_consume_does_nothing_while_unfinished(self) -> None:
        root = Node()
        parent = Node(root)
        _ = Leaf(parent)

        parent.consume()

        assert parent.parent is root

    def test_consume_propagates_upwards(self) -> None:
        root = Node()
        middle = Leaf(root)
        inner = Node(middle)
        middle.done = True

        inner.consume()

        assert inner.parent is None
        assert middle.parent is None
        assert not root.has_children


@given(st.lists(st.tuples(st.integers(min_value=0, max_value=20), st.booleans()), max_size=25))
def test_consume_preserves_reachability_of_live_nodes(
    shape: list[tuple[int, bool]],
) -> None:
    root = Node()
    nodes: list[Leaf] = []
    for parent_index, transient in shape:
        parent: Node = nodes[parent_index % len(nodes)] if nodes else root
        nodes.append(Leaf(parent, transient=transient))

    # Finish every non-transient node; transient leaves keep running.
    live = [node for node in nodes if node.transient]
    for node in nodes:
        if not node.transient:
            node.done = True

    for node in reversed(nodes):
        node.consume()

    reachable = _reachable(root)
    for node in live:
        assert id(node) in reachable


class TestStopAndTerminate:
    """Cancellation fan-out."""

    def test_stop_skips_transient_children(self) -> None:
        root = Node()
        durable = Leaf(root)
        transient = Leaf(root, transient=True)

        _ = root.stop()

        assert durable.stops == [False]
        assert transient.stops == []

    def test_stop_later_is_forwarded(self) -> None:
        root = Node()
        child = Leaf(root)

        _ = root.stop(later=True)

        assert child.stops == [True]

    def test_terminate_reaches_transient_children(self) -> None:
        root = Node()
        transient = Leaf(root, transient=True)

        assert not root.terminate()
        assert transient.stops == [False]

    def test_terminate_without_children(self) -> None:
        assert Node().terminate()


class TestDescription:
    """Annotations and hierarchy printing."""

    def test_repr_includes_address_and_annotation(self) -> None:
        node = Node(annotation="fetching")

        assert re.fullmatch(r"<Node:0x[0-9a-f]{16} fetching>", repr(node))

    def test_annotate_context_restores_previous(self) -> None:
        node = Node(annotation="outer")

        with node.annotate("inner") as annotated:
            assert annotated is node
            assert node.annotation == "inner"

        assert node.annotation == "outer"

    def test_annotate_without_context_persists(self) -> None:
        node = Node()
        _ = node.annotate("sticky")

        assert node.annotation == "sticky"

    def test_print_hierarchy_indents_children(self) -> None:
        root = Node(annotation="root")
        _ = Node(root, annotation="child")
        out = io.StringIO()

        root.print_hierarchy(out)

        lines = out.getvalue().splitlines()
        assert len(lines) == 2
        assert lines[0].startswith("<Node:")
        assert lines[1].startswith("\t<Node:")
        assert lines[1].endswith("child>")
