"""Search tree nodes for best-first search."""

from typing import Any, List, Optional

from oomdp.hashing import HashableState


class PrioritizedSearchNode:
    """
    A node of a best-first search tree.

    Nodes are equal when their hashed states are equal, regardless of the path
    that generated them, so open and closed sets hold at most one node per state.

    Attributes:
        s: The hashed state of this node.
        generating_action: Action that led here from the parent (None at the root).
        back_pointer: Parent node (None at the root).
        priority: f-score of the node; larger is expanded first.
    """

    __slots__ = ("s", "generating_action", "back_pointer", "priority")

    def __init__(
        self,
        s: HashableState,
        priority: float,
        generating_action: Any = None,
        back_pointer: Optional["PrioritizedSearchNode"] = None,
    ):
        self.s = s
        self.priority = priority
        self.generating_action = generating_action
        self.back_pointer = back_pointer

    def __eq__(self, other) -> bool:
        return isinstance(other, PrioritizedSearchNode) and self.s == other.s

    def __hash__(self) -> int:
        return hash(self.s)

    def path(self) -> List["PrioritizedSearchNode"]:
        """Nodes from the root to this node."""
        nodes = []
        node = self
        while node is not None:
            nodes.append(node)
            node = node.back_pointer
        nodes.reverse()
        return nodes

    def __repr__(self) -> str:
        return f"PrioritizedSearchNode({self.s.s!r}, priority={self.priority:.4g})"
