"""
A binary max-heap whose elements can be looked up by equality.

Best-first search needs to ask "is a node for this state already in the
open list?" and, if the new path is better, change that node's priority in
place. HashIndexedHeap keeps a dict from element to heap position next to the
heap array, so membership tests are O(1) and priority changes O(log n).

Elements must be hashable and must not change their hash while in the heap.
Ordering is by ``priority_of(element)`` (largest first); elements with equal
priority come out in insertion order.
"""

from typing import Any, Callable, Dict, Generic, List, Optional, Tuple, TypeVar

T = TypeVar("T")


class HashIndexedHeap(Generic[T]):
    """
    Args:
        priority_of: Function returning the priority of an element.
    """

    def __init__(self, priority_of: Callable[[T], float] = lambda e: e.priority):
        self.priority_of = priority_of
        self._heap: List[Tuple[T, int]] = []  # (element, insertion order)
        self._index: Dict[T, int] = {}
        self._counter = 0

    def __len__(self) -> int:
        return len(self._heap)

    def size(self) -> int:
        return len(self._heap)

    def __contains__(self, element: T) -> bool:
        return element in self._index

    def contains_instance(self, element: T) -> Optional[T]:
        """Return the stored element equal to ``element``, or None."""
        pos = self._index.get(element)
        if pos is None:
            return None
        return self._heap[pos][0]

    def peek(self) -> T:
        return self._heap[0][0]

    def insert(self, element: T) -> None:
        if element in self._index:
            raise ValueError(f"{element!r} is already in the heap")
        self._heap.append((element, self._counter))
        self._counter += 1
        pos = len(self._heap) - 1
        self._index[element] = pos
        self._sift_up(pos)

    def poll(self) -> T:
        """Remove and return the element with the largest priority."""
        if not self._heap:
            raise IndexError("poll from an empty heap")
        top = self._heap[0][0]
        last = self._heap.pop()
        del self._index[top]
        if self._heap:
            self._heap[0] = last
            self._index[last[0]] = 0
            self._sift_down(0)
        return top

    def replace(self, old: T, new: T) -> None:
        """
        Replace the stored element equal to ``old`` by ``new`` (which must be
        equal to it) and restore the heap order for new's priority.
        """
        pos = self._index[old]
        order = self._heap[pos][1]
        del self._index[old]
        self._heap[pos] = (new, order)
        self._index[new] = pos
        self.refresh_priority_at(pos)

    def refresh_priority(self, element: T) -> None:
        """Restore heap order after ``element``'s priority was changed in place."""
        self.refresh_priority_at(self._index[element])

    def refresh_priority_at(self, pos: int) -> None:
        pos = self._sift_up(pos)
        self._sift_down(pos)

    def _before(self, a: Tuple[T, int], b: Tuple[T, int]) -> bool:
        pa, pb = self.priority_of(a[0]), self.priority_of(b[0])
        if pa != pb:
            return pa > pb
        return a[1] < b[1]

    def _swap(self, i: int, j: int) -> None:
        heap = self._heap
        heap[i], heap[j] = heap[j], heap[i]
        self._index[heap[i][0]] = i
        self._index[heap[j][0]] = j

    def _sift_up(self, pos: int) -> int:
        while pos > 0:
            parent = (pos - 1) // 2
            if self._before(self._heap[pos], self._heap[parent]):
                self._swap(pos, parent)
                pos = parent
            else:
                break
        return pos

    def _sift_down(self, pos: int) -> int:
        n = len(self._heap)
        while True:
            left = 2 * pos + 1
            right = left + 1
            best = pos
            if left < n and self._before(self._heap[left], self._heap[best]):
                best = left
            if right < n and self._before(self._heap[right], self._heap[best]):
                best = right
            if best == pos:
                return pos
            self._swap(pos, best)
            pos = best
