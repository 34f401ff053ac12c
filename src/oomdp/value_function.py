"""
Value functions and the tabular value store.

ValueTable is the mapping from HashableState to a value estimate used by all
tabular planners and learners. Entries are created lazily: reading an unseen
state fills it with the value of an initializer function and stores it.
Entries are only ever removed by clear().
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional, Union

from oomdp.hashing import HashableState, HashableStateFactory


class ValueFunction(ABC):
    """Anything that can report the value of a state."""

    @abstractmethod
    def value(self, s: Any) -> float:
        ...

    def __call__(self, s: Any) -> float:
        return self.value(s)


class ConstantValueFunction(ValueFunction):
    """Returns the same value for every state."""

    def __init__(self, value: float = 0.0):
        self.constant = float(value)

    def value(self, s: Any) -> float:
        return self.constant


ValueInitializer = Union[ValueFunction, Callable[[Any], float]]


def as_value_initializer(v_init: Optional[Union[ValueInitializer, float]]) -> ValueInitializer:
    """Accept a ValueFunction, a callable or a number and return a callable."""
    if v_init is None:
        return ConstantValueFunction(0.0)
    if isinstance(v_init, (int, float)):
        return ConstantValueFunction(float(v_init))
    return v_init


class ValueTable:
    """
    Lazily initialized mapping from hashed states to values.

    Args:
        hashing_factory: Used to hash raw states passed to ``value``/``set``.
        initializer: Value of a state on its first read.
    """

    def __init__(self, hashing_factory: HashableStateFactory, initializer: Optional[ValueInitializer] = None):
        self.hashing_factory = hashing_factory
        self.initializer = as_value_initializer(initializer)
        self._values: Dict[HashableState, float] = {}

    def _hash(self, s: Any) -> HashableState:
        return s if isinstance(s, HashableState) else self.hashing_factory.hash_state(s)

    def value(self, s: Any) -> float:
        """Value of s, creating the entry from the initializer if needed."""
        sh = self._hash(s)
        v = self._values.get(sh)
        if v is None:
            v = float(self.initializer(sh.s))
            self._values[sh] = v
        return v

    def peek(self, s: Any) -> float:
        """Value of s; the initializer value for unstored states, which stay unstored."""
        sh = self._hash(s)
        v = self._values.get(sh)
        return float(self.initializer(sh.s)) if v is None else v

    def get(self, s: Any, default: Optional[float] = None) -> Optional[float]:
        """Value of s without creating an entry."""
        return self._values.get(self._hash(s), default)

    def set(self, s: Any, v: float) -> None:
        self._values[self._hash(s)] = float(v)

    def initialize(self, s: Any) -> float:
        """Store (or overwrite) s with its initializer value."""
        sh = self._hash(s)
        v = float(self.initializer(sh.s))
        self._values[sh] = v
        return v

    def __contains__(self, s: Any) -> bool:
        return self._hash(s) in self._values

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[HashableState]:
        return iter(self._values)

    def states(self) -> List[HashableState]:
        """Snapshot of the stored keys (safe to iterate while values change)."""
        return list(self._values.keys())

    def items(self):
        return self._values.items()

    def clear(self) -> None:
        self._values.clear()


@dataclass
class QValue:
    """The value of taking action ``a`` in state ``s``."""
    s: Any
    a: Any
    q: float


class QProvider(ValueFunction):
    """A value function that can also report action values."""

    @abstractmethod
    def q_values(self, s: Any) -> List[QValue]:
        ...

    @abstractmethod
    def q_value(self, s: Any, a: Any) -> float:
        ...

    def value(self, s: Any) -> float:
        return max_q(self, s)


def max_q(q_provider: QProvider, s: Any) -> float:
    """Largest Q-value in s, or 0 if no action is applicable."""
    qs = q_provider.q_values(s)
    if not qs:
        return 0.0
    return max(q.q for q in qs)
