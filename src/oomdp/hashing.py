"""
State hashing.

Every value table, Q table, open/closed set and policy table in oomdp is keyed
by HashableState. A HashableState wraps a state together with a canonical key
computed once by a HashableStateFactory; hash and equality are defined on that
key, so two distinct state objects with the same variable bindings collapse to
the same table entry.

Factories:
    SimpleHashableStateFactory:   semantic hashing over variable bindings. For
        OO states it can be identifier independent (object names and object
        order are ignored, only the multiset of objects per class matters).
    IdentityHashableStateFactory: hashing by object identity.

Non-State values are accepted if they are themselves hashable (for example
the tuple states produced by gymnasium-style world models); they are used as
their own key.

Example:
    >>> factory = SimpleHashableStateFactory()
    >>> a = factory.hash_state(DictState(x=1, y=2))
    >>> b = factory.hash_state(DictState(y=2, x=1))
    >>> a == b
    True
"""

from abc import ABC, abstractmethod
from typing import Any, Hashable, Iterable, Optional, Tuple

import numpy as np

from oomdp.errors import InvalidStateKind
from oomdp.state import OOState, State, StateSchema


class HashableState:
    """
    A state paired with a precomputed hash key.

    Instances are created on demand for lookups and never modified. Equality
    compares canonical keys only, never the wrapped state objects.

    Attributes:
        s: The wrapped state.
        key: The canonical key the factory computed for s.
    """

    __slots__ = ("s", "key", "_hash")

    def __init__(self, s: Any, key: Hashable):
        self.s = s
        self.key = key
        self._hash = hash(key)

    def __hash__(self) -> int:
        return self._hash

    def __eq__(self, other) -> bool:
        if self is other:
            return True
        if not isinstance(other, HashableState):
            return False
        return self._hash == other._hash and self.key == other.key

    def __ne__(self, other) -> bool:
        return not self.__eq__(other)

    def __repr__(self) -> str:
        return f"HashableState({self.s!r})"


class HashableStateFactory(ABC):
    """Turns states into HashableState instances."""

    @abstractmethod
    def hash_state(self, s: Any) -> HashableState:
        """
        Wrap s in a HashableState.

        Raises:
            InvalidStateKind: If s cannot be hashed by this scheme.
        """

    def __call__(self, s: Any) -> HashableState:
        return self.hash_state(s)


def _freeze(value: Any) -> Hashable:
    """Convert common unhashable containers into hashable equivalents."""
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, np.ndarray):
        return ("ndarray", value.shape, tuple(value.ravel().tolist()))
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(v) for v in value)
    if isinstance(value, (set, frozenset)):
        return frozenset(_freeze(v) for v in value)
    if isinstance(value, dict):
        return tuple(sorted(((_freeze(k), _freeze(v)) for k, v in value.items()), key=_order_key))
    return value


def _order_key(value: Any) -> Tuple:
    """
    Sort key that agrees with equality of frozen values.

    Equal values always get equal keys (1 and 1.0 and True sort together),
    so the canonical order of objects does not depend on how a value is typed.
    """
    if isinstance(value, (int, float)):
        return (0, value)
    if isinstance(value, str):
        return (1, value)
    if isinstance(value, tuple):
        return (2, tuple(_order_key(v) for v in value))
    if isinstance(value, frozenset):
        return (3, tuple(sorted(_order_key(v) for v in value)))
    if value is None:
        return (4,)
    return (5, repr(value))


def _sorted_items(items: Iterable[Tuple[Any, Any]]) -> Tuple[Tuple[Any, Any], ...]:
    return tuple(sorted(items, key=lambda kv: _order_key(kv[0])))


class SimpleHashableStateFactory(HashableStateFactory):
    """
    Semantic hashing over a state's variable bindings.

    Args:
        identifier_independent: For OOState inputs, ignore object names, so
            that two states whose objects differ only by name (or order) are
            equal. If False, objects are matched by name.
        schema: Optional fixed set of variable keys. When given, a state must
            have exactly these keys (for flat states); any other key, or a
            missing one, raises InvalidStateKind.
    """

    def __init__(self, identifier_independent: bool = True, schema: Optional[StateSchema] = None):
        self.identifier_independent = identifier_independent
        self.schema = schema

    def hash_state(self, s: Any) -> HashableState:
        if isinstance(s, HashableState):
            return s
        return HashableState(s, self.compute_key(s))

    def compute_key(self, s: Any) -> Hashable:
        if isinstance(s, OOState):
            return self._oo_key(s)
        if isinstance(s, State):
            return self._flat_key(s)
        try:
            hash(s)
        except TypeError:
            raise InvalidStateKind(
                f"Cannot hash state of type {type(s).__name__}: it is neither a State nor hashable"
            ) from None
        return ("raw", s)

    def _flat_key(self, s: State) -> Hashable:
        keys = s.variable_keys()
        if self.schema is not None:
            for k in keys:
                self.schema.check(k)
            if len(set(keys)) != len(self.schema):
                missing = [k for k in self.schema.keys if k not in set(keys)]
                raise InvalidStateKind(f"State is missing variables {missing}", missing[0])
        return (type(s).__name__, _sorted_items((k, _freeze(s.get(k))) for k in keys))

    def _object_key(self, ob) -> Hashable:
        return _sorted_items((k, _freeze(ob.get(k))) for k in ob.variable_keys())

    def _oo_key(self, s: OOState) -> Hashable:
        if self.identifier_independent:
            per_class = []
            for class_name, obs in s.objects_by_class().items():
                object_keys = sorted((self._object_key(ob) for ob in obs), key=_order_key)
                per_class.append((class_name, tuple(object_keys)))
            return ("oo", tuple(sorted(per_class, key=lambda c: c[0])))
        named = sorted(
            ((ob.name, ob.class_name, self._object_key(ob)) for ob in s.objects()),
            key=lambda t: t[0],
        )
        return ("oo-named", tuple(named))


class IdentityHashableStateFactory(HashableStateFactory):
    """Hashes states by object identity: only the very same object is equal."""

    def hash_state(self, s: Any) -> HashableState:
        if isinstance(s, HashableState):
            return s
        return HashableState(s, ("id", id(s)))
