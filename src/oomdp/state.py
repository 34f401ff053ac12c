"""
State representations.

A state is an opaque container of named variables. The engines never look
inside a state themselves; they hand it to a hashing scheme (see
oomdp.hashing), to a model, or to a feature extractor, and those collaborators
use the small interface defined here:

    state.variable_keys()  -> list of variable keys
    state.get(key)         -> value bound to key
    state.copy()           -> independent copy

Concrete states:
    DictState:      flat mapping of variable names to hashable values.
    NodeState:      a single graph node id (the state of graph-defined domains).
    ObjectInstance: one named, typed object with its own variables.
    OOState:        a state decomposed into object instances (OO-MDP state).

States are treated as immutable by every planner and learner. Models that
need to produce a successor state do so by copying and then setting values on
the copy (``with_values`` / ``with_object``), never by mutating the state they
were given.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from oomdp.errors import InvalidStateKind


class State(ABC):
    """Abstract base class of all states."""

    @abstractmethod
    def variable_keys(self) -> List[Any]:
        """Return the keys of all variables of this state."""

    @abstractmethod
    def get(self, variable_key: Any) -> Any:
        """
        Return the value of a variable.

        Raises:
            InvalidStateKind: If the state has no variable with this key.
        """

    @abstractmethod
    def copy(self) -> "State":
        """Return an independent copy of this state."""


class StateSchema:
    """
    Fixed, ordered set of variable keys shared by all states of one type.

    A schema is built once when the state type is defined and is never
    modified afterwards, so it can be shared by every instance.
    """

    __slots__ = ("_keys", "_key_set")

    def __init__(self, keys: Iterable[Any]):
        self._keys: Tuple[Any, ...] = tuple(keys)
        self._key_set = frozenset(self._keys)

    @property
    def keys(self) -> Tuple[Any, ...]:
        return self._keys

    def __contains__(self, key: Any) -> bool:
        return key in self._key_set

    def __len__(self) -> int:
        return len(self._keys)

    def check(self, key: Any) -> None:
        if key not in self._key_set:
            raise InvalidStateKind(
                f"Unknown variable key {key!r}; expected one of {list(self._keys)}", key
            )

    def __repr__(self) -> str:
        return f"StateSchema({list(self._keys)})"


class DictState(State):
    """
    A flat state storing variables in a dict.

    Values should be hashable (ints, strings, tuples, ...) so that the state can
    be hashed by SimpleHashableStateFactory.
    """

    __slots__ = ("_values",)

    def __init__(self, values: Optional[Mapping[Any, Any]] = None, **kwargs):
        self._values: Dict[Any, Any] = dict(values or {})
        self._values.update(kwargs)

    def variable_keys(self) -> List[Any]:
        return list(self._values.keys())

    def get(self, variable_key: Any) -> Any:
        try:
            return self._values[variable_key]
        except KeyError:
            raise InvalidStateKind(f"DictState has no variable {variable_key!r}", variable_key) from None

    def copy(self) -> "DictState":
        return DictState(self._values)

    def with_values(self, **updates) -> "DictState":
        """Return a copy with some variables replaced."""
        values = dict(self._values)
        values.update(updates)
        return DictState(values)

    def __getitem__(self, key: Any) -> Any:
        return self.get(key)

    def __repr__(self) -> str:
        inner = ", ".join(f"{k}={v!r}" for k, v in self._values.items())
        return f"DictState({inner})"


# Variable key of the single variable of a graph node state
NODE_VAR = "node"
NODE_SCHEMA = StateSchema([NODE_VAR])


class NodeState(State):
    """State of a graph-defined domain: just the id of the current node."""

    __slots__ = ("id",)

    schema = NODE_SCHEMA

    def __init__(self, node_id: int = 0):
        self.id = int(node_id)

    def variable_keys(self) -> List[Any]:
        return list(self.schema.keys)

    def get(self, variable_key: Any) -> Any:
        self.schema.check(variable_key)
        return self.id

    def copy(self) -> "NodeState":
        return NodeState(self.id)

    def with_value(self, value: Any) -> "NodeState":
        """
        Return a new NodeState with the given node id.

        Accepts ints and strings holding an int.

        Raises:
            ValueError: If the value cannot be interpreted as a node id.
        """
        if isinstance(value, bool):
            raise ValueError(f"Cannot set a node id to a bool ({value!r})")
        if isinstance(value, (int, float)):
            return NodeState(int(value))
        if isinstance(value, str):
            try:
                return NodeState(int(value))
            except ValueError:
                raise ValueError(f"Could not parse {value!r} into a node id") from None
        raise ValueError(f"Cannot set a node id to a value of type {type(value).__name__}")

    def __repr__(self) -> str:
        return f"NodeState({self.id})"


class ObjectInstance(State):
    """
    A named object of a given class with its own variables.

    Attributes:
        name: Object identifier, unique within an OOState.
        class_name: Name of the object class.
    """

    __slots__ = ("name", "class_name", "_values")

    def __init__(self, class_name: str, name: str, values: Optional[Mapping[Any, Any]] = None):
        self.class_name = class_name
        self.name = name
        self._values: Dict[Any, Any] = dict(values or {})

    def variable_keys(self) -> List[Any]:
        return list(self._values.keys())

    def get(self, variable_key: Any) -> Any:
        try:
            return self._values[variable_key]
        except KeyError:
            raise InvalidStateKind(
                f"Object {self.name!r} of class {self.class_name!r} has no variable {variable_key!r}",
                variable_key,
            ) from None

    def copy(self) -> "ObjectInstance":
        return ObjectInstance(self.class_name, self.name, self._values)

    def copy_with_name(self, name: str) -> "ObjectInstance":
        return ObjectInstance(self.class_name, name, self._values)

    def with_values(self, **updates) -> "ObjectInstance":
        values = dict(self._values)
        values.update(updates)
        return ObjectInstance(self.class_name, self.name, values)

    def value_tuple(self) -> Tuple[Any, ...]:
        """Values ordered by sorted variable key (used for canonical hashing)."""
        return tuple(self._values[k] for k in sorted(self._values, key=repr))

    def __repr__(self) -> str:
        inner = ", ".join(f"{k}={v!r}" for k, v in self._values.items())
        return f"{self.name} ({self.class_name}): {{{inner}}}"


def _split_oo_key(variable_key: Any) -> Tuple[str, Any]:
    """
    Parse an OO variable key.

    Keys are either (object_name, variable) tuples or "object_name:variable"
    strings.
    """
    if isinstance(variable_key, tuple) and len(variable_key) == 2:
        return variable_key[0], variable_key[1]
    if isinstance(variable_key, str) and ":" in variable_key:
        ob_name, var = variable_key.split(":", 1)
        return ob_name, var
    raise InvalidStateKind(
        f"An OOState variable key must be an (object, variable) tuple or an "
        f"'object:variable' string, got {variable_key!r}",
        variable_key,
    )


class OOState(State):
    """
    A state decomposed into object instances.

    Objects keep their insertion order, but neither their order nor (for
    identifier independent hashing) their names are semantically relevant.
    """

    __slots__ = ("_objects", "_by_name")

    def __init__(self, objects: Sequence[ObjectInstance] = ()):
        self._objects: List[ObjectInstance] = list(objects)
        self._by_name: Dict[str, ObjectInstance] = {}
        for ob in self._objects:
            if ob.name in self._by_name:
                raise ValueError(f"Duplicate object name {ob.name!r} in OOState")
            self._by_name[ob.name] = ob

    def objects(self) -> List[ObjectInstance]:
        return list(self._objects)

    def num_objects(self) -> int:
        return len(self._objects)

    def object(self, name: str) -> ObjectInstance:
        try:
            return self._by_name[name]
        except KeyError:
            raise InvalidStateKind(f"OOState has no object named {name!r}", name) from None

    def objects_of_class(self, class_name: str) -> List[ObjectInstance]:
        return [ob for ob in self._objects if ob.class_name == class_name]

    def objects_by_class(self) -> Dict[str, List[ObjectInstance]]:
        res: Dict[str, List[ObjectInstance]] = {}
        for ob in self._objects:
            res.setdefault(ob.class_name, []).append(ob)
        return res

    def variable_keys(self) -> List[Any]:
        return [(ob.name, key) for ob in self._objects for key in ob.variable_keys()]

    def get(self, variable_key: Any) -> Any:
        ob_name, var = _split_oo_key(variable_key)
        return self.object(ob_name).get(var)

    def copy(self) -> "OOState":
        return OOState([ob.copy() for ob in self._objects])

    def with_object(self, ob: ObjectInstance) -> "OOState":
        """Return a copy where the object with ob's name is replaced (or added)."""
        replaced = False
        objects = []
        for existing in self._objects:
            if existing.name == ob.name:
                objects.append(ob)
                replaced = True
            else:
                objects.append(existing)
        if not replaced:
            objects.append(ob)
        return OOState(objects)

    def without_object(self, name: str) -> "OOState":
        self.object(name)
        return OOState([ob for ob in self._objects if ob.name != name])

    def __repr__(self) -> str:
        return "{\n" + "\n".join(repr(ob) for ob in self._objects) + "\n}"
