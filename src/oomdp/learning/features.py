"""
Dense feature maps and the linear Q-function approximator used by LSPI.

State features are any callable ``s -> np.ndarray``. DenseStateActionFeatures
lifts them to state-action features by placing phi(s) into the block of the
action and zeros everywhere else:

    phi(s, a_j) = [0, ..., 0, phi(s), 0, ..., 0]     (block j of num_actions)
"""

from typing import Any, Callable, Dict, Optional, Sequence

import numpy as np

from oomdp.errors import ConfigurationError, InvalidStateKind
from oomdp.state import State

DenseStateFeatures = Callable[[Any], np.ndarray]


class VariableStateFeatures:
    """
    Reads the listed variables of a State into a float vector.

    Raises:
        InvalidStateKind: If the state lacks one of the variables.
    """

    def __init__(self, variable_keys: Sequence[Any]):
        self.variable_keys = list(variable_keys)

    def __call__(self, s: State) -> np.ndarray:
        values = []
        for key in self.variable_keys:
            try:
                values.append(float(s.get(key)))
            except InvalidStateKind:
                raise
            except KeyError:
                raise InvalidStateKind(f"State {s!r} has no variable {key!r}", key) from None
        return np.array(values, dtype=float)

    def __len__(self) -> int:
        return len(self.variable_keys)


class DenseStateActionFeatures:
    """
    One-hot action blocks over dense state features.

    Args:
        state_features: ``s -> np.ndarray``.
        actions: The actions, in block order.
    """

    def __init__(self, state_features: DenseStateFeatures, actions: Sequence[Any]):
        self.state_features = state_features
        self.actions = list(actions)
        self._action_index: Dict[Any, int] = {a: i for i, a in enumerate(self.actions)}

    def features(self, s: Any, a: Any) -> np.ndarray:
        try:
            j = self._action_index[a]
        except KeyError:
            raise ConfigurationError(f"Action {a!r} has no feature block") from None
        phi_s = np.asarray(self.state_features(s), dtype=float).ravel()
        phi = np.zeros(phi_s.shape[0] * len(self.actions))
        phi[j * phi_s.shape[0]:(j + 1) * phi_s.shape[0]] = phi_s
        return phi

    def __call__(self, s: Any, a: Any) -> np.ndarray:
        return self.features(s, a)


class DenseStateActionLinearVFA:
    """
    Q(s, a) = w . phi(s, a).

    The weight vector is created on first use with the length of the feature
    vector and filled with ``default_weight``.
    """

    def __init__(self, sa_features: DenseStateActionFeatures, default_weight: float = 0.0):
        self.sa_features = sa_features
        self.default_weight = float(default_weight)
        self.weights: Optional[np.ndarray] = None

    def _ensure_weights(self, n: int) -> None:
        if self.weights is None or self.weights.shape[0] != n:
            self.weights = np.full(n, self.default_weight)

    def evaluate(self, s: Any, a: Any) -> float:
        phi = self.sa_features.features(s, a)
        self._ensure_weights(phi.shape[0])
        return float(self.weights @ phi)

    def set_parameters(self, w: np.ndarray) -> None:
        self.weights = np.asarray(w, dtype=float).ravel().copy()

    def reset_parameters(self) -> None:
        self.weights = None

    def copy(self) -> "DenseStateActionLinearVFA":
        vfa = DenseStateActionLinearVFA(self.sa_features, self.default_weight)
        if self.weights is not None:
            vfa.weights = self.weights.copy()
        return vfa
