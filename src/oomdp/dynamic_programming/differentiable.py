"""
Value iteration that also tracks the gradient of the value function with
respect to the parameters of the reward function.

The reward is a DifferentiableRF r_theta(s, a, s'). The Bellman max is
replaced by the Boltzmann softmax

    V(s) = (1 / beta) * log sum_a exp(beta * Q(s, a))

whose gradient is the Boltzmann-weighted average of the Q gradients:

    dV(s)/dtheta = sum_a pi(a|s) * dQ(s, a)/dtheta,   pi = softmax(beta * Q(s, .))
    dQ(s, a)/dtheta = sum_{s'} p(s'|s, a) * (dr(s, a, s')/dtheta + gamma^k * dV(s')/dtheta)

The value and its gradient are computed together by one call to
DifferentiableSoftmaxOperator.apply, so the value table and the gradient
table never disagree about which Q-values a backup used.

These gradients are what maximum-likelihood IRL (see mlirl.py) needs to
differentiate the log likelihood of expert behavior under the Boltzmann
policy ``BoltzmannQPolicy(planner, 1 / beta)``.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np
from scipy.special import logsumexp, softmax

from oomdp.errors import ConfigurationError
from oomdp.hashing import HashableState, HashableStateFactory
from oomdp.policy import BoltzmannQPolicy
from oomdp.world_model import ActionType, EnvironmentOutcome, FullModel, num_steps_of

from .value_iteration import ValueIteration


# =============================================================================
# Differentiable reward functions
# =============================================================================

class DifferentiableRF(ABC):
    """
    A reward function r_theta(s, a, s') with a parameter vector theta.

    Subclasses implement ``reward`` and ``gradient``; the latter returns
    dr/dtheta as an array of length ``num_parameters()``.
    """

    def __init__(self, num_parameters: int, parameters: Optional[np.ndarray] = None):
        if num_parameters <= 0:
            raise ConfigurationError(f"num_parameters must be > 0, got {num_parameters}")
        self.parameters = np.zeros(num_parameters) if parameters is None else np.array(parameters, dtype=float)
        if self.parameters.shape != (num_parameters,):
            raise ConfigurationError(
                f"Expected {num_parameters} parameters, got array of shape {self.parameters.shape}"
            )

    def num_parameters(self) -> int:
        return self.parameters.shape[0]

    def set_parameters(self, parameters: np.ndarray) -> None:
        parameters = np.asarray(parameters, dtype=float)
        if parameters.shape != self.parameters.shape:
            raise ConfigurationError(
                f"Expected parameters of shape {self.parameters.shape}, got {parameters.shape}"
            )
        self.parameters = parameters.copy()

    @abstractmethod
    def reward(self, s: Any, a: Any, sp: Any) -> float:
        ...

    @abstractmethod
    def gradient(self, s: Any, a: Any, sp: Any) -> np.ndarray:
        ...

    def __call__(self, s: Any, a: Any, sp: Any) -> float:
        return self.reward(s, a, sp)


class LinearStateDifferentiableRF(DifferentiableRF):
    """
    r_theta(s, a, s') = theta . phi(s').

    Args:
        state_features: ``s -> np.ndarray`` of length ``num_features``.
        num_features: Dimension of phi.
        parameters: Initial theta (zeros by default).
    """

    def __init__(self, state_features: Callable[[Any], np.ndarray], num_features: int,
                 parameters: Optional[np.ndarray] = None):
        super().__init__(num_features, parameters)
        self.state_features = state_features

    def _phi(self, s: Any) -> np.ndarray:
        phi = np.asarray(self.state_features(s), dtype=float)
        if phi.shape != self.parameters.shape:
            raise ConfigurationError(
                f"State features have shape {phi.shape}, expected {self.parameters.shape}"
            )
        return phi

    def reward(self, s: Any, a: Any, sp: Any) -> float:
        return float(self.parameters @ self._phi(sp))

    def gradient(self, s: Any, a: Any, sp: Any) -> np.ndarray:
        return self._phi(sp)


# =============================================================================
# Backup operator
# =============================================================================

class DifferentiableSoftmaxOperator:
    """
    Boltzmann softmax backup returning the value and its gradient together.

    Args:
        beta: Inverse temperature (> 0). Larger beta is closer to the max.
    """

    def __init__(self, beta: float):
        if beta <= 0:
            raise ConfigurationError(f"beta must be > 0, got {beta}")
        self.beta = float(beta)

    def apply(self, q_values: np.ndarray, q_gradients: np.ndarray) -> Tuple[float, np.ndarray]:
        """
        Args:
            q_values: Shape (num_actions,).
            q_gradients: Shape (num_actions, num_parameters).

        Returns:
            (value, gradient) where gradient has shape (num_parameters,).
        """
        q_values = np.asarray(q_values, dtype=float)
        q_gradients = np.asarray(q_gradients, dtype=float)
        if q_values.size == 0:
            return 0.0, np.zeros(q_gradients.shape[-1] if q_gradients.ndim == 2 else 0)
        scaled = self.beta * q_values
        value = float(logsumexp(scaled) / self.beta)
        gradient = softmax(scaled) @ q_gradients
        return value, gradient


# =============================================================================
# Planner
# =============================================================================

class DifferentiableVI(ValueIteration):
    """
    Value iteration with softmax backups and value gradients.

    Args:
        model: FullModel providing transitions. Its rewards are ignored; the
            planner credits ``rf(s, a, s')`` instead.
        action_types: Action types available to the agent.
        rf: The differentiable reward function.
        gamma: Discount factor.
        boltzmann_beta: Inverse temperature of the softmax backup and of the
            returned policy.
        (remaining arguments as for ValueIteration)
    """

    def __init__(
        self,
        model: FullModel,
        action_types: Sequence[ActionType],
        rf: DifferentiableRF,
        gamma: float = 0.99,
        boltzmann_beta: float = 0.5,
        hashing_factory: Optional[HashableStateFactory] = None,
        max_delta: float = 0.01,
        max_iterations: int = 500,
        stop_reachability_from_terminal_states: bool = False,
        verbose: bool = False,
    ):
        super().__init__(model, action_types, gamma, hashing_factory, None, max_delta, max_iterations,
                         stop_reachability_from_terminal_states, verbose)
        if rf is None:
            raise ConfigurationError("DifferentiableVI requires a differentiable reward function")
        self.rf = rf
        self.operator = DifferentiableSoftmaxOperator(boltzmann_beta)
        self.value_gradients: Dict[HashableState, np.ndarray] = {}

    @property
    def boltzmann_beta(self) -> float:
        return self.operator.beta

    def transition_reward(self, eo: EnvironmentOutcome) -> float:
        return self.rf.reward(eo.o, eo.a, eo.op)

    # ------------------------------------------------------------------
    # Gradients
    # ------------------------------------------------------------------

    def value_gradient(self, s: Any) -> np.ndarray:
        """dV(s)/dtheta; zero for terminal and not yet backed up states."""
        sh = self.state_hash(s)
        if self.model.terminal(sh.s):
            return np.zeros(self.rf.num_parameters())
        grad = self.value_gradients.get(sh)
        if grad is None:
            return np.zeros(self.rf.num_parameters())
        return grad

    def q_gradient(self, s: Any, a: Any) -> np.ndarray:
        """dQ(s, a)/dtheta under the current value gradients."""
        sh = self.state_hash(s)
        grad = np.zeros(self.rf.num_parameters())
        for tp in self.model.transitions(sh.s, a):
            eo = tp.eo
            discount = self.gamma ** num_steps_of(eo)
            grad += tp.p * (self.rf.gradient(eo.o, eo.a, eo.op) + discount * self.value_gradient(eo.op))
        return grad

    def q_values_and_gradients(self, s: Any) -> Tuple[List[Any], np.ndarray, np.ndarray]:
        """
        Returns:
            (actions, q_values of shape (n,), q_gradients of shape (n, num_parameters))
        """
        sh = self.state_hash(s)
        actions = self.applicable_actions(sh.s)
        q_values = np.array([self.q_value(sh, a) for a in actions], dtype=float)
        q_gradients = np.zeros((len(actions), self.rf.num_parameters()))
        for i, a in enumerate(actions):
            q_gradients[i] = self.q_gradient(sh, a)
        return actions, q_values, q_gradients

    # ------------------------------------------------------------------
    # Backups
    # ------------------------------------------------------------------

    def compute_backup(self, sh: HashableState) -> float:
        _, q_values, q_gradients = self.q_values_and_gradients(sh)
        value, _ = self.operator.apply(q_values, q_gradients)
        return value

    def perform_bellman_update_on(self, s: Any) -> float:
        sh = self.state_hash(s)
        if self.model.terminal(sh.s):
            self.value_function.set(sh, 0.0)
            self.value_gradients[sh] = np.zeros(self.rf.num_parameters())
            return 0.0
        _, q_values, q_gradients = self.q_values_and_gradients(sh)
        value, gradient = self.operator.apply(q_values, q_gradients)
        self.value_function.set(sh, value)
        self.value_gradients[sh] = gradient
        return value

    def plan_from_state(self, initial_state: Any) -> BoltzmannQPolicy:
        if not self.has_computed_value_for(initial_state):
            self.perform_reachability_from(initial_state)
            self.run_vi()
        return BoltzmannQPolicy(self, 1.0 / self.boltzmann_beta)

    def reset_solver(self) -> None:
        super().reset_solver()
        self.value_gradients.clear()
