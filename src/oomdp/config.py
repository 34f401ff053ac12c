"""
Configuration objects for the planning and learning engines.

Every engine takes its parameters as constructor arguments and builds one of
these dataclasses from them, so that range checks happen exactly once, at
construction time. The configs are plain data: they can be round-tripped
through ``to_dict()`` / ``from_dict()`` (e.g. for parameter sweeps driven by
JSON files) and are not meant to be mutated while a plan is running.

Hard violations raise ConfigurationError. Values that are legal but usually a
mistake produce a warning instead.
"""

import math
import warnings
from dataclasses import dataclass, asdict, fields
from typing import Any, Dict

from oomdp.errors import ConfigurationError


def check_discount(gamma: float, name: str = "gamma") -> None:
    """Raise ConfigurationError unless 0 <= gamma <= 1."""
    if gamma is None or math.isnan(gamma) or gamma < 0.0 or gamma > 1.0:
        raise ConfigurationError(f"{name} must be in [0, 1], got {gamma}")


def check_unit_interval(value: float, name: str) -> None:
    if value is None or math.isnan(value) or value < 0.0 or value > 1.0:
        raise ConfigurationError(f"{name} must be in [0, 1], got {value}")


def check_non_negative_int(value: int, name: str) -> None:
    if value is None or value < 0:
        raise ConfigurationError(f"{name} must be >= 0, got {value}")


def check_positive(value: float, name: str) -> None:
    if value is None or math.isnan(value) or value <= 0:
        raise ConfigurationError(f"{name} must be > 0, got {value}")


class _DictMixin:

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        """Build a config from a dict, ignoring unknown keys (with a warning)."""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            warnings.warn(f"Ignoring unknown {cls.__name__} keys: {sorted(unknown)}")
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class DPConfig(_DictMixin):
    """
    Parameters shared by the dynamic programming planners.

    Attributes:
        gamma: Discount factor in [0, 1].
        max_delta: A sweep whose largest absolute value change is below this
            threshold ends value iteration.
        max_iterations: Cap on the number of sweeps.
        stop_reachability_from_terminal_states: If True, the reachability phase
            does not expand (or store) terminal states.
    """
    gamma: float = 0.99
    max_delta: float = 1e-4
    max_iterations: int = 1000
    stop_reachability_from_terminal_states: bool = False

    def __post_init__(self):
        check_discount(self.gamma)
        check_non_negative_int(self.max_iterations, "max_iterations")
        if self.max_delta is None or self.max_delta < 0:
            raise ConfigurationError(f"max_delta must be >= 0, got {self.max_delta}")
        if self.gamma == 1.0 and self.max_iterations == 0:
            warnings.warn("gamma=1 with max_iterations=0 will never back up any value")


@dataclass
class DynamicWeightingConfig(_DictMixin):
    """
    Parameters of Dynamic Weighted A*.

    Attributes:
        epsilon: Greediness (>= 1). Larger is greedier.
        expected_depth: Expected solution depth N (> 0). The heuristic weight
            decays linearly to 1 as the search depth approaches N.
    """
    epsilon: float = 1.0
    expected_depth: int = 10

    def __post_init__(self):
        if self.epsilon is None or math.isnan(self.epsilon) or self.epsilon < 1.0:
            raise ConfigurationError(f"epsilon must be >= 1, got {self.epsilon}")
        check_positive(self.expected_depth, "expected_depth")
        if self.epsilon > 100:
            warnings.warn(
                f"epsilon={self.epsilon} makes the early search almost purely greedy"
            )


@dataclass
class TDLambdaConfig(_DictMixin):
    """
    Parameters of the TD(lambda) critic.

    Attributes:
        gamma: Discount factor in [0, 1].
        lambda_: Eligibility trace decay in [0, 1]. 0 gives one-step TD,
            1 gives Monte-Carlo-like traces.
        learning_rate: Constant learning rate used when no schedule is given.
        v_init: Constant initial value for unvisited states.
    """
    gamma: float = 0.99
    lambda_: float = 0.0
    learning_rate: float = 0.1
    v_init: float = 0.0

    def __post_init__(self):
        check_discount(self.gamma)
        check_unit_interval(self.lambda_, "lambda_")
        if self.learning_rate is None or self.learning_rate < 0:
            raise ConfigurationError(f"learning_rate must be >= 0, got {self.learning_rate}")
        if self.learning_rate > 1:
            warnings.warn(f"learning_rate={self.learning_rate} > 1 usually diverges")


@dataclass
class LSPIConfig(_DictMixin):
    """
    Parameters of least-squares policy iteration.

    Attributes:
        gamma: Discount factor in [0, 1].
        identity_scalar: Initial value of the diagonal of the inverse matrix
            estimate B used by the Sherman-Morrison updates.
        max_change: Policy iteration stops once the Frobenius norm of the weight
            change falls to or below this value.
        max_iterations: Cap on policy iteration rounds.
        num_samples_for_planning: Samples collected by plan_from_state.
        min_new_steps_for_learning_pi: New transitions that must accumulate
            between policy iteration runs while learning online.
        num_episodes_to_store: Size of the learning episode history.
        epsilon: Exploration rate of the default learning policy.
    """
    gamma: float = 0.99
    identity_scalar: float = 100.0
    max_change: float = 1e-6
    max_iterations: int = 30
    num_samples_for_planning: int = 10000
    min_new_steps_for_learning_pi: int = 100
    num_episodes_to_store: int = 1
    epsilon: float = 0.1

    def __post_init__(self):
        check_discount(self.gamma)
        check_positive(self.identity_scalar, "identity_scalar")
        check_non_negative_int(self.max_iterations, "max_iterations")
        check_non_negative_int(self.num_samples_for_planning, "num_samples_for_planning")
        check_non_negative_int(self.min_new_steps_for_learning_pi, "min_new_steps_for_learning_pi")
        check_non_negative_int(self.num_episodes_to_store, "num_episodes_to_store")
        check_unit_interval(self.epsilon, "epsilon")
        if self.max_change < 0:
            raise ConfigurationError(f"max_change must be >= 0, got {self.max_change}")


@dataclass
class MLIRLConfig(_DictMixin):
    """
    Parameters of maximum-likelihood inverse reinforcement learning.

    Attributes:
        learning_rate: Gradient ascent step size.
        max_likelihood_change: Stop when the log likelihood changes by less.
        max_steps: Cap on gradient ascent steps.
        boltzmann_beta: Inverse temperature of the expert model.
    """
    learning_rate: float = 0.1
    max_likelihood_change: float = 0.01
    max_steps: int = 10
    boltzmann_beta: float = 0.5

    def __post_init__(self):
        check_positive(self.learning_rate, "learning_rate")
        check_non_negative_int(self.max_steps, "max_steps")
        check_positive(self.boltzmann_beta, "boltzmann_beta")
