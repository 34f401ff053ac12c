"""
Shared machinery of the tabular dynamic programming planners.

DynamicProgramming owns a FullModel, the discount factor and a ValueTable over
hashed states, and knows how to turn those into Q-values:

    Q(s, a) = sum_{(p, s', r, k)} p * (r + gamma^k * V(s'))

where the sum runs over all outcomes the model enumerates for (s, a), k is
the number of primitive steps the outcome spans (1 for primitive actions)
and V(s') is 0 for terminal s'. A Bellman update replaces V(s) by the result
of ``compute_backup``, which is the max over Q-values here and can be
overridden by subclasses (e.g. the softmax backup of DifferentiableVI).

Planners built on this class are not thread safe and own their value table
exclusively. Use ``reset_solver`` before reusing an instance on an unrelated
problem.
"""

from typing import Any, List, Optional, Sequence, Union

from oomdp.config import DPConfig
from oomdp.errors import ConfigurationError
from oomdp.hashing import HashableState, HashableStateFactory, SimpleHashableStateFactory
from oomdp.value_function import QProvider, QValue, ValueInitializer, ValueTable
from oomdp.world_model import ActionType, EnvironmentOutcome, FullModel, applicable_actions, num_steps_of

DEBUG = False  # Set to True for per-state backup output


class DynamicProgramming(QProvider):
    """
    Base class of model-based tabular planners.

    Args:
        model: A FullModel whose ``transitions`` enumerate every outcome.
        action_types: Action types available to the agent.
        gamma: Discount factor in [0, 1].
        hashing_factory: State hashing scheme. Defaults to
            SimpleHashableStateFactory.
        v_init: Initial value of unseen states (number, callable or
            ValueFunction). Defaults to 0.
        max_delta: Convergence threshold used by iterative subclasses.
        max_iterations: Sweep cap used by iterative subclasses.
        verbose: Print progress information.
    """

    def __init__(
        self,
        model: FullModel,
        action_types: Sequence[ActionType],
        gamma: float = 0.99,
        hashing_factory: Optional[HashableStateFactory] = None,
        v_init: Optional[Union[ValueInitializer, float]] = None,
        max_delta: float = 1e-4,
        max_iterations: int = 1000,
        verbose: bool = False,
    ):
        if model is None:
            raise ConfigurationError(f"{type(self).__name__} requires a model")
        if not isinstance(model, FullModel):
            raise ConfigurationError(
                f"{type(self).__name__} needs a FullModel that can enumerate transitions, "
                f"got {type(model).__name__}"
            )
        self.config = DPConfig(gamma=gamma, max_delta=max_delta, max_iterations=max_iterations)
        self.model = model
        self.action_types = list(action_types)
        self.hashing_factory = hashing_factory or SimpleHashableStateFactory()
        self.value_function = ValueTable(self.hashing_factory, v_init)
        self.verbose = verbose

    @property
    def gamma(self) -> float:
        return self.config.gamma

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def state_hash(self, s: Any) -> HashableState:
        return s if isinstance(s, HashableState) else self.hashing_factory.hash_state(s)

    def applicable_actions(self, s: Any) -> List[Any]:
        return applicable_actions(self.action_types, s)

    def transition_reward(self, eo: EnvironmentOutcome) -> float:
        """Reward credited to an outcome; the model's reward by default."""
        return eo.r

    # ------------------------------------------------------------------
    # Values
    # ------------------------------------------------------------------

    def value(self, s: Any) -> float:
        """V(s); 0 for terminal states, the initializer value for unseen states."""
        sh = self.state_hash(s)
        if self.model.terminal(sh.s):
            return 0.0
        return self.value_function.peek(sh)

    def has_computed_value_for(self, s: Any) -> bool:
        return self.state_hash(s) in self.value_function

    def q_value(self, s: Any, a: Any) -> float:
        sh = self.state_hash(s)
        q = 0.0
        for tp in self.model.transitions(sh.s, a):
            discount = self.gamma ** num_steps_of(tp.eo)
            q += tp.p * (self.transition_reward(tp.eo) + discount * self.value(tp.eo.op))
        return q

    def q_values(self, s: Any) -> List[QValue]:
        sh = self.state_hash(s)
        return [QValue(sh.s, a, self.q_value(sh, a)) for a in self.applicable_actions(sh.s)]

    # ------------------------------------------------------------------
    # Backups
    # ------------------------------------------------------------------

    def compute_backup(self, sh: HashableState) -> float:
        """New value for a non-terminal state; the Bellman max by default."""
        qs = self.q_values(sh)
        if not qs:
            return 0.0
        return max(q.q for q in qs)

    def perform_bellman_update_on(self, s: Any) -> float:
        """
        Back up s, store and return its new value.

        Terminal states are fixed at 0.
        """
        sh = self.state_hash(s)
        if self.model.terminal(sh.s):
            self.value_function.set(sh, 0.0)
            return 0.0
        v = self.compute_backup(sh)
        self.value_function.set(sh, v)
        if DEBUG:
            print(f"  backup {sh.s!r}: V={v:.6f}")
        return v

    def reset_solver(self) -> None:
        """Forget all computed values."""
        self.value_function.clear()
