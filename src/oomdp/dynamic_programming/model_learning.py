"""
Value iteration planning on a model that is being learned.

Model-based learners (R-max style agents, for example) keep refining a
FullModel from experience and need the plan to follow. VIModelLearningPlanner
remembers every state it has been told about; whenever the model changes it
throws away all values, re-runs reachability from each remembered state under
the current model and runs value iteration again.

The policy returned by ``model_planned_policy`` replans on demand: if it is
queried in a state that has no computed value yet, that state is remembered
and the planner reruns before the greedy action is chosen.
"""

from typing import Any, List, Optional, Sequence, Set

from oomdp.hashing import HashableState, HashableStateFactory
from oomdp.policy import ActionProb, EnumerablePolicy, GreedyQPolicy
from oomdp.world_model import ActionType, FullModel

from .value_iteration import ValueIteration


class VIModelLearningPlanner(ValueIteration):
    """
    Args:
        model: The (learned) FullModel to plan with. It may change between
            calls; report changes through ``model_changed``.
        action_types: Action types available to the agent.
        gamma: Discount factor.
        hashing_factory: State hashing scheme.
        max_delta: VI convergence threshold.
        max_iterations: VI sweep cap.
    """

    def __init__(
        self,
        model: FullModel,
        action_types: Sequence[ActionType],
        gamma: float = 0.99,
        hashing_factory: Optional[HashableStateFactory] = None,
        max_delta: float = 1e-4,
        max_iterations: int = 1000,
        verbose: bool = False,
    ):
        super().__init__(model, action_types, gamma, hashing_factory, max_delta=max_delta,
                         max_iterations=max_iterations, verbose=verbose)
        self.observed_states: Set[HashableState] = set()
        self.initial_state: Any = None
        self.model_policy = ReplanIfUnseenPolicy(self, GreedyQPolicy(self))

    def initialize_planner_in(self, s: Any) -> None:
        self.initial_state = s
        self.observed_states.add(self.state_hash(s))

    def model_changed(self, changed_state: Any) -> None:
        """Record ``changed_state`` and replan everything under the current model."""
        self.observed_states.add(self.state_hash(changed_state))
        self.rerun_vi()

    def model_planned_policy(self) -> "ReplanIfUnseenPolicy":
        return self.model_policy

    def observe_and_rerun(self, s: Any) -> None:
        self.observed_states.add(self.state_hash(s))
        self.rerun_vi()

    def rerun_vi(self) -> None:
        self.reset_solver()
        for sh in list(self.observed_states):
            self.perform_reachability_from(sh.s)
        self.run_vi()


class ReplanIfUnseenPolicy(EnumerablePolicy):
    """Delegates to a policy after making sure the planner has a value for the state."""

    def __init__(self, planner: VIModelLearningPlanner, policy: EnumerablePolicy):
        super().__init__()
        self.planner = planner
        self.policy = policy

    def _ensure_planned(self, s: Any) -> None:
        if not self.planner.has_computed_value_for(s):
            self.planner.observe_and_rerun(s)

    def action(self, s: Any) -> Any:
        self._ensure_planned(s)
        return self.policy.action(s)

    def action_prob(self, s: Any, a: Any) -> float:
        self._ensure_planned(s)
        return self.policy.action_prob(s, a)

    def action_distribution(self, s: Any) -> List[ActionProb]:
        self._ensure_planned(s)
        return self.policy.action_distribution(s)

    def defined_for(self, s: Any) -> bool:
        return self.policy.defined_for(s)
