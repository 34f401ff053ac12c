"""
Base class and policies for deterministic (single successor) planners.

A deterministic planner searches from a start state to a goal state and stores
the solution as a table from hashed state to the action taken there. Policies
read from that table:

    SDPlannerPolicy: only defined on states of a computed plan; querying any
                     other state raises PolicyUndefinedError.
    DDPlannerPolicy: plans from a queried state when it is not covered yet.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from oomdp.errors import ConfigurationError, PolicyUndefinedError
from oomdp.hashing import HashableState, HashableStateFactory, SimpleHashableStateFactory
from oomdp.policy import ActionProb, EnumerablePolicy
from oomdp.world_model import ActionType, SampleModel, StateConditionTest, applicable_actions

from .search_node import PrioritizedSearchNode


class DeterministicPlanner(ABC):
    """
    Common state of deterministic planners.

    Args:
        action_types: Action types whose applicable actions are expanded.
        model: Model used to generate successors.
        goal_condition: ``s -> bool``, true for goal states.
        hashing_factory: State hashing scheme.
        verbose: Print search statistics.
    """

    def __init__(
        self,
        action_types: Sequence[ActionType],
        model: SampleModel,
        goal_condition: StateConditionTest,
        hashing_factory: Optional[HashableStateFactory] = None,
        verbose: bool = False,
    ):
        if model is None:
            raise ConfigurationError(f"{type(self).__name__} requires a model")
        if goal_condition is None:
            raise ConfigurationError(f"{type(self).__name__} requires a goal condition")
        self.action_types = list(action_types)
        self.model = model
        self.goal_condition = goal_condition
        self.hashing_factory = hashing_factory or SimpleHashableStateFactory()
        self.verbose = verbose
        self.internal_policy: Dict[HashableState, Any] = {}

    def state_hash(self, s: Any) -> HashableState:
        return self.hashing_factory.hash_state(s)

    def applicable_actions(self, s: Any) -> List[Any]:
        return applicable_actions(self.action_types, s)

    def plan_contains_state(self, s: Any) -> bool:
        return self.state_hash(s) in self.internal_policy

    def query_selected_action_for_state(self, s: Any) -> Any:
        """
        Action the stored plan takes in s.

        Raises:
            PolicyUndefinedError: If s is not on a computed plan.
        """
        sh = self.state_hash(s)
        try:
            return self.internal_policy[sh]
        except KeyError:
            raise PolicyUndefinedError(f"No plan has been computed that passes through state {s!r}") from None

    def encode_plan_into_policy(self, node: Optional[PrioritizedSearchNode]) -> None:
        """Walk back pointers from ``node`` and record the action taken in each parent state."""
        while node is not None and node.back_pointer is not None:
            self.internal_policy[node.back_pointer.s] = node.generating_action
            node = node.back_pointer

    def reset_solver(self) -> None:
        self.internal_policy.clear()

    @abstractmethod
    def plan_from_state(self, initial_state: Any):
        raise NotImplementedError


class SDPlannerPolicy(EnumerablePolicy):
    """Deterministic policy over the states of a computed plan."""

    def __init__(self, planner: DeterministicPlanner):
        super().__init__()
        self.planner = planner

    def action(self, s: Any) -> Any:
        return self.planner.query_selected_action_for_state(s)

    def action_distribution(self, s: Any) -> List[ActionProb]:
        return [ActionProb(self.action(s), 1.0)]

    def defined_for(self, s: Any) -> bool:
        return self.planner.plan_contains_state(s)


class DDPlannerPolicy(SDPlannerPolicy):
    """Like SDPlannerPolicy, but replans from states that are not covered."""

    def action(self, s: Any) -> Any:
        if not self.planner.plan_contains_state(s):
            self.planner.plan_from_state(s)
        return self.planner.query_selected_action_for_state(s)

    def defined_for(self, s: Any) -> bool:
        return True
