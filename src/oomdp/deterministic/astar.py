"""
A* and Dynamic Weighted A*.

Costs are modeled as negative rewards: the g-value of a node is the
cumulative reward of the path that reached it (<= 0 in cost domains) and the
heuristic H(s) is an optimistic, non-positive estimate of the reward still to
be collected until the goal (an admissible upper bound). The priority of a
node is

    F = g + weight(d) * H

and the open list always expands the node with the largest F, which is the
node with the smallest estimated total cost. Plain A* uses weight(d) = 1.
Dynamic Weighted A* (Pohl, 1973) uses

    weight(d) = 1 + epsilon * max(1 - d / N, 0)

where d is the search depth in primitive steps and N the expected solution
depth: the search starts greedy and anneals to plain A* once it gets deeper
than expected.

Because the dynamically weighted F is not monotone along a path, decisions to
reopen a closed node or to update an open one compare g-values, never F:
a node is reopened only if the new path collects strictly more reward.

Example:
    >>> planner = AStar(action_types, model, goal_condition=is_goal,
    ...                 hashing_factory=SimpleHashableStateFactory(),
    ...                 heuristic=lambda s: -manhattan(s))
    >>> policy = planner.plan_from_state(start)
    >>> policy.action(start)
"""

import warnings
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

from oomdp.config import DynamicWeightingConfig
from oomdp.hashing import HashableState, HashableStateFactory
from oomdp.world_model import ActionType, EnvironmentOutcome, SampleModel, StateConditionTest, num_steps_of

from .hash_indexed_heap import HashIndexedHeap
from .planner import DeterministicPlanner, SDPlannerPolicy
from .search_node import PrioritizedSearchNode

Heuristic = Callable[[Any], float]

DEBUG = False  # Set to True for per-node expansion output


class NullHeuristic:
    """Heuristic that is always 0 (turns A* into uniform cost search)."""

    def __call__(self, s: Any) -> float:
        return 0.0


class AStar(DeterministicPlanner):
    """
    A* search over a deterministic SampleModel.

    Args:
        action_types: Action types whose applicable actions are expanded.
        model: Model used to generate successors; one sample per action.
        goal_condition: ``s -> bool``.
        hashing_factory: State hashing scheme.
        heuristic: ``s -> float``, non-positive, admissible.
        verbose: Print search statistics.

    Attributes:
        num_expanded: Number of nodes expanded by the last search.
        last_goal_node: Goal node reached by the last search (None if none).
    """

    def __init__(
        self,
        action_types: Sequence[ActionType],
        model: SampleModel,
        goal_condition: StateConditionTest,
        hashing_factory: Optional[HashableStateFactory] = None,
        heuristic: Optional[Heuristic] = None,
        verbose: bool = False,
    ):
        super().__init__(action_types, model, goal_condition, hashing_factory, verbose)
        self.heuristic = heuristic if heuristic is not None else NullHeuristic()
        self.cumulated_reward: Dict[HashableState, float] = {}
        self.depth: Dict[HashableState, int] = {}
        self.num_expanded = 0
        self.last_goal_node: Optional[PrioritizedSearchNode] = None
        self._warned_positive_h = False

    # ------------------------------------------------------------------
    # Priority computation
    # ------------------------------------------------------------------

    def heuristic_weight(self, depth: int) -> float:
        """Multiplier of H at the given depth; 1 for plain A*."""
        return 1.0

    def compute_f(
        self,
        parent_node: Optional[PrioritizedSearchNode],
        generating_action: Any,
        successor: HashableState,
        eo: Optional[EnvironmentOutcome],
    ) -> Tuple[float, float, int]:
        """
        Compute the priority of a successor.

        Returns:
            (F, g, depth) of the successor. For the root (parent_node None)
            g and depth are 0.
        """
        g = 0.0
        d = 0
        if parent_node is not None:
            g = self.cumulated_reward[parent_node.s] + eo.r
            d = self.depth[parent_node.s] + num_steps_of(eo)
        h = float(self.heuristic(successor.s))
        if h > 0 and not self._warned_positive_h:
            warnings.warn(
                f"Heuristic returned a positive value ({h}); heuristics must be "
                "non-positive upper bounds on the remaining reward"
            )
            self._warned_positive_h = True
        return g + self.heuristic_weight(d) * h, g, d

    # ------------------------------------------------------------------
    # Open list maintenance
    # ------------------------------------------------------------------

    def insert_into_open(self, open_queue: HashIndexedHeap, node: PrioritizedSearchNode, g: float, d: int) -> None:
        open_queue.insert(node)
        self.cumulated_reward[node.s] = g
        self.depth[node.s] = d

    def update_open(
        self,
        open_queue: HashIndexedHeap,
        open_node: PrioritizedSearchNode,
        new_node: PrioritizedSearchNode,
        g: float,
        d: int,
    ) -> None:
        open_queue.replace(open_node, new_node)
        self.cumulated_reward[new_node.s] = g
        self.depth[new_node.s] = d

    def pre_plan_prep(self) -> None:
        self.cumulated_reward = {}
        self.depth = {}

    def post_plan_prep(self) -> None:
        # the g and depth tables are only needed during a search
        self.cumulated_reward = {}
        self.depth = {}

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def plan_from_state(self, initial_state: Any) -> SDPlannerPolicy:
        """
        Search from ``initial_state`` to a goal state.

        If the state is already covered by a previously computed plan, the
        stored plan is reused and no search is performed.

        Returns:
            An SDPlannerPolicy over the states of the plan. If no goal is
            reachable, the policy is undefined for ``initial_state``.
        """
        sih = self.state_hash(initial_state)
        if sih in self.internal_policy:
            return SDPlannerPolicy(self)

        self.pre_plan_prep()

        open_queue: HashIndexedHeap[PrioritizedSearchNode] = HashIndexedHeap()
        closed: Dict[PrioritizedSearchNode, PrioritizedSearchNode] = {}

        f, g, d = self.compute_f(None, None, sih, None)
        root = PrioritizedSearchNode(sih, f)
        self.insert_into_open(open_queue, root, g, d)

        num_expanded = 0
        goal_node = None
        best_f = root.priority
        while len(open_queue) > 0:
            node = open_queue.poll()
            closed[node] = node
            num_expanded += 1

            if node.priority < best_f:
                best_f = node.priority
                if self.verbose:
                    print(f"Max F expanded: {best_f:.4f}; nodes expanded so far: {num_expanded}; "
                          f"open size: {len(open_queue)}")

            s = node.s.s
            if self.goal_condition(s):
                goal_node = node
                break

            if self.model.terminal(s):
                continue

            for a in self.applicable_actions(s):
                eo = self.model.sample(s, a)
                nsh = self.state_hash(eo.op)
                f, g, d = self.compute_f(node, a, nsh, eo)
                new_node = PrioritizedSearchNode(nsh, f, a, node)

                closed_node = closed.get(new_node)
                if closed_node is not None and g <= self.cumulated_reward[closed_node.s]:
                    continue  # not a better path to an already expanded state

                open_node = open_queue.contains_instance(new_node)
                if open_node is None:
                    self.insert_into_open(open_queue, new_node, g, d)
                elif g > self.cumulated_reward[open_node.s]:
                    self.update_open(open_queue, open_node, new_node, g, d)

                if DEBUG:
                    print(f"  {s!r} --{a}--> {eo.op!r}: g={g:.4f} d={d} F={f:.4f}")

        self.encode_plan_into_policy(goal_node)
        self.num_expanded = num_expanded
        self.last_goal_node = goal_node

        if self.verbose:
            print(f"Num expanded: {num_expanded}" + ("" if goal_node is not None else " (no solution)"))

        self.post_plan_prep()
        return SDPlannerPolicy(self)


class DynamicWeightedAStar(AStar):
    """
    A* with the dynamic heuristic weight ``1 + epsilon * max(1 - d/N, 0)``.

    Depth advances by one per primitive action and by the number of elapsed
    primitive steps for options.

    Args:
        epsilon: Greediness, >= 1.
        expected_depth: Expected solution depth N, > 0.
        (other arguments as for AStar)
    """

    def __init__(
        self,
        action_types: Sequence[ActionType],
        model: SampleModel,
        goal_condition: StateConditionTest,
        hashing_factory: Optional[HashableStateFactory] = None,
        heuristic: Optional[Heuristic] = None,
        epsilon: float = 1.0,
        expected_depth: int = 10,
        verbose: bool = False,
    ):
        super().__init__(action_types, model, goal_condition, hashing_factory, heuristic, verbose)
        self.config = DynamicWeightingConfig(epsilon=epsilon, expected_depth=expected_depth)

    @property
    def epsilon(self) -> float:
        return self.config.epsilon

    @property
    def expected_depth(self) -> float:
        return self.config.expected_depth

    def epsilon_weight(self, depth: int) -> float:
        """w(d) = max(1 - d/N, 0)."""
        return max(1.0 - float(depth) / float(self.config.expected_depth), 0.0)

    def heuristic_weight(self, depth: int) -> float:
        return 1.0 + self.config.epsilon * self.epsilon_weight(depth)
