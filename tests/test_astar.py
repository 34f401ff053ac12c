"""
Tests for A* and Dynamic Weighted A*.

Verifies:
- A* with an admissible heuristic returns the optimal plan (5-node graph,
  goal three hops away)
- Dynamic Weighted A* never returns a plan better than the optimum and its
  heuristic weight anneals with depth (options advance depth by their steps)
- Closed nodes are reopened when a strictly better g-value is found later
- Memoized plans, no-solution searches and the two planner policies
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

import pytest

from oomdp.deterministic import (
    AStar,
    DDPlannerPolicy,
    DeterministicPlanner,
    DynamicWeightedAStar,
    HashIndexedHeap,
    NullHeuristic,
    PrioritizedSearchNode,
)
from oomdp.errors import ConfigurationError, PolicyUndefinedError
from oomdp.hashing import SimpleHashableStateFactory
from oomdp.state import NodeState
from oomdp.world_model import (
    Action,
    ActionType,
    EnvironmentOptionOutcome,
    EnvironmentOutcome,
    SampleModel,
)


# =============================================================================
# Graph domain
# =============================================================================

class GoTo(Action):
    def __init__(self, target):
        self.target = target

    def action_name(self):
        return f"go{self.target}"


class GraphActionType(ActionType):
    def __init__(self, edges):
        self.edges = edges

    def type_name(self):
        return "go"

    def all_applicable_actions(self, s):
        return [GoTo(j) for j in sorted(self.edges.get(s.id, {}))]


class GraphModel(SampleModel):
    """Deterministic graph; traversing an edge yields minus its cost."""

    def __init__(self, edges, terminal_nodes=()):
        self.edges = edges
        self.terminal_nodes = set(terminal_nodes)
        self.num_samples = 0

    def sample(self, s, a):
        self.num_samples += 1
        cost = self.edges[s.id][a.target]
        sp = NodeState(a.target)
        return EnvironmentOutcome(s, a, sp, -cost, self.terminal(sp))

    def terminal(self, s):
        return s.id in self.terminal_nodes


def make_planner(edges, goal, heuristic=None, cls=AStar, **kwargs):
    model = GraphModel(edges)
    planner = cls(
        [GraphActionType(edges)],
        model,
        goal_condition=lambda s: s.id == goal,
        hashing_factory=SimpleHashableStateFactory(),
        heuristic=heuristic,
        **kwargs,
    )
    return planner, model


def follow(policy, model, start, goal, max_steps=20):
    """Return (cumulative reward, visited node ids) when following policy."""
    s = start
    total = 0.0
    visited = [s.id]
    for _ in range(max_steps):
        if s.id == goal:
            break
        eo = model.sample(s, policy.action(s))
        total += eo.r
        s = eo.op
        visited.append(s.id)
    return total, visited


# 0 -> 1 -> 2 -> 4 is the shortest route (three hops); 0 -> 3 -> 1 -> ... is longer
FIVE_NODE_EDGES = {
    0: {1: 1.0, 3: 1.0},
    1: {2: 1.0},
    2: {4: 1.0},
    3: {1: 1.0},
    4: {},
}
FIVE_NODE_TRUE_COST = {0: 3, 1: 2, 2: 1, 3: 3, 4: 0}


# =============================================================================
# Open list
# =============================================================================

class TestHashIndexedHeap:

    def nodes(self, *priorities):
        factory = SimpleHashableStateFactory()
        return [PrioritizedSearchNode(factory(NodeState(i)), p) for i, p in enumerate(priorities)]

    def test_polls_largest_priority_first(self):
        heap = HashIndexedHeap()
        for node in self.nodes(-3.0, -1.0, -2.0, 0.0):
            heap.insert(node)
        assert [heap.poll().priority for _ in range(4)] == [0.0, -1.0, -2.0, -3.0]
        with pytest.raises(IndexError):
            heap.poll()

    def test_ties_in_insertion_order(self):
        heap = HashIndexedHeap()
        nodes = self.nodes(-1.0, -1.0, -1.0)
        for node in nodes:
            heap.insert(node)
        assert [heap.poll() for _ in range(3)] == nodes

    def test_lookup_by_state(self):
        heap = HashIndexedHeap()
        stored = self.nodes(-2.0)[0]
        heap.insert(stored)
        lookup = PrioritizedSearchNode(SimpleHashableStateFactory()(NodeState(0)), 5.0)
        assert heap.contains_instance(lookup) is stored
        assert lookup in heap
        with pytest.raises(ValueError):
            heap.insert(lookup)

    def test_replace_restores_order(self):
        heap = HashIndexedHeap()
        nodes = self.nodes(-1.0, -2.0, -3.0)
        for node in nodes:
            heap.insert(node)
        better = PrioritizedSearchNode(nodes[2].s, 0.0)
        heap.replace(nodes[2], better)
        assert heap.peek() is better
        assert len(heap) == 3

    def test_refresh_priority(self):
        heap = HashIndexedHeap()
        nodes = self.nodes(-1.0, -2.0)
        for node in nodes:
            heap.insert(node)
        nodes[1].priority = 1.0
        heap.refresh_priority(nodes[1])
        assert heap.poll() is nodes[1]


# =============================================================================
# A*
# =============================================================================

class TestAStar:

    def test_optimal_path_with_admissible_heuristic(self):
        heuristic = lambda s: -FIVE_NODE_TRUE_COST[s.id]
        planner, model = make_planner(FIVE_NODE_EDGES, goal=4, heuristic=heuristic)
        policy = planner.plan_from_state(NodeState(0))

        total, visited = follow(policy, model, NodeState(0), goal=4)
        assert total == -3.0, f"Expected cumulative reward -3, got {total}"
        assert visited == [0, 1, 2, 4]

    def test_optimal_path_with_null_heuristic(self):
        planner, model = make_planner(FIVE_NODE_EDGES, goal=4)
        assert isinstance(planner.heuristic, NullHeuristic)
        policy = planner.plan_from_state(NodeState(0))
        total, _ = follow(policy, model, NodeState(0), goal=4)
        assert total == -3.0

    def test_start_is_goal(self):
        planner, _ = make_planner(FIVE_NODE_EDGES, goal=0)
        policy = planner.plan_from_state(NodeState(0))
        assert planner.num_expanded == 1
        assert not policy.defined_for(NodeState(0))

    def test_no_solution(self):
        edges = {0: {1: 1.0}, 1: {0: 1.0}, 2: {}}
        planner, _ = make_planner(edges, goal=2)
        policy = planner.plan_from_state(NodeState(0))
        assert planner.last_goal_node is None
        with pytest.raises(PolicyUndefinedError):
            policy.action(NodeState(0))

    def test_terminal_states_are_not_expanded(self):
        edges = {0: {1: 1.0, 2: 5.0}, 1: {3: 1.0}, 2: {3: 1.0}, 3: {}}
        model = GraphModel(edges, terminal_nodes=[1])
        planner = AStar([GraphActionType(edges)], model, goal_condition=lambda s: s.id == 3)
        policy = planner.plan_from_state(NodeState(0))
        total, visited = follow(policy, model, NodeState(0), goal=3)
        assert visited == [0, 2, 3]
        assert total == -6.0

    def test_policy_undefined_off_path(self):
        planner, _ = make_planner(FIVE_NODE_EDGES, goal=4)
        policy = planner.plan_from_state(NodeState(0))
        assert policy.defined_for(NodeState(1))
        assert not policy.defined_for(NodeState(3))
        with pytest.raises(PolicyUndefinedError):
            policy.action(NodeState(3))

    def test_action_distribution_is_deterministic(self):
        planner, _ = make_planner(FIVE_NODE_EDGES, goal=4)
        policy = planner.plan_from_state(NodeState(0))
        dist = policy.action_distribution(NodeState(0))
        assert len(dist) == 1
        assert dist[0].p == 1.0
        assert dist[0].a == GoTo(1)

    def test_memoized_plan_skips_search(self):
        planner, model = make_planner(FIVE_NODE_EDGES, goal=4)
        planner.plan_from_state(NodeState(0))
        samples_after_first = model.num_samples
        planner.plan_from_state(NodeState(1))  # on the stored plan
        assert model.num_samples == samples_after_first

    def test_reset_solver_forgets_plan(self):
        planner, _ = make_planner(FIVE_NODE_EDGES, goal=4)
        planner.plan_from_state(NodeState(0))
        planner.reset_solver()
        assert not planner.plan_contains_state(NodeState(0))

    def test_dd_policy_replans(self):
        planner, model = make_planner(FIVE_NODE_EDGES, goal=4)
        planner.plan_from_state(NodeState(0))
        policy = DDPlannerPolicy(planner)
        assert policy.defined_for(NodeState(3))
        assert policy.action(NodeState(3)) == GoTo(1)

    def test_missing_collaborators(self):
        with pytest.raises(ConfigurationError):
            AStar([GraphActionType(FIVE_NODE_EDGES)], None, goal_condition=lambda s: True)
        with pytest.raises(ConfigurationError):
            AStar([GraphActionType(FIVE_NODE_EDGES)], GraphModel(FIVE_NODE_EDGES), goal_condition=None)

    def test_planner_base_is_abstract(self):
        with pytest.raises(TypeError):
            DeterministicPlanner([GraphActionType(FIVE_NODE_EDGES)], GraphModel(FIVE_NODE_EDGES),
                                 goal_condition=lambda s: True)

    def test_positive_heuristic_warns(self):
        planner, _ = make_planner(FIVE_NODE_EDGES, goal=4, heuristic=lambda s: 1.0)
        with pytest.warns(UserWarning):
            planner.plan_from_state(NodeState(0))


# =============================================================================
# Reopening
# =============================================================================

class TestReopening:
    """
    C is first reached (and expanded) through B with cost 4. The heuristic is
    admissible but inconsistent, so A is only expanded afterwards and reveals
    a path to C with cost 2. C must be reopened, which in turn improves the
    path to the goal G from cost 9 to cost 7.
    """

    S, A, B, C, G = 0, 1, 2, 3, 4
    EDGES = {
        0: {1: 1.0, 2: 1.0},
        1: {3: 1.0},
        2: {3: 3.0},
        3: {4: 5.0},
        4: {},
    }
    # remaining-cost estimates; all are lower bounds of the true costs
    H_COST = {0: 0.0, 1: 6.0, 2: 0.0, 3: 0.0, 4: 0.0}

    def test_closed_node_is_reopened_with_better_g(self):
        planner, model = make_planner(self.EDGES, goal=self.G, heuristic=lambda s: -self.H_COST[s.id])
        policy = planner.plan_from_state(NodeState(self.S))

        total, visited = follow(policy, model, NodeState(self.S), goal=self.G)
        assert total == -7.0, f"Expected the reopened path with cost 7, got {-total}"
        assert visited == [self.S, self.A, self.C, self.G]
        # S, B, C, A, C (again), G
        assert planner.num_expanded == 6

    def test_goal_node_path_goes_through_reopened_node(self):
        planner, _ = make_planner(self.EDGES, goal=self.G, heuristic=lambda s: -self.H_COST[s.id])
        planner.plan_from_state(NodeState(self.S))
        path_ids = [node.s.s.id for node in planner.last_goal_node.path()]
        assert path_ids == [self.S, self.A, self.C, self.G]


# =============================================================================
# Dynamic Weighted A*
# =============================================================================

class TestDynamicWeightedAStar:

    def test_weight_anneals_with_depth(self):
        planner, _ = make_planner(FIVE_NODE_EDGES, goal=4, cls=DynamicWeightedAStar,
                                  epsilon=2.0, expected_depth=4)
        assert planner.heuristic_weight(0) == 3.0
        assert planner.heuristic_weight(2) == 2.0
        assert planner.heuristic_weight(4) == 1.0
        assert planner.heuristic_weight(10) == 1.0

    def test_never_better_than_optimal(self):
        # a misleading (inadmissible after weighting) heuristic lures the search to 3
        heuristic = lambda s: {0: -3.0, 1: -2.0, 2: -1.0, 3: 0.0, 4: 0.0}[s.id]
        edges = {0: {1: 1.0, 3: 1.0}, 1: {2: 1.0}, 2: {4: 1.0}, 3: {4: 4.0}, 4: {}}
        for epsilon, depth in [(1.0, 10 ** 9), (1.0, 2), (5.0, 10)]:
            planner, model = make_planner(edges, goal=4, heuristic=heuristic, cls=DynamicWeightedAStar,
                                          epsilon=epsilon, expected_depth=depth)
            policy = planner.plan_from_state(NodeState(0))
            total, _ = follow(policy, model, NodeState(0), goal=4)
            assert total <= -3.0, f"epsilon={epsilon}, N={depth}: reward {total} beats the optimum -3"

    def test_large_expected_depth_expands_superset_of_static_weighting(self):
        class StaticWeightedAStar(AStar):
            def heuristic_weight(self, depth):
                return 2.0

        heuristic = lambda s: {0: -3.0, 1: -2.0, 2: -1.0, 3: 0.0, 4: 0.0}[s.id]
        edges = {0: {1: 1.0, 3: 1.0}, 1: {2: 1.0}, 2: {4: 1.0}, 3: {4: 4.0}, 4: {}}

        def expanded_nodes(cls, **kwargs):
            planner, _ = make_planner(edges, goal=4, heuristic=heuristic, cls=cls, **kwargs)
            expanded = []
            planner.goal_condition = lambda s: expanded.append(s.id) or s.id == 4
            planner.plan_from_state(NodeState(0))
            assert len(expanded) == planner.num_expanded
            return expanded

        static = expanded_nodes(StaticWeightedAStar)
        dynamic = expanded_nodes(DynamicWeightedAStar, epsilon=1.0, expected_depth=10 ** 9)
        assert static == [0, 3, 1, 2, 4]
        assert set(dynamic) >= set(static)
        assert len(dynamic) >= len(static)

    def test_large_expected_depth_finds_goal(self):
        heuristic = lambda s: -FIVE_NODE_TRUE_COST[s.id]
        planner, model = make_planner(FIVE_NODE_EDGES, goal=4, heuristic=heuristic, cls=DynamicWeightedAStar,
                                      epsilon=1.0, expected_depth=10 ** 9)
        policy = planner.plan_from_state(NodeState(0))
        total, _ = follow(policy, model, NodeState(0), goal=4)
        assert total == -3.0

    def test_option_outcome_advances_depth_by_num_steps(self):
        planner, _ = make_planner(FIVE_NODE_EDGES, goal=4, heuristic=lambda s: -1.0,
                                  cls=DynamicWeightedAStar, epsilon=1.0, expected_depth=4)
        root_hash = planner.state_hash(NodeState(0))
        f, g, d = planner.compute_f(None, None, root_hash, None)
        assert (g, d) == (0.0, 0)
        assert f == -2.0  # weight 1 + 1 * (1 - 0/4)

        root = PrioritizedSearchNode(root_hash, f)
        planner.cumulated_reward[root_hash] = 0.0
        planner.depth[root_hash] = 0
        eo = EnvironmentOptionOutcome(NodeState(0), GoTo(2), NodeState(2), -3.0, False, num_steps=3)
        f, g, d = planner.compute_f(root, GoTo(2), planner.state_hash(NodeState(2)), eo)
        assert d == 3
        assert g == -3.0
        assert f == pytest.approx(-3.0 + (1.0 + 0.25) * -1.0)

    def test_invalid_parameters(self):
        with pytest.raises(ConfigurationError):
            make_planner(FIVE_NODE_EDGES, goal=4, cls=DynamicWeightedAStar, epsilon=0.5, expected_depth=10)
        with pytest.raises(ConfigurationError):
            make_planner(FIVE_NODE_EDGES, goal=4, cls=DynamicWeightedAStar, epsilon=1.0, expected_depth=0)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
