"""
Tests for multi-agent dynamic programming over joint actions.

Verifies:
- Q_i(s, ja) = sum p * (r_i + gamma * V_i(s')) and 0 in terminal states
- Values are created lazily (0 for terminal states, v_init otherwise)
- Agent definitions are frozen once planning starts
- MaxQ solves a coordination game, MinMaxQ finds the value of zero-sum games
- Joint policies (target agent vs. summed Q-values, synchronized selection)
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

import numpy as np
import pytest

from oomdp.errors import ConfigurationError, IllegalStateError
from oomdp.state import NodeState
from oomdp.stochastic_games import (
    AgentType,
    EGreedyJointPolicy,
    FullJointModel,
    FunctionJointReward,
    GreedyJointPolicy,
    JointPolicy,
    JointAction,
    MADynamicProgramming,
    MAValueIteration,
    MaxQ,
    MinMaxQ,
    all_joint_actions,
)
from oomdp.world_model import SimpleAction, StateTransitionProb, universal_action_types

START = NodeState(0)
END = NodeState(1)


class OneShotModel(FullJointModel):
    """Any joint action in START leads to the terminal END."""

    def state_transitions(self, s, ja):
        return [StateTransitionProb(1.0, END)]


class RepeatedModel(FullJointModel):
    """The game is played forever in START."""

    def state_transitions(self, s, ja):
        return [StateTransitionProb(1.0, START)]


def is_end(s):
    return s.id == END.id


def players(*names, n=2):
    return [AgentType("player", universal_action_types(names)) for _ in range(n)]


def matrix_reward(table):
    """Joint reward from a dict keyed by the tuple of action names."""
    return FunctionJointReward(lambda s, ja, sp: table[tuple(a.action_name() for a in ja)])


COORDINATION = {
    ("a", "a"): (10.0, 10.0),
    ("b", "b"): (5.0, 5.0),
    ("a", "b"): (0.0, 0.0),
    ("b", "a"): (0.0, 0.0),
}

PENNIES = {
    ("heads", "heads"): (1.0, -1.0),
    ("tails", "tails"): (1.0, -1.0),
    ("heads", "tails"): (-1.0, 1.0),
    ("tails", "heads"): (-1.0, 1.0),
}


# =============================================================================
# Joint actions
# =============================================================================

class TestJointActions:

    def test_all_joint_actions(self):
        jas = all_joint_actions(START, players("a", "b"))
        assert len(jas) == 4
        assert JointAction([SimpleAction("a"), SimpleAction("b")]) in jas

    def test_joint_action_value_semantics(self):
        ja = JointAction([SimpleAction("a"), SimpleAction("b")])
        assert ja == JointAction([SimpleAction("a"), SimpleAction("b")])
        assert hash(ja) == hash(JointAction([SimpleAction("a"), SimpleAction("b")]))
        assert ja.action(1) == SimpleAction("b")
        assert ja.action_name() == "a;b"
        assert len(ja) == 2


# =============================================================================
# Q-sources and backups
# =============================================================================

class TestMADynamicProgramming:

    def make_planner(self, **kwargs):
        reward = FunctionJointReward(lambda s, ja, sp: (1.0, -1.0))
        return MAValueIteration(players("noop"), OneShotModel(), reward, None,
                                gamma=0.9, backup_operator=MaxQ(), **kwargs)

    def test_q_value_is_reward_plus_discounted_value(self):
        planner = self.make_planner()
        q_sources = planner.get_q_sources()
        q_sources.agent_q_source(0).set_value(END, 2.0)
        q_sources.agent_q_source(1).set_value(END, 5.0)

        ja = planner.all_joint_actions(START)[0]
        q0 = q_sources.agent_q_source(0).get_q_value_for(START, ja).q
        q1 = q_sources.agent_q_source(1).get_q_value_for(START, ja).q
        assert q0 == pytest.approx(1.0 + 0.9 * 2.0)
        assert q1 == pytest.approx(-1.0 + 0.9 * 5.0)
        print("  ✓ Joint Q-value test passed!")

    def test_terminal_states_have_zero_q_and_value(self):
        reward = FunctionJointReward(lambda s, ja, sp: (1.0, 1.0))
        planner = MAValueIteration(players("noop"), OneShotModel(), reward, is_end,
                                   gamma=0.9, v_init=7.0, backup_operator=MaxQ())
        q_source = planner.get_q_sources().agent_q_source(0)
        ja = planner.all_joint_actions(END)[0]
        assert q_source.get_q_value_for(END, ja).q == 0.0
        assert q_source.get_value(END) == 0.0
        assert q_source.get_value(NodeState(5)) == 7.0

    def test_backup_returns_largest_change(self):
        planner = self.make_planner()
        change = planner.backup_all_value_functions(START)
        # agent 0: 0 -> 1, agent 1: 0 -> -1
        assert change == pytest.approx(1.0)
        q_sources = planner.get_q_sources()
        assert q_sources.agent_q_source(0).get_value(START) == pytest.approx(1.0)
        assert q_sources.agent_q_source(1).get_value(START) == pytest.approx(-1.0)

    def test_agent_definitions_frozen_after_planning(self):
        planner = self.make_planner()
        planner.set_agent_definitions(players("noop", "other"))
        assert not planner.has_started_planning()
        planner.backup_all_value_functions(START)
        assert planner.has_started_planning()
        with pytest.raises(IllegalStateError):
            planner.set_agent_definitions(players("noop"))

    def test_missing_collaborators(self):
        reward = FunctionJointReward(lambda s, ja, sp: (0.0, 0.0))
        with pytest.raises(ConfigurationError):
            MAValueIteration(players("noop"), None, reward, backup_operator=MaxQ())
        with pytest.raises(ConfigurationError):
            MAValueIteration(players("noop"), OneShotModel(), None, backup_operator=MaxQ())
        with pytest.raises(ConfigurationError):
            MAValueIteration(players("noop"), OneShotModel(), reward)

    def test_base_classes_are_abstract(self):
        reward = FunctionJointReward(lambda s, ja, sp: (0.0, 0.0))
        with pytest.raises(TypeError):
            MADynamicProgramming(players("noop"), OneShotModel(), reward, backup_operator=MaxQ())
        with pytest.raises(TypeError):
            JointPolicy(players("noop"))


# =============================================================================
# Value iteration with backup operators
# =============================================================================

class TestMAValueIteration:

    def test_max_q_coordination(self):
        planner = MAValueIteration(players("a", "b"), OneShotModel(), matrix_reward(COORDINATION), is_end,
                                   gamma=0.9, backup_operator=MaxQ(), max_delta=1e-10)
        planner.plan_from_state(START)
        q_sources = planner.get_q_sources()
        assert q_sources.agent_q_source(0).get_value(START) == pytest.approx(10.0)
        assert q_sources.agent_q_source(1).get_value(START) == pytest.approx(10.0)
        assert len(planner.states) == 2

        policy = GreedyJointPolicy(planner, planner.agent_definitions)
        assert policy.action(START) == JointAction([SimpleAction("a"), SimpleAction("a")])

    def test_repeated_game_converges(self):
        planner = MAValueIteration(players("a", "b"), RepeatedModel(), matrix_reward(COORDINATION), None,
                                   gamma=0.9, backup_operator=MaxQ(), max_delta=1e-9, max_iterations=5000)
        planner.plan_from_state(START)
        assert planner.get_q_sources().agent_q_source(0).get_value(START) == pytest.approx(100.0, abs=1e-6)
        assert planner.delta_history[-1] < 1e-9

    def test_reachability_is_incremental(self):
        planner = MAValueIteration(players("a"), OneShotModel(), matrix_reward({("a", "a"): (0.0, 0.0)}), is_end,
                                   backup_operator=MaxQ())
        assert planner.perform_state_reachability_from(START)
        assert not planner.perform_state_reachability_from(START)
        assert not planner.perform_state_reachability_from(END)

    def test_min_max_q_matching_pennies(self):
        planner = MAValueIteration(players("heads", "tails"), OneShotModel(), matrix_reward(PENNIES), is_end,
                                   gamma=0.9, backup_operator=MinMaxQ(), max_delta=1e-8)
        planner.plan_from_state(START)
        q_sources = planner.get_q_sources()
        assert q_sources.agent_q_source(0).get_value(START) == pytest.approx(0.0, abs=1e-6)
        assert q_sources.agent_q_source(1).get_value(START) == pytest.approx(0.0, abs=1e-6)
        print("  ✓ Matching pennies minimax test passed!")

    def test_maximin_value_of_matrix_games(self):
        rock_paper_scissors = np.array([[0.0, -1.0, 1.0], [1.0, 0.0, -1.0], [-1.0, 1.0, 0.0]])
        assert MinMaxQ.maximin_value(rock_paper_scissors) == pytest.approx(0.0, abs=1e-7)
        dominant_row = np.array([[3.0, 1.0], [2.0, 0.0]])
        assert MinMaxQ.maximin_value(dominant_row) == pytest.approx(1.0, abs=1e-7)
        # mixed equilibrium: row plays (1/2, 1/2) for value 1.5
        mixed = np.array([[3.0, 0.0], [0.0, 3.0]])
        assert MinMaxQ.maximin_value(mixed) == pytest.approx(1.5, abs=1e-7)

    def test_min_max_q_requires_two_players(self):
        planner = MAValueIteration(players("a", n=3), OneShotModel(),
                                   FunctionJointReward(lambda s, ja, sp: (0.0, 0.0, 0.0)), is_end,
                                   backup_operator=MinMaxQ())
        with pytest.raises(ConfigurationError):
            planner.plan_from_state(START)


# =============================================================================
# Joint policies
# =============================================================================

class TestJointPolicies:

    CONFLICT = {
        ("a", "a"): (3.0, 0.0),
        ("b", "b"): (1.0, 5.0),
        ("a", "b"): (0.0, 0.0),
        ("b", "a"): (0.0, 0.0),
    }

    def planned(self, table):
        planner = MAValueIteration(players("a", "b"), OneShotModel(), matrix_reward(table), is_end,
                                   gamma=0.9, backup_operator=MaxQ())
        planner.plan_from_state(START)
        return planner

    def test_sum_vs_target_agent(self):
        planner = self.planned(self.CONFLICT)
        policy = GreedyJointPolicy(planner, planner.agent_definitions)
        assert policy.action(START) == JointAction([SimpleAction("b"), SimpleAction("b")])
        policy.set_target_agent(0)
        assert policy.action(START) == JointAction([SimpleAction("a"), SimpleAction("a")])

    def test_epsilon_greedy_distribution(self):
        planner = self.planned(COORDINATION)
        policy = EGreedyJointPolicy(planner, planner.agent_definitions, epsilon=0.4)
        probs = {ap.a.action_name(): ap.p for ap in policy.action_distribution(START)}
        assert probs["a;a"] == pytest.approx(0.7)
        assert probs["b;b"] == pytest.approx(0.1)
        assert sum(probs.values()) == pytest.approx(1.0)

    def test_synchronized_selection(self):
        planner = self.planned(COORDINATION)
        policy = EGreedyJointPolicy(planner, planner.agent_definitions, epsilon=1.0, seed=0)
        s = START
        for _ in range(20):
            a0 = policy.get_agent_synchronized_action_selection(0, s)
            a1 = policy.get_agent_synchronized_action_selection(1, s)
            assert JointAction([a0, a1]) == policy._last_synchronized_joint_action, \
                "Both agents must receive parts of the same joint action"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
