"""
Backup operators for multi-agent dynamic programming.

A backup operator is the solution concept of a multi-agent planner. Given a
state, the index of the agent being backed up, the agent definitions and the
Q-sources of all agents, it returns the new value of that agent in the state.
MADynamicProgramming only calls ``perform_backup`` and knows nothing else
about the operator, so new solution concepts are added by writing a new
operator, not by subclassing the planner.

Shipped operators:
    MaxQ:     the agent's best Q-value over all joint actions. Suits fully
              cooperative games where all agents coordinate on the best
              joint action.
    MinMaxQ:  the agent's maximin value of the two-player zero-sum matrix game
              defined by its Q-values, solved as a linear program with
              scipy.optimize.linprog (mixed strategies allowed).
"""

from abc import ABC, abstractmethod
from typing import Any, Sequence

import numpy as np
from scipy.optimize import linprog

from oomdp.errors import ConfigurationError

from .agents import AgentType, JointAction, all_joint_actions


class SGBackupOperator(ABC):
    """Computes a new value for one agent from the Q-sources of all agents."""

    @abstractmethod
    def perform_backup(
        self,
        s: Any,
        agent_num: int,
        agent_definitions: Sequence[AgentType],
        q_sources: Any,
    ) -> float:
        ...


class MaxQ(SGBackupOperator):

    def perform_backup(self, s, agent_num, agent_definitions, q_sources) -> float:
        joint_actions = all_joint_actions(s, agent_definitions)
        if not joint_actions:
            return 0.0
        q_source = q_sources.agent_q_source(agent_num)
        return max(q_source.get_q_value_for(s, ja).q for ja in joint_actions)


class MinMaxQ(SGBackupOperator):
    """
    Maximin value of a two-player zero-sum game.

    For agent i with opponent j, solves

        max_{pi, v} v   s.t.   sum_{a_i} pi(a_i) Q_i(a_i, a_j) >= v  for all a_j,
                               sum pi = 1, pi >= 0
    """

    def perform_backup(self, s, agent_num, agent_definitions, q_sources) -> float:
        if len(agent_definitions) != 2:
            raise ConfigurationError(
                f"MinMaxQ is defined for two-player games, got {len(agent_definitions)} agents"
            )
        opponent_num = 1 - agent_num
        my_actions = agent_definitions[agent_num].applicable_actions(s)
        opponent_actions = agent_definitions[opponent_num].applicable_actions(s)
        if not my_actions or not opponent_actions:
            return 0.0

        q_source = q_sources.agent_q_source(agent_num)
        payoff = np.zeros((len(my_actions), len(opponent_actions)))
        for i, a in enumerate(my_actions):
            for j, o in enumerate(opponent_actions):
                actions = [None, None]
                actions[agent_num] = a
                actions[opponent_num] = o
                payoff[i, j] = q_source.get_q_value_for(s, JointAction(actions)).q
        return self.maximin_value(payoff)

    @staticmethod
    def maximin_value(payoff: np.ndarray) -> float:
        """Value of the row player of the zero-sum matrix game ``payoff``."""
        n_rows, n_cols = payoff.shape
        # variables: [pi_1 .. pi_n, v]; minimize -v
        c = np.zeros(n_rows + 1)
        c[-1] = -1.0
        # v - pi^T payoff[:, j] <= 0 for every column j
        a_ub = np.hstack([-payoff.T, np.ones((n_cols, 1))])
        b_ub = np.zeros(n_cols)
        a_eq = np.zeros((1, n_rows + 1))
        a_eq[0, :n_rows] = 1.0
        b_eq = np.ones(1)
        bounds = [(0.0, None)] * n_rows + [(None, None)]
        res = linprog(c, A_ub=a_ub, b_ub=b_ub, A_eq=a_eq, b_eq=b_eq, bounds=bounds, method="highs")
        if not res.success:
            raise RuntimeError(f"Minimax linear program failed: {res.message}")
        return float(res.x[-1])
