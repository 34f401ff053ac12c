"""
Joint policies derived from multi-agent Q-sources.

A joint policy selects a JointAction for all agents at once. When the agents
run as separate processes of control, each one asks for its own component
with ``get_agent_synchronized_action_selection``: the first query in a state
draws a joint action, and every agent then receives its part of that same
joint action, so the agents stay coordinated.

Q-values are read from the Q-source of a target agent, or from the sum over
all agents when no target agent is set (maximizing total welfare).
"""

from abc import abstractmethod
from typing import Any, List, Optional, Sequence, Set

from oomdp.policy import ActionProb, EnumerablePolicy

from .agents import AgentType, JointAction, all_joint_actions


class JointPolicy(EnumerablePolicy):
    """Base class of policies over joint actions."""

    def __init__(self, agent_definitions: Sequence[AgentType], seed: Optional[int] = None):
        super().__init__(seed)
        self.agents_in_joint_policy = list(agent_definitions)
        self._last_synchronized_joint_action: Optional[JointAction] = None
        self._agents_synchronized_so_far: Set[int] = set()
        self._last_synced_state: Any = None

    def set_agent_types_in_joint_policy(self, agent_definitions: Sequence[AgentType]) -> None:
        self.agents_in_joint_policy = list(agent_definitions)

    def get_all_joint_actions(self, s: Any) -> List[JointAction]:
        return all_joint_actions(s, self.agents_in_joint_policy)

    def get_agent_synchronized_action_selection(self, agent_num: int, s: Any) -> Any:
        """
        Agent ``agent_num``'s part of the joint action selected in s.

        All agents querying the same state receive components of one joint
        action. After every agent has asked, the next query draws a new one.
        """
        if self._last_synced_state is None or self._last_synced_state != s:
            self._last_synced_state = s
            self._agents_synchronized_so_far.clear()
            self._last_synchronized_joint_action = self.action(s)

        a = self._last_synchronized_joint_action.action(agent_num)
        self._agents_synchronized_so_far.add(agent_num)
        if len(self._agents_synchronized_so_far) == len(self.agents_in_joint_policy):
            self._last_synced_state = None
            self._agents_synchronized_so_far.clear()
        return a

    @abstractmethod
    def set_target_agent(self, agent_num: Optional[int]) -> None:
        raise NotImplementedError


class EGreedyJointPolicy(JointPolicy):
    """
    Epsilon-greedy over joint actions.

    Args:
        q_source_provider: Anything with ``get_q_sources()`` (e.g. a
            MADynamicProgramming planner).
        agent_definitions: Agents of the joint policy, in agent order.
        epsilon: Probability mass spread uniformly over all joint actions.
        target_agent: Agent whose Q-values are maximized; None for the sum.
    """

    def __init__(
        self,
        q_source_provider: Any,
        agent_definitions: Sequence[AgentType],
        epsilon: float = 0.1,
        target_agent: Optional[int] = None,
        seed: Optional[int] = None,
    ):
        super().__init__(agent_definitions, seed)
        self.q_source_provider = q_source_provider
        self.epsilon = epsilon
        self.target_agent = target_agent

    def set_target_agent(self, agent_num: Optional[int]) -> None:
        self.target_agent = agent_num

    def joint_q_value(self, s: Any, ja: JointAction) -> float:
        q_sources = self.q_source_provider.get_q_sources()
        if self.target_agent is not None:
            return q_sources.agent_q_source(self.target_agent).get_q_value_for(s, ja).q
        return sum(
            q_sources.agent_q_source(i).get_q_value_for(s, ja).q
            for i in range(len(self.agents_in_joint_policy))
        )

    def action_distribution(self, s: Any) -> List[ActionProb]:
        joint_actions = self.get_all_joint_actions(s)
        if not joint_actions:
            return []
        qs = [self.joint_q_value(s, ja) for ja in joint_actions]
        best = max(qs)
        num_best = sum(1 for q in qs if q == best)
        uniform = self.epsilon / len(joint_actions)
        return [
            ActionProb(ja, uniform + ((1.0 - self.epsilon) / num_best if q == best else 0.0))
            for ja, q in zip(joint_actions, qs)
        ]


class GreedyJointPolicy(EGreedyJointPolicy):
    """Greedy joint policy; ties are broken uniformly at random."""

    def __init__(
        self,
        q_source_provider: Any,
        agent_definitions: Sequence[AgentType],
        target_agent: Optional[int] = None,
        seed: Optional[int] = None,
    ):
        super().__init__(q_source_provider, agent_definitions, 0.0, target_agent, seed)
