"""
Agent definitions and joint actions for stochastic games.

An AgentType names an agent role and lists the action types available to it.
A JointAction is a fixed-order tuple with one action per agent; position i
always belongs to agent i of the agent definitions it was built from.
"""

import itertools
from typing import Any, Iterator, List, Sequence

from oomdp.world_model import ActionType, applicable_actions


class AgentType:
    """
    Args:
        type_name: Name of the role (e.g. "player").
        action_types: Action types an agent of this type can use.
    """

    def __init__(self, type_name: str, action_types: Sequence[ActionType]):
        self.type_name = type_name
        self.action_types = list(action_types)

    def applicable_actions(self, s: Any) -> List[Any]:
        return applicable_actions(self.action_types, s)

    def __repr__(self) -> str:
        return f"AgentType({self.type_name!r})"


class JointAction:
    """One action per agent, in agent order. Hashable and comparable by value."""

    __slots__ = ("actions",)

    def __init__(self, actions: Sequence[Any]):
        self.actions = tuple(actions)

    def action(self, agent_num: int) -> Any:
        return self.actions[agent_num]

    def size(self) -> int:
        return len(self.actions)

    def __len__(self) -> int:
        return len(self.actions)

    def __iter__(self) -> Iterator[Any]:
        return iter(self.actions)

    def __getitem__(self, agent_num: int) -> Any:
        return self.actions[agent_num]

    def __eq__(self, other) -> bool:
        return isinstance(other, JointAction) and self.actions == other.actions

    def __hash__(self) -> int:
        return hash(self.actions)

    def action_name(self) -> str:
        return ";".join(str(a) for a in self.actions)

    def __repr__(self) -> str:
        return f"JointAction({self.action_name()})"


def all_joint_actions(s: Any, agent_types: Sequence[AgentType]) -> List[JointAction]:
    """Every combination of the agents' applicable actions in s."""
    per_agent = [agent_type.applicable_actions(s) for agent_type in agent_types]
    return [JointAction(combo) for combo in itertools.product(*per_agent)]
