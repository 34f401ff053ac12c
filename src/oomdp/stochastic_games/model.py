"""Joint transition and reward models for stochastic games."""

from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional, Sequence

import numpy as np

from oomdp.world_model import StateTransitionProb

from .agents import JointAction


class FullJointModel(ABC):
    """Enumerates the successor distribution of a joint action."""

    @abstractmethod
    def state_transitions(self, s: Any, ja: JointAction) -> List[StateTransitionProb]:
        """All successors of s under ja with nonzero probability; probabilities sum to 1."""

    def sample(self, s: Any, ja: JointAction, rng: Optional[np.random.Generator] = None) -> Any:
        rng = rng if rng is not None else np.random.default_rng()
        stps = self.state_transitions(s, ja)
        if len(stps) == 1:
            return stps[0].s
        probabilities = np.array([stp.p for stp in stps], dtype=float)
        return stps[rng.choice(len(stps), p=probabilities / probabilities.sum())].s


class JointRewardFunction(ABC):
    """Rewards of all agents for one joint transition, in agent order."""

    @abstractmethod
    def reward(self, s: Any, ja: JointAction, sp: Any) -> Sequence[float]:
        ...

    def __call__(self, s: Any, ja: JointAction, sp: Any) -> Sequence[float]:
        return self.reward(s, ja, sp)


class FunctionJointReward(JointRewardFunction):
    """Wraps a plain ``(s, ja, sp) -> rewards`` function."""

    def __init__(self, fn: Callable[[Any, JointAction, Any], Sequence[float]]):
        self.fn = fn

    def reward(self, s: Any, ja: JointAction, sp: Any) -> Sequence[float]:
        return self.fn(s, ja, sp)
