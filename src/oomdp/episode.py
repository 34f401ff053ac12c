"""
Episode records and transition datasets.

Episode stores one trajectory: states s_0..s_T, actions a_0..a_{T-1} and
rewards r_1..r_T, where ``rewards[t]`` is the reward received for taking
``actions[t]`` in ``states[t]``.

SARSData is the append-only (state, action, reward, next state) dataset used
by batch learners such as LSPI.
"""

from dataclasses import dataclass, field
from typing import Any, Iterator, List, Optional

from oomdp.world_model import EnvironmentOutcome, num_steps_of


class Episode:
    """A recorded trajectory."""

    def __init__(self, initial_state: Any = None):
        self.states: List[Any] = []
        self.actions: List[Any] = []
        self.rewards: List[float] = []
        self.num_steps: List[int] = []
        self.terminated = False
        if initial_state is not None:
            self.states.append(initial_state)

    def add_state(self, s: Any) -> None:
        self.states.append(s)

    def transition(self, a: Any, sp: Any, r: float, num_steps: int = 1) -> None:
        """Record that ``a`` led from the last state to ``sp`` with reward ``r``."""
        self.actions.append(a)
        self.states.append(sp)
        self.rewards.append(float(r))
        self.num_steps.append(int(num_steps))

    def record_outcome(self, eo: EnvironmentOutcome) -> None:
        if not self.states:
            self.states.append(eo.o)
        self.transition(eo.a, eo.op, eo.r, num_steps_of(eo))
        self.terminated = bool(eo.terminated)

    def num_time_steps(self) -> int:
        """Number of states in the episode (one more than the number of actions)."""
        return len(self.states)

    def state(self, t: int) -> Any:
        return self.states[t]

    def action(self, t: int) -> Any:
        return self.actions[t]

    def reward(self, t: int) -> float:
        """Reward received on arrival in state t (t >= 1)."""
        return self.rewards[t - 1]

    def discounted_return(self, gamma: float) -> float:
        total = 0.0
        discount = 1.0
        for r, k in zip(self.rewards, self.num_steps):
            total += discount * r
            discount *= gamma ** k
        return total

    def __len__(self) -> int:
        return len(self.actions)

    def __repr__(self) -> str:
        return f"Episode(steps={len(self.actions)}, return={sum(self.rewards):.3f})"


@dataclass
class SARS:
    """One observed transition."""
    s: Any
    a: Any
    r: float
    sp: Any


@dataclass
class SARSData:
    """An ordered, append-only dataset of transitions."""
    dataset: List[SARS] = field(default_factory=list)

    def add(self, s: Any, a: Any, r: float, sp: Any) -> None:
        self.dataset.append(SARS(s, a, float(r), sp))

    def add_episode(self, episode: Episode) -> None:
        for t in range(len(episode)):
            self.add(episode.state(t), episode.action(t), episode.reward(t + 1), episode.state(t + 1))

    def get(self, i: int) -> SARS:
        return self.dataset[i]

    def size(self) -> int:
        return len(self.dataset)

    def clear(self) -> None:
        self.dataset.clear()

    def __len__(self) -> int:
        return len(self.dataset)

    def __iter__(self) -> Iterator[SARS]:
        return iter(self.dataset)

    def __getitem__(self, i: int) -> SARS:
        return self.dataset[i]
