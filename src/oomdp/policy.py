"""
Policies.

A policy maps a state to an action. Enumerable policies can also report the
full action distribution in a state, as a list of ActionProb.

Classes:
    Policy:            abstract base (``action``, ``defined_for``).
    EnumerablePolicy:  policies with an explicit action distribution; sampling
                       is done from that distribution.
    GreedyQPolicy:     uniform over the argmax actions of a QProvider.
    BoltzmannQPolicy:  softmax over Q-values with a temperature.
    EpsilonGreedy:     greedy with probability 1 - epsilon, uniform otherwise.

Functions:
    rollout: run a policy in an environment and record an Episode.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, List, Optional

import numpy as np
from scipy.special import softmax

from oomdp.episode import Episode
from oomdp.value_function import QProvider


@dataclass
class ActionProb:
    """An action and its selection probability."""
    a: Any
    p: float


class Policy(ABC):
    """Abstract policy."""

    @abstractmethod
    def action(self, s: Any) -> Any:
        """Select an action for state s."""

    def defined_for(self, s: Any) -> bool:
        return True

    def __call__(self, s: Any) -> Any:
        return self.action(s)


class EnumerablePolicy(Policy):
    """A policy that can enumerate its action distribution."""

    def __init__(self, seed: Optional[int] = None):
        self.rng = np.random.default_rng(seed)

    @abstractmethod
    def action_distribution(self, s: Any) -> List[ActionProb]:
        ...

    def action_prob(self, s: Any, a: Any) -> float:
        return sum(ap.p for ap in self.action_distribution(s) if ap.a == a)

    def action(self, s: Any) -> Any:
        return sample_from_distribution(self.action_distribution(s), self.rng)


def sample_from_distribution(distribution: List[ActionProb], rng: np.random.Generator) -> Any:
    if not distribution:
        raise ValueError("Cannot sample an action from an empty distribution")
    if len(distribution) == 1:
        return distribution[0].a
    probabilities = np.array([ap.p for ap in distribution], dtype=float)
    idx = rng.choice(len(distribution), p=probabilities / probabilities.sum())
    return distribution[idx].a


class GreedyQPolicy(EnumerablePolicy):
    """
    Greedy policy over the Q-values of a QProvider.

    Ties are broken uniformly at random; ``action_distribution`` spreads the
    probability mass evenly over all maximizing actions.
    """

    def __init__(self, q_provider: QProvider, seed: Optional[int] = None):
        super().__init__(seed)
        self.q_provider = q_provider

    def action_distribution(self, s: Any) -> List[ActionProb]:
        qs = self.q_provider.q_values(s)
        if not qs:
            return []
        best = max(q.q for q in qs)
        maxes = [q for q in qs if q.q == best]
        p = 1.0 / len(maxes)
        return [ActionProb(q.a, p if q.q == best else 0.0) for q in qs]


class BoltzmannQPolicy(EnumerablePolicy):
    """
    Softmax policy ``p(a|s) ∝ exp(Q(s, a) / temperature)``.

    Args:
        q_provider: Source of Q-values.
        temperature: Softmax temperature (> 0). Lower is greedier.
    """

    def __init__(self, q_provider: QProvider, temperature: float, seed: Optional[int] = None):
        super().__init__(seed)
        if temperature <= 0:
            raise ValueError(f"temperature must be > 0, got {temperature}")
        self.q_provider = q_provider
        self.temperature = temperature

    def action_distribution(self, s: Any) -> List[ActionProb]:
        qs = self.q_provider.q_values(s)
        if not qs:
            return []
        probs = softmax(np.array([q.q for q in qs]) / self.temperature)
        return [ActionProb(q.a, float(p)) for q, p in zip(qs, probs)]


class EpsilonGreedy(EnumerablePolicy):
    """Greedy with probability 1 - epsilon, uniformly random otherwise."""

    def __init__(self, q_provider: QProvider, epsilon: float, seed: Optional[int] = None):
        super().__init__(seed)
        self.q_provider = q_provider
        self.epsilon = epsilon

    def action_distribution(self, s: Any) -> List[ActionProb]:
        qs = self.q_provider.q_values(s)
        if not qs:
            return []
        best = max(q.q for q in qs)
        num_best = sum(1 for q in qs if q.q == best)
        uniform = self.epsilon / len(qs)
        return [
            ActionProb(q.a, uniform + ((1.0 - self.epsilon) / num_best if q.q == best else 0.0))
            for q in qs
        ]


def rollout(policy: Policy, env: Any, max_steps: Optional[int] = None) -> Episode:
    """
    Follow ``policy`` in ``env`` until a terminal state or ``max_steps`` actions.

    The environment is not reset; the episode starts in its current state.

    Args:
        policy: The policy to follow.
        env: An environment with ``current_observation``, ``execute_action``
            and ``is_in_terminal_state`` (e.g. SimulatedEnvironment).
        max_steps: Optional cap on the number of actions.

    Returns:
        The recorded Episode.
    """
    episode = Episode(env.current_observation())
    steps = 0
    while not env.is_in_terminal_state() and (max_steps is None or steps < max_steps):
        a = policy.action(env.current_observation())
        eo = env.execute_action(a)
        episode.record_outcome(eo)
        steps += 1
    return episode
