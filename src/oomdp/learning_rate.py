"""
Learning rate schedules.

A schedule is polled once per update with the learner's step counter and
the state/action being updated; ``peek`` reads the current rate without
advancing any decay.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple

from oomdp.errors import ConfigurationError


class LearningRate(ABC):
    """Abstract learning rate schedule."""

    @abstractmethod
    def peek_at_learning_rate(self, s: Any = None, a: Any = None) -> float:
        ...

    @abstractmethod
    def poll_learning_rate(self, agent_time: int, s: Any = None, a: Any = None) -> float:
        ...

    def reset_decay(self) -> None:
        pass


class ConstantLR(LearningRate):
    """The same rate forever."""

    def __init__(self, learning_rate: float = 0.1):
        if learning_rate < 0:
            raise ConfigurationError(f"learning_rate must be >= 0, got {learning_rate}")
        self.learning_rate = float(learning_rate)

    def peek_at_learning_rate(self, s: Any = None, a: Any = None) -> float:
        return self.learning_rate

    def poll_learning_rate(self, agent_time: int, s: Any = None, a: Any = None) -> float:
        return self.learning_rate


class ExponentialDecayLR(LearningRate):
    """
    Multiplies the rate by ``decay_rate`` after every poll, down to ``minimum``.

    Args:
        initial: Starting learning rate.
        decay_rate: Factor in (0, 1] applied after each poll.
        minimum: Floor of the learning rate.
    """

    def __init__(self, initial: float, decay_rate: float, minimum: float = 0.0):
        if not 0 < decay_rate <= 1:
            raise ConfigurationError(f"decay_rate must be in (0, 1], got {decay_rate}")
        self.initial = float(initial)
        self.decay_rate = float(decay_rate)
        self.minimum = float(minimum)
        self._current = self.initial

    def peek_at_learning_rate(self, s: Any = None, a: Any = None) -> float:
        return self._current

    def poll_learning_rate(self, agent_time: int, s: Any = None, a: Any = None) -> float:
        rate = self._current
        self._current = max(self._current * self.decay_rate, self.minimum)
        return rate

    def reset_decay(self) -> None:
        self._current = self.initial


class SoftTimeInverseDecayLR(LearningRate):
    """
    ``lr(t) = initial * decay_constant / (decay_constant + t)``, floored at ``minimum``.

    If ``per_state`` is True, t counts the polls of each (state, action) pair
    separately instead of using the global agent time.
    """

    def __init__(self, initial: float, decay_constant: float, minimum: float = 0.0, per_state: bool = False):
        if decay_constant <= 0:
            raise ConfigurationError(f"decay_constant must be > 0, got {decay_constant}")
        self.initial = float(initial)
        self.decay_constant = float(decay_constant)
        self.minimum = float(minimum)
        self.per_state = per_state
        self._counts: Dict[Tuple[Any, Any], int] = {}
        self._time = 0

    def _rate(self, t: int) -> float:
        return max(self.initial * self.decay_constant / (self.decay_constant + t), self.minimum)

    def peek_at_learning_rate(self, s: Any = None, a: Any = None) -> float:
        t = self._counts.get((s, a), 0) if self.per_state else self._time
        return self._rate(t)

    def poll_learning_rate(self, agent_time: int, s: Any = None, a: Any = None) -> float:
        if self.per_state:
            t = self._counts.get((s, a), 0)
            self._counts[(s, a)] = t + 1
        else:
            t = agent_time
            self._time = agent_time + 1
        return self._rate(t)

    def reset_decay(self) -> None:
        self._counts.clear()
        self._time = 0


def as_learning_rate(lr: Optional[Any], default: float = 0.1) -> LearningRate:
    if lr is None:
        return ConstantLR(default)
    if isinstance(lr, LearningRate):
        return lr
    return ConstantLR(float(lr))
