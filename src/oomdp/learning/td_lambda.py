"""
TD(lambda) state value critic with accumulating-then-replacing traces.

For an observed transition (s, a, r, s') spanning k primitive steps:

    delta = r + gamma^k * V(s') - V(s)        (V(s') = 0 if s' is terminal)

Every state with a trace is updated with V <- V + lr * delta * e and its
trace decays by lambda * gamma^k. The trace of s is refreshed to 1 before the
update. If s has no trace yet, V(s) gets the plain TD update and s starts a
trace with eligibility lambda * gamma^k. Traces are cleared at the start and
at the end of every episode.

With lambda = 0 this is exactly one-step TD: only V(s) changes.
"""

from typing import Any, Dict, Optional, Union

from oomdp.config import TDLambdaConfig
from oomdp.episode import Episode
from oomdp.hashing import HashableState, HashableStateFactory, SimpleHashableStateFactory
from oomdp.learning_rate import LearningRate, as_learning_rate
from oomdp.value_function import ValueFunction, ValueInitializer, ValueTable
from oomdp.world_model import EnvironmentOutcome, num_steps_of

DEBUG = False  # Set to True to print every TD error


class TDLambda(ValueFunction):
    """
    Args:
        gamma: Discount factor in [0, 1].
        hashing_factory: State hashing scheme.
        learning_rate: A LearningRate schedule or a constant.
        v_init: Initial value of unseen states (number, callable or ValueFunction).
        lambda_: Trace decay in [0, 1].

    Attributes:
        traces: Hashed state -> eligibility for the current episode.
        total_number_of_steps: Number of critiqued transitions since the last reset.
    """

    def __init__(
        self,
        gamma: float = 0.99,
        hashing_factory: Optional[HashableStateFactory] = None,
        learning_rate: Optional[Union[LearningRate, float]] = None,
        v_init: Optional[Union[ValueInitializer, float]] = None,
        lambda_: float = 0.0,
    ):
        constant_lr = learning_rate if isinstance(learning_rate, (int, float)) else 0.1
        constant_v = v_init if isinstance(v_init, (int, float)) else 0.0
        self.config = TDLambdaConfig(gamma=gamma, lambda_=lambda_, learning_rate=constant_lr, v_init=constant_v)
        self.hashing_factory = hashing_factory or SimpleHashableStateFactory()
        self.learning_rate = as_learning_rate(learning_rate, self.config.learning_rate)
        self.value_function = ValueTable(self.hashing_factory, self.config.v_init if v_init is None else v_init)
        self.traces: Dict[HashableState, float] = {}
        self.total_number_of_steps = 0

    @property
    def gamma(self) -> float:
        return self.config.gamma

    @property
    def lambda_(self) -> float:
        return self.config.lambda_

    def start_episode(self, s: Any = None) -> None:
        self.traces.clear()

    def end_episode(self) -> None:
        self.traces.clear()

    def value(self, s: Any) -> float:
        return self.value_function.value(s)

    def critique(self, eo: EnvironmentOutcome) -> float:
        """
        Update the values from one transition.

        Returns:
            The TD error delta.
        """
        sh = self.hashing_factory.hash_state(eo.o)
        discount = self.gamma ** num_steps_of(eo)

        v_s = self.value_function.value(sh)
        next_v = 0.0
        if not eo.terminated:
            next_v = self.value_function.value(self.hashing_factory.hash_state(eo.op))
        delta = eo.r + discount * next_v - v_s

        found_trace = sh in self.traces
        if found_trace:
            self.traces[sh] = 1.0
        for tsh, eligibility in list(self.traces.items()):
            lr = self.learning_rate.poll_learning_rate(self.total_number_of_steps, tsh.s, None)
            self.value_function.set(tsh, self.value_function.value(tsh) + lr * delta * eligibility)
            self.traces[tsh] = eligibility * self.lambda_ * discount

        if not found_trace:
            lr = self.learning_rate.poll_learning_rate(self.total_number_of_steps, sh.s, None)
            self.value_function.set(sh, v_s + lr * delta)
            self.traces[sh] = discount * self.lambda_

        self.total_number_of_steps += 1
        if DEBUG:
            print(f"  TD error at {eo.o!r}: {delta:.6f}")
        return delta

    def run_learning_episode(self, env: Any, policy: Any, max_steps: Optional[int] = None) -> Episode:
        """
        Follow ``policy`` in ``env`` from its current state, critiquing every
        transition, until a terminal state or ``max_steps`` actions.
        """
        s = env.current_observation()
        episode = Episode(s)
        self.start_episode(s)
        steps = 0
        while not env.is_in_terminal_state() and (max_steps is None or steps < max_steps):
            eo = env.execute_action(policy.action(env.current_observation()))
            self.critique(eo)
            episode.record_outcome(eo)
            steps += 1
        self.end_episode()
        return episode

    def reset_solver(self) -> None:
        self.value_function.clear()
        self.traces.clear()
        self.learning_rate.reset_decay()
        self.total_number_of_steps = 0
