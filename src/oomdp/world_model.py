"""
Actions, transition/reward models and environments.

Planning algorithms are written against one of two model capabilities:

1. SampleModel: ``sample(state, action)`` draws one outcome
   (next state, reward, terminal flag). Enough for online learners and for
   best-first search in deterministic domains.
2. FullModel: additionally ``transitions(state, action)`` enumerates every
   possible outcome with its probability. Required by value-iteration style
   backups that compute exact expectations.

Both expose ``terminal(state)``. Terminal states contribute no continuation
value and are never expanded.

A FullModel must return every outcome that has nonzero probability; the
reachability analysis of the dynamic programming planners relies on this and
does not check it.

This module also provides:
    - Action / ActionType and the SimpleAction / UniversalActionType defaults
    - Options (temporally extended actions) and OptionType
    - FactoredModel, composing a state model, a reward function and a
      terminal function
    - SimulatedEnvironment, a gymnasium environment driven by a SampleModel
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import gymnasium as gym
import numpy as np

from oomdp.errors import ConfigurationError


# =============================================================================
# Actions
# =============================================================================

class Action(ABC):
    """
    Base class of actions.

    Actions are compared and hashed by ``action_name`` so they can be used as
    dictionary keys in Q tables and policies.
    """

    @abstractmethod
    def action_name(self) -> str:
        raise NotImplementedError

    def __eq__(self, other) -> bool:
        return isinstance(other, Action) and self.action_name() == other.action_name()

    def __hash__(self) -> int:
        return hash(self.action_name())

    def __repr__(self) -> str:
        return self.action_name()


class SimpleAction(Action):
    """An action identified only by its name."""

    __slots__ = ("name",)

    def __init__(self, name: str):
        self.name = name

    def action_name(self) -> str:
        return self.name


class ActionType(ABC):
    """A family of actions; enumerates the members applicable in a state."""

    @abstractmethod
    def type_name(self) -> str:
        ...

    @abstractmethod
    def all_applicable_actions(self, s: Any) -> List[Action]:
        ...


class UniversalActionType(ActionType):
    """An action type with a single action that is applicable in every state."""

    def __init__(self, action):
        self.action = action if isinstance(action, Action) else SimpleAction(str(action))

    def type_name(self) -> str:
        return self.action.action_name()

    def all_applicable_actions(self, s: Any) -> List[Action]:
        return [self.action]


def applicable_actions(action_types: Sequence[ActionType], s: Any) -> List[Action]:
    """All actions of all action types applicable in s, in action type order."""
    res: List[Action] = []
    for action_type in action_types:
        res.extend(action_type.all_applicable_actions(s))
    return res


def universal_action_types(names: Sequence[str]) -> List[ActionType]:
    """Convenience: one UniversalActionType per action name."""
    return [UniversalActionType(SimpleAction(n)) for n in names]


# =============================================================================
# Outcomes
# =============================================================================

@dataclass
class EnvironmentOutcome:
    """
    Result of applying an action.

    Attributes:
        o: State the action was applied in.
        a: The action.
        op: Resulting state.
        r: Reward received.
        terminated: Whether op is terminal.
    """
    o: Any
    a: Any
    op: Any
    r: float
    terminated: bool


@dataclass
class EnvironmentOptionOutcome(EnvironmentOutcome):
    """
    Outcome of a temporally extended action.

    ``r`` is the discounted cumulative reward over the execution and
    ``num_steps`` the number of primitive steps that elapsed.
    """
    num_steps: int = 1


def num_steps_of(eo: EnvironmentOutcome) -> int:
    """Number of primitive steps an outcome spans (1 for primitive actions)."""
    if isinstance(eo, EnvironmentOptionOutcome):
        return eo.num_steps
    return 1


@dataclass
class TransitionProb:
    """A possible outcome together with its probability."""
    p: float
    eo: EnvironmentOutcome


@dataclass
class StateTransitionProb:
    """A possible successor state together with its probability."""
    p: float
    s: Any


# =============================================================================
# Model interfaces
# =============================================================================

TerminalFunction = Callable[[Any], bool]
StateConditionTest = Callable[[Any], bool]
RewardFunction = Callable[[Any, Any, Any], float]


def null_termination(s: Any) -> bool:
    """Terminal function for problems without terminal states."""
    return False


class SampleModel(ABC):
    """A model that can sample one outcome of an action."""

    @abstractmethod
    def sample(self, s: Any, a: Any) -> EnvironmentOutcome:
        ...

    @abstractmethod
    def terminal(self, s: Any) -> bool:
        ...


class FullModel(SampleModel):
    """
    A model that can enumerate all outcomes of an action.

    Subclasses implement ``transitions``; ``sample`` draws from it.
    """

    def __init__(self, seed: Optional[int] = None):
        self.rng = np.random.default_rng(seed)

    @abstractmethod
    def transitions(self, s: Any, a: Any) -> List[TransitionProb]:
        """
        Return all outcomes of applying a in s.

        The probabilities of the returned list must sum to 1 and every outcome
        with nonzero probability must be included.
        """

    def sample(self, s: Any, a: Any) -> EnvironmentOutcome:
        tps = self.transitions(s, a)
        if len(tps) == 1:
            return tps[0].eo
        probabilities = np.array([tp.p for tp in tps], dtype=float)
        chosen_idx = self.rng.choice(len(tps), p=probabilities / probabilities.sum())
        return tps[chosen_idx].eo


class StateModel(ABC):
    """State transition dynamics without rewards."""

    @abstractmethod
    def state_transitions(self, s: Any, a: Any) -> List[StateTransitionProb]:
        ...

    def sample_state_transition(self, s: Any, a: Any, rng: np.random.Generator) -> Any:
        stps = self.state_transitions(s, a)
        if len(stps) == 1:
            return stps[0].s
        probabilities = np.array([stp.p for stp in stps], dtype=float)
        return stps[rng.choice(len(stps), p=probabilities / probabilities.sum())].s


class FactoredModel(FullModel):
    """
    A FullModel assembled from a state model, a reward function and a
    terminal function.

    Args:
        state_model: The transition dynamics.
        reward_function: ``reward(s, a, sp) -> float``.
        terminal_function: ``terminal(s) -> bool``. Defaults to no terminal states.
        seed: Seed of the random generator used by ``sample``.
    """

    def __init__(
        self,
        state_model: StateModel,
        reward_function: RewardFunction,
        terminal_function: Optional[TerminalFunction] = None,
        seed: Optional[int] = None,
    ):
        super().__init__(seed)
        if state_model is None:
            raise ConfigurationError("FactoredModel requires a state model")
        if reward_function is None:
            raise ConfigurationError("FactoredModel requires a reward function")
        self.state_model = state_model
        self.reward_function = reward_function
        self.terminal_function = terminal_function or null_termination

    def transitions(self, s: Any, a: Any) -> List[TransitionProb]:
        res = []
        for stp in self.state_model.state_transitions(s, a):
            r = self.reward_function(s, a, stp.s)
            res.append(TransitionProb(stp.p, EnvironmentOutcome(s, a, stp.s, r, self.terminal(stp.s))))
        return res

    def sample(self, s: Any, a: Any) -> EnvironmentOutcome:
        sp = self.state_model.sample_state_transition(s, a, self.rng)
        return EnvironmentOutcome(s, a, sp, self.reward_function(s, a, sp), self.terminal(sp))

    def terminal(self, s: Any) -> bool:
        return bool(self.terminal_function(s))


# =============================================================================
# Options
# =============================================================================

class Option(Action):
    """
    A temporally extended action.

    An option can be initiated in the states of its initiation set, then
    follows its internal policy until its termination condition holds (or the
    world reaches a terminal state).

    Args:
        name: Action name of the option.
        initiation_test: ``s -> bool``.
        policy: ``s -> primitive action``.
        termination_test: ``s -> bool``; checked after every primitive step.
        max_steps: Safety cap on the number of primitive steps.
    """

    def __init__(
        self,
        name: str,
        initiation_test: StateConditionTest,
        policy: Callable[[Any], Any],
        termination_test: StateConditionTest,
        max_steps: int = 1000,
    ):
        self.name = name
        self.initiation_test = initiation_test
        self.policy = policy
        self.termination_test = termination_test
        self.max_steps = max_steps

    def action_name(self) -> str:
        return self.name

    def in_initiation_set(self, s: Any) -> bool:
        return bool(self.initiation_test(s))

    def execute(self, model: SampleModel, s: Any, gamma: float) -> EnvironmentOptionOutcome:
        """
        Run the option in ``model`` from ``s``.

        Returns:
            An EnvironmentOptionOutcome whose reward is the discounted sum
            ``sum_t gamma^t r_t`` and whose num_steps is the number of
            primitive steps taken.
        """
        cur = s
        cumulative_reward = 0.0
        discount = 1.0
        num_steps = 0
        terminated = False
        while num_steps < self.max_steps:
            eo = model.sample(cur, self.policy(cur))
            cumulative_reward += discount * eo.r
            discount *= gamma
            num_steps += 1
            cur = eo.op
            terminated = eo.terminated
            if terminated or self.termination_test(cur):
                break
        return EnvironmentOptionOutcome(s, self, cur, cumulative_reward, terminated, num_steps)


class OptionType(ActionType):
    """Exposes an option as an action type applicable inside its initiation set."""

    def __init__(self, option: Option):
        self.option = option

    def type_name(self) -> str:
        return self.option.action_name()

    def all_applicable_actions(self, s: Any) -> List[Action]:
        if self.option.in_initiation_set(s):
            return [self.option]
        return []


class OptionAwareModel(SampleModel):
    """
    Wraps a primitive SampleModel so that options can be sampled as actions.

    Args:
        base_model: The primitive model.
        gamma: Discount used to accumulate reward during option execution.
    """

    def __init__(self, base_model: SampleModel, gamma: float = 1.0):
        self.base_model = base_model
        self.gamma = gamma

    def sample(self, s: Any, a: Any) -> EnvironmentOutcome:
        if isinstance(a, Option):
            return a.execute(self.base_model, s, self.gamma)
        return self.base_model.sample(s, a)

    def terminal(self, s: Any) -> bool:
        return self.base_model.terminal(s)


# =============================================================================
# Environment
# =============================================================================

class SimulatedEnvironment(gym.Env):
    """
    A gymnasium environment that simulates a SampleModel.

    Besides the gymnasium ``reset``/``step`` API this exposes the calls the
    learning algorithms use: ``current_observation``, ``execute_action``
    (returning an EnvironmentOutcome), ``is_in_terminal_state`` and
    ``last_reward``.

    Args:
        model: The model to simulate.
        initial_state: State restored by ``reset``. May also be a zero-argument
            callable returning a fresh initial state.
    """

    metadata: Dict[str, Any] = {"render_modes": []}

    def __init__(self, model: SampleModel, initial_state: Any):
        super().__init__()
        if model is None:
            raise ConfigurationError("SimulatedEnvironment requires a model")
        self.model = model
        self._initial_state = initial_state
        self._current = self._make_initial_state()
        self._last_reward = 0.0

    def _make_initial_state(self) -> Any:
        if callable(self._initial_state):
            return self._initial_state()
        return self._initial_state

    def reset(self, *, seed: Optional[int] = None, options: Optional[dict] = None) -> Tuple[Any, Dict[str, Any]]:
        super().reset(seed=seed)
        self._current = self._make_initial_state()
        self._last_reward = 0.0
        return self._current, {}

    def step(self, action: Any) -> Tuple[Any, float, bool, bool, Dict[str, Any]]:
        eo = self.execute_action(action)
        info = {"num_steps": num_steps_of(eo)}
        return eo.op, eo.r, eo.terminated, False, info

    def execute_action(self, a: Any) -> EnvironmentOutcome:
        eo = self.model.sample(self._current, a)
        self._current = eo.op
        self._last_reward = eo.r
        return eo

    def current_observation(self) -> Any:
        return self._current

    def set_current_state(self, s: Any) -> None:
        self._current = s

    def is_in_terminal_state(self) -> bool:
        return self.model.terminal(self._current)

    def last_reward(self) -> float:
        return self._last_reward
