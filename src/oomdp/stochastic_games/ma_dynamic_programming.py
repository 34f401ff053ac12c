"""
Multi-agent dynamic programming over joint actions.

Every agent i owns a value table V_i and a Q-source computing

    Q_i(s, ja) = sum_{s'} p(s'|s, ja) * (r_i(s, ja, s') + gamma * V_i(s'))

(0 if s is terminal). ``backup_all_value_functions(s)`` asks the backup
operator (the solution concept, see backup_operators.py) for a new value of
every agent in s and returns the largest change.

Agent definitions are fixed once planning starts: the first backup freezes
them and a later ``set_agent_definitions`` raises IllegalStateError.

MAValueIteration runs this to convergence over the states reachable from a
seed state.

Example:
    >>> planner = MAValueIteration(agents, joint_model, joint_reward, is_terminal,
    ...                            gamma=0.9, backup_operator=MaxQ())
    >>> planner.plan_from_state(s0)
    >>> policy = GreedyJointPolicy(planner, agents)
"""

from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Set, Union

from tqdm import tqdm

from oomdp.config import DPConfig
from oomdp.errors import ConfigurationError, IllegalStateError
from oomdp.hashing import HashableState, HashableStateFactory, SimpleHashableStateFactory
from oomdp.value_function import ValueInitializer, ValueTable, as_value_initializer
from oomdp.world_model import StateTransitionProb, TerminalFunction, null_termination

from .agents import AgentType, JointAction, all_joint_actions
from .backup_operators import SGBackupOperator
from .model import FullJointModel, JointRewardFunction

DEBUG = False  # Set to True for per-state backup output


@dataclass
class JAQValue:
    """Q-value of a joint action in a state, for one agent."""
    s: Any
    ja: JointAction
    q: float


class QSourceForSingleAgent(ABC):
    """Provides one agent's Q-values over joint actions."""

    @abstractmethod
    def get_q_value_for(self, s: Any, ja: JointAction) -> JAQValue:
        ...


class AgentQSourceMap(ABC):
    """Maps agent numbers to their Q-sources."""

    @abstractmethod
    def agent_q_source(self, agent_num: int) -> QSourceForSingleAgent:
        ...


class HashMapAgentQSourceMap(AgentQSourceMap):

    def __init__(self, q_source_mapping: Dict[int, QSourceForSingleAgent]):
        self.q_source_mapping = dict(q_source_mapping)

    def set_q_source_map(self, q_source_mapping: Dict[int, QSourceForSingleAgent]) -> None:
        self.q_source_mapping = dict(q_source_mapping)

    def agent_q_source(self, agent_num: int) -> QSourceForSingleAgent:
        return self.q_source_mapping[agent_num]

    def __len__(self) -> int:
        return len(self.q_source_mapping)


class JointActionTransitions:
    """The successor distribution of a joint action with every agent's rewards."""

    def __init__(self, planner: "MADynamicProgramming", s: Any, ja: JointAction):
        self.ja = ja
        self.tps: List[StateTransitionProb] = planner.joint_model.state_transitions(s, ja)
        self.jrs: List[Sequence[float]] = [planner.joint_reward_function(s, ja, tp.s) for tp in self.tps]


class BackupBasedQSource(QSourceForSingleAgent):
    """
    Q-source of one agent backed by that agent's value table.

    Values are created lazily: a terminal state reads 0, any other unseen
    state reads the planner's value initializer.
    """

    def __init__(self, planner: "MADynamicProgramming", agent_num: int):
        self.planner = planner
        self.agent_num = agent_num
        self.value_function = ValueTable(planner.hashing_factory, self._initial_value)

    def _initial_value(self, s: Any) -> float:
        if self.planner.terminal_function(s):
            return 0.0
        return float(self.planner.v_init(s))

    def get_q_value_for(self, s: Any, ja: JointAction) -> JAQValue:
        sum_q = 0.0
        if not self.planner.terminal_function(s):
            jat = JointActionTransitions(self.planner, s, ja)
            for tp, jr in zip(jat.tps, jat.jrs):
                sh = self.planner.state_hash(tp.s)
                sum_q += tp.p * (jr[self.agent_num] + self.planner.gamma * self.get_value(sh))
        return JAQValue(s, ja, sum_q)

    def get_value(self, s: Any) -> float:
        return self.value_function.value(s)

    def set_value(self, s: Any, v: float) -> None:
        self.value_function.set(s, v)


class MADynamicProgramming(ABC):
    """
    Common machinery of multi-agent DP planners.

    Args:
        agent_definitions: One AgentType per agent, in agent order.
        joint_model: Transition model over joint actions.
        joint_reward_function: ``(s, ja, sp) -> rewards`` in agent order.
        terminal_function: ``s -> bool``. Defaults to no terminal states.
        gamma: Discount factor in [0, 1].
        hashing_factory: State hashing scheme.
        v_init: Initial value of unseen non-terminal states.
        backup_operator: The solution concept.
        verbose: Print progress.
    """

    def __init__(
        self,
        agent_definitions: Sequence[AgentType],
        joint_model: FullJointModel,
        joint_reward_function: JointRewardFunction,
        terminal_function: Optional[TerminalFunction] = None,
        gamma: float = 0.99,
        hashing_factory: Optional[HashableStateFactory] = None,
        v_init: Optional[Union[ValueInitializer, float]] = None,
        backup_operator: Optional[SGBackupOperator] = None,
        max_delta: float = 1e-4,
        max_iterations: int = 1000,
        verbose: bool = False,
    ):
        if joint_model is None:
            raise ConfigurationError(f"{type(self).__name__} requires a joint model")
        if joint_reward_function is None:
            raise ConfigurationError(f"{type(self).__name__} requires a joint reward function")
        if backup_operator is None:
            raise ConfigurationError(f"{type(self).__name__} requires a backup operator")
        self.config = DPConfig(gamma=gamma, max_delta=max_delta, max_iterations=max_iterations)
        self.joint_model = joint_model
        self.joint_reward_function = joint_reward_function
        self.terminal_function = terminal_function or null_termination
        self.hashing_factory = hashing_factory or SimpleHashableStateFactory()
        self.v_init = as_value_initializer(v_init)
        self.backup_operator = backup_operator
        self.verbose = verbose
        self.planning_started = False
        self.agent_definitions: List[AgentType] = []
        self.q_sources: Optional[HashMapAgentQSourceMap] = None
        self.set_agent_definitions(agent_definitions)

    @property
    def gamma(self) -> float:
        return self.config.gamma

    def state_hash(self, s: Any) -> HashableState:
        return s if isinstance(s, HashableState) else self.hashing_factory.hash_state(s)

    def has_started_planning(self) -> bool:
        return self.planning_started

    def set_agent_definitions(self, agent_definitions: Sequence[AgentType]) -> None:
        """
        Set the agents and create a fresh Q-source per agent.

        Raises:
            IllegalStateError: If planning has already started.
        """
        if self.planning_started:
            raise IllegalStateError("Cannot reset the agent definitions after planning has already started.")
        if agent_definitions is None:
            return
        agent_definitions = list(agent_definitions)
        if agent_definitions == self.agent_definitions and self.q_sources is not None:
            return
        self.agent_definitions = agent_definitions
        self.q_sources = HashMapAgentQSourceMap(
            {i: BackupBasedQSource(self, i) for i in range(len(agent_definitions))}
        )

    def get_q_sources(self) -> HashMapAgentQSourceMap:
        return self.q_sources

    def all_joint_actions(self, s: Any) -> List[JointAction]:
        return all_joint_actions(s, self.agent_definitions)

    def backup_all_value_functions(self, s: Any) -> float:
        """Back up every agent's value in s; returns the largest absolute change."""
        self.planning_started = True
        sh = self.state_hash(s)
        max_change = 0.0
        for i in range(len(self.agent_definitions)):
            q_source: BackupBasedQSource = self.q_sources.agent_q_source(i)
            old_v = q_source.get_value(sh)
            new_v = self.backup_operator.perform_backup(sh.s, i, self.agent_definitions, self.q_sources)
            max_change = max(max_change, abs(new_v - old_v))
            q_source.set_value(sh, new_v)
            if DEBUG:
                print(f"  agent {i} {sh.s!r}: V={new_v:.6f}")
        return max_change

    @abstractmethod
    def plan_from_state(self, s: Any) -> None:
        raise NotImplementedError


class MAValueIteration(MADynamicProgramming):
    """
    Multi-agent value iteration over the states reachable from a seed.

    Reachability expands every joint action and every enumerated outcome;
    terminal states are recorded but not expanded. Sweeps back up all agents
    in all states until the largest change is below ``max_delta`` or
    ``max_iterations`` sweeps ran.

    Attributes:
        states: All discovered hashed states.
        delta_history: Largest change of every sweep of the last run.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.states: Set[HashableState] = set()
        self.delta_history: List[float] = []

    def perform_state_reachability_from(self, s: Any) -> bool:
        """Add every state reachable from s; returns True if any were new."""
        sih = self.state_hash(s)
        if sih in self.states:
            return False
        num_before = len(self.states)
        open_list = deque([sih])
        self.states.add(sih)
        while open_list:
            sh = open_list.popleft()
            if self.terminal_function(sh.s):
                continue
            for ja in self.all_joint_actions(sh.s):
                for tp in self.joint_model.state_transitions(sh.s, ja):
                    tsh = self.state_hash(tp.s)
                    if tsh not in self.states:
                        self.states.add(tsh)
                        open_list.append(tsh)
        if self.verbose:
            print(f"Reachability found {len(self.states) - num_before} new states; total {len(self.states)}")
        return True

    def run_vi(self) -> int:
        """Sweep until convergence; returns the number of sweeps."""
        states = list(self.states)
        self.delta_history = []
        iterator = range(self.config.max_iterations)
        if self.verbose:
            iterator = tqdm(iterator, desc="MA value iteration", unit="sweeps", leave=False)
        num_sweeps = 0
        for _ in iterator:
            max_change = 0.0
            for sh in states:
                max_change = max(max_change, self.backup_all_value_functions(sh))
            num_sweeps += 1
            self.delta_history.append(max_change)
            if max_change < self.config.max_delta:
                break
        if self.verbose:
            print(f"Passes: {num_sweeps}")
        return num_sweeps

    def plan_from_state(self, s: Any) -> None:
        if self.perform_state_reachability_from(s):
            self.run_vi()
