"""
oomdp - Planning and learning over hashed (object-oriented) MDP state spaces

A toolkit of tabular and linear planners and learners that all share one
state abstraction:

1. **States and hashing** (`DictState`, `OOState`, `SimpleHashableStateFactory`):
   - States are containers of named variables, optionally decomposed into
     object instances
   - Every value table, policy table and open/closed set is keyed by
     `HashableState`; OO states can be hashed independently of object names
     and order

2. **Models** (`SampleModel`, `FullModel`, `FactoredModel`, `SimulatedEnvironment`):
   - Sampling models for search and online learning
   - Fully enumerable models for exact Bellman backups
   - Options (temporally extended actions)
   - A gymnasium environment wrapper for learning loops

3. **Deterministic search** (`oomdp.deterministic`):
   - A* and Dynamic Weighted A* with g-value based reopening

4. **Dynamic programming** (`oomdp.dynamic_programming`):
   - Reachability-seeded value iteration, a differentiable (softmax) variant
     with reward gradients, model-learning VI and maximum-likelihood IRL

5. **Stochastic games** (`oomdp.stochastic_games`):
   - Multi-agent value iteration over joint actions with pluggable backup
     operators (MaxQ, MinMaxQ)

6. **Learning** (`oomdp.learning`):
   - TD(lambda) critic and least-squares policy iteration

Example usage:
    >>> from oomdp import NodeState, SimpleHashableStateFactory
    >>> from oomdp.deterministic import AStar
    >>>
    >>> planner = AStar(action_types, model, goal_condition=lambda s: s.id == 4,
    ...                 hashing_factory=SimpleHashableStateFactory())
    >>> policy = planner.plan_from_state(NodeState(0))
    >>> policy.action(NodeState(0))
"""

from oomdp.errors import (
    OOMDPError,
    ConfigurationError,
    IllegalStateError,
    UsageOrderError,
    PolicyUndefinedError,
    InvalidStateKind,
)
from oomdp.config import DPConfig, DynamicWeightingConfig, TDLambdaConfig, LSPIConfig, MLIRLConfig
from oomdp.state import State, StateSchema, DictState, NodeState, ObjectInstance, OOState
from oomdp.hashing import (
    HashableState,
    HashableStateFactory,
    SimpleHashableStateFactory,
    IdentityHashableStateFactory,
)
from oomdp.world_model import (
    Action,
    SimpleAction,
    ActionType,
    UniversalActionType,
    universal_action_types,
    EnvironmentOutcome,
    EnvironmentOptionOutcome,
    TransitionProb,
    StateTransitionProb,
    SampleModel,
    FullModel,
    StateModel,
    FactoredModel,
    Option,
    OptionType,
    OptionAwareModel,
    SimulatedEnvironment,
)
from oomdp.value_function import ValueFunction, ConstantValueFunction, ValueTable, QValue, QProvider
from oomdp.learning_rate import LearningRate, ConstantLR, ExponentialDecayLR, SoftTimeInverseDecayLR
from oomdp.episode import Episode, SARS, SARSData
from oomdp.policy import ActionProb, Policy, EnumerablePolicy, GreedyQPolicy, BoltzmannQPolicy, EpsilonGreedy, rollout

__version__ = "0.1.0"

__all__ = [
    # Errors
    "OOMDPError",
    "ConfigurationError",
    "IllegalStateError",
    "UsageOrderError",
    "PolicyUndefinedError",
    "InvalidStateKind",
    # Configuration
    "DPConfig",
    "DynamicWeightingConfig",
    "TDLambdaConfig",
    "LSPIConfig",
    "MLIRLConfig",
    # States and hashing
    "State",
    "StateSchema",
    "DictState",
    "NodeState",
    "ObjectInstance",
    "OOState",
    "HashableState",
    "HashableStateFactory",
    "SimpleHashableStateFactory",
    "IdentityHashableStateFactory",
    # Models
    "Action",
    "SimpleAction",
    "ActionType",
    "UniversalActionType",
    "universal_action_types",
    "EnvironmentOutcome",
    "EnvironmentOptionOutcome",
    "TransitionProb",
    "StateTransitionProb",
    "SampleModel",
    "FullModel",
    "StateModel",
    "FactoredModel",
    "Option",
    "OptionType",
    "OptionAwareModel",
    "SimulatedEnvironment",
    # Values and policies
    "ValueFunction",
    "ConstantValueFunction",
    "ValueTable",
    "QValue",
    "QProvider",
    "LearningRate",
    "ConstantLR",
    "ExponentialDecayLR",
    "SoftTimeInverseDecayLR",
    "Episode",
    "SARS",
    "SARSData",
    "ActionProb",
    "Policy",
    "EnumerablePolicy",
    "GreedyQPolicy",
    "BoltzmannQPolicy",
    "EpsilonGreedy",
    "rollout",
]
