"""
Multi-agent planning for stochastic games.

Main classes:
    AgentType, JointAction:  agent definitions and joint actions.
    FullJointModel:          enumerable joint transition model.
    MADynamicProgramming:    per-agent Q-sources and value backups.
    MAValueIteration:        multi-agent value iteration from a seed state.
    MaxQ, MinMaxQ:           backup operators (solution concepts).
    GreedyJointPolicy:       joint policy from the planner's Q-sources.
"""

from .agents import AgentType, JointAction, all_joint_actions
from .model import FullJointModel, JointRewardFunction, FunctionJointReward
from .backup_operators import SGBackupOperator, MaxQ, MinMaxQ
from .ma_dynamic_programming import (
    JAQValue,
    QSourceForSingleAgent,
    AgentQSourceMap,
    HashMapAgentQSourceMap,
    JointActionTransitions,
    BackupBasedQSource,
    MADynamicProgramming,
    MAValueIteration,
)
from .joint_policy import JointPolicy, EGreedyJointPolicy, GreedyJointPolicy

__all__ = [
    'AgentType',
    'JointAction',
    'all_joint_actions',
    'FullJointModel',
    'JointRewardFunction',
    'FunctionJointReward',
    'SGBackupOperator',
    'MaxQ',
    'MinMaxQ',
    'JAQValue',
    'QSourceForSingleAgent',
    'AgentQSourceMap',
    'HashMapAgentQSourceMap',
    'JointActionTransitions',
    'BackupBasedQSource',
    'MADynamicProgramming',
    'MAValueIteration',
    'JointPolicy',
    'EGreedyJointPolicy',
    'GreedyJointPolicy',
]
