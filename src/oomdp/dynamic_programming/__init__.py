"""
Tabular dynamic programming planners.

Main classes:
    ValueIteration:          reachability-seeded value iteration.
    DifferentiableVI:        softmax value iteration that tracks dV/dtheta.
    VIModelLearningPlanner:  value iteration that replans on model changes.
    MLIRL:                   maximum-likelihood inverse RL on top of DifferentiableVI.
"""

from .dp import DynamicProgramming
from .value_iteration import ValueIteration
from .differentiable import (
    DifferentiableRF,
    LinearStateDifferentiableRF,
    DifferentiableSoftmaxOperator,
    DifferentiableVI,
)
from .model_learning import VIModelLearningPlanner, ReplanIfUnseenPolicy
from .mlirl import MLIRLRequest, MLIRL

__all__ = [
    'DynamicProgramming',
    'ValueIteration',
    'DifferentiableRF',
    'LinearStateDifferentiableRF',
    'DifferentiableSoftmaxOperator',
    'DifferentiableVI',
    'VIModelLearningPlanner',
    'ReplanIfUnseenPolicy',
    'MLIRLRequest',
    'MLIRL',
]
