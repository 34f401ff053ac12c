"""
Online and batch learners driven by observed transitions.

Main classes:
    TDLambda:  tabular TD(lambda) state value critic.
    LSPI:      least-squares policy iteration with linear Q-functions.

Module structure:
    - td_lambda: TDLambda
    - features: dense state / state-action features and the linear Q approximator
    - lspi: LSPI and UniformRandomSARSCollector
"""

from .td_lambda import TDLambda
from .features import (
    DenseStateFeatures,
    VariableStateFeatures,
    DenseStateActionFeatures,
    DenseStateActionLinearVFA,
)
from .lspi import LSPI, UniformRandomSARSCollector

__all__ = [
    'TDLambda',
    'DenseStateFeatures',
    'VariableStateFeatures',
    'DenseStateActionFeatures',
    'DenseStateActionLinearVFA',
    'LSPI',
    'UniformRandomSARSCollector',
]
