"""
Deterministic best-first planning (A* family).

Main classes:
    AStar:                 A* with g-value based reopening.
    DynamicWeightedAStar:  A* with a depth-annealed heuristic weight.
    SDPlannerPolicy:       policy over the states of a computed plan.
    DDPlannerPolicy:       policy that replans from uncovered states.

Module structure:
    - hash_indexed_heap: max-heap with O(1) membership and in-place priority updates
    - search_node: PrioritizedSearchNode
    - planner: DeterministicPlanner base and plan policies
    - astar: AStar, DynamicWeightedAStar, NullHeuristic
"""

from .hash_indexed_heap import HashIndexedHeap
from .search_node import PrioritizedSearchNode
from .planner import DeterministicPlanner, SDPlannerPolicy, DDPlannerPolicy
from .astar import AStar, DynamicWeightedAStar, NullHeuristic

__all__ = [
    'HashIndexedHeap',
    'PrioritizedSearchNode',
    'DeterministicPlanner',
    'SDPlannerPolicy',
    'DDPlannerPolicy',
    'AStar',
    'DynamicWeightedAStar',
    'NullHeuristic',
]
