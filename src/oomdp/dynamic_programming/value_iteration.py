"""
Value iteration over the reachable state space.

Planning happens in two phases:

1. Reachability: a breadth-first expansion from one or more seed states over
   all applicable actions and all enumerated outcomes. Every newly discovered
   state gets an entry in the value table (filled by the value initializer).
   The phase is incremental: states discovered earlier are kept, so new seeds
   can be added as the problem evolves. With terminal state pruning enabled,
   terminal states are neither stored nor expanded.

2. Backup: sweeps of in-place Bellman updates over a snapshot of the stored
   states. Each sweep records the largest absolute value change; iteration
   stops when that change is below ``max_delta`` or after ``max_iterations``
   sweeps.

Running the backup phase before any reachability phase raises
UsageOrderError.

Example:
    >>> vi = ValueIteration(model, action_types, gamma=0.95)
    >>> policy = vi.plan_from_state(s0)
    >>> vi.value(s0), policy.action(s0)
"""

from collections import deque
from typing import Any, Iterable, List, Optional, Sequence, Union

from tqdm import tqdm

from oomdp.errors import UsageOrderError
from oomdp.hashing import HashableState, HashableStateFactory
from oomdp.policy import GreedyQPolicy
from oomdp.value_function import ValueInitializer
from oomdp.world_model import ActionType, FullModel

from .dp import DynamicProgramming


class ValueIteration(DynamicProgramming):
    """
    Reachability-seeded value iteration.

    Args:
        model: FullModel of the problem.
        action_types: Action types available to the agent.
        gamma: Discount factor in [0, 1].
        hashing_factory: State hashing scheme.
        v_init: Initial value of discovered states.
        max_delta: Stop when a sweep changes no value by this much or more.
        max_iterations: Cap on the number of sweeps.
        stop_reachability_from_terminal_states: Prune terminal states during
            reachability.
        verbose: Print progress and show a sweep progress bar.

    Attributes:
        delta_history: Largest value change of every sweep of the last run.
        last_num_sweeps: Number of sweeps performed by the last run.
    """

    def __init__(
        self,
        model: FullModel,
        action_types: Sequence[ActionType],
        gamma: float = 0.99,
        hashing_factory: Optional[HashableStateFactory] = None,
        v_init: Optional[Union[ValueInitializer, float]] = None,
        max_delta: float = 1e-4,
        max_iterations: int = 1000,
        stop_reachability_from_terminal_states: bool = False,
        verbose: bool = False,
    ):
        super().__init__(model, action_types, gamma, hashing_factory, v_init, max_delta, max_iterations, verbose)
        self.config.stop_reachability_from_terminal_states = stop_reachability_from_terminal_states
        self.found_reachable_states = False
        self.has_run_vi = False
        self.delta_history: List[float] = []
        self.last_num_sweeps = 0

    def toggle_reachability_terminal_state_pruning(self, toggle: bool) -> None:
        """If True, terminal states are not stored or expanded during reachability."""
        self.config.stop_reachability_from_terminal_states = toggle

    def recompute_reachable_states(self) -> None:
        """Require a new reachability phase before the next run_vi."""
        self.found_reachable_states = False

    # ------------------------------------------------------------------
    # Reachability phase
    # ------------------------------------------------------------------

    def add_state_to_state_space(self, s: Any) -> None:
        """Seed the value table with s without expanding it."""
        self.value_function.initialize(self.state_hash(s))
        self.found_reachable_states = True

    def add_states_to_state_space(self, states: Iterable[Any]) -> None:
        for s in states:
            self.add_state_to_state_space(s)

    def perform_reachability_from(self, s: Any) -> bool:
        """
        Discover and store every state reachable from s.

        States that are already stored are neither re-initialized nor
        re-expanded.

        Returns:
            True if any new state was stored.
        """
        sih = self.state_hash(s)
        self.found_reachable_states = True
        if sih in self.value_function:
            return False

        prune_terminals = self.config.stop_reachability_from_terminal_states
        num_before = len(self.value_function)
        if self.verbose:
            print("Starting reachability analysis")

        open_list = deque([sih])
        opened = {sih}
        pbar = tqdm(desc="Reachability", unit="states", leave=False) if self.verbose else None
        while open_list:
            sh = open_list.popleft()
            if sh in self.value_function:
                continue
            if prune_terminals and self.model.terminal(sh.s):
                continue

            self.value_function.initialize(sh)
            if pbar is not None:
                pbar.update(1)

            for a in self.applicable_actions(sh.s):
                for tp in self.model.transitions(sh.s, a):
                    tsh = self.state_hash(tp.eo.op)
                    if tsh not in opened and tsh not in self.value_function:
                        opened.add(tsh)
                        open_list.append(tsh)
        if pbar is not None:
            pbar.close()

        num_new = len(self.value_function) - num_before
        if self.verbose:
            print(f"Finished reachability analysis; # states: {len(self.value_function)}")
        if num_new > 0:
            self.has_run_vi = False
        return num_new > 0

    # ------------------------------------------------------------------
    # Backup phase
    # ------------------------------------------------------------------

    def sweep(self, states: List[HashableState]) -> float:
        """One in-place backup of every state in ``states``; returns the max change."""
        delta = 0.0
        for sh in states:
            v = self.value(sh)
            new_v = self.perform_bellman_update_on(sh)
            delta = max(delta, abs(new_v - v))
        return delta

    def run_vi(self) -> int:
        """
        Run backup sweeps over all stored states until convergence.

        Returns:
            The number of sweeps performed.

        Raises:
            UsageOrderError: If no reachability phase (or manual seeding) has
                happened since construction or the last reset.
        """
        if not self.found_reachable_states:
            raise UsageOrderError(
                "Cannot run VI until the reachable states have been found. Use plan_from_state, "
                "perform_reachability_from or add_state_to_state_space first."
            )

        states = self.value_function.states()
        self.delta_history = []
        pbar = tqdm(total=self.config.max_iterations, desc="Value iteration", unit="sweeps",
                    leave=False) if self.verbose else None

        num_sweeps = 0
        for _ in range(self.config.max_iterations):
            delta = self.sweep(states)
            num_sweeps += 1
            self.delta_history.append(delta)
            if pbar is not None:
                pbar.update(1)
                pbar.set_postfix(delta=f"{delta:.2e}")
            if delta < self.config.max_delta:
                break
        if pbar is not None:
            pbar.close()

        self.last_num_sweeps = num_sweeps
        self.has_run_vi = True
        if self.verbose:
            print(f"Passes: {num_sweeps}")
        return num_sweeps

    def plan_from_state(self, initial_state: Any) -> GreedyQPolicy:
        """
        Make sure values are computed for everything reachable from
        ``initial_state`` and return the greedy policy.
        """
        if self.perform_reachability_from(initial_state) or not self.has_run_vi:
            self.run_vi()
        return GreedyQPolicy(self)

    def reset_solver(self) -> None:
        super().reset_solver()
        self.found_reachable_states = False
        self.has_run_vi = False
        self.delta_history = []
        self.last_num_sweeps = 0
