"""
Least-squares policy iteration (Lagoudakis and Parr, 2003).

LSPI approximates Q(s, a) = w . phi(s, a) from a batch of SARS samples.
Each policy evaluation step (LSTDQ) solves for the weights of the current
greedy policy using recursive Sherman-Morrison updates of the inverse matrix
estimate, starting from B = identity_scalar * I:

    d   = phi - gamma * phi'
    B  <- B - (B phi d^T B) / (1 + d^T B phi)
    b  <- b + phi * r
    w   = B b

where phi = phi(s, a) and phi' = phi(s', greedy(s')). Policy iteration
repeats LSTDQ until the Frobenius norm of the weight change is at most
``max_change`` or ``max_iterations`` rounds have run.

LSPI can plan (collect samples from a model with a uniform random policy,
then iterate) or learn online (roll out an epsilon-greedy policy in an
environment, append the transitions to the dataset and rerun policy
iteration once enough new steps have accumulated).
"""

from collections import deque
from typing import Any, Callable, Deque, List, Optional, Sequence, Union

import numpy as np
from tqdm import tqdm

from oomdp.config import LSPIConfig
from oomdp.episode import Episode, SARSData
from oomdp.errors import ConfigurationError, UsageOrderError
from oomdp.policy import EpsilonGreedy, GreedyQPolicy, Policy, rollout
from oomdp.value_function import QProvider, QValue, max_q
from oomdp.world_model import ActionType, SampleModel, applicable_actions

from .features import DenseStateActionFeatures, DenseStateActionLinearVFA


class UniformRandomSARSCollector:
    """
    Collects transitions by acting uniformly at random in a SampleModel.

    Args:
        action_types: Action types to choose from.
        seed: Seed of the action selection.
    """

    def __init__(self, action_types: Sequence[ActionType], seed: Optional[int] = None):
        self.action_types = list(action_types)
        self.rng = np.random.default_rng(seed)

    def collect_data_from(self, s: Any, model: SampleModel, max_steps: Optional[int],
                          dataset: Optional[SARSData] = None) -> SARSData:
        """Act from s until a terminal state or ``max_steps`` transitions."""
        dataset = dataset if dataset is not None else SARSData()
        cur = s
        steps = 0
        while not model.terminal(cur) and (max_steps is None or steps < max_steps):
            actions = applicable_actions(self.action_types, cur)
            if not actions:
                break
            a = actions[self.rng.integers(len(actions))]
            eo = model.sample(cur, a)
            dataset.add(cur, a, eo.r, eo.op)
            cur = eo.op
            steps += 1
        return dataset

    def collect_n_instances(self, state_generator: Union[Callable[[], Any], Any], model: SampleModel, n: int,
                            max_episode_steps: Optional[int] = None,
                            dataset: Optional[SARSData] = None) -> SARSData:
        """
        Collect ``n`` transitions, restarting from a generated state whenever
        an episode ends.

        Args:
            state_generator: Zero-argument callable returning start states, or
                a constant start state.
        """
        dataset = dataset if dataset is not None else SARSData()
        target = dataset.size() + n
        while dataset.size() < target:
            s = state_generator() if callable(state_generator) else state_generator
            remaining = target - dataset.size()
            max_steps = remaining if max_episode_steps is None else min(max_episode_steps, remaining)
            before = dataset.size()
            self.collect_data_from(s, model, max_steps, dataset)
            if dataset.size() == before:
                break  # start state is terminal or has no actions
        return dataset


class LSPI(QProvider):
    """
    Args:
        action_types: Action types available to the agent.
        sa_features: State-action feature map.
        gamma: Discount factor in [0, 1].
        dataset: Initial SARS dataset.
        model: SampleModel used by ``plan_from_state``.
        identity_scalar: Initial diagonal of the inverse matrix estimate.
        max_change: Policy iteration convergence threshold on the weights.
        max_iterations: Cap on policy iteration rounds.
        num_samples_for_planning: Samples collected by ``plan_from_state``.
        min_new_steps_for_learning_pi: New steps required before online
            learning reruns policy iteration.
        num_episodes_to_store: Length of the learning episode history.
        epsilon: Exploration rate of the default learning policy.
        seed: Seed of the greedy tie breaking and of the learning policy.
        verbose: Print per-iteration weight changes.
    """

    def __init__(
        self,
        action_types: Sequence[ActionType],
        sa_features: DenseStateActionFeatures,
        gamma: float = 0.99,
        dataset: Optional[SARSData] = None,
        model: Optional[SampleModel] = None,
        identity_scalar: float = 100.0,
        max_change: float = 1e-6,
        max_iterations: int = 30,
        num_samples_for_planning: int = 10000,
        min_new_steps_for_learning_pi: int = 100,
        num_episodes_to_store: int = 1,
        epsilon: float = 0.1,
        seed: Optional[int] = None,
        verbose: bool = False,
    ):
        if sa_features is None:
            raise ConfigurationError("LSPI requires state-action features")
        self.config = LSPIConfig(
            gamma=gamma,
            identity_scalar=identity_scalar,
            max_change=max_change,
            max_iterations=max_iterations,
            num_samples_for_planning=num_samples_for_planning,
            min_new_steps_for_learning_pi=min_new_steps_for_learning_pi,
            num_episodes_to_store=num_episodes_to_store,
            epsilon=epsilon,
        )
        self.action_types = list(action_types)
        self.sa_features = sa_features
        self.vfa = DenseStateActionLinearVFA(sa_features, 0.0)
        self.dataset = dataset if dataset is not None else SARSData()
        self.model = model
        self.planning_collector: Optional[UniformRandomSARSCollector] = None
        self.seed = seed
        self.verbose = verbose
        self.learning_policy: Policy = EpsilonGreedy(self, self.config.epsilon, seed)
        self._greedy = GreedyQPolicy(self, seed)
        self.last_weights: Optional[np.ndarray] = None
        self.weight_change_history: List[float] = []
        self.num_steps_since_last_learning_pi = 0
        self.episode_history: Deque[Episode] = deque(maxlen=max(self.config.num_episodes_to_store, 1))

    @property
    def gamma(self) -> float:
        return self.config.gamma

    # ------------------------------------------------------------------
    # Q-values
    # ------------------------------------------------------------------

    def applicable_actions(self, s: Any) -> List[Any]:
        return applicable_actions(self.action_types, s)

    def q_value(self, s: Any, a: Any) -> float:
        return self.vfa.evaluate(s, a)

    def q_values(self, s: Any) -> List[QValue]:
        return [QValue(s, a, self.vfa.evaluate(s, a)) for a in self.applicable_actions(s)]

    def value(self, s: Any) -> float:
        return max_q(self, s)

    # ------------------------------------------------------------------
    # Policy evaluation and iteration
    # ------------------------------------------------------------------

    def _next_features(self, sp: Any, nf: int) -> np.ndarray:
        if not self.applicable_actions(sp):
            return np.zeros(nf)
        return self.sa_features.features(sp, self._greedy.action(sp))

    def lstdq(self) -> np.ndarray:
        """
        Evaluate the greedy policy of the current weights on the dataset.

        Returns:
            The new weight vector (also installed in the approximator).

        Raises:
            UsageOrderError: If the dataset is empty.
        """
        if self.dataset is None or self.dataset.size() == 0:
            raise UsageOrderError("LSPI has no samples; collect a dataset before running LSTDQ")

        # features are computed before B is built so that nf is known
        phis = [self.sa_features.features(sars.s, sars.a) for sars in self.dataset]
        nf = max(phi.shape[0] for phi in phis)
        phi_primes = [self._next_features(sars.sp, nf) for sars in self.dataset]

        B = np.eye(nf) * self.config.identity_scalar
        b = np.zeros(nf)
        for phi, phi_prime, sars in zip(phis, phi_primes, self.dataset):
            d = phi - self.gamma * phi_prime
            B_phi = B @ phi
            denominator = 1.0 + d @ B_phi
            B = B - np.outer(B_phi, d @ B) / denominator
            b = b + phi * sars.r

        w = B @ b
        self.vfa = self.vfa.copy()
        self.vfa.set_parameters(w)
        return w

    def run_policy_iteration(self, num_iterations: Optional[int] = None,
                             max_change: Optional[float] = None) -> GreedyQPolicy:
        """
        Alternate LSTDQ and greedy improvement until the weights settle.

        Returns:
            The greedy policy of the final weights.
        """
        num_iterations = self.config.max_iterations if num_iterations is None else num_iterations
        max_change = self.config.max_change if max_change is None else max_change

        iterator = range(num_iterations)
        if self.verbose:
            iterator = tqdm(iterator, desc="LSPI", unit="iterations", leave=False)
        for i in iterator:
            new_weights = self.lstdq()
            change = float("inf")
            if self.last_weights is not None and self.last_weights.shape == new_weights.shape:
                change = float(np.linalg.norm(self.last_weights - new_weights))
            self.last_weights = new_weights
            self.weight_change_history.append(change)
            if self.verbose:
                print(f"Finished iteration: {i}. Weight change: {change}")
            if change <= max_change:
                break
        if self.verbose:
            print("Finished Policy Iteration.")
        return GreedyQPolicy(self, self.seed)

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def plan_from_state(self, initial_state: Any) -> GreedyQPolicy:
        """
        Collect ``num_samples_for_planning`` samples from the model with a
        uniform random policy starting at ``initial_state``, add them to the
        dataset and run policy iteration on all stored samples.

        Raises:
            ConfigurationError: If no model was provided.
        """
        if self.model is None:
            raise ConfigurationError("LSPI cannot plan without a model; pass model= to the constructor")
        if self.planning_collector is None:
            self.planning_collector = UniformRandomSARSCollector(self.action_types, self.seed)
        self.planning_collector.collect_n_instances(
            initial_state, self.model, self.config.num_samples_for_planning, dataset=self.dataset
        )
        return self.run_policy_iteration()

    # ------------------------------------------------------------------
    # Learning
    # ------------------------------------------------------------------

    def run_learning_episode(self, env: Any, max_steps: Optional[int] = None) -> Episode:
        """
        Roll out the learning policy, add the transitions to the dataset and
        rerun policy iteration if enough new steps have accumulated.
        """
        episode = rollout(self.learning_policy, env, max_steps)
        self.dataset.add_episode(episode)

        if self.num_steps_since_last_learning_pi + len(episode) > self.config.min_new_steps_for_learning_pi:
            self.run_policy_iteration()
            self.num_steps_since_last_learning_pi = 0
        else:
            self.num_steps_since_last_learning_pi += len(episode)

        if self.config.num_episodes_to_store > 0:
            self.episode_history.append(episode)
        return episode

    def get_last_learning_episode(self) -> Optional[Episode]:
        return self.episode_history[-1] if self.episode_history else None

    def get_all_stored_learning_episodes(self) -> List[Episode]:
        return list(self.episode_history)

    def reset_solver(self) -> None:
        self.dataset.clear()
        self.vfa.reset_parameters()
        self.last_weights = None
        self.weight_change_history = []
        self.num_steps_since_last_learning_pi = 0
        self.episode_history.clear()
