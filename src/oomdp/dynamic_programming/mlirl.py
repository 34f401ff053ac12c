"""
Maximum-likelihood inverse reinforcement learning (Babes-Vroman et al., 2011).

The expert is modeled as acting with the Boltzmann policy

    pi(a|s) = exp(beta * Q(s, a)) / sum_b exp(beta * Q(s, b))

where Q is computed by DifferentiableVI under a parameterized reward
r_theta. MLIRL adjusts theta by gradient ascent on the (weighted) log
likelihood of the expert episodes:

    L(theta) = sum_e w_e * sum_t log pi(a_t | s_t)
    dL/dtheta = sum_e w_e * sum_t beta * (dQ(s_t, a_t) - sum_b pi(b|s_t) dQ(s_t, b))

Every evaluation of the likelihood replans from scratch with the current
parameters.

Example:
    >>> rf = LinearStateDifferentiableRF(features, num_features=4)
    >>> request = MLIRLRequest(model, action_types, expert_episodes, rf, gamma=0.9)
    >>> theta = MLIRL(request, learning_rate=0.1, max_steps=20).perform_irl()
"""

from typing import Any, List, Optional, Sequence, Tuple

import numpy as np
from scipy.special import logsumexp, softmax
from tqdm import tqdm

from oomdp.config import MLIRLConfig, check_discount
from oomdp.episode import Episode
from oomdp.errors import ConfigurationError
from oomdp.hashing import HashableStateFactory
from oomdp.world_model import ActionType, FullModel

from .differentiable import DifferentiableRF, DifferentiableVI


class MLIRLRequest:
    """
    Problem definition for MLIRL.

    Either pass a ready DifferentiableVI as ``planner`` or pass ``model`` and
    ``action_types`` and a default planner (max_delta 0.01, at most 500
    sweeps) is built around ``rf``.

    Args:
        model: FullModel of the domain (used to build the default planner).
        action_types: Action types of the domain.
        expert_episodes: Demonstrations to explain.
        rf: Differentiable reward function whose parameters are learned.
        planner: Optional DifferentiableVI using ``rf``.
        hashing_factory: Hashing for the default planner.
        gamma: Discount factor.
        boltzmann_beta: Inverse temperature of the expert model. Larger
            values assume a less noisy expert.
        episode_weights: One weight per expert episode; 1 for all if None.
    """

    def __init__(
        self,
        model: Optional[FullModel],
        action_types: Sequence[ActionType],
        expert_episodes: Sequence[Episode],
        rf: DifferentiableRF,
        planner: Optional[DifferentiableVI] = None,
        hashing_factory: Optional[HashableStateFactory] = None,
        gamma: float = 0.99,
        boltzmann_beta: float = 0.5,
        episode_weights: Optional[Sequence[float]] = None,
    ):
        if planner is not None and not isinstance(planner, DifferentiableVI):
            raise ConfigurationError("MLIRLRequest requires the planner to be a DifferentiableVI")
        self.model = model
        self.action_types = list(action_types)
        self.expert_episodes: List[Episode] = list(expert_episodes)
        self.rf = rf
        self.gamma = gamma
        self.boltzmann_beta = boltzmann_beta
        self.episode_weights = None if episode_weights is None else list(episode_weights)
        if planner is None and model is not None and rf is not None:
            planner = DifferentiableVI(model, self.action_types, rf, gamma=gamma,
                                       boltzmann_beta=boltzmann_beta, hashing_factory=hashing_factory,
                                       max_delta=0.01, max_iterations=500)
        self.planner = planner

    def get_episode_weights(self) -> np.ndarray:
        """The episode weights; a fresh array of ones if none were set."""
        if self.episode_weights is None:
            return np.ones(len(self.expert_episodes))
        return np.asarray(self.episode_weights, dtype=float)

    def is_valid(self) -> bool:
        if self.planner is None or self.rf is None:
            return False
        if not self.expert_episodes:
            return False
        try:
            check_discount(self.gamma)
        except ConfigurationError:
            return False
        if self.episode_weights is not None and len(self.episode_weights) != len(self.expert_episodes):
            return False
        return True


class MLIRL:
    """
    Gradient ascent on the expert log likelihood.

    Args:
        request: A valid MLIRLRequest.
        learning_rate: Gradient ascent step size.
        max_likelihood_change: Stop once the log likelihood changes by less.
        max_steps: Cap on gradient steps.
        verbose: Print the likelihood after each step.

    Attributes:
        likelihood_history: Log likelihood before the first and after every step.
    """

    def __init__(
        self,
        request: MLIRLRequest,
        learning_rate: float = 0.1,
        max_likelihood_change: float = 0.01,
        max_steps: int = 10,
        verbose: bool = False,
    ):
        if not request.is_valid():
            raise ConfigurationError("Provided MLIRLRequest is invalid")
        self.request = request
        self.config = MLIRLConfig(
            learning_rate=learning_rate,
            max_likelihood_change=max_likelihood_change,
            max_steps=max_steps,
            boltzmann_beta=request.planner.boltzmann_beta,
        )
        self.verbose = verbose
        self.likelihood_history: List[float] = []

    @property
    def planner(self) -> DifferentiableVI:
        return self.request.planner

    def _log_policy_and_gradient(self, s: Any, a: Any) -> Tuple[float, np.ndarray]:
        self.planner.plan_from_state(s)
        actions, q_values, q_gradients = self.planner.q_values_and_gradients(s)
        try:
            idx = actions.index(a)
        except ValueError:
            raise ConfigurationError(f"Expert action {a!r} is not applicable in {s!r}") from None
        beta = self.config.boltzmann_beta
        scaled = beta * q_values
        log_pi = float(scaled[idx] - logsumexp(scaled))
        grad = beta * (q_gradients[idx] - softmax(scaled) @ q_gradients)
        return log_pi, grad

    def log_likelihood_and_gradient(self) -> Tuple[float, np.ndarray]:
        """Replan with the current parameters and evaluate L and dL/dtheta."""
        self.planner.reset_solver()
        weights = self.request.get_episode_weights()
        total = 0.0
        gradient = np.zeros(self.request.rf.num_parameters())
        for w, episode in zip(weights, self.request.expert_episodes):
            for t in range(len(episode)):
                log_pi, grad = self._log_policy_and_gradient(episode.state(t), episode.action(t))
                total += w * log_pi
                gradient += w * grad
        return total, gradient

    def log_likelihood(self) -> float:
        return self.log_likelihood_and_gradient()[0]

    def perform_irl(self) -> np.ndarray:
        """
        Run gradient ascent and leave the learned parameters in ``request.rf``.

        Returns:
            The learned parameter vector.
        """
        rf = self.request.rf
        last_likelihood, gradient = self.log_likelihood_and_gradient()
        self.likelihood_history = [last_likelihood]

        steps = range(self.config.max_steps)
        if self.verbose:
            steps = tqdm(steps, desc="MLIRL", unit="steps")
        for _ in steps:
            rf.set_parameters(rf.parameters + self.config.learning_rate * gradient)
            likelihood, gradient = self.log_likelihood_and_gradient()
            change = likelihood - last_likelihood
            last_likelihood = likelihood
            self.likelihood_history.append(likelihood)
            if self.verbose:
                print(f"RF: {np.array2string(rf.parameters, precision=4)}; log likelihood: {likelihood:.5f}")
            if abs(change) < self.config.max_likelihood_change:
                break

        return rf.parameters.copy()
