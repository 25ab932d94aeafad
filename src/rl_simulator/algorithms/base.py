"""Learner contract shared by all ten algorithms."""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum

import numpy as np

from rl_simulator.core.params import Hyperparameters
from rl_simulator.core.types import Action, EnvSpec


class LearnerCapability(Enum):
    """Optional queries a learner answers for the view layer."""

    VALUE_QUERY = "value_query"
    LOSS_QUERY = "loss_query"
    POLICY_QUERY = "policy_query"


class Paradigm(Enum):
    VALUE_BASED_OFF_POLICY = "Value-Based (Off-Policy)"
    VALUE_BASED_ON_POLICY = "Value-Based (On-Policy)"
    POLICY_BASED = "Policy-Based"
    ACTOR_CRITIC_ON_POLICY = "Actor-Critic (On-Policy)"
    ACTOR_CRITIC_OFF_POLICY = "Actor-Critic (Off-Policy)"


# Method that must be overridden for each declared capability.
_CAPABILITY_METHODS: dict[LearnerCapability, str] = {
    LearnerCapability.VALUE_QUERY: "q_values",
    LearnerCapability.LOSS_QUERY: "loss",
    LearnerCapability.POLICY_QUERY: "policy_probabilities",
}


class Learner(ABC):
    """Stateful policy/value learner behind a uniform select + update contract.

    Class attributes:
        capabilities: Optional queries this learner supports; checked once at
            construction rather than per call.
        requires_next_action: If True, the driver must defer each update until
            the next action is selected and pass it as ``next_action``.
        paradigm: Display category.
    """

    name: str = "learner"
    capabilities: frozenset[LearnerCapability] = frozenset()
    requires_next_action: bool = False
    paradigm: Paradigm = Paradigm.VALUE_BASED_OFF_POLICY

    def __init__(
        self,
        spec: EnvSpec,
        hyperparameters: Hyperparameters | None = None,
        seed: int | None = None,
    ) -> None:
        self.spec = spec
        self.hyperparameters = hyperparameters or Hyperparameters()
        self.hyperparameters.validate()
        self.seed = seed
        self.rng = np.random.default_rng(seed)
        self._last_loss = 0.0
        self._check_capabilities()

    def _check_capabilities(self) -> None:
        for capability in self.capabilities:
            method = _CAPABILITY_METHODS[capability]
            if getattr(type(self), method) is getattr(Learner, method):
                raise TypeError(
                    f"{type(self).__name__} declares {capability.name} "
                    f"but does not implement {method}()."
                )

    def supports(self, capability: LearnerCapability) -> bool:
        return capability in self.capabilities

    @property
    def learning_rate(self) -> float:
        return self.hyperparameters.learning_rate

    @property
    def discount_factor(self) -> float:
        return self.hyperparameters.discount_factor

    @abstractmethod
    def select_action(self, state: np.ndarray, training: bool = True) -> Action:
        """Choose an action for an observation vector."""

    @abstractmethod
    def update(
        self,
        state: np.ndarray,
        action: Action,
        reward: float,
        next_state: np.ndarray,
        done: bool,
        next_action: Action | None = None,
    ) -> None:
        """Consume one transition."""

    @abstractmethod
    def reset(self) -> None:
        """Discard all learned state."""

    def end_episode(self) -> None:
        """Episode truncated by a step limit; the last update had ``done=False``."""

    def apply_hyperparameters(self, hyperparameters: Hyperparameters) -> None:
        """Swap in new hyperparameters; only called between steps."""
        hyperparameters.validate()
        self.hyperparameters = hyperparameters

    def q_values(self, state: np.ndarray) -> np.ndarray:
        raise NotImplementedError(f"{self.name} does not expose action values.")

    def loss(self) -> float:
        raise NotImplementedError(f"{self.name} does not report a loss.")

    def policy_probabilities(self, state: np.ndarray, temperature: float = 1.0) -> np.ndarray:
        raise NotImplementedError(f"{self.name} does not expose policy probabilities.")
