"""Tabular temporal-difference learners: Q-learning, SARSA, Expected SARSA."""

from __future__ import annotations

from abc import abstractmethod

import numpy as np

from rl_simulator.algorithms.base import Learner, LearnerCapability, Paradigm
from rl_simulator.algorithms.networks import softmax
from rl_simulator.core.params import Hyperparameters
from rl_simulator.core.types import EnvSpec


def state_key(state: np.ndarray) -> str:
    """Encode a discrete observation vector as a stable table key."""
    return ",".join(str(int(round(float(value)))) for value in np.ravel(state))


class TabularLearner(Learner):
    """Sparse state-key -> action-value table, zero-initialized on first visit.

    Subclasses only define the bootstrap term of the TD target.
    """

    capabilities = frozenset(
        {
            LearnerCapability.VALUE_QUERY,
            LearnerCapability.LOSS_QUERY,
            LearnerCapability.POLICY_QUERY,
        }
    )

    def __init__(
        self,
        spec: EnvSpec,
        hyperparameters: Hyperparameters | None = None,
        seed: int | None = None,
    ) -> None:
        super().__init__(spec, hyperparameters, seed)
        if spec.continuous:
            raise ValueError(f"{self.name} requires a discrete action space.")
        self.table: dict[str, np.ndarray] = {}

    @property
    def epsilon(self) -> float:
        return self.hyperparameters.epsilon

    def _row(self, state: np.ndarray) -> np.ndarray:
        key = state_key(state)
        row = self.table.get(key)
        if row is None:
            row = np.zeros(self.spec.num_actions, dtype=np.float64)
            self.table[key] = row
        return row

    def select_action(self, state: np.ndarray, training: bool = True) -> int:
        """Epsilon-greedy with uniform random tie-breaking among maximal actions."""
        if training and self.rng.random() < self.epsilon:
            return int(self.rng.integers(self.spec.num_actions))
        row = self._row(state)
        best = np.flatnonzero(row == row.max())
        return int(self.rng.choice(best))

    @abstractmethod
    def _bootstrap(self, next_state: np.ndarray, next_action: int | None) -> float:
        """Value of the next state used in the TD target."""

    def update(
        self,
        state: np.ndarray,
        action: int,
        reward: float,
        next_state: np.ndarray,
        done: bool,
        next_action: int | None = None,
    ) -> None:
        row = self._row(state)
        action = int(action)
        current = row[action]
        bootstrap = 0.0 if done else self._bootstrap(next_state, next_action)
        target = reward + self.discount_factor * bootstrap
        row[action] = current + self.learning_rate * (target - current)
        self._last_loss = abs(target - current)

    def q_values(self, state: np.ndarray) -> np.ndarray:
        row = self.table.get(state_key(state))
        if row is None:
            return np.zeros(self.spec.num_actions, dtype=np.float64)
        return row.copy()

    def q_table(self) -> dict[str, list[float]]:
        """Copy of every visited state's action values."""
        return {key: [float(value) for value in row] for key, row in self.table.items()}

    def loss(self) -> float:
        return self._last_loss

    def policy_probabilities(self, state: np.ndarray, temperature: float = 1.0) -> np.ndarray:
        return softmax(self.q_values(state), temperature)

    def reset(self) -> None:
        self.table.clear()
        self._last_loss = 0.0


class QLearning(TabularLearner):
    """Off-policy: bootstraps from the greedy next action."""

    name = "qlearning"
    paradigm = Paradigm.VALUE_BASED_OFF_POLICY

    def _bootstrap(self, next_state: np.ndarray, next_action: int | None) -> float:
        return float(np.max(self._row(next_state)))


class SARSA(TabularLearner):
    """On-policy: bootstraps from the action actually selected in ``next_state``.

    Non-terminal updates without ``next_action`` bootstrap 0, so drivers must
    defer the update until the next action is known.
    """

    name = "sarsa"
    paradigm = Paradigm.VALUE_BASED_ON_POLICY
    requires_next_action = True

    def _bootstrap(self, next_state: np.ndarray, next_action: int | None) -> float:
        if next_action is None:
            return 0.0
        return float(self._row(next_state)[int(next_action)])


class ExpectedSARSA(TabularLearner):
    """Bootstraps from the expectation of next-state values under epsilon-greedy."""

    name = "expected_sarsa"
    paradigm = Paradigm.VALUE_BASED_ON_POLICY

    def policy_distribution(self, state: np.ndarray) -> np.ndarray:
        """Epsilon-greedy action probabilities, greedy mass split across ties."""
        row = self._row(state)
        n_actions = len(row)
        probs = np.full(n_actions, self.epsilon / n_actions)
        best = np.flatnonzero(row == row.max())
        probs[best] += (1.0 - self.epsilon) / len(best)
        return probs

    def _bootstrap(self, next_state: np.ndarray, next_action: int | None) -> float:
        return float(np.dot(self.policy_distribution(next_state), self._row(next_state)))
