"""Deep Q-network over one-hot grid cells."""

from __future__ import annotations

import numpy as np

from rl_simulator.algorithms.base import Learner, LearnerCapability, Paradigm
from rl_simulator.algorithms.networks import MLP, Adam, hard_update, softmax
from rl_simulator.algorithms.replay import ReplayBuffer
from rl_simulator.core.params import Hyperparameters
from rl_simulator.core.types import EnvSpec


class DQN(Learner):
    """Q-network with experience replay and a periodically synced target network.

    Args:
        spec: Discrete environment spec. When ``spec.grid_shape`` is set the
            ``(row, col)`` observation is one-hot encoded over cells.
        buffer_size: Replay capacity.
        batch_size: Mini-batch size; training waits until the buffer holds
            this many transitions.
        target_sync_every: Training steps between hard target syncs.
        hidden_sizes: Hidden layer widths.
    """

    name = "dqn"
    paradigm = Paradigm.VALUE_BASED_OFF_POLICY
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
        buffer_size: int = 1000,
        batch_size: int = 32,
        target_sync_every: int = 10,
        hidden_sizes: tuple[int, ...] = (64, 64),
    ) -> None:
        super().__init__(spec, hyperparameters, seed)
        if spec.continuous:
            raise ValueError("dqn requires a discrete action space.")
        self.buffer_size = buffer_size
        self.batch_size = batch_size
        self.target_sync_every = target_sync_every
        self.hidden_sizes = tuple(hidden_sizes)
        self.input_dim = spec.num_states if spec.grid_shape else spec.observation_dim
        self._build()

    def _build(self) -> None:
        sizes = (self.input_dim, *self.hidden_sizes, self.spec.num_actions)
        self.q_network = MLP(sizes, self.rng, hidden_activation="relu")
        self.target_network = self.q_network.clone()
        self.optimizer = Adam(self.q_network.params, lr=self.learning_rate)
        self.buffer = ReplayBuffer(self.buffer_size, self.input_dim)
        self.epsilon = self.hyperparameters.epsilon
        self.train_steps = 0
        self._last_loss = 0.0

    def encode(self, state: np.ndarray) -> np.ndarray:
        """Network input for one observation."""
        state = np.asarray(state, dtype=np.float64)
        if not self.spec.grid_shape:
            return state.copy()
        _, cols = self.spec.grid_shape
        one_hot = np.zeros(self.input_dim)
        one_hot[int(round(state[0])) * cols + int(round(state[1]))] = 1.0
        return one_hot

    def select_action(self, state: np.ndarray, training: bool = True) -> int:
        if training and self.rng.random() < self.epsilon:
            return int(self.rng.integers(self.spec.num_actions))
        return int(np.argmax(self.q_values(state)))

    def update(
        self,
        state: np.ndarray,
        action: int,
        reward: float,
        next_state: np.ndarray,
        done: bool,
        next_action: int | None = None,
    ) -> None:
        self.buffer.add(self.encode(state), int(action), reward, self.encode(next_state), done)
        if len(self.buffer) >= self.batch_size:
            self._train_step()
        self.epsilon = max(
            self.hyperparameters.epsilon_min, self.epsilon * self.hyperparameters.epsilon_decay
        )

    def _train_step(self) -> None:
        batch = self.buffer.sample(self.batch_size, self.rng)
        actions = batch.actions[:, 0].astype(int)
        rows = np.arange(len(batch))

        next_q = self.target_network.predict(batch.next_states)
        targets = batch.rewards + self.discount_factor * (1.0 - batch.dones) * next_q.max(axis=1)

        q_pred, cache = self.q_network.forward(batch.states)
        td_error = q_pred[rows, actions] - targets
        grad_output = np.zeros_like(q_pred)
        grad_output[rows, actions] = 2.0 * td_error / len(batch)
        grads, _ = self.q_network.backward(grad_output, cache)
        self.optimizer.step(grads)

        self._last_loss = float(np.mean(td_error**2))
        self.train_steps += 1
        if self.train_steps % self.target_sync_every == 0:
            hard_update(self.target_network, self.q_network)

    def q_values(self, state: np.ndarray) -> np.ndarray:
        return self.q_network.predict(self.encode(state))[0]

    def loss(self) -> float:
        return self._last_loss

    def policy_probabilities(self, state: np.ndarray, temperature: float = 1.0) -> np.ndarray:
        return softmax(self.q_values(state), temperature)

    def apply_hyperparameters(self, hyperparameters: Hyperparameters) -> None:
        previous = self.hyperparameters
        super().apply_hyperparameters(hyperparameters)
        self.optimizer.lr = hyperparameters.learning_rate
        if hyperparameters.epsilon != previous.epsilon:
            self.epsilon = hyperparameters.epsilon

    def reset(self) -> None:
        self.rng = np.random.default_rng(self.seed)
        self._build()
