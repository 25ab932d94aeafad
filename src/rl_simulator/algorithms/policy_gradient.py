"""Episodic policy-gradient learners: REINFORCE, PPO and a synchronous A3C."""

from __future__ import annotations

from abc import abstractmethod

import numpy as np

from rl_simulator.algorithms.base import Learner, LearnerCapability, Paradigm
from rl_simulator.algorithms.networks import MLP, Adam, softmax
from rl_simulator.core.params import Hyperparameters
from rl_simulator.core.types import EnvSpec

_NORM_EPS = 1e-8


def discounted_returns(rewards: list[float], gamma: float) -> np.ndarray:
    """Backward cumulative sum ``G_t = r_t + gamma * G_{t+1}``."""
    returns = np.zeros(len(rewards), dtype=np.float64)
    running = 0.0
    for t in range(len(rewards) - 1, -1, -1):
        running = rewards[t] + gamma * running
        returns[t] = running
    return returns


def normalize(values: np.ndarray) -> np.ndarray:
    """Zero mean, unit variance."""
    return (values - values.mean()) / (values.std() + _NORM_EPS)


class EpisodicPolicyLearner(Learner):
    """Softmax policy over discrete actions, updated once per finished episode.

    Transitions are buffered until ``done``; subclasses implement ``_learn``
    over the stacked trajectory.
    """

    capabilities = frozenset({LearnerCapability.LOSS_QUERY, LearnerCapability.POLICY_QUERY})
    hidden_activation = "relu"

    def __init__(
        self,
        spec: EnvSpec,
        hyperparameters: Hyperparameters | None = None,
        seed: int | None = None,
        hidden_sizes: tuple[int, ...] = (64, 64),
    ) -> None:
        super().__init__(spec, hyperparameters, seed)
        if spec.continuous:
            raise ValueError(f"{self.name} requires a discrete action space.")
        self.hidden_sizes = tuple(hidden_sizes)
        self._build()

    def _mlp(self, output_dim: int, output_scale: float = 1.0) -> MLP:
        return MLP(
            (self.spec.observation_dim, *self.hidden_sizes, output_dim),
            self.rng,
            hidden_activation=self.hidden_activation,
            output_scale=output_scale,
        )

    def _build(self) -> None:
        self.actor = self._mlp(self.spec.num_actions, output_scale=0.1)
        self.actor_optimizer = Adam(self.actor.params, lr=self.learning_rate)
        self._clear_trajectory()
        self._last_loss = 0.0

    def _clear_trajectory(self) -> None:
        self.trajectory_states: list[np.ndarray] = []
        self.trajectory_actions: list[int] = []
        self.trajectory_rewards: list[float] = []

    def select_action(self, state: np.ndarray, training: bool = True) -> int:
        probs = self.policy_probabilities(state)
        if not training:
            return int(np.argmax(probs))
        return int(self.rng.choice(len(probs), p=probs))

    def update(
        self,
        state: np.ndarray,
        action: int,
        reward: float,
        next_state: np.ndarray,
        done: bool,
        next_action: int | None = None,
    ) -> None:
        self.trajectory_states.append(np.asarray(state, dtype=np.float64).copy())
        self.trajectory_actions.append(int(action))
        self.trajectory_rewards.append(float(reward))
        if done:
            self.end_episode()

    def end_episode(self) -> None:
        """Learn from the buffered trajectory, then clear it."""
        if not self.trajectory_rewards:
            return
        states = np.vstack(self.trajectory_states)
        actions = np.asarray(self.trajectory_actions, dtype=int)
        returns = discounted_returns(self.trajectory_rewards, self.discount_factor)
        self._learn(states, actions, returns)
        self._clear_trajectory()

    @abstractmethod
    def _learn(self, states: np.ndarray, actions: np.ndarray, returns: np.ndarray) -> None:
        """Update from one finished trajectory."""

    def _value_step(self, states: np.ndarray, returns: np.ndarray) -> float:
        """One critic step on ``0.5 * mean((V - G)^2)``."""
        values, cache = self.critic.forward(states)
        diff = values[:, 0] - returns
        grads, _ = self.critic.backward((diff / len(returns))[:, None], cache)
        self.critic_optimizer.step(grads)
        return float(0.5 * np.mean(diff**2))

    def loss(self) -> float:
        return self._last_loss

    def policy_probabilities(self, state: np.ndarray, temperature: float = 1.0) -> np.ndarray:
        logits = self.actor.predict(state)[0]
        return softmax(logits, temperature)

    def apply_hyperparameters(self, hyperparameters: Hyperparameters) -> None:
        super().apply_hyperparameters(hyperparameters)
        self.actor_optimizer.lr = hyperparameters.learning_rate
        if hasattr(self, "critic_optimizer"):
            self.critic_optimizer.lr = hyperparameters.learning_rate

    def reset(self) -> None:
        self.rng = np.random.default_rng(self.seed)
        self._build()


class REINFORCE(EpisodicPolicyLearner):
    """Monte Carlo policy gradient with normalized returns as the advantage."""

    name = "reinforce"
    paradigm = Paradigm.POLICY_BASED

    def __init__(
        self,
        spec: EnvSpec,
        hyperparameters: Hyperparameters | None = None,
        seed: int | None = None,
        hidden_sizes: tuple[int, ...] = (32, 32),
    ) -> None:
        super().__init__(spec, hyperparameters, seed, hidden_sizes)

    def _learn(self, states: np.ndarray, actions: np.ndarray, returns: np.ndarray) -> None:
        advantages = normalize(returns)
        logits, cache = self.actor.forward(states)
        probs = softmax(logits)
        rows = np.arange(len(actions))
        log_probs = np.log(probs[rows, actions] + _NORM_EPS)
        self._last_loss = float(-np.mean(log_probs * advantages))

        one_hot = np.zeros_like(probs)
        one_hot[rows, actions] = 1.0
        grad_logits = -(one_hot - probs) * advantages[:, None] / len(actions)
        grads, _ = self.actor.backward(grad_logits, cache)
        self.actor_optimizer.step(grads)


class PPO(EpisodicPolicyLearner):
    """Clipped-surrogate policy optimization with a learned value baseline.

    Old action probabilities are frozen before the first epoch; each of the
    ``update_epochs`` passes reuses the same trajectory and advantages.
    """

    name = "ppo"
    paradigm = Paradigm.POLICY_BASED
    hidden_activation = "tanh"

    def __init__(
        self,
        spec: EnvSpec,
        hyperparameters: Hyperparameters | None = None,
        seed: int | None = None,
        hidden_sizes: tuple[int, ...] = (64, 64),
        update_epochs: int = 4,
    ) -> None:
        self.update_epochs = update_epochs
        super().__init__(spec, hyperparameters, seed, hidden_sizes)

    def _build(self) -> None:
        super()._build()
        self.critic = self._mlp(1)
        self.critic_optimizer = Adam(self.critic.params, lr=self.learning_rate)

    def _learn(self, states: np.ndarray, actions: np.ndarray, returns: np.ndarray) -> None:
        rows = np.arange(len(actions))
        advantages = normalize(returns - self.critic.predict(states)[:, 0])
        old_probs = softmax(self.actor.predict(states))[rows, actions]
        clip = self.hyperparameters.clip_epsilon

        for _ in range(self.update_epochs):
            logits, cache = self.actor.forward(states)
            probs = softmax(logits)
            ratio = probs[rows, actions] / (old_probs + _NORM_EPS)
            unclipped = ratio * advantages
            clipped = np.clip(ratio, 1.0 - clip, 1.0 + clip) * advantages
            policy_loss = float(-np.mean(np.minimum(unclipped, clipped)))

            # Gradient flows only where the unclipped term is the minimum.
            active = (unclipped <= clipped).astype(np.float64)
            one_hot = np.zeros_like(probs)
            one_hot[rows, actions] = 1.0
            coeff = active * advantages * ratio / len(actions)
            grads, _ = self.actor.backward(-(one_hot - probs) * coeff[:, None], cache)
            self.actor_optimizer.step(grads)

            value_loss = self._value_step(states, returns)
            self._last_loss = policy_loss + value_loss


class A3C(EpisodicPolicyLearner):
    """Single-worker advantage actor-critic with an entropy bonus.

    Loss: ``policy - entropy_coef * entropy + value``.
    """

    name = "a3c"
    paradigm = Paradigm.ACTOR_CRITIC_ON_POLICY

    def __init__(
        self,
        spec: EnvSpec,
        hyperparameters: Hyperparameters | None = None,
        seed: int | None = None,
        hidden_sizes: tuple[int, ...] = (64, 64),
        entropy_coef: float = 0.01,
    ) -> None:
        self.entropy_coef = entropy_coef
        super().__init__(spec, hyperparameters, seed, hidden_sizes)

    def _build(self) -> None:
        super()._build()
        self.critic = self._mlp(1)
        self.critic_optimizer = Adam(self.critic.params, lr=self.learning_rate)

    def _learn(self, states: np.ndarray, actions: np.ndarray, returns: np.ndarray) -> None:
        rows = np.arange(len(actions))
        n = len(actions)
        advantages = normalize(returns - self.critic.predict(states)[:, 0])

        logits, cache = self.actor.forward(states)
        probs = softmax(logits)
        log_probs = np.log(probs + _NORM_EPS)
        entropy = -np.sum(probs * log_probs, axis=1)
        policy_loss = float(-np.mean(log_probs[rows, actions] * advantages))

        one_hot = np.zeros_like(probs)
        one_hot[rows, actions] = 1.0
        grad_policy = -(one_hot - probs) * advantages[:, None]
        # d(-H)/dlogits = p * (log p + H)
        grad_entropy = probs * (log_probs + entropy[:, None])
        grad_logits = (grad_policy + self.entropy_coef * grad_entropy) / n
        grads, _ = self.actor.backward(grad_logits, cache)
        self.actor_optimizer.step(grads)

        value_loss = self._value_step(states, returns)
        self._last_loss = policy_loss - self.entropy_coef * float(entropy.mean()) + value_loss
