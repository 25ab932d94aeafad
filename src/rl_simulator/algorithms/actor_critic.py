"""Off-policy continuous-control actor-critics: DDPG, TD3 and SAC.

All three share a replay buffer and soft-updated target networks. Actors work
in a normalized action space ``[-1, 1]``; actions handed to the environment are
scaled by ``spec.max_action`` and critics receive the normalized action as
their last input column.
"""

from __future__ import annotations

from abc import abstractmethod
import math

import numpy as np

from rl_simulator.algorithms.base import Learner, LearnerCapability, Paradigm
from rl_simulator.algorithms.networks import MLP, Adam, soft_update
from rl_simulator.algorithms.replay import ReplayBuffer, TransitionBatch
from rl_simulator.core.params import Hyperparameters
from rl_simulator.core.types import EnvSpec


class ContinuousActorCritic(Learner):
    """Replay-driven actor-critic over a single bounded continuous action.

    Args:
        buffer_size: Replay capacity.
        batch_size: Mini-batch size; training is skipped until the buffer
            holds this many transitions.
        tau: Soft target update rate.
        exploration_noise: Std of the Gaussian action noise, as a fraction of
            ``max_action``.
    """

    capabilities = frozenset({LearnerCapability.LOSS_QUERY})
    paradigm = Paradigm.ACTOR_CRITIC_OFF_POLICY

    def __init__(
        self,
        spec: EnvSpec,
        hyperparameters: Hyperparameters | None = None,
        seed: int | None = None,
        buffer_size: int = 10000,
        batch_size: int = 64,
        tau: float = 0.005,
        exploration_noise: float = 0.1,
        hidden_sizes: tuple[int, ...] = (64, 64),
    ) -> None:
        super().__init__(spec, hyperparameters, seed)
        if not spec.continuous:
            raise ValueError(f"{self.name} requires a continuous action space.")
        self.max_action = spec.max_action
        self.buffer_size = buffer_size
        self.batch_size = batch_size
        self.tau = tau
        self.exploration_noise = exploration_noise
        self.hidden_sizes = tuple(hidden_sizes)
        self._build()

    def _critic(self) -> MLP:
        return MLP((self.spec.observation_dim + 1, *self.hidden_sizes, 1), self.rng)

    def _build(self) -> None:
        self.buffer = ReplayBuffer(self.buffer_size, self.spec.observation_dim, action_dim=1)
        self.train_steps = 0
        self._last_loss = 0.0

    def update(
        self,
        state: np.ndarray,
        action: float,
        reward: float,
        next_state: np.ndarray,
        done: bool,
        next_action: float | None = None,
    ) -> None:
        self.buffer.add(state, float(action), reward, next_state, done)
        if len(self.buffer) < self.batch_size:
            return
        batch = self.buffer.sample(self.batch_size, self.rng)
        self._train_step(batch)
        self.train_steps += 1

    @abstractmethod
    def _train_step(self, batch: TransitionBatch) -> None:
        """One gradient step on a sampled mini-batch."""

    def _critic_step(
        self, critic: MLP, optimizer: Adam, inputs: np.ndarray, targets: np.ndarray
    ) -> float:
        q, cache = critic.forward(inputs)
        diff = q[:, 0] - targets
        grads, _ = critic.backward((2.0 * diff / len(targets))[:, None], cache)
        optimizer.step(grads)
        return float(np.mean(diff**2))

    def _deterministic_actor_step(self, states: np.ndarray, critic: MLP) -> None:
        """Ascend ``Q(s, mu(s))`` by chaining the critic's action gradient into the actor."""
        normalized, actor_cache = self.actor.forward(states)
        _, critic_cache = critic.forward(np.hstack([states, normalized]))
        grad_q = np.full((len(states), 1), -1.0 / len(states))
        _, grad_input = critic.backward(grad_q, critic_cache)
        grads, _ = self.actor.backward(grad_input[:, -1:], actor_cache)
        self.actor_optimizer.step(grads)

    def _noisy_action(self, state: np.ndarray, training: bool) -> float:
        action = float(self.actor.predict(state)[0, 0]) * self.max_action
        if training:
            action += float(self.rng.normal(0.0, self.exploration_noise * self.max_action))
        return float(np.clip(action, -self.max_action, self.max_action))

    def loss(self) -> float:
        return self._last_loss

    def apply_hyperparameters(self, hyperparameters: Hyperparameters) -> None:
        super().apply_hyperparameters(hyperparameters)
        for optimizer in self._optimizers():
            optimizer.lr = hyperparameters.learning_rate

    def _optimizers(self) -> list[Adam]:
        return []

    def reset(self) -> None:
        self.rng = np.random.default_rng(self.seed)
        self._build()


class DDPG(ContinuousActorCritic):
    """Deterministic policy gradient with a single critic."""

    name = "ddpg"

    def _build(self) -> None:
        super()._build()
        self.actor = MLP(
            (self.spec.observation_dim, *self.hidden_sizes, 1),
            self.rng,
            output_activation="tanh",
        )
        self.critic = self._critic()
        self.actor_target = self.actor.clone()
        self.critic_target = self.critic.clone()
        self.actor_optimizer = Adam(self.actor.params, lr=self.learning_rate)
        self.critic_optimizer = Adam(self.critic.params, lr=self.learning_rate)

    def _optimizers(self) -> list[Adam]:
        return [self.actor_optimizer, self.critic_optimizer]

    def select_action(self, state: np.ndarray, training: bool = True) -> float:
        return self._noisy_action(state, training)

    def _train_step(self, batch: TransitionBatch) -> None:
        next_actions = self.actor_target.predict(batch.next_states)
        next_q = self.critic_target.predict(np.hstack([batch.next_states, next_actions]))[:, 0]
        targets = batch.rewards + self.discount_factor * (1.0 - batch.dones) * next_q

        inputs = np.hstack([batch.states, batch.actions / self.max_action])
        self._last_loss = self._critic_step(self.critic, self.critic_optimizer, inputs, targets)
        self._deterministic_actor_step(batch.states, self.critic)

        soft_update(self.actor_target, self.actor, self.tau)
        soft_update(self.critic_target, self.critic, self.tau)


class TD3(ContinuousActorCritic):
    """Twin critics, target policy smoothing and delayed actor updates.

    Args:
        policy_noise: Std of target smoothing noise (normalized action units).
        noise_clip: Bound on the smoothing noise.
        policy_delay: Critic steps per actor and target update.
    """

    name = "td3"

    def __init__(
        self,
        spec: EnvSpec,
        hyperparameters: Hyperparameters | None = None,
        seed: int | None = None,
        policy_noise: float = 0.2,
        noise_clip: float = 0.5,
        policy_delay: int = 2,
        **kwargs,
    ) -> None:
        self.policy_noise = policy_noise
        self.noise_clip = noise_clip
        self.policy_delay = policy_delay
        super().__init__(spec, hyperparameters, seed, **kwargs)

    def _build(self) -> None:
        super()._build()
        self.actor = MLP(
            (self.spec.observation_dim, *self.hidden_sizes, 1),
            self.rng,
            output_activation="tanh",
        )
        self.critic_1 = self._critic()
        self.critic_2 = self._critic()
        self.actor_target = self.actor.clone()
        self.critic_1_target = self.critic_1.clone()
        self.critic_2_target = self.critic_2.clone()
        self.actor_optimizer = Adam(self.actor.params, lr=self.learning_rate)
        self.critic_1_optimizer = Adam(self.critic_1.params, lr=self.learning_rate)
        self.critic_2_optimizer = Adam(self.critic_2.params, lr=self.learning_rate)

    def _optimizers(self) -> list[Adam]:
        return [self.actor_optimizer, self.critic_1_optimizer, self.critic_2_optimizer]

    def select_action(self, state: np.ndarray, training: bool = True) -> float:
        return self._noisy_action(state, training)

    def _train_step(self, batch: TransitionBatch) -> None:
        noise = np.clip(
            self.rng.normal(0.0, self.policy_noise, size=(len(batch), 1)),
            -self.noise_clip,
            self.noise_clip,
        )
        next_actions = np.clip(self.actor_target.predict(batch.next_states) + noise, -1.0, 1.0)
        next_inputs = np.hstack([batch.next_states, next_actions])
        next_q = np.minimum(
            self.critic_1_target.predict(next_inputs)[:, 0],
            self.critic_2_target.predict(next_inputs)[:, 0],
        )
        targets = batch.rewards + self.discount_factor * (1.0 - batch.dones) * next_q

        inputs = np.hstack([batch.states, batch.actions / self.max_action])
        loss_1 = self._critic_step(self.critic_1, self.critic_1_optimizer, inputs, targets)
        loss_2 = self._critic_step(self.critic_2, self.critic_2_optimizer, inputs, targets)
        self._last_loss = loss_1 + loss_2

        # train_steps is incremented after this call, so the first step updates.
        if self.train_steps % self.policy_delay == 0:
            self._deterministic_actor_step(batch.states, self.critic_1)
            soft_update(self.actor_target, self.actor, self.tau)
            soft_update(self.critic_1_target, self.critic_1, self.tau)
            soft_update(self.critic_2_target, self.critic_2, self.tau)


class SAC(ContinuousActorCritic):
    """Soft actor-critic with a tanh-squashed Gaussian actor and fixed temperature.

    The actor outputs ``(mean, log_std)``; ``log_std`` is clamped to
    ``[log_std_min, log_std_max]`` and actions are sampled with the
    reparameterization ``tanh(mean + std * eps)``.
    """

    name = "sac"
    log_std_min = -20.0
    log_std_max = 2.0

    def __init__(
        self,
        spec: EnvSpec,
        hyperparameters: Hyperparameters | None = None,
        seed: int | None = None,
        alpha: float = 0.2,
        **kwargs,
    ) -> None:
        self.alpha = alpha
        super().__init__(spec, hyperparameters, seed, **kwargs)

    def _build(self) -> None:
        super()._build()
        self.actor = MLP((self.spec.observation_dim, *self.hidden_sizes, 2), self.rng)
        self.critic_1 = self._critic()
        self.critic_2 = self._critic()
        self.critic_1_target = self.critic_1.clone()
        self.critic_2_target = self.critic_2.clone()
        self.actor_optimizer = Adam(self.actor.params, lr=self.learning_rate)
        self.critic_1_optimizer = Adam(self.critic_1.params, lr=self.learning_rate)
        self.critic_2_optimizer = Adam(self.critic_2.params, lr=self.learning_rate)

    def _optimizers(self) -> list[Adam]:
        return [self.actor_optimizer, self.critic_1_optimizer, self.critic_2_optimizer]

    def _sample(self, states: np.ndarray) -> dict[str, np.ndarray]:
        out, cache = self.actor.forward(states)
        mean = out[:, 0]
        raw_log_std = out[:, 1]
        log_std = np.clip(raw_log_std, self.log_std_min, self.log_std_max)
        std = np.exp(log_std)
        eps = self.rng.standard_normal(len(mean))
        squashed = np.tanh(mean + std * eps)
        log_prob = (
            -0.5 * eps**2
            - log_std
            - 0.5 * math.log(2.0 * math.pi)
            - np.log(1.0 - squashed**2 + 1e-6)
        )
        return {
            "action": squashed,
            "log_prob": log_prob,
            "std": std,
            "eps": eps,
            "in_range": (raw_log_std >= self.log_std_min) & (raw_log_std <= self.log_std_max),
            "cache": cache,
        }

    def select_action(self, state: np.ndarray, training: bool = True) -> float:
        if training:
            normalized = float(self._sample(np.atleast_2d(state))["action"][0])
        else:
            normalized = math.tanh(float(self.actor.predict(state)[0, 0]))
        return normalized * self.max_action

    def _train_step(self, batch: TransitionBatch) -> None:
        n = len(batch)
        next_sample = self._sample(batch.next_states)
        next_inputs = np.hstack([batch.next_states, next_sample["action"][:, None]])
        next_q = np.minimum(
            self.critic_1_target.predict(next_inputs)[:, 0],
            self.critic_2_target.predict(next_inputs)[:, 0],
        )
        soft_value = next_q - self.alpha * next_sample["log_prob"]
        targets = batch.rewards + self.discount_factor * (1.0 - batch.dones) * soft_value

        inputs = np.hstack([batch.states, batch.actions / self.max_action])
        loss_1 = self._critic_step(self.critic_1, self.critic_1_optimizer, inputs, targets)
        loss_2 = self._critic_step(self.critic_2, self.critic_2_optimizer, inputs, targets)
        self._last_loss = loss_1 + loss_2

        # Actor: minimize mean(alpha * log_pi - min(Q1, Q2)).
        sample = self._sample(batch.states)
        action = sample["action"]
        policy_inputs = np.hstack([batch.states, action[:, None]])
        q1, cache_1 = self.critic_1.forward(policy_inputs)
        q2, cache_2 = self.critic_2.forward(policy_inputs)
        use_first = (q1[:, 0] <= q2[:, 0]).astype(np.float64)[:, None]
        _, grad_in_1 = self.critic_1.backward(use_first / n, cache_1)
        _, grad_in_2 = self.critic_2.backward((1.0 - use_first) / n, cache_2)
        grad_q_action = grad_in_1[:, -1] + grad_in_2[:, -1]

        one_minus_sq = 1.0 - action**2
        grad_logp_pre = 2.0 * action * one_minus_sq / (one_minus_sq + 1e-6)
        grad_pre = self.alpha * grad_logp_pre / n - grad_q_action * one_minus_sq
        grad_log_std = (
            -self.alpha / n + grad_pre * sample["std"] * sample["eps"]
        ) * sample["in_range"]
        grad_out = np.stack([grad_pre, grad_log_std], axis=1)
        grads, _ = self.actor.backward(grad_out, sample["cache"])
        self.actor_optimizer.step(grads)

        soft_update(self.critic_1_target, self.critic_1, self.tau)
        soft_update(self.critic_2_target, self.critic_2, self.tau)
