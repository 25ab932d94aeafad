"""Cooperative training loop driving one environment and one learner in lockstep."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from enum import Enum
import logging
import time
from typing import Any, Callable

import numpy as np

from rl_simulator.algorithms.base import Learner, LearnerCapability
from rl_simulator.core.params import Hyperparameters, RewardConfig
from rl_simulator.core.types import Action, Transition
from rl_simulator.envs.base import Environment
from rl_simulator.envs.gridworld import GridWorld

logger = logging.getLogger(__name__)

MIN_TICK_DELAY_MS = 10.0
BASE_TICK_DELAY_MS = 100.0


class LoopStatus(Enum):
    IDLE = "idle"
    TRAINING = "training"


@dataclass(frozen=True)
class TrainingSnapshot:
    """Plain values the view layer reads after each tick.

    ``q_values`` and ``policy`` describe the transition's next state, which on
    an episode-ending tick is the terminal state rather than the fresh start.
    They are ``None`` when the learner lacks the matching capability.
    """

    position: dict[str, Any]
    action: Action
    reward: float
    done: bool
    episode: int
    step: int
    total_steps: int
    episode_reward: float
    average_reward: float
    loss: float | None = None
    q_values: list[float] | None = None
    policy: list[float] | None = None


@dataclass(frozen=True)
class ConfigUpdate:
    """Queued configuration change, applied at the start of the next tick."""

    hyperparameters: Hyperparameters | None = None
    reward: RewardConfig | None = None
    speed: float | None = None

    def merge(self, other: "ConfigUpdate") -> "ConfigUpdate":
        return ConfigUpdate(
            hyperparameters=other.hyperparameters or self.hyperparameters,
            reward=other.reward or self.reward,
            speed=other.speed if other.speed is not None else self.speed,
        )


class TransitionRouter:
    """Feeds transitions to a learner in the order its update rule needs.

    Learners with ``requires_next_action`` get each transition one step late,
    together with the action selected in its ``next_state``. The final
    transition of an episode is flushed with ``done=True``. Other learners are
    updated immediately; a step-limit truncation is signalled through
    ``Learner.end_episode``.
    """

    def __init__(self, learner: Learner) -> None:
        self.learner = learner
        self.pending: Transition | None = None

    def on_action(self, action: Action) -> None:
        """Call once the action for the current state is chosen, before stepping."""
        if self.pending is None:
            return
        pending, self.pending = self.pending, None
        self.learner.update(
            pending.state,
            pending.action,
            pending.reward,
            pending.next_state,
            pending.done,
            next_action=action,
        )

    def on_step(
        self,
        state: np.ndarray,
        action: Action,
        reward: float,
        next_state: np.ndarray,
        done: bool,
        truncated: bool = False,
    ) -> None:
        episode_over = done or truncated
        if self.learner.requires_next_action:
            if episode_over:
                self.learner.update(state, action, reward, next_state, True)
            else:
                self.pending = Transition(state, action, reward, next_state, False)
            return
        self.learner.update(state, action, reward, next_state, done)
        if truncated and not done:
            self.learner.end_episode()

    def clear(self) -> None:
        self.pending = None


class TrainingLoop:
    """Tick-driven driver with ``IDLE``/``TRAINING`` states.

    Args:
        env: Active environment.
        learner: Active learner, built against ``env.spec``.
        max_episode_steps: Optional truncation limit per episode.
        history_window: Number of recent episode returns kept for the
            running average.
        speed: Speed multiplier; ``run`` waits ``max(10, 100 / speed)`` ms
            between ticks.
        sleep: Injectable sleep function taking seconds.
    """

    def __init__(
        self,
        env: Environment,
        learner: Learner,
        max_episode_steps: int | None = None,
        history_window: int = 100,
        speed: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if speed <= 0.0:
            raise ValueError("speed must be positive.")
        self.env = env
        self.learner = learner
        self.max_episode_steps = max_episode_steps
        self.speed = speed
        self.sleep = sleep
        self.status = LoopStatus.IDLE
        self.router = TransitionRouter(learner)
        self.history: deque[float] = deque(maxlen=history_window)
        self._pending_config: ConfigUpdate | None = None
        self._reset_counters()
        self.env.reset()

    def _reset_counters(self) -> None:
        self.episode = 0
        self.step = 0
        self.total_steps = 0
        self.episode_reward = 0.0

    @property
    def is_training(self) -> bool:
        return self.status is LoopStatus.TRAINING

    @property
    def tick_delay(self) -> float:
        """Seconds between scheduled ticks."""
        return max(MIN_TICK_DELAY_MS, BASE_TICK_DELAY_MS / self.speed) / 1000.0

    @property
    def average_reward(self) -> float:
        if not self.history:
            return 0.0
        return float(np.mean(self.history))

    def start(self) -> None:
        if self.is_training:
            return
        self.status = LoopStatus.TRAINING
        logger.info("Training started: %s on %s", self.learner.name, self.env.name)

    def stop(self) -> None:
        """Halt scheduling; learned state is untouched."""
        if not self.is_training:
            return
        self.status = LoopStatus.IDLE
        logger.info("Training stopped after %d episodes", self.episode)

    def reset(self) -> None:
        """Stop and clear learner, environment position, counters and history."""
        self.stop()
        self.learner.reset()
        self.env.reset()
        self.router.clear()
        self.history.clear()
        self._reset_counters()
        logger.info("Training reset: %s on %s", self.learner.name, self.env.name)

    def request_config_update(
        self,
        hyperparameters: Hyperparameters | None = None,
        reward: RewardConfig | None = None,
        speed: float | None = None,
    ) -> None:
        """Queue a configuration change; later requests win per field."""
        if speed is not None and speed <= 0.0:
            raise ValueError("speed must be positive.")
        if hyperparameters is not None:
            hyperparameters.validate()
        if reward is not None:
            reward.validate()
        update = ConfigUpdate(hyperparameters=hyperparameters, reward=reward, speed=speed)
        if self._pending_config is None:
            self._pending_config = update
        else:
            self._pending_config = self._pending_config.merge(update)

    def _apply_pending_config(self) -> None:
        update, self._pending_config = self._pending_config, None
        if update is None:
            return
        if update.hyperparameters is not None:
            self.learner.apply_hyperparameters(update.hyperparameters)
        if update.reward is not None and isinstance(self.env, GridWorld):
            self.env.set_reward_config(update.reward)
        if update.speed is not None:
            self.speed = update.speed
        logger.debug("Applied configuration update: %s", update)

    def tick(self) -> TrainingSnapshot:
        """Advance exactly one environment step and return the resulting snapshot."""
        self._apply_pending_config()
        state = self.env.state_vector()
        action = self.learner.select_action(state, training=True)
        self.router.on_action(action)

        result = self.env.step(action)
        next_state = self.env.state_vector(result.next_state)
        self.step += 1
        self.total_steps += 1
        self.episode_reward += result.reward
        truncated = (
            not result.done
            and self.max_episode_steps is not None
            and self.step >= self.max_episode_steps
        )
        self.router.on_step(state, action, result.reward, next_state, result.done, truncated)

        step = self.step
        episode_reward = self.episode_reward
        episode_over = result.done or truncated
        if episode_over:
            self._finish_episode(truncated)

        return self._snapshot(
            action, result.reward, episode_over, step, episode_reward, next_state
        )

    def _finish_episode(self, truncated: bool) -> None:
        self.episode += 1
        self.history.append(self.episode_reward)
        logger.debug(
            "Episode %d finished: reward=%.3f steps=%d truncated=%s",
            self.episode,
            self.episode_reward,
            self.step,
            truncated,
        )
        self.env.reset()
        self.router.clear()
        self.step = 0
        self.episode_reward = 0.0

    def _snapshot(
        self,
        action: Action,
        reward: float,
        done: bool,
        step: int,
        episode_reward: float,
        next_state: np.ndarray,
    ) -> TrainingSnapshot:
        learner = self.learner
        q_values = None
        policy = None
        loss = None
        if learner.supports(LearnerCapability.VALUE_QUERY):
            q_values = [float(value) for value in learner.q_values(next_state)]
        if learner.supports(LearnerCapability.POLICY_QUERY):
            policy = [float(value) for value in learner.policy_probabilities(next_state)]
        if learner.supports(LearnerCapability.LOSS_QUERY):
            loss = float(learner.loss())
        return TrainingSnapshot(
            position=self.env.position(),
            action=action,
            reward=float(reward),
            done=done,
            episode=self.episode,
            step=step,
            total_steps=self.total_steps,
            episode_reward=float(episode_reward),
            average_reward=self.average_reward,
            loss=loss,
            q_values=q_values,
            policy=policy,
        )

    def run(
        self,
        max_ticks: int | None = None,
        max_episodes: int | None = None,
        on_tick: Callable[[TrainingSnapshot], None] | None = None,
    ) -> int:
        """Tick until stopped or a limit is reached; returns the number of ticks run.

        The stop flag is checked before each tick, so ``stop()`` from
        ``on_tick`` ends the run after the in-flight tick completes.
        """
        self.start()
        ticks = 0
        start_episode = self.episode
        while self.is_training:
            snapshot = self.tick()
            ticks += 1
            if on_tick is not None:
                on_tick(snapshot)
            if max_ticks is not None and ticks >= max_ticks:
                break
            if max_episodes is not None and self.episode - start_episode >= max_episodes:
                break
            if self.is_training:
                self.sleep(self.tick_delay)
        self.stop()
        return ticks

    def value_grid(self) -> dict[str, list[float]] | None:
        """Per-cell action values for grid environments, keyed ``"row,col"``."""
        if not isinstance(self.env, GridWorld):
            return None
        if not self.learner.supports(LearnerCapability.VALUE_QUERY):
            return None
        return {
            self.env.state_key(cell): [
                float(value) for value in self.learner.q_values(self.env.state_vector(cell))
            ]
            for cell in self.env.cells()
        }
