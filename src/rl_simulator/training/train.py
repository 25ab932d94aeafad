"""Headless training entry point."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import time

from rl_simulator.algorithms.base import Learner, LearnerCapability
from rl_simulator.core.params import TrainingConfig
from rl_simulator.envs.base import Environment
from rl_simulator.training.registry import DEFAULT_EPISODE_STEPS, build_pair, normalize_name
from rl_simulator.training.rollout import EpisodeSummary, evaluate_policy, mean_reward, run_episode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EpisodeRecord:
    """One training episode as recorded in the history."""

    episode: int
    total_reward: float
    steps: int
    terminated: bool
    loss: float | None


@dataclass(frozen=True)
class TrainingResult:
    """Everything a finished run produced."""

    config: TrainingConfig
    environment: Environment
    learner: Learner
    history: list[EpisodeRecord]
    evaluation: list[EpisodeSummary]
    elapsed_seconds: float

    @property
    def returns(self) -> list[float]:
        return [record.total_reward for record in self.history]

    @property
    def eval_mean_reward(self) -> float:
        return mean_reward(self.evaluation)

    def average_reward(self, window: int | None = None) -> float:
        """Mean return over the last ``window`` episodes (default: history window)."""
        window = window or self.config.history_window
        recent = self.returns[-window:]
        if not recent:
            return 0.0
        return float(sum(recent) / len(recent))


def resolve_max_episode_steps(config: TrainingConfig) -> int:
    """Configured step limit, or the environment's default."""
    if config.max_episode_steps is not None:
        return config.max_episode_steps
    return DEFAULT_EPISODE_STEPS[normalize_name(config.environment)]


def train_agent(
    config: TrainingConfig,
    show_progress: bool = False,
    progress_desc: str = "Training",
) -> TrainingResult:
    """Train a fresh (environment, learner) pair for ``config.episodes`` episodes."""
    config.validate()
    env, learner = build_pair(
        config.environment,
        config.algorithm,
        hyperparameters=config.hyperparameters,
        reward_config=config.reward,
        seed=config.seed,
    )
    logger.info(
        "Training %s on %s for %d episodes (seed=%s)",
        learner.name,
        env.name,
        config.episodes,
        config.seed,
    )

    max_steps = resolve_max_episode_steps(config)
    iterator = range(1, config.episodes + 1)
    progress = iterator
    if show_progress:
        from tqdm.auto import tqdm

        progress = tqdm(iterator, desc=progress_desc, dynamic_ncols=True, leave=False)

    history: list[EpisodeRecord] = []
    started = time.perf_counter()
    for episode in progress:
        summary = run_episode(env, learner, training=True, max_steps=max_steps)
        loss = learner.loss() if learner.supports(LearnerCapability.LOSS_QUERY) else None
        history.append(
            EpisodeRecord(
                episode=episode,
                total_reward=summary.total_reward,
                steps=summary.steps,
                terminated=summary.terminated,
                loss=None if loss is None else float(loss),
            )
        )
        logger.debug(
            "Episode %d: reward=%.3f steps=%d", episode, summary.total_reward, summary.steps
        )
        if show_progress:
            recent = history[-config.history_window :]
            avg = sum(record.total_reward for record in recent) / len(recent)
            progress.set_postfix({"avg_reward": f"{avg:.2f}"}, refresh=False)

    if show_progress:
        progress.close()

    evaluation = evaluate_policy(
        env, learner, episodes=config.eval_episodes, max_steps=max_steps
    )
    elapsed = time.perf_counter() - started
    result = TrainingResult(
        config=config,
        environment=env,
        learner=learner,
        history=history,
        evaluation=evaluation,
        elapsed_seconds=elapsed,
    )
    logger.info(
        "Finished %d episodes in %.2fs: avg_reward=%.3f eval_mean_reward=%.3f",
        len(history),
        elapsed,
        result.average_reward(),
        result.eval_mean_reward,
    )
    return result
