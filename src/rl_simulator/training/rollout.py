"""Whole-episode rollout and greedy evaluation helpers."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from rl_simulator.algorithms.base import Learner
from rl_simulator.envs.base import Environment
from rl_simulator.training.loop import TransitionRouter


@dataclass(frozen=True)
class EpisodeSummary:
    """Outcome of one episode.

    Attributes:
        total_reward: Undiscounted return.
        steps: Environment steps taken.
        terminated: True if the environment ended the episode, False if the
            step limit truncated it.
    """

    total_reward: float
    steps: int
    terminated: bool


def run_episode(
    env: Environment,
    learner: Learner,
    training: bool = True,
    max_steps: int = 500,
) -> EpisodeSummary:
    """Run one episode from a fresh reset.

    With ``training=True`` actions are exploratory and every transition is
    routed to ``learner.update``; otherwise the learner acts greedily and is
    left untouched.
    """
    if max_steps <= 0:
        raise ValueError("max_steps must be positive.")
    env.reset()
    router = TransitionRouter(learner) if training else None
    total_reward = 0.0
    steps = 0
    done = False
    while not done and steps < max_steps:
        state = env.state_vector()
        action = learner.select_action(state, training=training)
        if router is not None:
            router.on_action(action)
        result = env.step(action)
        steps += 1
        total_reward += result.reward
        done = result.done
        if router is not None:
            router.on_step(
                state,
                action,
                result.reward,
                env.state_vector(result.next_state),
                done,
                truncated=not done and steps >= max_steps,
            )
    return EpisodeSummary(total_reward=float(total_reward), steps=steps, terminated=done)


def evaluate_policy(
    env: Environment,
    learner: Learner,
    episodes: int = 5,
    max_steps: int = 500,
) -> list[EpisodeSummary]:
    """Run ``episodes`` greedy episodes without learning."""
    return [run_episode(env, learner, training=False, max_steps=max_steps) for _ in range(episodes)]


def mean_reward(summaries: list[EpisodeSummary]) -> float:
    if not summaries:
        return 0.0
    return float(np.mean([summary.total_reward for summary in summaries]))
