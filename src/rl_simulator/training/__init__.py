"""Training loop, simulator session and headless training components."""

from rl_simulator.training.loop import LoopStatus, TrainingLoop, TrainingSnapshot
from rl_simulator.training.registry import (
    ALGORITHM_INFO,
    DEFAULT_HYPERPARAMETERS,
    ENVIRONMENT_ALGORITHMS,
    build_environment,
    build_learner,
    build_pair,
)
from rl_simulator.training.rollout import EpisodeSummary, evaluate_policy, run_episode
from rl_simulator.training.session import Simulator
from rl_simulator.training.train import TrainingResult, train_agent

__all__ = [
    "ALGORITHM_INFO",
    "DEFAULT_HYPERPARAMETERS",
    "ENVIRONMENT_ALGORITHMS",
    "EpisodeSummary",
    "LoopStatus",
    "Simulator",
    "TrainingLoop",
    "TrainingResult",
    "TrainingSnapshot",
    "build_environment",
    "build_learner",
    "build_pair",
    "evaluate_policy",
    "run_episode",
    "train_agent",
]
