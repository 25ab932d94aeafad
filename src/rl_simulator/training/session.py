"""Interactive simulator session holding the one active environment/learner pair."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

from rl_simulator.core.params import Hyperparameters, RewardConfig
from rl_simulator.training.loop import TrainingLoop, TrainingSnapshot
from rl_simulator.training.registry import (
    ALGORITHM_INFO,
    DEFAULT_EPISODE_STEPS,
    HYPERPARAMETER_RANGES,
    AlgorithmInfo,
    SliderRange,
    build_pair,
    compatible_algorithms,
    default_hyperparameters,
    home_environment,
    is_compatible,
    normalize_name,
)

logger = logging.getLogger(__name__)


class Simulator:
    """Selection state plus a training loop over a freshly built pair.

    Any environment or algorithm change stops the loop and rebuilds both the
    environment and the learner from scratch; nothing learned survives a swap.
    """

    def __init__(
        self,
        environment: str = "gridworld",
        algorithm: str | None = None,
        seed: int | None = None,
        reward_config: RewardConfig | None = None,
        history_window: int = 100,
        speed: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.environment_name = normalize_name(environment)
        if algorithm is None:
            algorithm = compatible_algorithms(self.environment_name)[0]
        self.algorithm_name = normalize_name(algorithm)
        if not is_compatible(self.environment_name, self.algorithm_name):
            raise ValueError(
                f"Algorithm '{algorithm}' is not compatible with environment '{environment}'."
            )
        self.seed = seed
        self.reward_config = reward_config or RewardConfig()
        self.history_window = history_window
        self.speed = speed
        self.sleep = sleep
        self.hyperparameters = default_hyperparameters(self.algorithm_name)
        self._rebuild()

    def _rebuild(self) -> None:
        self.env, self.learner = build_pair(
            self.environment_name,
            self.algorithm_name,
            hyperparameters=self.hyperparameters,
            reward_config=self.reward_config,
            seed=self.seed,
        )
        self.loop = TrainingLoop(
            self.env,
            self.learner,
            max_episode_steps=DEFAULT_EPISODE_STEPS[self.environment_name],
            history_window=self.history_window,
            speed=self.speed,
            sleep=self.sleep,
        )
        logger.info("Active pair: %s on %s", self.algorithm_name, self.environment_name)

    @property
    def info(self) -> AlgorithmInfo:
        return ALGORITHM_INFO[self.algorithm_name]

    @property
    def hyperparameter_ranges(self) -> dict[str, SliderRange]:
        return HYPERPARAMETER_RANGES[self.algorithm_name]

    @property
    def available_algorithms(self) -> tuple[str, ...]:
        return compatible_algorithms(self.environment_name)

    def select_environment(self, environment: str) -> None:
        """Switch environment, keeping the algorithm only if it is compatible."""
        key = normalize_name(environment)
        algorithms = compatible_algorithms(key)
        self.loop.stop()
        self.environment_name = key
        if self.algorithm_name not in algorithms:
            self.algorithm_name = algorithms[0]
            self.hyperparameters = default_hyperparameters(self.algorithm_name)
        self._rebuild()

    def select_algorithm(self, algorithm: str) -> None:
        """Switch algorithm, moving to its home environment if needed."""
        key = normalize_name(algorithm)
        home = home_environment(key)
        self.loop.stop()
        if not is_compatible(self.environment_name, key):
            self.environment_name = home
        self.algorithm_name = key
        self.hyperparameters = default_hyperparameters(key)
        self._rebuild()

    def update_hyperparameters(self, **overrides: Any) -> Hyperparameters:
        """Merge overrides and queue them for the next tick."""
        self.hyperparameters = self.hyperparameters.merged(overrides)
        self.loop.request_config_update(hyperparameters=self.hyperparameters)
        return self.hyperparameters

    def update_reward_config(self, reward_config: RewardConfig) -> None:
        self.reward_config = reward_config
        self.loop.request_config_update(reward=reward_config)

    def set_speed(self, speed: float) -> None:
        self.loop.request_config_update(speed=speed)
        self.speed = speed

    def start(self) -> None:
        self.loop.start()

    def stop(self) -> None:
        self.loop.stop()

    def reset(self) -> None:
        self.loop.reset()

    def tick(self) -> TrainingSnapshot:
        return self.loop.tick()

    def run(self, **kwargs: Any) -> int:
        return self.loop.run(**kwargs)

    def value_grid(self) -> dict[str, list[float]] | None:
        return self.loop.value_grid()
