"""Hyperparameter, reward-shaping and training config schema with YAML helpers."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml


@dataclass(frozen=True)
class Hyperparameters:
    """Learner hyperparameters exposed on the configuration surface."""

    learning_rate: float = 0.1
    discount_factor: float = 0.95
    epsilon: float = 0.1
    epsilon_decay: float = 0.995
    epsilon_min: float = 0.01
    clip_epsilon: float = 0.2

    def validate(self) -> None:
        if self.learning_rate <= 0.0:
            raise ValueError("learning_rate must be positive.")
        if not (0.0 <= self.discount_factor <= 1.0):
            raise ValueError("discount_factor must be in [0, 1].")
        if not (0.0 <= self.epsilon <= 1.0):
            raise ValueError("epsilon must be in [0, 1].")
        if not (0.0 < self.epsilon_decay <= 1.0):
            raise ValueError("epsilon_decay must be in (0, 1].")
        if not (0.0 <= self.epsilon_min <= 1.0):
            raise ValueError("epsilon_min must be in [0, 1].")
        if not (0.0 < self.clip_epsilon < 1.0):
            raise ValueError("clip_epsilon must be in (0, 1).")

    def merged(self, overrides: dict[str, Any]) -> "Hyperparameters":
        """Return a copy with non-``None`` overrides applied."""
        known = {key: float(value) for key, value in overrides.items() if value is not None}
        unknown = set(known) - set(asdict(self))
        if unknown:
            raise ValueError(f"Unknown hyperparameters: {', '.join(sorted(unknown))}")
        return replace(self, **known)

    def to_dict(self) -> dict[str, float]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Hyperparameters":
        return cls().merged(dict(payload))


@dataclass(frozen=True)
class RewardConfig:
    """Grid-world reward shaping.

    All values are added to the step reward as-is, so penalties are negative.
    ``time_penalty`` applies to every non-goal step once the episode step
    count exceeds ``time_penalty_threshold``.
    """

    goal_reward: float = 10.0
    obstacle_penalty: float = -1.0
    step_penalty: float = -0.1
    time_penalty: float = 0.0
    time_penalty_threshold: int = 50

    def validate(self) -> None:
        if self.time_penalty_threshold < 0:
            raise ValueError("time_penalty_threshold must be non-negative.")

    def to_dict(self) -> dict[str, float | int]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "RewardConfig":
        return cls(
            goal_reward=float(payload.get("goal_reward", cls.goal_reward)),
            obstacle_penalty=float(payload.get("obstacle_penalty", cls.obstacle_penalty)),
            step_penalty=float(payload.get("step_penalty", cls.step_penalty)),
            time_penalty=float(payload.get("time_penalty", cls.time_penalty)),
            time_penalty_threshold=int(
                payload.get("time_penalty_threshold", cls.time_penalty_threshold)
            ),
        )


@dataclass(frozen=True)
class TrainingConfig:
    """Top-level bundle for one headless training run."""

    environment: str
    algorithm: str
    episodes: int = 200
    max_episode_steps: int | None = None
    eval_episodes: int = 5
    seed: int | None = 0
    speed: float = 1.0
    history_window: int = 100
    hyperparameters: Hyperparameters | None = None
    reward: RewardConfig = field(default_factory=RewardConfig)
    metadata: dict[str, Any] = field(default_factory=dict)

    def validate(self) -> None:
        if self.episodes <= 0:
            raise ValueError("episodes must be positive.")
        if self.max_episode_steps is not None and self.max_episode_steps <= 0:
            raise ValueError("max_episode_steps must be positive.")
        if self.eval_episodes < 0:
            raise ValueError("eval_episodes must be non-negative.")
        if self.speed <= 0.0:
            raise ValueError("speed must be positive.")
        if self.history_window <= 0:
            raise ValueError("history_window must be positive.")
        if self.hyperparameters is not None:
            self.hyperparameters.validate()
        self.reward.validate()

    def to_dict(self) -> dict[str, Any]:
        """Convert config object to a plain dict."""
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "TrainingConfig":
        """Create config object from a plain dict.

        Partial ``hyperparameters`` are filled from the algorithm's own defaults.
        """
        # Deferred: the registry imports this module.
        from rl_simulator.training.registry import default_hyperparameters

        raw_hparams = payload.get("hyperparameters")
        hyperparameters = None
        if raw_hparams is not None:
            hyperparameters = default_hyperparameters(str(payload["algorithm"])).merged(
                dict(raw_hparams)
            )
        raw_seed = payload.get("seed", 0)
        raw_steps = payload.get("max_episode_steps")
        return cls(
            environment=str(payload["environment"]),
            algorithm=str(payload["algorithm"]),
            episodes=int(payload.get("episodes", 200)),
            max_episode_steps=None if raw_steps is None else int(raw_steps),
            eval_episodes=int(payload.get("eval_episodes", 5)),
            seed=None if raw_seed is None else int(raw_seed),
            speed=float(payload.get("speed", 1.0)),
            history_window=int(payload.get("history_window", 100)),
            hyperparameters=hyperparameters,
            reward=RewardConfig.from_dict(payload.get("reward") or {}),
            metadata=dict(payload.get("metadata") or {}),
        )


def save_training_config(config: TrainingConfig, output_path: Path) -> None:
    """Serialize a training config to YAML."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(yaml.safe_dump(config.to_dict(), sort_keys=False))


def load_training_config(path: Path) -> TrainingConfig:
    """Load a training config from YAML."""
    if not path.exists():
        raise FileNotFoundError(f"Training config not found: {path}")
    payload = yaml.safe_load(path.read_text())
    if not isinstance(payload, dict):
        raise ValueError("Expected a mapping in training config YAML.")
    return TrainingConfig.from_dict(payload)
