"""Train one learner headlessly and persist run artifacts."""

from __future__ import annotations

import argparse
from datetime import datetime, timezone
import logging
from pathlib import Path
from typing import Any

import yaml

from rl_simulator.core.params import TrainingConfig
from rl_simulator.training.artifacts import write_run_artifacts
from rl_simulator.training.registry import (
    compatible_algorithms,
    home_environment,
    is_compatible,
)
from rl_simulator.training.train import train_agent

RUN_FLAGS = (
    "environment",
    "algorithm",
    "episodes",
    "max_episode_steps",
    "eval_episodes",
    "seed",
)
HYPERPARAMETER_FLAGS = ("learning_rate", "discount_factor", "epsilon", "clip_epsilon")


def main() -> int:
    parser = argparse.ArgumentParser(description="Train an RL agent on a simulator environment.")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Optional training config YAML; CLI flags override its values.",
    )
    parser.add_argument("--environment", default=None, help="gridworld, cartpole or pendulum.")
    parser.add_argument("--algorithm", default=None, help="Learner name, e.g. qlearning.")
    parser.add_argument("--episodes", type=int, default=None)
    parser.add_argument("--max-episode-steps", type=int, default=None)
    parser.add_argument("--eval-episodes", type=int, default=None)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--learning-rate", type=float, default=None)
    parser.add_argument("--discount-factor", type=float, default=None)
    parser.add_argument("--epsilon", type=float, default=None)
    parser.add_argument("--clip-epsilon", type=float, default=None)
    parser.add_argument(
        "--run-dir",
        type=Path,
        default=None,
        help="Optional explicit output run directory.",
    )
    parser.add_argument("--tag", default="manual", help="Tag used in default run directory.")
    parser.add_argument(
        "--no-progress",
        action="store_true",
        help="Disable tqdm progress bar with running average reward.",
    )
    parser.add_argument("--log-level", default="INFO", help="Python logging level.")
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    payload = _load_config_payload(args.config)
    config = TrainingConfig.from_dict(_apply_overrides(payload, args))
    result = train_agent(
        config,
        show_progress=not args.no_progress,
        progress_desc=f"{config.algorithm} on {config.environment}",
    )

    run_dir = args.run_dir or _default_run_dir(
        environment=config.environment, algorithm=config.algorithm, tag=args.tag
    )
    write_run_artifacts(
        run_dir,
        result,
        extra_config={
            "created_at_utc": datetime.now(timezone.utc).isoformat(),
            "config_path": None if args.config is None else str(args.config),
        },
    )

    print(f"Run directory: {run_dir}")
    print(
        f"Episodes: {len(result.history)}, "
        f"average reward (last {config.history_window}): {result.average_reward():.3f}, "
        f"eval mean reward: {result.eval_mean_reward:.3f}"
    )
    return 0


def _load_config_payload(path: Path | None) -> dict[str, Any]:
    if path is None:
        return {}
    if not path.exists():
        raise FileNotFoundError(f"Training config not found: {path}")
    raw = yaml.safe_load(path.read_text())
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValueError(f"Expected mapping in training config: {path}")
    return raw


def _apply_overrides(payload: dict[str, Any], args: argparse.Namespace) -> dict[str, Any]:
    resolved = dict(payload)
    for key in RUN_FLAGS:
        value = getattr(args, key)
        if value is not None:
            resolved[key] = value

    environment = resolved.get("environment")
    algorithm = resolved.get("algorithm")
    if algorithm is None:
        resolved["environment"] = environment or "gridworld"
        resolved["algorithm"] = compatible_algorithms(resolved["environment"])[0]
    elif environment is None:
        resolved["environment"] = home_environment(algorithm)
    elif (
        args.algorithm is not None
        and args.environment is None
        and not is_compatible(environment, algorithm)
    ):
        # --algorithm alone moves a config's environment to the algorithm's home;
        # the config's hyperparameters belong to its own algorithm.
        resolved["environment"] = home_environment(algorithm)
        resolved.pop("hyperparameters", None)

    hparams = dict(resolved.get("hyperparameters") or {})
    for key in HYPERPARAMETER_FLAGS:
        value = getattr(args, key)
        if value is not None:
            hparams[key] = value
    if hparams:
        resolved["hyperparameters"] = hparams
    return resolved


def _default_run_dir(environment: str, algorithm: str, tag: str) -> Path:
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    safe_tag = "".join(ch if ch.isalnum() or ch in {"-", "_"} else "_" for ch in tag)
    return Path("runs") / environment / f"{timestamp}_{algorithm}_{safe_tag}"


if __name__ == "__main__":
    raise SystemExit(main())
