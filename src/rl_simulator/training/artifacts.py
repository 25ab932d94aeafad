"""Serialization helpers for training run artifacts."""

from __future__ import annotations

from dataclasses import asdict
import json
import logging
from pathlib import Path
from typing import Any

import pandas as pd
import yaml

from rl_simulator.algorithms.tabular import TabularLearner
from rl_simulator.training.train import TrainingResult

logger = logging.getLogger(__name__)


REQUIRED_RUN_FILES: tuple[str, ...] = (
    "config_resolved.yaml",
    "episode_history.csv",
    "summary.json",
)

Q_TABLE_FILE = "q_table.json"


def ensure_run_dir(run_dir: Path) -> None:
    """Create run directory and parent paths."""
    run_dir.mkdir(parents=True, exist_ok=True)


def write_json(path: Path, payload: Any) -> None:
    """Write JSON with stable formatting."""
    path.write_text(json.dumps(payload, indent=2, sort_keys=True) + "\n", encoding="utf-8")


def write_yaml(path: Path, payload: Any) -> None:
    """Write YAML with stable formatting."""
    path.write_text(yaml.safe_dump(payload, sort_keys=False), encoding="utf-8")


def episode_history_frame(result: TrainingResult, window: int | None = None) -> pd.DataFrame:
    """Per-episode history with a trailing rolling-average return column."""
    window = window or result.config.history_window
    frame = pd.DataFrame([asdict(record) for record in result.history])
    if frame.empty:
        return pd.DataFrame(
            columns=["episode", "total_reward", "steps", "terminated", "loss", "rolling_reward"]
        )
    frame["rolling_reward"] = frame["total_reward"].rolling(window, min_periods=1).mean()
    return frame


def build_summary(result: TrainingResult) -> dict[str, Any]:
    """Headline numbers for ``summary.json``."""
    returns = result.returns
    losses = [record.loss for record in result.history if record.loss is not None]
    return {
        "environment": result.environment.name,
        "algorithm": result.learner.name,
        "episodes": len(result.history),
        "total_steps": int(sum(record.steps for record in result.history)),
        "mean_reward": float(sum(returns) / len(returns)) if returns else 0.0,
        "best_reward": float(max(returns)) if returns else 0.0,
        "final_average_reward": result.average_reward(),
        "final_loss": float(losses[-1]) if losses else None,
        "eval_episodes": len(result.evaluation),
        "eval_mean_reward": result.eval_mean_reward,
        "eval_rewards": [summary.total_reward for summary in result.evaluation],
        "elapsed_seconds": result.elapsed_seconds,
    }


def write_run_artifacts(
    run_dir: Path,
    result: TrainingResult,
    extra_config: dict[str, Any] | None = None,
) -> list[Path]:
    """Write all run artifacts and return the written paths."""
    ensure_run_dir(run_dir)
    config_payload = result.config.to_dict()
    config_payload["hyperparameters"] = result.learner.hyperparameters.to_dict()
    if extra_config:
        config_payload.update(extra_config)

    written = [
        run_dir / "config_resolved.yaml",
        run_dir / "episode_history.csv",
        run_dir / "summary.json",
    ]
    write_yaml(written[0], config_payload)
    episode_history_frame(result).to_csv(written[1], index=False)
    write_json(written[2], build_summary(result))

    if isinstance(result.learner, TabularLearner):
        q_path = run_dir / Q_TABLE_FILE
        write_json(q_path, result.learner.q_table())
        written.append(q_path)

    logger.info("Wrote %d run artifacts to %s", len(written), run_dir)
    return written


def missing_run_files(run_dir: Path) -> list[str]:
    """Required artifacts absent from ``run_dir``."""
    return [name for name in REQUIRED_RUN_FILES if not (run_dir / name).exists()]


def load_run_summary(run_dir: Path) -> dict[str, Any]:
    """Load ``summary.json`` from a complete run directory."""
    missing = missing_run_files(run_dir)
    if missing:
        raise FileNotFoundError(
            f"Missing required run artifacts in {run_dir}: {', '.join(missing)}"
        )
    return json.loads((run_dir / "summary.json").read_text(encoding="utf-8"))
