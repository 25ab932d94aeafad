"""Training script end-to-end tests."""

from __future__ import annotations

import json
import os
from pathlib import Path
import subprocess
import sys

import yaml

from rl_simulator.training.artifacts import Q_TABLE_FILE, REQUIRED_RUN_FILES


def _run_script(
    *,
    project_root: Path,
    args: list[str],
) -> subprocess.CompletedProcess[str]:
    env = dict(os.environ)
    env["PYTHONPATH"] = str(project_root / "src")
    cmd = [sys.executable, str(project_root / "scripts" / "train.py"), *args]
    return subprocess.run(cmd, check=False, env=env, capture_output=True, text=True)


def test_train_script_writes_expected_run_artifacts(tmp_path: Path) -> None:
    project_root = Path(__file__).resolve().parents[2]
    run_dir = tmp_path / "sarsa_run"
    config_path = project_root / "tests" / "fixtures" / "training_small.yaml"

    result = _run_script(
        project_root=project_root,
        args=[
            "--config",
            str(config_path),
            "--run-dir",
            str(run_dir),
            "--tag",
            "pytest",
            "--no-progress",
        ],
    )

    assert result.returncode == 0, result.stderr
    assert f"Run directory: {run_dir}" in result.stdout
    for required in REQUIRED_RUN_FILES:
        assert (run_dir / required).exists(), required
        assert (run_dir / required).stat().st_size > 0, required
    assert (run_dir / Q_TABLE_FILE).exists()

    config = yaml.safe_load((run_dir / "config_resolved.yaml").read_text())
    assert config["algorithm"] == "sarsa"
    assert config["max_episode_steps"] == 50
    assert float(config["hyperparameters"]["learning_rate"]) == 0.2
    assert float(config["hyperparameters"]["discount_factor"]) == 0.95
    assert float(config["reward"]["goal_reward"]) == 5.0
    assert config["config_path"] == str(config_path)

    summary = json.loads((run_dir / "summary.json").read_text())
    assert summary["episodes"] == 5
    assert summary["eval_episodes"] == 2


def test_train_script_flag_overrides_and_home_environment(tmp_path: Path) -> None:
    project_root = Path(__file__).resolve().parents[2]
    run_dir = tmp_path / "ppo_run"

    result = _run_script(
        project_root=project_root,
        args=[
            "--algorithm",
            "ppo",
            "--episodes",
            "2",
            "--max-episode-steps",
            "20",
            "--eval-episodes",
            "1",
            "--clip-epsilon",
            "0.3",
            "--run-dir",
            str(run_dir),
            "--no-progress",
        ],
    )

    assert result.returncode == 0, result.stderr
    config = yaml.safe_load((run_dir / "config_resolved.yaml").read_text())
    assert config["environment"] == "cartpole"
    assert config["algorithm"] == "ppo"
    assert float(config["hyperparameters"]["clip_epsilon"]) == 0.3
    assert float(config["hyperparameters"]["learning_rate"]) == 0.0003
    assert not (run_dir / Q_TABLE_FILE).exists()


def test_train_script_algorithm_flag_moves_config_to_home_environment(tmp_path: Path) -> None:
    project_root = Path(__file__).resolve().parents[2]
    run_dir = tmp_path / "ppo_from_config"

    result = _run_script(
        project_root=project_root,
        args=[
            "--config",
            str(project_root / "configs" / "training.yaml"),
            "--algorithm",
            "ppo",
            "--episodes",
            "1",
            "--max-episode-steps",
            "20",
            "--eval-episodes",
            "1",
            "--run-dir",
            str(run_dir),
            "--no-progress",
        ],
    )

    assert result.returncode == 0, result.stderr
    config = yaml.safe_load((run_dir / "config_resolved.yaml").read_text())
    assert config["environment"] == "cartpole"
    assert config["algorithm"] == "ppo"
    assert float(config["hyperparameters"]["learning_rate"]) == 0.0003
    assert float(config["hyperparameters"]["discount_factor"]) == 0.99


def test_train_script_rejects_incompatible_pair(tmp_path: Path) -> None:
    project_root = Path(__file__).resolve().parents[2]
    result = _run_script(
        project_root=project_root,
        args=[
            "--environment",
            "gridworld",
            "--algorithm",
            "td3",
            "--run-dir",
            str(tmp_path / "bad"),
            "--no-progress",
        ],
    )
    assert result.returncode != 0
    assert "not compatible" in result.stderr
    assert not (tmp_path / "bad").exists()
