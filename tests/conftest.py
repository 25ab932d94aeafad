"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from pathlib import Path
import sys


def _preload_numpy_without_macos_check() -> None:
    """Preload NumPy while bypassing the macOS sanity check.

    This avoids a hard crash seen with some macOS BLAS/LAPACK builds during
    NumPy's import-time polyfit check.
    """
    if sys.platform != "darwin":
        return

    original_platform = sys.platform
    try:
        sys.platform = "linux"
        import numpy  # noqa: F401
    finally:
        sys.platform = original_platform


_preload_numpy_without_macos_check()


import pytest  # noqa: E402

from rl_simulator.envs.gridworld import GridLayout, GridWorld  # noqa: E402


@pytest.fixture
def project_root() -> Path:
    return Path(__file__).resolve().parents[1]


@pytest.fixture
def fixtures_dir(project_root: Path) -> Path:
    return project_root / "tests" / "fixtures"


@pytest.fixture
def open_grid() -> GridWorld:
    """Obstacle-free 4x4 grid, start (0,0), goal (3,3)."""
    return GridWorld(layout=GridLayout.open(4, 4), seed=0)


@pytest.fixture
def no_sleep():
    """Recording stand-in for ``time.sleep``."""
    delays: list[float] = []

    def _sleep(seconds: float) -> None:
        delays.append(seconds)

    _sleep.delays = delays
    return _sleep
