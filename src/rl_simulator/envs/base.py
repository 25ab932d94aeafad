"""Environment interface shared by the grid world and the control tasks."""

from __future__ import annotations

from abc import ABC, abstractmethod
import math
from typing import Any

import numpy as np

from rl_simulator.core.types import Action, EnvSpec, State, StepResult


class Environment(ABC):
    """Deterministic-transition, stochastic-reset simulation.

    Subclasses keep their current state as an immutable snapshot and replace it
    on every step, so callers can hold on to returned states safely.
    """

    name: str = "environment"

    def __init__(self, seed: int | None = None) -> None:
        self.rng = np.random.default_rng(seed)
        self.step_count = 0

    @property
    @abstractmethod
    def spec(self) -> EnvSpec:
        """Static dimensions and action bounds."""

    @property
    def num_actions(self) -> int:
        return self.spec.num_actions

    @property
    def num_states(self) -> int:
        return self.spec.num_states

    @abstractmethod
    def reset(self) -> State:
        """Start a new episode and return the initial state."""

    @abstractmethod
    def step(self, action: Action) -> StepResult:
        """Apply one action and advance the simulation."""

    @abstractmethod
    def get_state(self) -> State:
        """Return the current state snapshot."""

    @abstractmethod
    def state_vector(self, state: State | None = None) -> np.ndarray:
        """Return a fresh observation vector for ``state`` (default: current)."""

    @abstractmethod
    def position(self) -> dict[str, Any]:
        """Visual position derived from the current state for the view layer."""

    def seed(self, seed: int | None) -> None:
        self.rng = np.random.default_rng(seed)

    def action_name(self, action: Action) -> str:
        return str(action)


def wrap_angle(angle: float) -> float:
    """Wrap an angle to ``[-pi, pi]``."""
    while angle > math.pi:
        angle -= 2.0 * math.pi
    while angle < -math.pi:
        angle += 2.0 * math.pi
    return angle
