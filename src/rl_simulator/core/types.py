"""Shared state, action and transition types used across envs and learners."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

import numpy as np


Action = Union[int, float]


@dataclass(frozen=True)
class GridState:
    """Agent cell in the grid world."""

    row: int
    col: int


@dataclass(frozen=True)
class CartPoleState:
    """Continuous cart-pole state.

    Attributes:
        cart_pos: Cart position along the track.
        cart_vel: Cart velocity.
        pole_angle: Pole angle from vertical in radians.
        pole_vel: Pole angular velocity.
    """

    cart_pos: float
    cart_vel: float
    pole_angle: float
    pole_vel: float


@dataclass(frozen=True)
class PendulumState:
    """Pendulum angle (0 is upright) and angular velocity."""

    angle: float
    angular_vel: float


State = Union[GridState, CartPoleState, PendulumState]


@dataclass(frozen=True)
class StepResult:
    """Outcome of a single environment step."""

    next_state: State
    reward: float
    done: bool
    info: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Transition:
    """One ``(state, action, reward, next_state, done)`` experience tuple.

    States are stored as observation vectors, the representation every learner
    consumes.
    """

    state: np.ndarray
    action: Action
    reward: float
    next_state: np.ndarray
    done: bool


@dataclass(frozen=True)
class EnvSpec:
    """Static description a learner is built against."""

    name: str
    observation_dim: int
    num_actions: int
    num_states: int
    continuous: bool = False
    action_low: float = 0.0
    action_high: float = 0.0
    grid_shape: tuple[int, int] | None = None

    @property
    def max_action(self) -> float:
        return max(abs(self.action_low), abs(self.action_high))
