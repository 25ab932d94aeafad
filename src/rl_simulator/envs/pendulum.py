"""Torque-controlled pendulum swing-up task."""

from __future__ import annotations

from dataclasses import dataclass
import math
from typing import Any

import numpy as np

from rl_simulator.core.types import EnvSpec, PendulumState, StepResult
from rl_simulator.envs.base import Environment, wrap_angle


@dataclass(frozen=True)
class PendulumPhysics:
    """Physical constants and control limits."""

    max_speed: float = 8.0
    max_torque: float = 2.0
    dt: float = 0.05
    gravity: float = 10.0
    mass: float = 1.0
    length: float = 1.0


def pendulum_cost(angle: float, angular_vel: float, torque: float, physics: PendulumPhysics) -> float:
    """Quadratic cost on angle-from-upright, velocity and torque, each normalized."""
    angle_term = (angle / math.pi) ** 2
    vel_term = 0.1 * (angular_vel / physics.max_speed) ** 2
    torque_term = 0.001 * (torque / physics.max_torque) ** 2
    return angle_term + vel_term + torque_term


class Pendulum(Environment):
    """Continuous control; never terminates on its own.

    Angle 0 is upright. Episode length is imposed by whoever drives the
    environment.
    """

    name = "pendulum"

    def __init__(self, physics: PendulumPhysics | None = None, seed: int | None = None) -> None:
        super().__init__(seed=seed)
        self.physics = physics or PendulumPhysics()
        self._spec = EnvSpec(
            name=self.name,
            observation_dim=3,
            num_actions=1,
            num_states=3,
            continuous=True,
            action_low=-self.physics.max_torque,
            action_high=self.physics.max_torque,
        )
        self._state = self.reset()

    @property
    def spec(self) -> EnvSpec:
        return self._spec

    def reset(self) -> PendulumState:
        self._state = PendulumState(
            angle=float(self.rng.uniform(-math.pi / 2.0, math.pi / 2.0)),
            angular_vel=float(self.rng.uniform(-1.0, 1.0)),
        )
        self.step_count = 0
        return self._state

    def get_state(self) -> PendulumState:
        return self._state

    def set_state(self, state: PendulumState) -> None:
        self._state = state

    def state_vector(self, state: PendulumState | None = None) -> np.ndarray:
        s = state if state is not None else self._state
        return np.array(
            [math.sin(s.angle), math.cos(s.angle), s.angular_vel / self.physics.max_speed],
            dtype=np.float64,
        )

    def step(self, action: float) -> StepResult:
        p = self.physics
        torque = min(max(float(action), -p.max_torque), p.max_torque)
        self.step_count += 1

        s = self._state
        # Angle measured from upright, so gravity pushes away from zero.
        new_vel = s.angular_vel + (
            3.0 * p.gravity / (2.0 * p.length) * math.sin(s.angle)
            + 3.0 / (p.mass * p.length * p.length) * torque
        ) * p.dt
        new_vel = min(max(new_vel, -p.max_speed), p.max_speed)
        new_angle = wrap_angle(s.angle + new_vel * p.dt)
        self._state = PendulumState(angle=new_angle, angular_vel=new_vel)

        reward = -pendulum_cost(new_angle, new_vel, torque, p)
        return StepResult(
            next_state=self._state,
            reward=reward,
            done=False,
            info={"torque": torque},
        )

    def position(self) -> dict[str, Any]:
        return {"angle": self._state.angle}

    def action_name(self, action: float) -> str:
        return f"Torque: {float(action):.2f}"
