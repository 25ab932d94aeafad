"""Cart-pole balancing task with Euler-integrated classic dynamics."""

from __future__ import annotations

from dataclasses import dataclass
import math
from typing import Any

import numpy as np

from rl_simulator.core.types import CartPoleState, EnvSpec, StepResult
from rl_simulator.envs.base import Environment, wrap_angle


@dataclass(frozen=True)
class CartPolePhysics:
    """Physical constants and termination thresholds."""

    gravity: float = 9.8
    mass_cart: float = 1.0
    mass_pole: float = 0.1
    length: float = 0.5
    force_mag: float = 10.0
    tau: float = 0.02
    x_threshold: float = 2.4
    theta_threshold: float = 12.0 * math.pi / 180.0
    max_episode_steps: int = 500

    @property
    def total_mass(self) -> float:
        return self.mass_cart + self.mass_pole

    @property
    def pole_mass_length(self) -> float:
        return self.mass_pole * self.length


# Half-widths of the uniform reset ranges.
RESET_HALF_RANGES = CartPoleState(cart_pos=0.1, cart_vel=0.1, pole_angle=0.2, pole_vel=0.1)


class CartPole(Environment):
    """Binary push-left / push-right control of an inverted pendulum on a cart."""

    name = "cartpole"

    def __init__(self, physics: CartPolePhysics | None = None, seed: int | None = None) -> None:
        super().__init__(seed=seed)
        self.physics = physics or CartPolePhysics()
        self._spec = EnvSpec(
            name=self.name,
            observation_dim=4,
            num_actions=2,
            num_states=4,
            continuous=False,
            action_low=0.0,
            action_high=1.0,
        )
        self._state = self.reset()

    @property
    def spec(self) -> EnvSpec:
        return self._spec

    def reset(self) -> CartPoleState:
        half = RESET_HALF_RANGES
        self._state = CartPoleState(
            cart_pos=float(self.rng.uniform(-half.cart_pos, half.cart_pos)),
            cart_vel=float(self.rng.uniform(-half.cart_vel, half.cart_vel)),
            pole_angle=float(self.rng.uniform(-half.pole_angle, half.pole_angle)),
            pole_vel=float(self.rng.uniform(-half.pole_vel, half.pole_vel)),
        )
        self.step_count = 0
        return self._state

    def get_state(self) -> CartPoleState:
        return self._state

    def set_state(self, state: CartPoleState) -> None:
        self._state = state

    def state_vector(self, state: CartPoleState | None = None) -> np.ndarray:
        s = state if state is not None else self._state
        return np.array([s.cart_pos, s.cart_vel, s.pole_angle, s.pole_vel], dtype=np.float64)

    def step(self, action: int) -> StepResult:
        action = int(action)
        if action not in (0, 1):
            raise ValueError(f"Invalid action {action}. Expected 0 or 1.")
        self.step_count += 1
        p = self.physics
        s = self._state

        force = p.force_mag if action == 1 else -p.force_mag
        sin_theta = math.sin(s.pole_angle)
        cos_theta = math.cos(s.pole_angle)
        temp = (force + p.pole_mass_length * s.pole_vel * s.pole_vel * sin_theta) / p.total_mass
        theta_acc = (p.gravity * sin_theta - cos_theta * temp) / (
            p.length * (4.0 / 3.0 - p.mass_pole * cos_theta * cos_theta / p.total_mass)
        )
        x_acc = temp - p.pole_mass_length * theta_acc * cos_theta / p.total_mass

        self._state = CartPoleState(
            cart_pos=s.cart_pos + p.tau * s.cart_vel,
            cart_vel=s.cart_vel + p.tau * x_acc,
            pole_angle=wrap_angle(s.pole_angle + p.tau * s.pole_vel),
            pole_vel=s.pole_vel + p.tau * theta_acc,
        )

        failed = (
            abs(self._state.cart_pos) > p.x_threshold
            or abs(self._state.pole_angle) > p.theta_threshold
        )
        truncated = self.step_count >= p.max_episode_steps
        # Surviving to the step limit still pays out.
        reward = 0.0 if failed else 1.0
        return StepResult(
            next_state=self._state,
            reward=reward,
            done=failed or truncated,
            info={"failed": failed, "truncated": truncated and not failed},
        )

    def position(self) -> dict[str, Any]:
        return {"cart_pos": self._state.cart_pos, "pole_angle": self._state.pole_angle}

    def action_name(self, action: int) -> str:
        return "Left" if int(action) == 0 else "Right"
