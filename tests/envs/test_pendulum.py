"""Pendulum dynamics and reward tests."""

from __future__ import annotations

import math

import numpy as np
import pytest

from rl_simulator.core.types import PendulumState
from rl_simulator.envs.pendulum import Pendulum, PendulumPhysics, pendulum_cost


def test_reward_is_zero_only_when_upright_still_and_unforced() -> None:
    env = Pendulum(seed=0)
    env.set_state(PendulumState(0.0, 0.0))
    result = env.step(0.0)
    assert result.reward == 0.0
    assert result.done is False


@pytest.mark.parametrize(
    ("angle", "velocity", "torque"),
    [(0.1, 0.0, 0.0), (0.0, 0.5, 0.0), (0.0, 0.0, 1.0), (math.pi / 2, -1.0, -2.0)],
)
def test_reward_is_negative_away_from_rest(angle: float, velocity: float, torque: float) -> None:
    env = Pendulum(seed=0)
    env.set_state(PendulumState(angle, velocity))
    assert env.step(torque).reward < 0.0


def test_reward_never_positive_over_random_rollout() -> None:
    env = Pendulum(seed=3)
    rng = np.random.default_rng(3)
    env.reset()
    for _ in range(300):
        result = env.step(float(rng.uniform(-3.0, 3.0)))
        assert result.reward <= 0.0
        assert result.done is False
        assert -math.pi <= result.next_state.angle <= math.pi
        assert abs(result.next_state.angular_vel) <= 8.0


def test_torque_is_clamped() -> None:
    env = Pendulum(seed=0)
    env.set_state(PendulumState(0.0, 0.0))
    result = env.step(10.0)
    assert result.info["torque"] == pytest.approx(2.0)


def test_cost_terms() -> None:
    physics = PendulumPhysics()
    assert pendulum_cost(math.pi, 0.0, 0.0, physics) == pytest.approx(1.0)
    assert pendulum_cost(0.0, 8.0, 0.0, physics) == pytest.approx(0.1)
    assert pendulum_cost(0.0, 0.0, 2.0, physics) == pytest.approx(0.001)


def test_observation_is_sin_cos_and_scaled_velocity() -> None:
    env = Pendulum(seed=0)
    env.set_state(PendulumState(math.pi / 2, 4.0))
    assert np.allclose(env.state_vector(), [1.0, 0.0, 0.5])
    assert env.spec.continuous is True
    assert env.spec.max_action == pytest.approx(2.0)


def test_reset_ranges() -> None:
    env = Pendulum(seed=11)
    for _ in range(50):
        state = env.reset()
        assert abs(state.angle) <= math.pi / 2
        assert abs(state.angular_vel) <= 1.0
