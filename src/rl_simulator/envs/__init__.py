"""Simulation environments."""

from rl_simulator.envs.base import Environment
from rl_simulator.envs.cartpole import CartPole, CartPolePhysics
from rl_simulator.envs.gridworld import GridLayout, GridWorld
from rl_simulator.envs.pendulum import Pendulum, PendulumPhysics

__all__ = [
    "CartPole",
    "CartPolePhysics",
    "Environment",
    "GridLayout",
    "GridWorld",
    "Pendulum",
    "PendulumPhysics",
]
