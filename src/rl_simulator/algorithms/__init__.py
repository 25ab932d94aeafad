"""Learners behind the shared select + update contract."""

from rl_simulator.algorithms.actor_critic import DDPG, SAC, TD3
from rl_simulator.algorithms.base import Learner, LearnerCapability, Paradigm
from rl_simulator.algorithms.dqn import DQN
from rl_simulator.algorithms.policy_gradient import A3C, PPO, REINFORCE
from rl_simulator.algorithms.tabular import SARSA, ExpectedSARSA, QLearning

__all__ = [
    "A3C",
    "DDPG",
    "DQN",
    "ExpectedSARSA",
    "Learner",
    "LearnerCapability",
    "Paradigm",
    "PPO",
    "QLearning",
    "REINFORCE",
    "SAC",
    "SARSA",
    "TD3",
]
