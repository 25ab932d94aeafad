"""Environment/algorithm compatibility table and pair factory."""

from __future__ import annotations

from dataclasses import dataclass

from rl_simulator.algorithms.actor_critic import DDPG, SAC, TD3
from rl_simulator.algorithms.base import Learner, Paradigm
from rl_simulator.algorithms.dqn import DQN
from rl_simulator.algorithms.policy_gradient import A3C, PPO, REINFORCE
from rl_simulator.algorithms.tabular import SARSA, ExpectedSARSA, QLearning
from rl_simulator.core.params import Hyperparameters, RewardConfig
from rl_simulator.core.types import EnvSpec
from rl_simulator.envs.base import Environment
from rl_simulator.envs.cartpole import CartPole
from rl_simulator.envs.gridworld import GridLayout, GridWorld
from rl_simulator.envs.pendulum import Pendulum


ENVIRONMENT_ALGORITHMS: dict[str, tuple[str, ...]] = {
    "gridworld": ("qlearning", "dqn", "sarsa", "expected_sarsa"),
    "cartpole": ("reinforce", "ppo", "a3c"),
    "pendulum": ("sac", "ddpg", "td3"),
}

ENVIRONMENT_CLASSES: dict[str, type[Environment]] = {
    "gridworld": GridWorld,
    "cartpole": CartPole,
    "pendulum": Pendulum,
}

LEARNER_CLASSES: dict[str, type[Learner]] = {
    "qlearning": QLearning,
    "sarsa": SARSA,
    "expected_sarsa": ExpectedSARSA,
    "dqn": DQN,
    "reinforce": REINFORCE,
    "ppo": PPO,
    "a3c": A3C,
    "ddpg": DDPG,
    "td3": TD3,
    "sac": SAC,
}

# Pendulum never terminates on its own.
DEFAULT_EPISODE_STEPS: dict[str, int] = {
    "gridworld": 500,
    "cartpole": 500,
    "pendulum": 200,
}


@dataclass(frozen=True)
class AlgorithmInfo:
    """Display metadata for one algorithm."""

    display_name: str
    paradigm: Paradigm
    learns: str


ALGORITHM_INFO: dict[str, AlgorithmInfo] = {
    "qlearning": AlgorithmInfo("Q-Learning", QLearning.paradigm, "Action values Q(s, a)"),
    "dqn": AlgorithmInfo("DQN", DQN.paradigm, "Action values via a neural network"),
    "sarsa": AlgorithmInfo("SARSA", SARSA.paradigm, "Action values Q(s, a)"),
    "expected_sarsa": AlgorithmInfo(
        "Expected SARSA", ExpectedSARSA.paradigm, "Action values Q(s, a)"
    ),
    "reinforce": AlgorithmInfo("REINFORCE", REINFORCE.paradigm, "Policy π(a|s)"),
    "ppo": AlgorithmInfo("PPO", PPO.paradigm, "Policy π(a|s)"),
    "a3c": AlgorithmInfo("A3C", A3C.paradigm, "Policy π(a|s) and value V(s)"),
    "sac": AlgorithmInfo("SAC", SAC.paradigm, "Stochastic policy and soft Q(s, a)"),
    "ddpg": AlgorithmInfo("DDPG", DDPG.paradigm, "Deterministic policy μ(s) and Q(s, a)"),
    "td3": AlgorithmInfo("TD3", TD3.paradigm, "Deterministic policy μ(s) and twin Q(s, a)"),
}


@dataclass(frozen=True)
class SliderRange:
    """Bounds for one hyperparameter control."""

    min: float
    max: float
    step: float
    default: float


_TABULAR_RANGES = {
    "learning_rate": SliderRange(0.01, 1.0, 0.01, 0.1),
    "discount_factor": SliderRange(0.1, 0.99, 0.01, 0.95),
    "epsilon": SliderRange(0.01, 1.0, 0.01, 0.1),
}

HYPERPARAMETER_RANGES: dict[str, dict[str, SliderRange]] = {
    "qlearning": _TABULAR_RANGES,
    "sarsa": _TABULAR_RANGES,
    "expected_sarsa": _TABULAR_RANGES,
    "dqn": {
        "learning_rate": SliderRange(0.0001, 0.01, 0.0001, 0.001),
        "discount_factor": SliderRange(0.1, 0.99, 0.01, 0.95),
        "epsilon": SliderRange(0.01, 1.0, 0.01, 0.1),
    },
    "reinforce": {
        "learning_rate": SliderRange(0.001, 0.1, 0.001, 0.01),
        "discount_factor": SliderRange(0.1, 0.99, 0.01, 0.99),
    },
    "ppo": {
        "learning_rate": SliderRange(0.0001, 0.001, 0.0001, 0.0003),
        "discount_factor": SliderRange(0.1, 0.99, 0.01, 0.99),
        "clip_epsilon": SliderRange(0.1, 0.5, 0.01, 0.2),
    },
    "a3c": {
        "learning_rate": SliderRange(0.00001, 0.001, 0.00001, 0.0001),
        "discount_factor": SliderRange(0.1, 0.99, 0.01, 0.99),
    },
    "sac": {
        "learning_rate": SliderRange(0.0001, 0.001, 0.0001, 0.0003),
        "discount_factor": SliderRange(0.1, 0.99, 0.01, 0.99),
    },
    "ddpg": {
        "learning_rate": SliderRange(0.0001, 0.01, 0.0001, 0.001),
        "discount_factor": SliderRange(0.1, 0.99, 0.01, 0.99),
    },
    "td3": {
        "learning_rate": SliderRange(0.0001, 0.01, 0.0001, 0.001),
        "discount_factor": SliderRange(0.1, 0.99, 0.01, 0.99),
    },
}

DEFAULT_HYPERPARAMETERS: dict[str, Hyperparameters] = {
    algorithm: Hyperparameters().merged(
        {key: slider.default for key, slider in ranges.items()}
    )
    for algorithm, ranges in HYPERPARAMETER_RANGES.items()
}


def normalize_name(name: str) -> str:
    """Canonical registry key, e.g. ``"Expected-SARSA"`` -> ``"expected_sarsa"``."""
    return name.strip().lower().replace("-", "_")


def _require_environment(name: str) -> str:
    key = normalize_name(name)
    if key not in ENVIRONMENT_ALGORITHMS:
        raise ValueError(
            f"Unknown environment '{name}'. Expected one of {sorted(ENVIRONMENT_ALGORITHMS)}."
        )
    return key


def _require_algorithm(name: str) -> str:
    key = normalize_name(name)
    if key not in LEARNER_CLASSES:
        raise ValueError(f"Unknown algorithm '{name}'. Expected one of {sorted(LEARNER_CLASSES)}.")
    return key


def compatible_algorithms(environment: str) -> tuple[str, ...]:
    return ENVIRONMENT_ALGORITHMS[_require_environment(environment)]


def is_compatible(environment: str, algorithm: str) -> bool:
    return _require_algorithm(algorithm) in compatible_algorithms(environment)


def home_environment(algorithm: str) -> str:
    """The one environment an algorithm runs on."""
    key = _require_algorithm(algorithm)
    for environment, algorithms in ENVIRONMENT_ALGORITHMS.items():
        if key in algorithms:
            return environment
    raise ValueError(f"Algorithm '{algorithm}' is not registered for any environment.")


def default_hyperparameters(algorithm: str) -> Hyperparameters:
    return DEFAULT_HYPERPARAMETERS[_require_algorithm(algorithm)]


def build_environment(
    name: str,
    reward_config: RewardConfig | None = None,
    seed: int | None = None,
    layout: GridLayout | None = None,
) -> Environment:
    """Instantiate an environment by name.

    ``reward_config`` and ``layout`` only apply to the grid world.
    """
    key = _require_environment(name)
    if key == "gridworld":
        return GridWorld(layout=layout, reward_config=reward_config, seed=seed)
    return ENVIRONMENT_CLASSES[key](seed=seed)


def build_learner(
    algorithm: str,
    spec: EnvSpec,
    hyperparameters: Hyperparameters | None = None,
    seed: int | None = None,
) -> Learner:
    """Instantiate a learner against an environment spec.

    Raises:
        ValueError: Unknown algorithm, or algorithm not compatible with
            ``spec.name``.
    """
    key = _require_algorithm(algorithm)
    if not is_compatible(spec.name, key):
        raise ValueError(
            f"Algorithm '{key}' is not compatible with environment '{spec.name}'. "
            f"Compatible: {', '.join(compatible_algorithms(spec.name))}."
        )
    params = hyperparameters or DEFAULT_HYPERPARAMETERS[key]
    return LEARNER_CLASSES[key](spec, params, seed=seed)


def build_pair(
    environment: str,
    algorithm: str,
    hyperparameters: Hyperparameters | None = None,
    reward_config: RewardConfig | None = None,
    seed: int | None = None,
    layout: GridLayout | None = None,
) -> tuple[Environment, Learner]:
    """Build a fresh, compatible (environment, learner) pair."""
    env = build_environment(environment, reward_config=reward_config, seed=seed, layout=layout)
    learner = build_learner(algorithm, env.spec, hyperparameters=hyperparameters, seed=seed)
    return env, learner
