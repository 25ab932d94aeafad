"""Episodic policy-gradient learner tests."""

from __future__ import annotations

import numpy as np
import pytest

from rl_simulator.algorithms.base import LearnerCapability
from rl_simulator.algorithms.policy_gradient import (
    A3C,
    PPO,
    REINFORCE,
    discounted_returns,
    normalize,
)
from rl_simulator.core.params import Hyperparameters
from rl_simulator.core.types import EnvSpec
from rl_simulator.envs.cartpole import CartPole
from rl_simulator.envs.pendulum import Pendulum

# One-state, two-action problem: action 0 pays 1, action 1 pays 0.
BANDIT_SPEC = EnvSpec(name="cartpole", observation_dim=1, num_actions=2, num_states=1)
STATE = np.array([1.0])
MYOPIC = Hyperparameters(learning_rate=0.01, discount_factor=0.0)


def _play_contrast_episode(learner) -> None:
    learner.update(STATE, 0, 1.0, STATE, False)
    learner.update(STATE, 1, 0.0, STATE, True)


def test_discounted_returns_backward_cumulative_sum() -> None:
    assert discounted_returns([1.0, 1.0, 1.0], 0.5) == pytest.approx([1.75, 1.5, 1.0])
    assert discounted_returns([], 0.9).shape == (0,)


def test_normalize_zero_mean_unit_variance() -> None:
    values = normalize(np.array([1.0, 2.0, 3.0, 4.0]))
    assert values.mean() == pytest.approx(0.0, abs=1e-12)
    assert values.std() == pytest.approx(1.0, rel=1e-6)
    assert normalize(np.array([5.0])) == pytest.approx([0.0])


@pytest.mark.parametrize("learner_cls", [REINFORCE, PPO, A3C])
def test_update_raises_probability_of_better_action(learner_cls) -> None:
    learner = learner_cls(BANDIT_SPEC, MYOPIC, seed=0)
    before = learner.policy_probabilities(STATE)[0]
    for _ in range(100):
        _play_contrast_episode(learner)
    after = learner.policy_probabilities(STATE)[0]
    assert after > before + 0.05
    assert np.isfinite(learner.loss())


@pytest.mark.parametrize("learner_cls", [REINFORCE, PPO, A3C])
def test_trajectory_buffers_until_episode_end(learner_cls) -> None:
    learner = learner_cls(BANDIT_SPEC, MYOPIC, seed=0)
    before = [param.copy() for param in learner.actor.params]
    learner.update(STATE, 0, 1.0, STATE, False)
    assert len(learner.trajectory_rewards) == 1
    assert all(np.array_equal(a, b) for a, b in zip(before, learner.actor.params))
    learner.update(STATE, 1, 0.0, STATE, True)
    assert learner.trajectory_rewards == []
    assert not all(np.array_equal(a, b) for a, b in zip(before, learner.actor.params))


def test_end_episode_learns_from_truncated_trajectory() -> None:
    learner = REINFORCE(BANDIT_SPEC, MYOPIC, seed=0)
    learner.update(STATE, 0, 1.0, STATE, False)
    learner.update(STATE, 1, 0.0, STATE, False)
    learner.end_episode()
    assert learner.trajectory_rewards == []
    learner.end_episode()
    assert learner.trajectory_rewards == []


def test_select_action_samples_valid_actions_and_greedy_is_argmax() -> None:
    env = CartPole(seed=0)
    learner = PPO(env.spec, Hyperparameters(learning_rate=3e-4, discount_factor=0.99), seed=0)
    state = env.state_vector()
    actions = {learner.select_action(state) for _ in range(100)}
    assert actions == {0, 1}
    probs = learner.policy_probabilities(state)
    assert probs.sum() == pytest.approx(1.0)
    assert learner.select_action(state, training=False) == int(np.argmax(probs))


def test_capabilities_exclude_value_query() -> None:
    learner = A3C(CartPole(seed=0).spec, seed=0)
    assert learner.supports(LearnerCapability.POLICY_QUERY)
    assert learner.supports(LearnerCapability.LOSS_QUERY)
    assert not learner.supports(LearnerCapability.VALUE_QUERY)
    with pytest.raises(NotImplementedError):
        learner.q_values(np.zeros(4))


def test_reset_restores_initial_policy() -> None:
    learner = PPO(BANDIT_SPEC, MYOPIC, seed=4)
    initial = learner.policy_probabilities(STATE)
    for _ in range(10):
        _play_contrast_episode(learner)
    learner.update(STATE, 0, 1.0, STATE, False)
    learner.reset()
    assert learner.trajectory_rewards == []
    assert learner.loss() == 0.0
    assert learner.policy_probabilities(STATE) == pytest.approx(initial)


def test_ppo_uses_clip_epsilon_and_epochs() -> None:
    learner = PPO(BANDIT_SPEC, Hyperparameters(clip_epsilon=0.1), seed=0, update_epochs=2)
    assert learner.update_epochs == 2
    assert learner.hyperparameters.clip_epsilon == pytest.approx(0.1)
    assert learner.hidden_activation == "tanh"


def test_reinforce_default_network_is_smaller() -> None:
    learner = REINFORCE(CartPole(seed=0).spec, seed=0)
    assert learner.actor.sizes == (4, 32, 32, 2)


def test_rejects_continuous_spec() -> None:
    with pytest.raises(ValueError):
        REINFORCE(Pendulum().spec)
