"""Learner contract tests."""

from __future__ import annotations

import numpy as np
import pytest

from rl_simulator.algorithms.actor_critic import ContinuousActorCritic
from rl_simulator.algorithms.base import Learner, LearnerCapability
from rl_simulator.algorithms.policy_gradient import EpisodicPolicyLearner
from rl_simulator.algorithms.tabular import TabularLearner
from rl_simulator.core.params import Hyperparameters
from rl_simulator.envs.gridworld import GridWorld


class _MinimalLearner(Learner):
    name = "minimal"

    def select_action(self, state, training=True):
        return 0

    def update(self, state, action, reward, next_state, done, next_action=None):
        return None

    def reset(self):
        return None


class _OverclaimingLearner(_MinimalLearner):
    capabilities = frozenset({LearnerCapability.VALUE_QUERY})


def test_missing_capability_method_fails_at_construction() -> None:
    with pytest.raises(TypeError, match="VALUE_QUERY"):
        _OverclaimingLearner(GridWorld().spec)


def test_unsupported_queries_raise() -> None:
    learner = _MinimalLearner(GridWorld().spec)
    assert not learner.supports(LearnerCapability.LOSS_QUERY)
    with pytest.raises(NotImplementedError):
        learner.q_values(np.zeros(2))
    with pytest.raises(NotImplementedError):
        learner.loss()
    with pytest.raises(NotImplementedError):
        learner.policy_probabilities(np.zeros(2))


def test_invalid_hyperparameters_rejected() -> None:
    with pytest.raises(ValueError):
        _MinimalLearner(GridWorld().spec, Hyperparameters(discount_factor=1.5))


def test_apply_hyperparameters_swaps_values() -> None:
    learner = _MinimalLearner(GridWorld().spec)
    learner.apply_hyperparameters(Hyperparameters(learning_rate=0.3, discount_factor=0.5))
    assert learner.learning_rate == pytest.approx(0.3)
    assert learner.discount_factor == pytest.approx(0.5)


@pytest.mark.parametrize(
    "family", [TabularLearner, EpisodicPolicyLearner, ContinuousActorCritic]
)
def test_family_base_classes_are_abstract(family) -> None:
    with pytest.raises(TypeError, match="abstract"):
        family(GridWorld().spec)
