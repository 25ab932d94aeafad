"""Training loop scheduling, routing and configuration tests."""

from __future__ import annotations

import numpy as np
import pytest

from rl_simulator.algorithms.policy_gradient import REINFORCE
from rl_simulator.algorithms.tabular import SARSA, QLearning
from rl_simulator.core.params import Hyperparameters, RewardConfig
from rl_simulator.core.types import CartPoleState
from rl_simulator.envs.cartpole import CartPole
from rl_simulator.envs.gridworld import GridLayout, GridWorld
from rl_simulator.training.loop import LoopStatus, TrainingLoop


class RecordingSARSA(SARSA):
    """SARSA that records every selected action and update call."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.selected: list[int] = []
        self.updates: list[dict] = []

    def select_action(self, state, training=True):
        action = super().select_action(state, training)
        self.selected.append(action)
        return action

    def update(self, state, action, reward, next_state, done, next_action=None):
        self.updates.append({"action": action, "done": done, "next_action": next_action})
        super().update(state, action, reward, next_state, done, next_action)


def test_sarsa_updates_are_deferred_until_next_action_is_selected() -> None:
    env = GridWorld(layout=GridLayout.open(2, 2), seed=0)
    learner = RecordingSARSA(env.spec, Hyperparameters(epsilon=0.5), seed=0)
    loop = TrainingLoop(env, learner)

    loop.tick()
    assert learner.updates == []

    for _ in range(60):
        loop.tick()

    assert loop.episode > 0
    for idx, update in enumerate(learner.updates):
        assert update["action"] == learner.selected[idx]
        if update["done"]:
            assert update["next_action"] is None
        else:
            assert update["next_action"] == learner.selected[idx + 1]
    pending = 1 if loop.router.pending is not None else 0
    assert len(learner.updates) + pending == len(learner.selected)


def test_off_policy_learner_updates_every_tick() -> None:
    env = GridWorld(seed=0)
    learner = QLearning(env.spec, seed=0)
    loop = TrainingLoop(env, learner)
    loop.tick()
    assert loop.router.pending is None
    assert learner.q_table()


def test_episode_boundary_resets_environment_and_records_return() -> None:
    env = GridWorld(layout=GridLayout.open(1, 2), seed=0)
    learner = QLearning(env.spec, Hyperparameters(epsilon=0.0), seed=0)
    learner.table["0,0"] = np.array([0.0, 0.0, 0.0, 1.0])
    loop = TrainingLoop(env, learner)

    snapshot = loop.tick()
    assert snapshot.done is True
    assert snapshot.episode == 1
    assert snapshot.step == 1
    assert snapshot.episode_reward == pytest.approx(10.0)
    assert list(loop.history) == [pytest.approx(10.0)]
    assert snapshot.position == {"row": 0, "col": 0}
    assert loop.step == 0
    assert loop.episode_reward == 0.0


def test_max_episode_steps_truncates() -> None:
    env = GridWorld(seed=0)
    loop = TrainingLoop(env, QLearning(env.spec, seed=0), max_episode_steps=3)
    snapshots = [loop.tick() for _ in range(3)]
    assert [s.done for s in snapshots] == [False, False, True]
    assert loop.episode == 1
    assert len(loop.history) == 1


def test_truncation_triggers_policy_gradient_episode_update() -> None:
    env = CartPole(seed=0)
    learner = REINFORCE(env.spec, seed=0)
    loop = TrainingLoop(env, learner, max_episode_steps=5)
    env.set_state(CartPoleState(0.0, 0.0, 0.0, 0.0))
    for _ in range(4):
        loop.tick()
    assert len(learner.trajectory_rewards) == 4
    snapshot = loop.tick()
    assert snapshot.done is True
    assert loop.episode == 1
    assert learner.trajectory_rewards == []


def test_history_is_bounded() -> None:
    env = GridWorld(layout=GridLayout.open(1, 2), seed=0)
    learner = QLearning(env.spec, Hyperparameters(epsilon=0.0), seed=0)
    learner.table["0,0"] = np.array([0.0, 0.0, 0.0, 100.0])
    loop = TrainingLoop(env, learner, history_window=3)
    for _ in range(10):
        loop.tick()
    assert loop.episode == 10
    assert len(loop.history) == 3


def test_config_update_is_applied_at_next_tick() -> None:
    env = GridWorld(seed=0)
    learner = QLearning(env.spec, seed=0)
    loop = TrainingLoop(env, learner)
    new_params = Hyperparameters(learning_rate=0.7, epsilon=0.3)
    loop.request_config_update(
        hyperparameters=new_params, reward=RewardConfig(step_penalty=-0.5), speed=4.0
    )
    assert learner.learning_rate == pytest.approx(0.1)
    assert env.reward_config.step_penalty == pytest.approx(-0.1)
    assert loop.speed == pytest.approx(1.0)

    loop.tick()
    assert learner.hyperparameters == new_params
    assert env.reward_config.step_penalty == pytest.approx(-0.5)
    assert loop.speed == pytest.approx(4.0)


def test_later_config_requests_win_per_field() -> None:
    env = GridWorld(seed=0)
    learner = QLearning(env.spec, seed=0)
    loop = TrainingLoop(env, learner)
    loop.request_config_update(hyperparameters=Hyperparameters(learning_rate=0.2), speed=2.0)
    loop.request_config_update(hyperparameters=Hyperparameters(learning_rate=0.4))
    loop.tick()
    assert learner.learning_rate == pytest.approx(0.4)
    assert loop.speed == pytest.approx(2.0)


def test_invalid_config_rejected_at_request_time() -> None:
    env = GridWorld(seed=0)
    loop = TrainingLoop(env, QLearning(env.spec, seed=0))
    with pytest.raises(ValueError):
        loop.request_config_update(speed=0.0)
    with pytest.raises(ValueError):
        loop.request_config_update(hyperparameters=Hyperparameters(epsilon=2.0))


def test_run_schedules_ticks_with_speed_scaled_delay(no_sleep) -> None:
    env = GridWorld(seed=0)
    loop = TrainingLoop(env, QLearning(env.spec, seed=0), speed=2.0, sleep=no_sleep)
    ticks = loop.run(max_ticks=4)
    assert ticks == 4
    assert no_sleep.delays == [pytest.approx(0.05)] * 3
    assert loop.status is LoopStatus.IDLE


def test_tick_delay_has_a_floor() -> None:
    env = GridWorld(seed=0)
    loop = TrainingLoop(env, QLearning(env.spec, seed=0), speed=50.0)
    assert loop.tick_delay == pytest.approx(0.01)


def test_stop_from_callback_completes_in_flight_tick(no_sleep) -> None:
    env = GridWorld(seed=0)
    loop = TrainingLoop(env, QLearning(env.spec, seed=0), sleep=no_sleep)
    seen = []

    def on_tick(snapshot) -> None:
        seen.append(snapshot)
        loop.stop()

    assert loop.run(on_tick=on_tick) == 1
    assert len(seen) == 1
    assert loop.total_steps == 1
    assert no_sleep.delays == []


def test_run_until_episode_limit(no_sleep) -> None:
    env = GridWorld(layout=GridLayout.open(2, 2), seed=0)
    loop = TrainingLoop(env, QLearning(env.spec, seed=0), max_episode_steps=20, sleep=no_sleep)
    loop.run(max_episodes=3)
    assert loop.episode == 3


def test_stop_keeps_learned_state_and_reset_clears_it() -> None:
    env = GridWorld(seed=0)
    learner = QLearning(env.spec, seed=0)
    loop = TrainingLoop(env, learner, max_episode_steps=5)
    loop.start()
    assert loop.is_training
    for _ in range(12):
        loop.tick()
    loop.stop()
    assert loop.status is LoopStatus.IDLE
    assert learner.q_table()
    assert loop.episode == 2

    loop.reset()
    assert learner.q_table() == {}
    assert loop.episode == 0
    assert loop.total_steps == 0
    assert len(loop.history) == 0
    assert env.position() == {"row": 0, "col": 0}


def test_snapshot_exposes_capability_queries() -> None:
    env = GridWorld(seed=0)
    loop = TrainingLoop(env, QLearning(env.spec, seed=0))
    snapshot = loop.tick()
    assert len(snapshot.q_values) == 4
    assert sum(snapshot.policy) == pytest.approx(1.0)
    assert snapshot.loss is not None

    cart = CartPole(seed=0)
    pg_snapshot = TrainingLoop(cart, REINFORCE(cart.spec, seed=0)).tick()
    assert pg_snapshot.q_values is None
    assert sum(pg_snapshot.policy) == pytest.approx(1.0)


def test_terminal_tick_snapshot_reports_goal_cell_values() -> None:
    env = GridWorld(layout=GridLayout.open(1, 2), seed=0)
    learner = QLearning(env.spec, Hyperparameters(epsilon=0.0), seed=0)
    learner.table["0,0"] = np.array([0.0, 0.0, 0.0, 1.0])
    learner.table["0,1"] = np.array([7.0, 7.0, 7.0, 7.0])
    loop = TrainingLoop(env, learner)

    snapshot = loop.tick()

    assert snapshot.action == 3
    assert snapshot.done is True
    assert env.position() == {"row": 0, "col": 0}
    assert snapshot.q_values == [7.0, 7.0, 7.0, 7.0]
    assert snapshot.policy == pytest.approx([0.25, 0.25, 0.25, 0.25])


def test_value_grid_covers_every_cell() -> None:
    env = GridWorld(layout=GridLayout.open(4, 4), seed=0)
    learner = QLearning(env.spec, seed=0)
    loop = TrainingLoop(env, learner)
    grid = loop.value_grid()
    assert len(grid) == 16
    assert grid["3,3"] == [0.0, 0.0, 0.0, 0.0]
    assert learner.q_table() == {}

    cart = CartPole(seed=0)
    assert TrainingLoop(cart, REINFORCE(cart.spec, seed=0)).value_grid() is None
