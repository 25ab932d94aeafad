"""Grid world used by the value-based learners."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import numpy as np

from rl_simulator.core.params import RewardConfig
from rl_simulator.core.types import EnvSpec, GridState, StepResult
from rl_simulator.envs.base import Environment

ACTION_NAMES: tuple[str, ...] = ("Up", "Down", "Left", "Right")

# Row/col deltas indexed by action.
_MOVES: tuple[tuple[int, int], ...] = ((-1, 0), (1, 0), (0, -1), (0, 1))


@dataclass(frozen=True)
class GridLayout:
    """Static grid geometry: size, start, goal and obstacle cells."""

    rows: int = 6
    cols: int = 6
    start: GridState = GridState(0, 0)
    goal: GridState = GridState(5, 5)
    obstacles: frozenset[GridState] = field(
        default_factory=lambda: frozenset(
            {
                GridState(1, 1),
                GridState(1, 2),
                GridState(2, 1),
                GridState(3, 3),
                GridState(3, 4),
                GridState(4, 3),
            }
        )
    )

    def validate(self) -> None:
        if self.rows <= 0 or self.cols <= 0:
            raise ValueError("Grid dimensions must be positive.")
        for cell in (self.start, self.goal, *self.obstacles):
            if not self.contains(cell):
                raise ValueError(f"Cell {cell} lies outside the {self.rows}x{self.cols} grid.")
        if self.start in self.obstacles or self.goal in self.obstacles:
            raise ValueError("Start and goal cells cannot be obstacles.")

    def contains(self, cell: GridState) -> bool:
        return 0 <= cell.row < self.rows and 0 <= cell.col < self.cols

    @classmethod
    def large(cls) -> "GridLayout":
        """10x10 layout with three obstacle clusters."""
        return cls(
            rows=10,
            cols=10,
            start=GridState(0, 0),
            goal=GridState(9, 9),
            obstacles=frozenset(
                {
                    GridState(2, 2),
                    GridState(2, 3),
                    GridState(3, 2),
                    GridState(5, 5),
                    GridState(5, 6),
                    GridState(6, 5),
                    GridState(7, 7),
                    GridState(7, 8),
                }
            ),
        )

    @classmethod
    def open(cls, rows: int, cols: int) -> "GridLayout":
        """Obstacle-free layout from the top-left to the bottom-right corner."""
        return cls(
            rows=rows,
            cols=cols,
            start=GridState(0, 0),
            goal=GridState(rows - 1, cols - 1),
            obstacles=frozenset(),
        )


class GridWorld(Environment):
    """Discrete grid; obstacles block movement, only the goal terminates."""

    name = "gridworld"

    def __init__(
        self,
        layout: GridLayout | None = None,
        reward_config: RewardConfig | None = None,
        seed: int | None = None,
    ) -> None:
        super().__init__(seed=seed)
        self.layout = layout or GridLayout()
        self.layout.validate()
        self.reward_config = reward_config or RewardConfig()
        self.reward_config.validate()
        self._state = self.layout.start
        self._spec = EnvSpec(
            name=self.name,
            observation_dim=2,
            num_actions=len(ACTION_NAMES),
            num_states=self.layout.rows * self.layout.cols,
            continuous=False,
            action_low=0.0,
            action_high=float(len(ACTION_NAMES) - 1),
            grid_shape=(self.layout.rows, self.layout.cols),
        )

    @property
    def spec(self) -> EnvSpec:
        return self._spec

    def reset(self) -> GridState:
        self._state = self.layout.start
        self.step_count = 0
        return self._state

    def get_state(self) -> GridState:
        return self._state

    def state_vector(self, state: GridState | None = None) -> np.ndarray:
        cell = state if state is not None else self._state
        return np.array([cell.row, cell.col], dtype=np.float64)

    def state_key(self, state: GridState | None = None) -> str:
        cell = state if state is not None else self._state
        return f"{cell.row},{cell.col}"

    def set_reward_config(self, reward_config: RewardConfig) -> None:
        reward_config.validate()
        self.reward_config = reward_config

    def step(self, action: int) -> StepResult:
        action = int(action)
        if not (0 <= action < len(_MOVES)):
            raise ValueError(f"Invalid action {action}. Expected in [0, {len(_MOVES) - 1}].")
        self.step_count += 1
        d_row, d_col = _MOVES[action]
        candidate = GridState(
            row=min(max(self._state.row + d_row, 0), self.layout.rows - 1),
            col=min(max(self._state.col + d_col, 0), self.layout.cols - 1),
        )
        cfg = self.reward_config
        time_cost = cfg.time_penalty if self.step_count > cfg.time_penalty_threshold else 0.0

        if candidate in self.layout.obstacles:
            return StepResult(
                next_state=self._state,
                reward=cfg.obstacle_penalty + time_cost,
                done=False,
                info={"hit_obstacle": True},
            )

        self._state = candidate
        if candidate == self.layout.goal:
            return StepResult(next_state=candidate, reward=cfg.goal_reward, done=True)
        return StepResult(next_state=candidate, reward=cfg.step_penalty + time_cost, done=False)

    def cells(self) -> list[GridState]:
        """All grid cells in row-major order."""
        return [
            GridState(row, col)
            for row in range(self.layout.rows)
            for col in range(self.layout.cols)
        ]

    def reward_map(self) -> dict[str, float]:
        """Reward received on entering each cell, ignoring the time penalty."""
        cfg = self.reward_config
        rewards: dict[str, float] = {}
        for cell in self.cells():
            if cell == self.layout.goal:
                value = cfg.goal_reward
            elif cell in self.layout.obstacles:
                value = cfg.obstacle_penalty
            else:
                value = cfg.step_penalty
            rewards[self.state_key(cell)] = value
        return rewards

    def position(self) -> dict[str, Any]:
        return {"row": self._state.row, "col": self._state.col}

    def action_name(self, action: int) -> str:
        return ACTION_NAMES[int(action)] if 0 <= int(action) < len(ACTION_NAMES) else "Unknown"
