"""Fixed-capacity experience replay for the off-policy learners."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from rl_simulator.core.types import Action, Transition


@dataclass(frozen=True)
class TransitionBatch:
    """Column-stacked mini-batch."""

    states: np.ndarray
    actions: np.ndarray
    rewards: np.ndarray
    next_states: np.ndarray
    dones: np.ndarray

    def __len__(self) -> int:
        return len(self.rewards)


class ReplayBuffer:
    """Ring buffer over preallocated arrays.

    Once full, each insert overwrites the oldest transition, so eviction is
    FIFO and O(1).
    """

    def __init__(self, capacity: int, state_dim: int, action_dim: int = 1) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive.")
        self.capacity = int(capacity)
        self.state_dim = int(state_dim)
        self.action_dim = int(action_dim)
        self.states = np.zeros((self.capacity, self.state_dim), dtype=np.float64)
        self.actions = np.zeros((self.capacity, self.action_dim), dtype=np.float64)
        self.rewards = np.zeros(self.capacity, dtype=np.float64)
        self.next_states = np.zeros((self.capacity, self.state_dim), dtype=np.float64)
        self.dones = np.zeros(self.capacity, dtype=np.float64)
        self.ptr = 0
        self.size = 0

    def __len__(self) -> int:
        return self.size

    def add(
        self,
        state: np.ndarray,
        action: Action,
        reward: float,
        next_state: np.ndarray,
        done: bool,
    ) -> None:
        """Store one transition, evicting the oldest when at capacity."""
        self.states[self.ptr] = state
        self.actions[self.ptr] = action
        self.rewards[self.ptr] = reward
        self.next_states[self.ptr] = next_state
        self.dones[self.ptr] = float(done)
        self.ptr = (self.ptr + 1) % self.capacity
        self.size = min(self.size + 1, self.capacity)

    def sample(self, batch_size: int, rng: np.random.Generator) -> TransitionBatch:
        """Sample uniformly at random, with replacement."""
        if self.size == 0:
            raise ValueError("Cannot sample from an empty replay buffer.")
        idxs = rng.integers(0, self.size, size=batch_size)
        return TransitionBatch(
            states=self.states[idxs].copy(),
            actions=self.actions[idxs].copy(),
            rewards=self.rewards[idxs].copy(),
            next_states=self.next_states[idxs].copy(),
            dones=self.dones[idxs].copy(),
        )

    def transitions(self) -> list[Transition]:
        """Stored transitions, oldest first."""
        start = self.ptr if self.size == self.capacity else 0
        ordered: list[Transition] = []
        for offset in range(self.size):
            idx = (start + offset) % self.capacity
            action = self.actions[idx]
            ordered.append(
                Transition(
                    state=self.states[idx].copy(),
                    action=float(action[0]) if self.action_dim == 1 else action.copy(),
                    reward=float(self.rewards[idx]),
                    next_state=self.next_states[idx].copy(),
                    done=bool(self.dones[idx]),
                )
            )
        return ordered

    def clear(self) -> None:
        self.ptr = 0
        self.size = 0
