"""
Exploration policies for reinforcement learning.

Provides the linear epsilon schedule and epsilon-greedy selection.
"""

from typing import Callable
from dataclasses import dataclass

import numpy as np

from atari_rl.core.config import ExplorationConfig


@dataclass(frozen=True, slots=True)
class LinearEpsilon:
    """
    Epsilon schedule with linear decay.

    Epsilon decreases linearly from start to end over decay_steps
    iterations and stays at end afterwards.
    """

    start: float = 1.0
    end: float = 0.1
    decay_steps: int = 1_000_000

    @classmethod
    def from_config(cls, config: ExplorationConfig) -> "LinearEpsilon":
        return cls(start=config.epsilon_start, end=config.epsilon_end, decay_steps=config.decay_steps)

    def epsilon(self, iteration: int) -> float:
        """
        Get epsilon value for given iteration.

        Args:
            iteration: Current training iteration (>= 0)

        Returns:
            Epsilon value between end and start
        """
        if iteration < 0:
            raise ValueError(f"iteration must be >= 0, got {iteration}")
        if iteration >= self.decay_steps:
            return self.end
        return self.start - (self.start - self.end) * (iteration / self.decay_steps)

    def finished(self, iteration: int) -> bool:
        """Whether the decay window is over at this iteration."""
        return iteration >= self.decay_steps


def epsilon_greedy(
    epsilon: float,
    num_actions: int,
    greedy_fn: Callable[[], int],
    rng: np.random.Generator,
) -> int:
    """
    Select an action index using an epsilon-greedy policy.

    Args:
        epsilon: Probability of taking a uniformly random action
        num_actions: Number of possible actions
        greedy_fn: Returns the preferred action index when exploiting
        rng: Random generator

    Returns:
        Selected action index
    """
    if rng.random() < epsilon:
        return int(rng.integers(0, num_actions))
    return greedy_fn()
