"""Learner implementations."""

from atari_rl.learners.base import Learner
from atari_rl.learners.dqn import DQNLearner

__all__ = [
    "DQNLearner",
    "Learner",
]
