"""
Core components for Atari training.

This module provides configuration, data types and common utilities.
"""

from atari_rl.core.config import AgentConfig
from atari_rl.core.config import RunnerConfig
from atari_rl.core.config import TrainingConfig
from atari_rl.core.config import EvaluationConfig
from atari_rl.core.config import ExplorationConfig

__all__ = [
    "AgentConfig",
    "RunnerConfig",
    "TrainingConfig",
    "EvaluationConfig",
    "ExplorationConfig",
]
