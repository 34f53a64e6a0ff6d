"""
Configuration dataclasses for training.

All configuration is immutable (frozen) to prevent accidental modification.
"""

import json
import dataclasses

from pathlib import Path
from dataclasses import dataclass


@dataclass(frozen=True)
class AgentConfig:
    """Configuration for the DQN agent and its learner."""

    replay_capacity: int = 400_000
    gamma: float = 0.99
    clone_freq: int = 10_000  # Iterations between target network refreshes
    unroll: int = 10  # Sequence length used by the recurrent layer
    minibatch: int = 32
    frames_per_timestep: int = 4
    unroll1_is_lstm: bool = False  # Use LSTM instead of a linear layer when unroll=1

    # Optimizer
    learning_rate: float = 0.00025
    max_grad_norm: float = 10.0

    frame_shape: tuple[int, int] = (84, 84)

    # Device (None = auto-detect)
    device: str | None = None

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.replay_capacity < 1:
            raise ValueError("replay_capacity must be >= 1")
        if not 0 < self.gamma <= 1:
            raise ValueError("gamma must be in (0, 1]")
        if self.clone_freq < 1:
            raise ValueError("clone_freq must be >= 1")
        if self.unroll < 1:
            raise ValueError("unroll must be >= 1")
        if self.minibatch < 1:
            raise ValueError("minibatch must be >= 1")
        if self.frames_per_timestep < 1:
            raise ValueError("frames_per_timestep must be >= 1")

    @property
    def recurrent(self) -> bool:
        """Whether the network carries recurrent state between decisions."""
        return self.unroll > 1 or self.unroll1_is_lstm


@dataclass(frozen=True)
class ExplorationConfig:
    """Configuration for the epsilon decay schedule."""

    epsilon_start: float = 1.0
    epsilon_end: float = 0.1
    decay_steps: int = 1_000_000  # Iterations for epsilon to reach epsilon_end

    def __post_init__(self) -> None:
        """Validate configuration."""
        if not 0 <= self.epsilon_end <= self.epsilon_start <= 1:
            raise ValueError("epsilon values must satisfy 0 <= end <= start <= 1")
        if self.decay_steps < 0:
            raise ValueError("decay_steps must be >= 0")


@dataclass(frozen=True)
class RunnerConfig:
    """Configuration for playing episodes."""

    skip_frame: int = 4  # Extra emulator frames each action is repeated for
    update_frequency: int = 1  # Actions between learning updates
    memory_threshold: int = 50_000  # Transitions in memory before learning starts
    frames_per_timestep: int = 4
    obscure_size: int = 0  # Side of the centred square hidden from the agent

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.skip_frame < 0:
            raise ValueError("skip_frame must be >= 0")
        if self.update_frequency < 1:
            raise ValueError("update_frequency must be >= 1")
        if self.memory_threshold < 0:
            raise ValueError("memory_threshold must be >= 0")
        if self.frames_per_timestep < 1:
            raise ValueError("frames_per_timestep must be >= 1")


@dataclass(frozen=True)
class EvaluationConfig:
    """Configuration for periodic evaluation."""

    epsilon: float = 0.05
    frequency: int = 50_000  # Iterations between evaluations
    repeat_games: int = 10

    def __post_init__(self) -> None:
        """Validate configuration."""
        if not 0 <= self.epsilon <= 1:
            raise ValueError("evaluation epsilon must be in [0, 1]")
        if self.frequency < 1:
            raise ValueError("evaluation frequency must be >= 1")
        if self.repeat_games < 1:
            raise ValueError("repeat_games must be >= 1")


@dataclass(frozen=True)
class TrainingConfig:
    """Top-level training configuration."""

    max_iter: int = 10_000_000  # Iteration budget (learning updates)

    agent: AgentConfig = AgentConfig()
    exploration: ExplorationConfig = ExplorationConfig()
    runner: RunnerConfig = RunnerConfig()
    evaluation: EvaluationConfig = EvaluationConfig()

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.max_iter < 0:
            raise ValueError("max_iter must be >= 0")
        if self.agent.frames_per_timestep != self.runner.frames_per_timestep:
            raise ValueError(
                "agent and runner disagree on frames_per_timestep: "
                f"{self.agent.frames_per_timestep} != {self.runner.frames_per_timestep}"
            )

    def to_json(self, path: Path) -> None:
        """Write the effective configuration next to the snapshots."""
        Path(path).write_text(json.dumps(dataclasses.asdict(self), indent=2))
