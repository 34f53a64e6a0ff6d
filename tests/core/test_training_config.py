"""Tests for configuration validation."""

import json

from pathlib import Path

import pytest

from atari_rl.core.config import AgentConfig
from atari_rl.core.config import RunnerConfig
from atari_rl.core.config import TrainingConfig
from atari_rl.core.config import EvaluationConfig
from atari_rl.core.config import ExplorationConfig


def test_defaults() -> None:
    config = TrainingConfig()
    assert config.agent.replay_capacity == 400_000
    assert config.agent.gamma == 0.99
    assert config.agent.clone_freq == 10_000
    assert config.agent.unroll == 10
    assert config.agent.minibatch == 32
    assert config.exploration.decay_steps == 1_000_000
    assert config.exploration.epsilon_end == 0.1
    assert config.runner.skip_frame == 4
    assert config.runner.memory_threshold == 50_000
    assert config.evaluation.epsilon == 0.05
    assert config.evaluation.frequency == 50_000
    assert config.evaluation.repeat_games == 10


def test_configs_are_frozen() -> None:
    config = AgentConfig()
    with pytest.raises(AttributeError):
        config.gamma = 0.5  # type: ignore[misc]


@pytest.mark.parametrize(
    "factory",
    [
        lambda: AgentConfig(replay_capacity=0),
        lambda: AgentConfig(gamma=0.0),
        lambda: AgentConfig(unroll=0),
        lambda: AgentConfig(minibatch=0),
        lambda: ExplorationConfig(epsilon_end=1.5),
        lambda: ExplorationConfig(decay_steps=-1),
        lambda: RunnerConfig(skip_frame=-1),
        lambda: RunnerConfig(update_frequency=0),
        lambda: EvaluationConfig(repeat_games=0),
        lambda: EvaluationConfig(epsilon=-0.1),
        lambda: TrainingConfig(max_iter=-1),
    ],
)
def test_invalid_values_rejected(factory) -> None:
    with pytest.raises(ValueError):
        factory()


def test_stack_size_must_agree() -> None:
    with pytest.raises(ValueError, match="frames_per_timestep"):
        TrainingConfig(agent=AgentConfig(frames_per_timestep=3), runner=RunnerConfig(frames_per_timestep=4))


def test_recurrent_flag() -> None:
    assert AgentConfig(unroll=10).recurrent
    assert not AgentConfig(unroll=1).recurrent
    assert AgentConfig(unroll=1, unroll1_is_lstm=True).recurrent


def test_to_json(tmp_path: Path) -> None:
    path = tmp_path / "run_config.json"
    TrainingConfig(max_iter=5).to_json(path)
    data = json.loads(path.read_text())
    assert data["max_iter"] == 5
    assert data["agent"]["unroll"] == 10
    assert data["evaluation"]["repeat_games"] == 10
