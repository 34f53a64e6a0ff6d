"""Tests for DQNAgent acting, learning and snapshots.

The network runs on CPU with small 36x36 frames to keep the tests fast.
"""

from pathlib import Path

import pytest
import numpy as np
import torch

from atari_rl.agent.base import Agent
from atari_rl.agent.dqn import DQNAgent
from atari_rl.agent.network import QNetwork
from atari_rl.core.types import Episode
from atari_rl.core.types import Transition
from atari_rl.core.config import AgentConfig
from atari_rl.core.config import RunnerConfig
from atari_rl.environment.frame_stack import LazyFrames
from atari_rl.environment.preprocessing import FrameProcessor
from atari_rl.training.runner import EpisodeRunner

FRAME_SHAPE = (36, 36)
LEGAL_ACTIONS = [0, 1, 3, 4]

# =============================================================================
# Helpers
# =============================================================================


def make_config(**overrides) -> AgentConfig:
    values = dict(
        replay_capacity=500,
        clone_freq=3,
        unroll=1,
        minibatch=4,
        frames_per_timestep=4,
        frame_shape=FRAME_SHAPE,
        device="cpu",
    )
    values.update(overrides)
    return AgentConfig(**values)


def make_episode(length: int, seed: int = 0) -> Episode:
    rng = np.random.default_rng(seed)
    frames = [rng.integers(0, 256, size=FRAME_SHAPE, dtype=np.uint8) for _ in range(length + 1)]
    episode = Episode()
    for i in range(length):
        episode.append(
            Transition(
                frame=frames[i],
                action=LEGAL_ACTIONS[i % len(LEGAL_ACTIONS)],
                reward=float(rng.choice([-1.0, 0.0, 1.0])),
                next_frame=None if i == length - 1 else frames[i + 1],
            )
        )
    return episode


def make_stack(seed: int = 0) -> LazyFrames:
    rng = np.random.default_rng(seed)
    return LazyFrames(tuple(rng.integers(0, 256, size=FRAME_SHAPE, dtype=np.uint8) for _ in range(4)))


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def agent() -> DQNAgent:
    return DQNAgent(legal_actions=LEGAL_ACTIONS, config=make_config(), seed=0)


@pytest.fixture
def recurrent_agent() -> DQNAgent:
    return DQNAgent(legal_actions=LEGAL_ACTIONS, config=make_config(unroll=3), seed=0)


# =============================================================================
# Network
# =============================================================================


def test_network_output_shapes() -> None:
    net = QNetwork((4, *FRAME_SHAPE), num_actions=5, recurrent=True)
    x = torch.zeros((2, 3, 4, *FRAME_SHAPE), dtype=torch.uint8)
    q, hidden = net(x)
    assert q.shape == (2, 3, 5)
    assert hidden is not None and hidden[0].shape == (1, 2, 512)


def test_feed_forward_network_has_no_hidden_state() -> None:
    net = QNetwork((4, *FRAME_SHAPE), num_actions=5)
    q, hidden = net(torch.zeros((1, 1, 4, *FRAME_SHAPE), dtype=torch.uint8))
    assert q.shape == (1, 1, 5)
    assert hidden is None


# =============================================================================
# Acting
# =============================================================================


def test_satisfies_protocol(agent: DQNAgent) -> None:
    assert isinstance(agent, Agent)


def test_rejects_empty_action_set() -> None:
    with pytest.raises(ValueError):
        DQNAgent(legal_actions=[], config=make_config())


def test_actions_are_legal(agent: DQNAgent) -> None:
    for epsilon in (0.0, 0.5, 1.0):
        for seed in range(5):
            assert agent.select_action(make_stack(seed), epsilon, is_continuation=False) in LEGAL_ACTIONS


def test_greedy_action_is_deterministic(agent: DQNAgent) -> None:
    stack = make_stack(1)
    first = agent.select_action(stack, 0.0, is_continuation=False)
    assert all(agent.select_action(stack, 0.0, is_continuation=False) == first for _ in range(5))


def test_recurrent_state_resets_on_new_episode(recurrent_agent: DQNAgent) -> None:
    recurrent_agent.select_action(make_stack(0), 0.0, is_continuation=False)
    assert recurrent_agent._hidden is not None
    after_one = tuple(h.clone() for h in recurrent_agent._hidden)

    recurrent_agent.select_action(make_stack(1), 0.0, is_continuation=True)
    recurrent_agent.select_action(make_stack(0), 0.0, is_continuation=False)
    assert all(torch.equal(a, b) for a, b in zip(after_one, recurrent_agent._hidden))


def test_recurrent_state_advances_while_exploring(recurrent_agent: DQNAgent) -> None:
    recurrent_agent.select_action(make_stack(0), 1.0, is_continuation=False)
    assert recurrent_agent._hidden is not None


# =============================================================================
# Learning
# =============================================================================


def test_occupancy_follows_admission(agent: DQNAgent) -> None:
    assert agent.replay_occupancy() == 0
    agent.admit_episode(make_episode(20))
    assert agent.replay_occupancy() == 20


def test_learning_update_advances_iteration(agent: DQNAgent) -> None:
    agent.admit_episode(make_episode(20))
    metrics = agent.learning_update()
    assert agent.current_iteration == 1
    assert np.isfinite(metrics["loss"])


def test_target_refreshed_every_clone_freq(agent: DQNAgent) -> None:
    agent.admit_episode(make_episode(20))
    for _ in range(3):
        agent.learning_update()
    for online, target in zip(agent.network.parameters(), agent.target.parameters()):
        assert torch.equal(online, target)

    agent.learning_update()
    assert not all(torch.equal(o, t) for o, t in zip(agent.network.parameters(), agent.target.parameters()))


def test_recurrent_learning_update(recurrent_agent: DQNAgent) -> None:
    recurrent_agent.admit_episode(make_episode(20))
    metrics = recurrent_agent.learning_update()
    assert recurrent_agent.current_iteration == 1
    assert np.isfinite(metrics["loss"])


def test_learning_skipped_without_complete_sequence(agent: DQNAgent) -> None:
    agent.admit_episode(make_episode(2))
    assert agent.learning_update() == {}
    assert agent.current_iteration == 0


class ShortGame:
    """Six-frame game, shorter than a stack plus a recurrent unroll."""

    def __init__(self) -> None:
        self.frame = 0

    def act(self, action: int) -> float:
        self.frame += 1
        return 0.0

    def is_terminal(self) -> bool:
        return self.frame >= 6

    def lives(self) -> int:
        return 1

    def reset(self) -> None:
        self.frame = 0

    def observe(self) -> np.ndarray:
        return np.full((40, 40), self.frame * 20, dtype=np.uint8)

    def legal_actions(self) -> list[int]:
        return LEGAL_ACTIONS


def test_short_episodes_do_not_break_training() -> None:
    agent = DQNAgent(legal_actions=LEGAL_ACTIONS, config=make_config(unroll=10), seed=0)
    runner = EpisodeRunner(
        env=ShortGame(),
        agent=agent,
        config=RunnerConfig(skip_frame=0, memory_threshold=0),
        processor=FrameProcessor(*FRAME_SHAPE),
    )

    runner.play(0.5, update=True)
    runner.play(0.5, update=True)

    assert agent.replay_occupancy() == 12
    assert agent.current_iteration == 0


# =============================================================================
# Snapshots
# =============================================================================


def test_snapshot_files(agent: DQNAgent, tmp_path: Path) -> None:
    agent.admit_episode(make_episode(20))
    agent.learning_update()
    model = agent.snapshot(str(tmp_path / "run"), include_memory=True, include_solver_state=True)

    assert model == tmp_path / "run_iter_1.model"
    assert sorted(p.name for p in tmp_path.iterdir()) == [
        "run_iter_1.model",
        "run_iter_1.replaymemory",
        "run_iter_1.solverstate",
    ]


def test_model_only_snapshot(agent: DQNAgent, tmp_path: Path) -> None:
    agent.snapshot(str(tmp_path / "run_HiScore12"), include_memory=False, include_solver_state=False)
    assert [p.name for p in tmp_path.iterdir()] == ["run_HiScore12_iter_0.model"]


def test_restore_round_trip(agent: DQNAgent, tmp_path: Path) -> None:
    agent.admit_episode(make_episode(20))
    agent.learning_update()
    agent.learning_update()
    agent.snapshot(str(tmp_path / "run"), include_memory=True, include_solver_state=True)

    restored = DQNAgent(legal_actions=LEGAL_ACTIONS, config=make_config(), seed=99)
    restored.restore_from_checkpoint(tmp_path / "run_iter_2.solverstate")
    restored.restore_replay_memory(tmp_path / "run_iter_2.replaymemory")

    assert restored.current_iteration == 2
    assert restored.replay_occupancy() == agent.replay_occupancy()
    stack = np.asarray(make_stack(5))
    x = torch.from_numpy(stack).unsqueeze(0).unsqueeze(0)
    with torch.no_grad():
        expected, _ = agent.network(x)
        actual, _ = restored.network(x)
    assert torch.allclose(expected, actual)
    for seed in range(5):
        assert restored.select_action(make_stack(seed), 0.0, False) == agent.select_action(make_stack(seed), 0.0, False)


def test_load_trained_model_syncs_target(agent: DQNAgent, tmp_path: Path) -> None:
    agent.admit_episode(make_episode(20))
    agent.learning_update()
    model = agent.snapshot(str(tmp_path / "run"), include_memory=False, include_solver_state=False)

    finetuned = DQNAgent(legal_actions=LEGAL_ACTIONS, config=make_config(), seed=1)
    finetuned.load_trained_model(model)
    assert finetuned.current_iteration == 0
    for a, b in zip(agent.network.parameters(), finetuned.target.parameters()):
        assert torch.equal(a, b)


def test_model_for_other_action_set_rejected(agent: DQNAgent, tmp_path: Path) -> None:
    model = agent.snapshot(str(tmp_path / "run"), include_memory=False, include_solver_state=False)
    other = DQNAgent(legal_actions=[0, 1, 2, 3], config=make_config())
    with pytest.raises(ValueError):
        other.load_trained_model(model)
