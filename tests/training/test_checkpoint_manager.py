"""Tests for CheckpointManager discovery, resume and pruning."""

import math

from pathlib import Path

import pytest

from atari_rl.training.checkpoint import CheckpointManager
from atari_rl.training.checkpoint import replay_memory_for
from atari_rl.training.checkpoint import resolve_save_prefix

# =============================================================================
# Mock Agent
# =============================================================================


class FileAgent:
    """Writes empty snapshot files named the way DQNAgent names them."""

    def __init__(self, iteration: int = 0) -> None:
        self.iteration = iteration
        self.snapshots: list[tuple[str, bool, bool]] = []
        self.restored: list[Path] = []
        self.memories: list[Path] = []

    @property
    def current_iteration(self) -> int:
        return self.iteration

    def snapshot(self, prefix: str, include_memory: bool, include_solver_state: bool) -> Path:
        self.snapshots.append((prefix, include_memory, include_solver_state))
        base = f"{prefix}_iter_{self.iteration}"
        if include_memory:
            Path(base + ".replaymemory").write_bytes(b"")
        Path(base + ".model").write_bytes(b"")
        if include_solver_state:
            Path(base + ".solverstate").write_bytes(b"")
        return Path(base + ".model")

    def restore_from_checkpoint(self, path: Path) -> None:
        self.restored.append(path)

    def restore_replay_memory(self, path: Path) -> None:
        self.memories.append(path)


def touch(directory: Path, *names: str) -> None:
    for name in names:
        (directory / name).write_bytes(b"")


@pytest.fixture
def manager(tmp_path: Path) -> CheckpointManager:
    return CheckpointManager(prefix=tmp_path / "breakout")


# =============================================================================
# Save prefix
# =============================================================================


def test_prefix_inside_directory(tmp_path: Path) -> None:
    assert resolve_save_prefix(tmp_path, "breakout") == tmp_path / "breakout"


def test_prefix_appended_to_name(tmp_path: Path) -> None:
    assert resolve_save_prefix(tmp_path / "run1", "breakout") == tmp_path / "run1_breakout"


def test_replay_memory_pairs_with_snapshot(tmp_path: Path) -> None:
    snapshot = tmp_path / "breakout_iter_50.solverstate"
    assert replay_memory_for(snapshot) == tmp_path / "breakout_iter_50.replaymemory"


# =============================================================================
# Latest snapshot and resume
# =============================================================================


def test_no_snapshot(manager: CheckpointManager) -> None:
    assert manager.find_latest_snapshot() is None


def test_missing_directory(tmp_path: Path) -> None:
    manager = CheckpointManager(prefix=tmp_path / "missing" / "breakout")
    assert manager.find_latest_snapshot() is None
    assert manager.find_high_score() == -math.inf


def test_latest_is_highest_iteration(manager: CheckpointManager, tmp_path: Path) -> None:
    touch(
        tmp_path,
        "breakout_iter_900.solverstate",
        "breakout_iter_10000.solverstate",
        "breakout_iter_2000.solverstate",
        "breakout_iter_99999.model",
        "pong_iter_50000.solverstate",
        "breakout_HiScore12_iter_70000.model",
    )
    assert manager.find_latest_snapshot() == tmp_path / "breakout_iter_10000.solverstate"


def test_resume_restores_agent_and_memory(manager: CheckpointManager, tmp_path: Path) -> None:
    touch(tmp_path, "breakout_iter_300.solverstate", "breakout_iter_300.replaymemory", "breakout_iter_300.model")
    agent = FileAgent()

    resumed = manager.resume(agent)

    assert resumed == tmp_path / "breakout_iter_300.solverstate"
    assert agent.restored == [tmp_path / "breakout_iter_300.solverstate"]
    assert agent.memories == [tmp_path / "breakout_iter_300.replaymemory"]


def test_resume_fresh_run(manager: CheckpointManager) -> None:
    agent = FileAgent()
    assert manager.resume(agent) is None
    assert agent.restored == []


def test_resume_without_memory_is_fatal(manager: CheckpointManager, tmp_path: Path) -> None:
    touch(tmp_path, "breakout_iter_300.solverstate", "breakout_iter_300.model")
    agent = FileAgent()
    with pytest.raises(FileNotFoundError, match="replaymemory"):
        manager.resume(agent)
    assert agent.restored == []


def test_resume_explicit_snapshot(manager: CheckpointManager, tmp_path: Path) -> None:
    other = tmp_path / "elsewhere"
    other.mkdir()
    touch(other, "old_iter_5.solverstate", "old_iter_5.replaymemory")
    agent = FileAgent()
    manager.resume(agent, other / "old_iter_5.solverstate")
    assert agent.memories == [other / "old_iter_5.replaymemory"]


# =============================================================================
# High score
# =============================================================================


def test_high_score_from_file_names(manager: CheckpointManager, tmp_path: Path) -> None:
    touch(
        tmp_path,
        "breakout_HiScore12_iter_70000.model",
        "breakout_HiScore340_iter_90000.model",
        "breakout_HiScore-3_iter_100.model",
        "pong_HiScore999_iter_5.model",
    )
    assert manager.restore_high_score() == 340.0
    assert manager.best_score == 340.0


def test_negative_high_score(manager: CheckpointManager, tmp_path: Path) -> None:
    touch(tmp_path, "breakout_HiScore-21_iter_100.model")
    assert manager.find_high_score() == -21.0


def test_record_score_only_when_strictly_better(manager: CheckpointManager, tmp_path: Path) -> None:
    agent = FileAgent(iteration=500)

    assert manager.record_score(agent, 12.7)
    assert manager.best_score == 12.7
    assert (tmp_path / "breakout_HiScore12_iter_500.model").exists()

    assert not manager.record_score(agent, 12.7)
    assert not manager.record_score(agent, 3.0)
    assert len(agent.snapshots) == 1
    assert agent.snapshots[0] == (str(tmp_path / "breakout_HiScore12"), False, False)


def test_first_score_always_recorded(manager: CheckpointManager) -> None:
    assert manager.best_score == -math.inf
    assert manager.record_score(FileAgent(), -21.0)


def test_fractional_negative_score_rounds_down(manager: CheckpointManager, tmp_path: Path) -> None:
    assert manager.record_score(FileAgent(iteration=3), -0.5)
    assert (tmp_path / "breakout_HiScore-1_iter_3.model").exists()
    assert manager.find_high_score() == -1.0


# =============================================================================
# Rolling snapshot
# =============================================================================


def test_save_latest_keeps_only_newest(manager: CheckpointManager, tmp_path: Path) -> None:
    agent = FileAgent(iteration=100)
    manager.record_score(agent, 5.0)
    manager.save_latest(agent)
    agent.iteration = 200
    manager.save_latest(agent)

    assert sorted(p.name for p in tmp_path.iterdir()) == [
        "breakout_HiScore5_iter_100.model",
        "breakout_iter_200.model",
        "breakout_iter_200.replaymemory",
        "breakout_iter_200.solverstate",
    ]
    assert manager.find_latest_snapshot() == tmp_path / "breakout_iter_200.solverstate"


def test_save_latest_writes_full_snapshot(manager: CheckpointManager, tmp_path: Path) -> None:
    agent = FileAgent(iteration=7)
    model = manager.save_latest(agent)
    assert model == tmp_path / "breakout_iter_7.model"
    assert agent.snapshots == [(str(tmp_path / "breakout"), True, True)]
