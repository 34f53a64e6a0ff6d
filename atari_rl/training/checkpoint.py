"""
Checkpoint discovery, rolling snapshots and high-score tracking.

All files of a run share a save prefix ``P``:

    P_iter_N.{model,solverstate,replaymemory}   rolling snapshot, only the newest kept
    P_HiScore<S>_iter_N.model                   best-score snapshots, never removed

The best score is recovered from the ``HiScore`` file names on resume.
"""

from __future__ import annotations

import re
import math
import logging

from pathlib import Path
from dataclasses import dataclass

from atari_rl.agent.base import Agent
from atari_rl.agent.dqn import MODEL_SUFFIX
from atari_rl.agent.dqn import MEMORY_SUFFIX
from atari_rl.agent.dqn import SOLVER_SUFFIX

logger = logging.getLogger(__name__)


def resolve_save_prefix(save: Path, rom_stem: str) -> Path:
    """Snapshot prefix for a save location and game.

    A directory gets ``<dir>/<stem>``; anything else gets ``<save>_<stem>``.
    """
    save = Path(save)
    if save.is_dir():
        return save / rom_stem
    return save.with_name(f"{save.name}_{rom_stem}")


def replay_memory_for(snapshot: Path) -> Path:
    """Replay memory file paired with a snapshot file."""
    snapshot = Path(snapshot)
    return snapshot.parent / (snapshot.stem + MEMORY_SUFFIX)


@dataclass
class CheckpointManager:
    """Owns the snapshots written under one save prefix.

    Usage:
        manager = CheckpointManager(prefix=Path("runs/breakout"))
        manager.resume(agent)             # no-op on a fresh run
        manager.restore_high_score()
        ...
        manager.record_score(agent, evaluation.mean)
        manager.save_latest(agent)
    """

    prefix: Path
    best_score: float = -math.inf

    def __post_init__(self) -> None:
        self.prefix = Path(self.prefix)

    @property
    def directory(self) -> Path:
        return self.prefix.parent

    def _matching(self, pattern: re.Pattern[str]) -> list[tuple[int, Path]]:
        if not self.directory.is_dir():
            return []
        found = []
        for path in self.directory.iterdir():
            match = pattern.fullmatch(path.name)
            if match is not None:
                found.append((int(match.group(1)), path))
        return sorted(found)

    def _rolling(self, suffix: str) -> list[tuple[int, Path]]:
        pattern = re.compile(rf"{re.escape(self.prefix.name)}_iter_(\d+){re.escape(suffix)}")
        return self._matching(pattern)

    # =========================================================================
    # Resume
    # =========================================================================

    def find_latest_snapshot(self) -> Path | None:
        """Solver state of the rolling snapshot with the highest iteration."""
        snapshots = self._rolling(SOLVER_SUFFIX)
        if not snapshots:
            return None
        return snapshots[-1][1]

    def resume(self, agent: Agent, snapshot: Path | None = None) -> Path | None:
        """Restore the agent and its replay memory from a snapshot.

        Args:
            agent: Agent to restore into
            snapshot: Explicit solver state; defaults to the latest rolling one

        Returns:
            The snapshot resumed from, or None when there is nothing to resume

        Raises:
            FileNotFoundError: If the snapshot has no paired replay memory file
        """
        if snapshot is None:
            snapshot = self.find_latest_snapshot()
        if snapshot is None:
            logger.info("No snapshot found under %s, starting fresh", self.prefix)
            return None

        memory = replay_memory_for(snapshot)
        if not memory.is_file():
            raise FileNotFoundError(f"Unable to find .replaymemory for snapshot: {snapshot}")

        logger.info("Resuming from %s", snapshot)
        agent.restore_from_checkpoint(snapshot)
        agent.restore_replay_memory(memory)
        return Path(snapshot)

    # =========================================================================
    # High score
    # =========================================================================

    def find_high_score(self) -> float:
        """Best score recorded in ``HiScore`` file names, -inf if there are none."""
        pattern = re.compile(rf"{re.escape(self.prefix.name)}_HiScore(-?\d+)_iter_\d+{re.escape(MODEL_SUFFIX)}")
        scores = self._matching(pattern)
        if not scores:
            return -math.inf
        return float(scores[-1][0])

    def restore_high_score(self) -> float:
        self.best_score = self.find_high_score()
        logger.info("Resuming from HiScore %s", self.best_score)
        return self.best_score

    def high_score_prefix(self, score: float) -> str:
        # Floored so the score recovered from the name never exceeds the real one
        return f"{self.prefix}_HiScore{math.floor(score)}"

    def record_score(self, agent: Agent, score: float) -> bool:
        """Keep a model snapshot when ``score`` strictly beats the best so far.

        Returns:
            True if this was a new high score
        """
        if not score > self.best_score:
            return False
        logger.info("iter %d New High Score: %s", agent.current_iteration, score)
        self.best_score = score
        agent.snapshot(self.high_score_prefix(score), include_memory=False, include_solver_state=False)
        return True

    # =========================================================================
    # Rolling snapshot
    # =========================================================================

    def save_latest(self, agent: Agent) -> Path:
        """Write a full snapshot and remove older rolling ones."""
        model_path = agent.snapshot(str(self.prefix), include_memory=True, include_solver_state=True)
        self._prune(keep=agent.current_iteration)
        return model_path

    def _prune(self, keep: int) -> None:
        # Solver states go first so none is ever left without its memory
        for suffix in (SOLVER_SUFFIX, MODEL_SUFFIX, MEMORY_SUFFIX):
            for iteration, path in self._rolling(suffix):
                if iteration != keep:
                    logger.debug("Removing old snapshot file %s", path)
                    path.unlink(missing_ok=True)
