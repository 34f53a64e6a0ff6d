"""
DQN agent: network, target network, optimizer and replay memory.

Implements the Agent protocol used by the control loop. The iteration
counter counts learning updates and is what exploration, evaluation and
snapshots are keyed on.

Snapshot layout for prefix ``P`` at iteration ``N``:
    P_iter_N.replaymemory   replay memory (optional)
    P_iter_N.model          network parameters
    P_iter_N.solverstate    optimizer, target network, iteration, RNG (optional)

Files are written in that order, each atomically, so a ``.solverstate``
on disk implies the files before it are complete.
"""

import time
import logging
import dataclasses

from typing import Any
from pathlib import Path
from dataclasses import field
from dataclasses import dataclass

import torch
import numpy as np
from torch import nn
from torch.optim import Adam

from atari_rl.core.types import Action
from atari_rl.core.types import Episode
from atari_rl.core.files import atomic_open
from atari_rl.core.config import AgentConfig
from atari_rl.core.device import detect_device
from atari_rl.core.exploration import epsilon_greedy
from atari_rl.core.replay_memory import ReplayMemory
from atari_rl.agent.network import Hidden
from atari_rl.agent.network import QNetwork
from atari_rl.learners.dqn import DQNLearner
from atari_rl.environment.frame_stack import LazyFrames

logger = logging.getLogger(__name__)

MODEL_SUFFIX = ".model"
SOLVER_SUFFIX = ".solverstate"
MEMORY_SUFFIX = ".replaymemory"


def snapshot_base(prefix: str | Path, iteration: int) -> str:
    """Base name shared by the files of one snapshot."""
    return f"{prefix}_iter_{iteration}"


@dataclass
class DQNAgent:
    """Agent learning Q-values from replayed episodes.

    Usage:
        agent = DQNAgent(legal_actions=env.legal_actions(), config=AgentConfig())
        action = agent.select_action(window.stack(), epsilon=0.1, is_continuation=False)
        agent.admit_episode(episode)
        if agent.replay_occupancy() > threshold:
            agent.learning_update()
    """

    legal_actions: list[Action]
    config: AgentConfig = AgentConfig()
    seed: int | None = None

    device: str = field(init=False)
    network: QNetwork = field(init=False, repr=False)
    target: QNetwork = field(init=False, repr=False)
    learner: DQNLearner = field(init=False, repr=False)
    optimizer: Adam = field(init=False, repr=False)
    memory: ReplayMemory = field(init=False, repr=False)
    rng: np.random.Generator = field(init=False, repr=False)

    _iteration: int = field(init=False, default=0)
    _hidden: Hidden | None = field(init=False, default=None, repr=False)
    _action_lookup: torch.Tensor = field(init=False, repr=False)

    def __post_init__(self) -> None:
        """Initialize networks, optimizer and replay memory."""
        if not self.legal_actions:
            raise ValueError("legal_actions must not be empty")
        self.device = self.config.device or detect_device()

        input_shape = (self.config.frames_per_timestep, *self.config.frame_shape)
        self.network = self._build_network(input_shape).to(self.device)
        self.target = self._build_network(input_shape).to(self.device)
        self.learner = DQNLearner(online=self.network, target=self.target, gamma=self.config.gamma)
        self.learner.update_targets()

        self.optimizer = Adam(self.network.parameters(), lr=self.config.learning_rate)
        self.memory = ReplayMemory(
            capacity=self.config.replay_capacity,
            frames_per_timestep=self.config.frames_per_timestep,
        )
        self.rng = np.random.default_rng(self.seed)
        if self.seed is not None:
            torch.manual_seed(self.seed)

        # Maps stored action values to network output indices
        lookup = torch.full((max(self.legal_actions) + 1,), -1, dtype=torch.int64)
        for index, action in enumerate(self.legal_actions):
            lookup[action] = index
        self._action_lookup = lookup.to(self.device)

    def _build_network(self, input_shape: tuple[int, ...]) -> QNetwork:
        return QNetwork(input_shape, num_actions=len(self.legal_actions), recurrent=self.config.recurrent)

    @property
    def current_iteration(self) -> int:
        return self._iteration

    # =========================================================================
    # Acting
    # =========================================================================

    def select_action(self, stack: LazyFrames, epsilon: float, is_continuation: bool) -> Action:
        """Epsilon-greedy action for the stacked frames."""
        if not is_continuation:
            self._hidden = None

        if self.config.recurrent:
            # Recurrent state advances on every decision, explored or not
            q_values = self._q_values(stack)
            index = epsilon_greedy(epsilon, len(self.legal_actions), lambda: int(q_values.argmax()), self.rng)
        else:
            index = epsilon_greedy(
                epsilon, len(self.legal_actions), lambda: int(self._q_values(stack).argmax()), self.rng
            )
        return self.legal_actions[index]

    def _q_values(self, stack: LazyFrames) -> np.ndarray:
        frames = np.asarray(stack, dtype=np.uint8)
        x = torch.from_numpy(frames).to(self.device).unsqueeze(0).unsqueeze(0)  # (1, 1, C, H, W)
        with torch.no_grad():
            q_values, hidden = self.network(x, self._hidden)
        self._hidden = hidden
        return q_values[0, 0].cpu().numpy()

    # =========================================================================
    # Learning
    # =========================================================================

    def replay_occupancy(self) -> int:
        return len(self.memory)

    def admit_episode(self, episode: Episode) -> None:
        self.memory.admit(episode)

    def learning_update(self) -> dict[str, Any]:
        """Sample a minibatch of sequences and apply one gradient step.

        Does nothing (and leaves the iteration unchanged) until replay memory
        holds at least one complete sequence.
        """
        if not self.memory.can_sample(self.config.unroll):
            logger.debug("Skipping learning update: no complete sequence of %d steps stored", self.config.unroll)
            return {}
        batch = self.memory.sample(
            self.config.minibatch,
            self.rng,
            unroll=self.config.unroll,
            device=self.device,
        )
        batch = dataclasses.replace(batch, actions=self._action_lookup[batch.actions])

        loss, metrics = self.learner.compute_loss(batch)
        self.optimizer.zero_grad()
        loss.backward()
        nn.utils.clip_grad_norm_(self.network.parameters(), self.config.max_grad_norm)
        self.optimizer.step()

        self._iteration += 1
        if self._iteration % self.config.clone_freq == 0:
            self.learner.update_targets()
            logger.debug("iter %d: target network refreshed", self._iteration)
        return metrics

    def benchmark(self, iterations: int = 1000) -> float:
        """Time ``iterations`` learning updates; returns seconds per update."""
        start = time.perf_counter()
        for _ in range(iterations):
            self.learning_update()
        per_update = (time.perf_counter() - start) / max(1, iterations)
        logger.info("Avg learning update: %.3f ms over %d updates", per_update * 1000.0, iterations)
        return per_update

    # =========================================================================
    # Persistence
    # =========================================================================

    def snapshot(self, prefix: str | Path, include_memory: bool, include_solver_state: bool) -> Path:
        """Write the snapshot files for the current iteration."""
        base = snapshot_base(prefix, self._iteration)
        model_path = Path(base + MODEL_SUFFIX)

        if include_memory:
            memory_path = Path(base + MEMORY_SUFFIX)
            logger.info("Snapshotting memory to %s", memory_path)
            self.memory.save(memory_path)

        logger.info("Snapshotting model to %s", model_path)
        with atomic_open(model_path) as f:
            torch.save(
                {
                    "iteration": self._iteration,
                    "legal_actions": list(self.legal_actions),
                    "network": self.network.state_dict(),
                },
                f,
            )

        if include_solver_state:
            with atomic_open(Path(base + SOLVER_SUFFIX)) as f:
                torch.save(
                    {
                        "iteration": self._iteration,
                        "optimizer": self.optimizer.state_dict(),
                        "target": self.target.state_dict(),
                        "rng": self.rng.bit_generator.state,
                    },
                    f,
                )
        return model_path

    def _load_model(self, path: Path) -> dict[str, Any]:
        checkpoint = torch.load(path, map_location=self.device, weights_only=True)
        if list(checkpoint["legal_actions"]) != list(self.legal_actions):
            raise ValueError(
                f"{path} was trained with actions {checkpoint['legal_actions']}, "
                f"environment offers {self.legal_actions}"
            )
        self.network.load_state_dict(checkpoint["network"])
        return checkpoint

    def restore_from_checkpoint(self, path: Path) -> None:
        """Restore from a ``.solverstate`` (or any file of the same snapshot)."""
        path = Path(path)
        base = path.parent / path.stem
        self._load_model(Path(str(base) + MODEL_SUFFIX))

        solver = torch.load(Path(str(base) + SOLVER_SUFFIX), map_location=self.device, weights_only=True)
        self.optimizer.load_state_dict(solver["optimizer"])
        self.target.load_state_dict(solver["target"])
        self.rng.bit_generator.state = solver["rng"]
        self._iteration = int(solver["iteration"])
        self._hidden = None

    def restore_replay_memory(self, path: Path) -> None:
        self.memory.load(Path(path))
        logger.info("Replay memory restored from %s: %d transitions", path, len(self.memory))

    def load_trained_model(self, path: Path) -> None:
        """Load network parameters only (finetuning); the target is synced to them."""
        self._load_model(Path(path))
        self.learner.update_targets()
        self._hidden = None
