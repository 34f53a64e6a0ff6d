"""Episodic replay memory with uniform sequence sampling.

Combines:
- Whole-episode admission with oldest-transition eviction
- Frame stack reconstruction from per-step frames
- Uniform sampling of fixed-length sequences (unroll >= 1)
- Batch sampling with tensor conversion
- lz4-compressed persistence with shared frames stored once
"""

import io

from pathlib import Path
from collections import deque
from dataclasses import field
from dataclasses import dataclass

import lz4.frame
import torch
import numpy as np
from torch import Tensor

from atari_rl.core.files import atomic_write_bytes
from atari_rl.core.types import Episode
from atari_rl.core.types import Transition


@dataclass(frozen=True, slots=True)
class Batch:
    """Sampled batch of sequences from replay memory.

    Shapes are (batch, unroll, ...) with stacked frames as
    (batch, unroll, frames_per_timestep, height, width).
    """

    states: Tensor
    actions: Tensor
    rewards: Tensor
    next_states: Tensor
    dones: Tensor


@dataclass
class ReplayMemory:
    """Capacity-bounded store of transitions grouped by episode.

    Features:
    - Episodes are admitted atomically, never partially
    - Capacity is counted in transitions; the oldest are evicted first
    - Sampled positions always have a full frame stack behind them
    - Sequences never cross an episode boundary
    """

    capacity: int
    frames_per_timestep: int = 4

    _episodes: deque[list[Transition]] = field(init=False, repr=False, default_factory=deque)
    _size: int = field(init=False, default=0)

    # Cumulative eligible start counts per unroll length (invalidated on change)
    _index: dict[int, tuple[np.ndarray, np.ndarray]] = field(init=False, repr=False, default_factory=dict)

    def __post_init__(self) -> None:
        if self.capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {self.capacity}")

    def admit(self, episode: Episode) -> None:
        """Append a complete episode, evicting the oldest transitions over capacity."""
        if len(episode) == 0:
            return
        self._episodes.append(list(episode))
        self._size += len(episode)
        self._evict()
        self._index.clear()

    def _evict(self) -> None:
        while self._size > self.capacity:
            oldest = self._episodes[0]
            drop = min(self._size - self.capacity, len(oldest))
            self._size -= drop
            if drop == len(oldest):
                self._episodes.popleft()
            else:
                # Slice so evicted transitions and their frames are released
                self._episodes[0] = oldest[drop:]

    def _eligible(self, unroll: int) -> tuple[np.ndarray, np.ndarray]:
        """Number of valid sequence starts per episode and their running sum."""
        if unroll not in self._index:
            lookback = self.frames_per_timestep - 1 + unroll - 1
            counts = np.array([max(0, len(ep) - lookback) for ep in self._episodes], dtype=np.int64)
            self._index[unroll] = (counts, np.cumsum(counts))
        return self._index[unroll]

    def num_sequences(self, unroll: int = 1) -> int:
        """Number of distinct sequences of this length that can be sampled."""
        _, cumsum = self._eligible(unroll)
        return int(cumsum[-1]) if len(cumsum) else 0

    def can_sample(self, unroll: int = 1) -> bool:
        """Check if memory holds at least one complete sequence."""
        return self.num_sequences(unroll) > 0

    def sample(
        self,
        batch_size: int,
        rng: np.random.Generator,
        unroll: int = 1,
        device: str = "cpu",
    ) -> Batch:
        """Sample sequences uniformly over all valid start positions.

        Args:
            batch_size: Number of sequences to sample
            rng: Random generator
            unroll: Length of each sequence
            device: Device for output tensors

        Returns:
            Batch of sequences as tensors

        Raises:
            ValueError: If no complete sequence is stored
        """
        total = self.num_sequences(unroll)
        if total == 0:
            raise ValueError(
                f"Not enough samples: no sequence of length {unroll} "
                f"with {self.frames_per_timestep} stacked frames in {self._size} transitions"
            )
        counts, cumsum = self._eligible(unroll)
        draws = rng.integers(0, total, size=batch_size)
        episode_ids = np.searchsorted(cumsum, draws, side="right")
        offsets = draws - (cumsum[episode_ids] - counts[episode_ids])

        stack = self.frames_per_timestep
        frame_shape = self._episodes[0][0].frame.shape
        states = np.zeros((batch_size, unroll, stack, *frame_shape), dtype=np.uint8)
        next_states = np.zeros_like(states)
        actions = np.zeros((batch_size, unroll), dtype=np.int64)
        rewards = np.zeros((batch_size, unroll), dtype=np.float32)
        dones = np.zeros((batch_size, unroll), dtype=np.float32)

        for b, (episode_id, offset) in enumerate(zip(episode_ids, offsets, strict=True)):
            episode = self._episodes[int(episode_id)]
            first = stack - 1 + int(offset)
            for t in range(unroll):
                pos = first + t
                for k in range(stack):
                    states[b, t, k] = episode[pos - stack + 1 + k].frame
                transition = episode[pos]
                actions[b, t] = transition.action
                rewards[b, t] = transition.reward
                if transition.terminal:
                    dones[b, t] = 1.0
                else:
                    next_states[b, t, :-1] = states[b, t, 1:]
                    next_states[b, t, -1] = transition.next_frame

        return Batch(
            states=torch.from_numpy(states).to(device),
            actions=torch.from_numpy(actions).to(device),
            rewards=torch.from_numpy(rewards).to(device),
            next_states=torch.from_numpy(next_states).to(device),
            dones=torch.from_numpy(dones).to(device),
        )

    def save(self, path: Path) -> None:
        """Persist all stored transitions; frames shared between steps are written once."""
        frames: list[np.ndarray] = []
        frame_ids: dict[int, int] = {}

        def index_of(frame: np.ndarray) -> int:
            key = id(frame)
            if key not in frame_ids:
                frame_ids[key] = len(frames)
                frames.append(frame)
            return frame_ids[key]

        frame_index, next_index, actions, rewards, lengths = [], [], [], [], []
        for episode in self._episodes:
            lengths.append(len(episode))
            for i in range(len(episode)):
                transition = episode[i]
                frame_index.append(index_of(transition.frame))
                next_index.append(-1 if transition.next_frame is None else index_of(transition.next_frame))
                actions.append(transition.action)
                rewards.append(transition.reward)

        buffer = io.BytesIO()
        np.savez(
            buffer,
            frames=np.stack(frames) if frames else np.zeros((0, 0, 0), dtype=np.uint8),
            frame_index=np.asarray(frame_index, dtype=np.int64),
            next_index=np.asarray(next_index, dtype=np.int64),
            actions=np.asarray(actions, dtype=np.int64),
            rewards=np.asarray(rewards, dtype=np.float32),
            lengths=np.asarray(lengths, dtype=np.int64),
        )
        atomic_write_bytes(Path(path), lz4.frame.compress(buffer.getvalue()))

    def load(self, path: Path) -> None:
        """Replace the contents with those saved at ``path``."""
        payload = lz4.frame.decompress(Path(path).read_bytes())
        with np.load(io.BytesIO(payload), allow_pickle=False) as data:
            frames = data["frames"]
            frame_index = data["frame_index"]
            next_index = data["next_index"]
            actions = data["actions"]
            rewards = data["rewards"]
            lengths = data["lengths"]
        frames.flags.writeable = False
        # One view per stored frame so shared frames stay shared after loading
        views = list(frames)

        self.reset()
        pos = 0
        for length in lengths:
            transitions = []
            for i in range(pos, pos + int(length)):
                transitions.append(
                    Transition(
                        frame=views[frame_index[i]],
                        action=int(actions[i]),
                        reward=float(rewards[i]),
                        next_frame=None if next_index[i] < 0 else views[next_index[i]],
                    )
                )
            pos += int(length)
            self._episodes.append(transitions)
            self._size += len(transitions)
        self._evict()

    def reset(self) -> None:
        """Clear the memory."""
        self._episodes.clear()
        self._size = 0
        self._index.clear()

    @property
    def num_episodes(self) -> int:
        return len(self._episodes)

    def __len__(self) -> int:
        return self._size
