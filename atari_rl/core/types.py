"""
Core data types as frozen dataclasses.

Frames are shared between overlapping frame stacks and consecutive
transitions, so they are kept read-only once produced.
"""

from typing import Iterator
from dataclasses import field
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

Frame = NDArray[np.uint8]
Action = int


@dataclass(frozen=True, slots=True)
class Transition:
    """A single step of interaction.

    ``next_frame`` is None iff this is the terminal step of its episode.
    """

    frame: Frame
    action: Action
    reward: float
    next_frame: Frame | None

    @property
    def terminal(self) -> bool:
        return self.next_frame is None


@dataclass
class Episode:
    """Ordered transitions of one play-through, from reset to game over."""

    transitions: list[Transition] = field(default_factory=list)

    def append(self, transition: Transition) -> None:
        """Append a transition; nothing may follow the terminal one."""
        if self.terminated:
            raise RuntimeError("Cannot append to an episode that already terminated")
        self.transitions.append(transition)

    @property
    def terminated(self) -> bool:
        return bool(self.transitions) and self.transitions[-1].terminal

    def __len__(self) -> int:
        return len(self.transitions)

    def __iter__(self) -> Iterator[Transition]:
        return iter(self.transitions)

    def __getitem__(self, idx: int) -> Transition:
        return self.transitions[idx]
