"""Arcade Learning Environment adapter.

Exposes the emulator through the small interface the episode runner
drives: act, terminal check, lives, reset, screen and legal actions.
"""

from typing import Any
from typing import Protocol
from pathlib import Path
from typing import runtime_checkable

import numpy as np
from PIL import Image


@runtime_checkable
class Environment(Protocol):
    """Protocol for games the episode runner can play."""

    def act(self, action: int) -> float:
        """Advance one emulator frame, returning the score delta."""
        ...

    def is_terminal(self) -> bool:
        """Whether the game is over."""
        ...

    def lives(self) -> int:
        """Remaining lives."""
        ...

    def reset(self) -> None:
        """Start a fresh game."""
        ...

    def observe(self) -> np.ndarray:
        """Current raw screen."""
        ...

    def legal_actions(self) -> list[int]:
        """Actions the agent may choose from."""
        ...


class AleEnvironment:
    """Environment backed by an ``ale_py.ALEInterface``.

    Actions are plain ints on this side and converted to the emulator's
    action type on the way in.
    """

    def __init__(self, ale: Any):
        self.ale = ale
        self._action_map = {int(a): a for a in ale.getLegalActionSet()}
        self._minimal_actions = [int(a) for a in ale.getMinimalActionSet()]

    @classmethod
    def from_rom(cls, rom: Path, display_screen: bool = False) -> "AleEnvironment":
        """Load a ROM file into a new emulator."""
        import ale_py

        ale = ale_py.ALEInterface()
        ale.setBool("display_screen", display_screen)
        ale.setBool("sound", display_screen)
        # Sticky actions would break the frame-skip repetition semantics
        ale.setFloat("repeat_action_probability", 0.0)
        ale.loadROM(str(rom))
        return cls(ale)

    @classmethod
    def from_gym(cls, env_id: str, display_screen: bool = False) -> "AleEnvironment":
        """Create the emulator through gymnasium (e.g. ``ALE/Breakout-v5``)."""
        import ale_py
        import gymnasium as gym

        gym.register_envs(ale_py)
        env = gym.make(
            env_id,
            frameskip=1,
            repeat_action_probability=0.0,
            full_action_space=False,
            render_mode="human" if display_screen else None,
        )
        env.reset()
        return cls(env.unwrapped.ale)

    def act(self, action: int) -> float:
        return float(self.ale.act(self._action_map[action]))

    def is_terminal(self) -> bool:
        return bool(self.ale.game_over())

    def lives(self) -> int:
        return int(self.ale.lives())

    def reset(self) -> None:
        self.ale.reset_game()

    def observe(self) -> np.ndarray:
        return self.ale.getScreenRGB()

    def legal_actions(self) -> list[int]:
        return list(self._minimal_actions)

    def save_screen(self, path: Path) -> None:
        """Write the current screen as a PNG image."""
        Image.fromarray(self.observe()).save(path)


def make_environment(rom: str, display_screen: bool = False) -> AleEnvironment:
    """Open ``rom`` as a ROM file if it is one, otherwise as a gymnasium id."""
    if Path(rom).is_file():
        return AleEnvironment.from_rom(Path(rom), display_screen)
    return AleEnvironment.from_gym(rom, display_screen)
