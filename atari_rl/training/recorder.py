"""Optional frame dumps while playing.

Screens are written as numbered PNG files, preprocessed frames as raw
uint8 binaries. Neither is read back by training.
"""

from pathlib import Path
from dataclasses import field
from dataclasses import dataclass

from atari_rl.core.types import Frame
from atari_rl.environment.ale import Environment


@dataclass
class FrameRecorder:
    """Dumps screens and/or frames under file prefixes.

    Attributes:
        screen_prefix: Prefix for ``<prefix>NNNNN.png`` screens (per-episode step number)
        binary_prefix: Prefix for ``<prefix>N.bin`` frames (numbered across episodes)
    """

    screen_prefix: str | None = None
    binary_prefix: str | None = None

    _binary_count: int = field(init=False, default=0)

    @property
    def enabled(self) -> bool:
        return bool(self.screen_prefix) or bool(self.binary_prefix)

    def record(self, env: Environment, step: int, frame: Frame) -> None:
        if self.screen_prefix:
            save_screen = getattr(env, "save_screen", None)
            if save_screen is not None:
                save_screen(Path(f"{self.screen_prefix}{step:05d}.png"))
        if self.binary_prefix:
            frame.tofile(f"{self.binary_prefix}{self._binary_count}.bin")
            self._binary_count += 1
