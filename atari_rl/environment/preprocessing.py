"""Screen preprocessing.

Converts raw emulator screens into the small grayscale frames the agent
sees. Produced frames are read-only: they are shared between frame stacks
and transitions, so any later change must go to a copy.
"""

from dataclasses import dataclass

import numpy as np
from skimage import util
from skimage import color
from skimage import transform

from atari_rl.core.types import Frame


@dataclass(frozen=True, slots=True)
class FrameProcessor:
    """Deterministic screen -> frame conversion.

    Example:
        >>> processor = FrameProcessor(height=84, width=84)
        >>> frame = processor.preprocess(np.zeros((210, 160, 3), dtype=np.uint8))
        >>> frame.shape
        (84, 84)
    """

    height: int = 84
    width: int = 84

    @property
    def shape(self) -> tuple[int, int]:
        return (self.height, self.width)

    def preprocess(self, screen: np.ndarray) -> Frame:
        """Convert an RGB or grayscale screen to a uint8 luminance frame.

        Args:
            screen: (H, W, 3) RGB, (H, W, 1) or (H, W) grayscale screen

        Returns:
            Read-only uint8 frame of shape (height, width)
        """
        if screen.ndim == 3 and screen.shape[-1] == 1:
            screen = screen[..., 0]
        if screen.ndim == 3:
            gray = color.rgb2gray(screen)
        elif screen.ndim == 2:
            gray = util.img_as_float(screen)
        else:
            raise ValueError(f"Expected (H, W) or (H, W, C) screen, got shape {screen.shape}")

        resized = transform.resize(gray, self.shape, anti_aliasing=True, preserve_range=True)
        frame = np.clip(np.rint(resized * 255.0), 0, 255).astype(np.uint8)
        frame.flags.writeable = False
        return frame


def obscure(frame: Frame, size: int) -> Frame:
    """Hide a centred ``size`` x ``size`` square of the frame.

    The input frame is never modified; a new read-only frame is returned.
    ``size <= 0`` returns the frame unchanged.
    """
    if size <= 0:
        return frame
    height, width = frame.shape[-2:]
    side_h = min(size, height)
    side_w = min(size, width)
    top = (height - side_h) // 2
    left = (width - side_w) // 2

    obscured = frame.copy()
    obscured[..., top : top + side_h, left : left + side_w] = 0
    obscured.flags.writeable = False
    return obscured
