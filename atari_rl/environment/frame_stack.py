"""Sliding window of recent frames."""

from typing import overload
from collections import deque
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from atari_rl.core.types import Frame


@dataclass(frozen=True, slots=True)
class LazyFrames[T: np.generic]:
    """Ensures common frames are only stored once to optimize memory use.

    Overlapping windows reference the same frame objects instead of copying them.

    Note:
        This object should only be converted to numpy array just before forward pass.
    """

    frames: tuple[NDArray[T], ...]

    @property
    def dtype(self) -> np.dtype[T]:
        """Data type of frames."""
        return self.frames[0].dtype

    @property
    def shape(self) -> tuple[int, ...]:
        """Shape of stacked frames (num_frames, *frame_shape)."""
        return (len(self.frames), *self.frames[0].shape)

    def __len__(self) -> int:
        """Return number of stacked frames."""
        return len(self.frames)

    def __getitem__(self, idx: int | slice) -> NDArray[T]:
        """Get frame(s) by index or slice."""
        if isinstance(idx, slice):
            return np.stack(self.frames[idx], axis=0)
        return self.frames[idx]

    @overload
    def __array__(self, dtype: None = None, copy: bool | None = None) -> NDArray[T]: ...

    @overload
    def __array__[T2: np.generic](self, dtype: np.dtype[T2], copy: bool | None = None) -> NDArray[T2]: ...

    def __array__(self, dtype: np.dtype | None = None, copy: bool | None = None) -> NDArray:
        """Convert to numpy array, optionally with dtype conversion."""
        arr = self[:]
        if dtype is not None:
            return arr.astype(dtype)
        return arr


class FrameWindow:
    """Bounded window holding the most recent frames in chronological order.

    Example:
        >>> window = FrameWindow(4)
        >>> for frame in frames:
        ...     window.push(frame)
        >>> window.is_full
        True
        >>> window.stack().shape
        (4, 84, 84)
    """

    def __init__(self, size: int):
        if size < 1:
            raise ValueError(f"window size must be >= 1, got {size}")
        self.size = size
        self.frames: deque[Frame] = deque(maxlen=size)

    def push(self, frame: Frame) -> None:
        """Append a frame, evicting the oldest once the window is full."""
        self.frames.append(frame)

    @property
    def is_full(self) -> bool:
        return len(self.frames) == self.size

    def stack(self) -> LazyFrames:
        """Current window as stacked frames, oldest first."""
        if not self.frames:
            raise RuntimeError("Cannot stack an empty frame window")
        return LazyFrames(tuple(self.frames))

    def clear(self) -> None:
        self.frames.clear()

    def __len__(self) -> int:
        return len(self.frames)
