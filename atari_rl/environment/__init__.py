"""Environment side: emulator adapter, screen preprocessing and frame stacking."""

from atari_rl.environment.ale import Environment
from atari_rl.environment.ale import AleEnvironment
from atari_rl.environment.ale import make_environment
from atari_rl.environment.frame_stack import LazyFrames
from atari_rl.environment.frame_stack import FrameWindow
from atari_rl.environment.preprocessing import FrameProcessor
from atari_rl.environment.preprocessing import obscure

__all__ = [
    "AleEnvironment",
    "Environment",
    "FrameProcessor",
    "FrameWindow",
    "LazyFrames",
    "make_environment",
    "obscure",
]
