"""
Device detection utilities.

Single source of truth for choosing the compute device.
"""

import torch


def detect_device(gpu: bool = True, index: int = -1) -> str:
    """
    Pick the compute device.

    Args:
        gpu: Allow accelerators; False forces the CPU
        index: CUDA device index, -1 for the default device

    Returns:
        Device string: "cuda", "cuda:<index>", "mps", or "cpu"
    """
    if not gpu:
        return "cpu"
    if torch.cuda.is_available():
        return f"cuda:{index}" if index >= 0 else "cuda"
    if torch.backends.mps.is_available():
        return "mps"
    return "cpu"
