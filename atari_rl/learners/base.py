"""Base protocol for all learners.

Learners contain model-specific training logic:
- Loss computation
- Target network updates (if applicable)
"""

from typing import Any
from typing import Protocol
from typing import runtime_checkable

from torch import Tensor

from atari_rl.core.replay_memory import Batch


@runtime_checkable
class Learner(Protocol):
    """Protocol defining the interface all learners must implement.

    The agent uses this protocol to:
    1. Call compute_loss() on a sampled batch
    2. Back-propagate and step its optimizer
    3. Call update_targets() on its refresh schedule
    """

    def compute_loss(self, batch: Batch) -> tuple[Tensor, dict[str, Any]]:
        """Compute training loss for a batch of sequences.

        Args:
            batch: Sampled sequences with actions as indices into the
                network's outputs

        Returns:
            loss: Scalar loss tensor for backpropagation
            metrics: Dict with training metrics (loss value, Q-values, etc.)
        """
        ...

    def update_targets(self) -> None:
        """Refresh target networks (if applicable)."""
        ...
