"""Base protocol for all agents.

The episode runner, evaluator, checkpoint manager and trainer only talk to
an agent through this protocol, so agents with different networks can be
swapped in without touching the control loop.
"""

from typing import Any
from typing import Protocol
from pathlib import Path
from typing import runtime_checkable

from atari_rl.core.types import Action
from atari_rl.core.types import Episode
from atari_rl.environment.frame_stack import LazyFrames


@runtime_checkable
class Agent(Protocol):
    """Protocol defining the interface all agents must implement.

    The control loop uses this protocol to:
    1. Ask for an action given the current frame stack
    2. Hand over finished episodes for replay
    3. Trigger learning updates once enough experience is stored
    4. Snapshot and restore trainable state and replay memory
    """

    @property
    def current_iteration(self) -> int:
        """Number of learning updates applied so far."""
        ...

    def select_action(self, stack: LazyFrames, epsilon: float, is_continuation: bool) -> Action:
        """Choose an action for the stacked frames.

        Args:
            stack: The most recent frames, oldest first
            epsilon: Probability of a random action
            is_continuation: False for the first decision of an episode;
                recurrent agents keep their state only across continuations

        Returns:
            One of the environment's legal actions
        """
        ...

    def replay_occupancy(self) -> int:
        """Transitions currently held in replay memory."""
        ...

    def learning_update(self) -> dict[str, Any]:
        """Sample from replay memory and apply one gradient step.

        A no-op returning an empty dict while no complete sequence is stored.
        """
        ...

    def admit_episode(self, episode: Episode) -> None:
        """Add a complete episode to replay memory."""
        ...

    def snapshot(self, prefix: str, include_memory: bool, include_solver_state: bool) -> Path:
        """Persist trainable state under ``prefix``; returns the model file."""
        ...

    def restore_from_checkpoint(self, path: Path) -> None:
        """Restore parameters, solver state and iteration from a snapshot."""
        ...

    def restore_replay_memory(self, path: Path) -> None:
        """Repopulate replay memory from a paired memory file."""
        ...
