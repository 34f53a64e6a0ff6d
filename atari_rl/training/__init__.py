"""Episode running, evaluation, checkpointing and the training loop."""

from atari_rl.training.runner import EpisodeRunner
from atari_rl.training.runner import shape_reward
from atari_rl.training.trainer import Trainer
from atari_rl.training.trainer import should_evaluate
from atari_rl.training.recorder import FrameRecorder
from atari_rl.training.checkpoint import CheckpointManager
from atari_rl.training.checkpoint import resolve_save_prefix
from atari_rl.training.evaluation import Evaluator
from atari_rl.training.evaluation import EvaluationResult

__all__ = [
    "CheckpointManager",
    "EpisodeRunner",
    "EvaluationResult",
    "Evaluator",
    "FrameRecorder",
    "Trainer",
    "resolve_save_prefix",
    "shape_reward",
    "should_evaluate",
]
