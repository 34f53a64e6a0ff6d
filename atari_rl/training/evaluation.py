"""Evaluation of the current policy.

Plays episodes without learning at a small fixed epsilon and reports the
score statistics. The caller decides what to do with the result.
"""

import math
import logging

from dataclasses import dataclass

import numpy as np

from atari_rl.core.config import EvaluationConfig
from atari_rl.training.runner import EpisodeRunner

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class EvaluationResult:
    """Scores of one evaluation and their statistics."""

    scores: tuple[float, ...]
    mean: float
    std: float  # Sample standard deviation, nan for a single score


def summarize(scores: list[float] | tuple[float, ...]) -> EvaluationResult:
    """Mean and sample (N - 1) standard deviation of the scores."""
    if not scores:
        raise ValueError("Cannot summarize an empty list of scores")
    values = np.asarray(scores, dtype=np.float64)
    mean = float(values.mean())
    std = float(values.std(ddof=1)) if len(values) > 1 else math.nan
    return EvaluationResult(scores=tuple(float(s) for s in scores), mean=mean, std=std)


@dataclass
class Evaluator:
    """Runs evaluation episodes through an episode runner."""

    runner: EpisodeRunner
    config: EvaluationConfig = EvaluationConfig()

    def play_once(self) -> float:
        """One evaluation episode (used for interactive viewing)."""
        return self.runner.play(self.config.epsilon, update=False)

    def evaluate(self) -> EvaluationResult:
        scores = [self.runner.play(self.config.epsilon, update=False) for _ in range(self.config.repeat_games)]
        result = summarize(scores)
        logger.info("Evaluation avg_score = %s std = %s", result.mean, result.std)
        return result
