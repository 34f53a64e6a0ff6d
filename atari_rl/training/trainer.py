"""
Training orchestrator.

Alternates training episodes with evaluations until the iteration budget
is spent. Evaluation is triggered either by a training episode beating
the best score once exploration has decayed, or periodically.
"""

import logging

from dataclasses import field
from dataclasses import dataclass

from atari_rl.agent.base import Agent
from atari_rl.core.config import TrainingConfig
from atari_rl.core.exploration import LinearEpsilon
from atari_rl.training.runner import EpisodeRunner
from atari_rl.training.checkpoint import CheckpointManager
from atari_rl.training.evaluation import Evaluator
from atari_rl.training.evaluation import EvaluationResult

logger = logging.getLogger(__name__)


def should_evaluate(
    last_eval_iteration: int,
    current_iteration: int,
    score: float,
    best_score: float,
    exploration_finished: bool,
    evaluate_freq: int,
) -> bool:
    """Decide whether to evaluate after a training episode.

    Either condition is enough:
    - the episode beat the best score and exploration has finished decaying
    - at least ``evaluate_freq`` iterations passed since the last evaluation
    """
    beat_best = exploration_finished and score > best_score
    periodic = current_iteration - last_eval_iteration >= evaluate_freq
    return beat_best or periodic


@dataclass
class Trainer:
    """Runs the train / evaluate / checkpoint loop.

    Usage:
        trainer = Trainer(agent, runner, evaluator, checkpoints, schedule, config)
        trainer.train()
    """

    agent: Agent
    runner: EpisodeRunner
    evaluator: Evaluator
    checkpoints: CheckpointManager
    schedule: LinearEpsilon
    config: TrainingConfig = TrainingConfig()

    last_eval_iteration: int = field(init=False)
    episode_count: int = field(init=False, default=0)

    def __post_init__(self) -> None:
        # After a resume nothing has been evaluated since the restored iteration
        self.last_eval_iteration = self.agent.current_iteration

    def train(self) -> None:
        while self.agent.current_iteration < self.config.max_iter:
            self.train_episode()

        if self.last_eval_iteration < self.agent.current_iteration:
            self.evaluate_and_checkpoint()
        logger.info("Training finished at iter %d, best score %s", self.agent.current_iteration, self.checkpoints.best_score)

    def train_episode(self) -> float:
        """Play one training episode and evaluate if triggered."""
        epsilon = self.schedule.epsilon(self.agent.current_iteration)
        score = self.runner.play(epsilon, update=True)
        iteration = self.agent.current_iteration
        logger.info(
            "Episode %d score = %s, epsilon = %s, iter = %d, replay_mem_size = %d",
            self.episode_count,
            score,
            epsilon,
            iteration,
            self.agent.replay_occupancy(),
        )
        self.episode_count += 1

        if should_evaluate(
            last_eval_iteration=self.last_eval_iteration,
            current_iteration=iteration,
            score=score,
            best_score=self.checkpoints.best_score,
            exploration_finished=self.schedule.finished(iteration),
            evaluate_freq=self.config.evaluation.frequency,
        ):
            self.evaluate_and_checkpoint()
        return score

    def evaluate_and_checkpoint(self) -> EvaluationResult:
        """Evaluate, keep a high-score snapshot if earned, refresh the rolling one."""
        result = self.evaluator.evaluate()
        self.checkpoints.record_score(self.agent, result.mean)
        self.checkpoints.save_latest(self.agent)
        self.last_eval_iteration = self.agent.current_iteration
        return result
