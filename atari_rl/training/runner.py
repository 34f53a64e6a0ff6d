"""Episode runner.

Plays one full game against the environment:

    START ──► STEP* ──► TERMINAL

- START: the game must be running; lives are recorded and the first frame
  captured (update mode).
- STEP: push the current frame into the window, pick an action (no-op
  until the window is full), repeat it for ``skip_frame + 1`` emulator
  frames, shape the reward, and in update mode record the transition and
  maybe trigger a learning update.
- TERMINAL: hand the episode to replay memory (update mode), reset the
  game, return the raw score.
"""

import logging

from dataclasses import field
from dataclasses import dataclass

import numpy as np

from atari_rl.core.types import Frame
from atari_rl.core.types import Action
from atari_rl.core.types import Episode
from atari_rl.core.types import Transition
from atari_rl.core.config import RunnerConfig
from atari_rl.agent.base import Agent
from atari_rl.environment.ale import Environment
from atari_rl.environment.frame_stack import FrameWindow
from atari_rl.environment.preprocessing import FrameProcessor
from atari_rl.environment.preprocessing import obscure
from atari_rl.training.recorder import FrameRecorder

logger = logging.getLogger(__name__)

NOOP: Action = 0
SHAPED_REWARDS = (-1.0, 0.0, 1.0)


def shape_reward(score_delta: float, life_lost: bool) -> float:
    """Training signal for one step: the sign of the score delta, -1 on life loss."""
    if life_lost:
        return -1.0
    return float(np.sign(score_delta))


@dataclass
class EpisodeContext:
    """Mutable state of the episode being played."""

    remaining_lives: int
    window: FrameWindow
    episode: Episode = field(default_factory=Episode)
    continuation: bool = False  # False until the first real decision is made
    total_score: float = 0.0
    current_frame: Frame | None = None


@dataclass
class EpisodeRunner:
    """Runs full episodes of an environment with an agent.

    Usage:
        runner = EpisodeRunner(env=env, agent=agent, config=RunnerConfig())
        score = runner.play(epsilon=0.5, update=True)
    """

    env: Environment
    agent: Agent
    config: RunnerConfig = RunnerConfig()
    processor: FrameProcessor = FrameProcessor()
    recorder: FrameRecorder | None = None

    def capture(self) -> Frame:
        """Preprocess (and obscure) the current screen."""
        return obscure(self.processor.preprocess(self.env.observe()), self.config.obscure_size)

    def play(self, epsilon: float, update: bool) -> float:
        """Play one episode.

        Args:
            epsilon: Exploration probability passed to the agent
            update: Record transitions, learn, and admit the episode to replay memory

        Returns:
            Total raw (unshaped) score of the episode
        """
        if self.env.is_terminal():
            raise RuntimeError("Episode started on an environment that is already game over")

        ctx = EpisodeContext(
            remaining_lives=self.env.lives(),
            window=FrameWindow(self.config.frames_per_timestep),
        )
        if update:
            ctx.current_frame = self.capture()

        step = 0
        while not self.env.is_terminal():
            self._step(ctx, step, epsilon, update)
            step += 1

        if update:
            self.agent.admit_episode(ctx.episode)
        self.env.reset()
        logger.debug("Episode finished after %d steps, score %.1f", step, ctx.total_score)
        return ctx.total_score

    def _step(self, ctx: EpisodeContext, step: int, epsilon: float, update: bool) -> None:
        # In update mode the frame was captured by the previous step's lookahead
        if not update:
            ctx.current_frame = self.capture()
        assert ctx.current_frame is not None
        ctx.window.push(ctx.current_frame)

        if self.recorder is not None and self.recorder.enabled:
            self.recorder.record(self.env, step, ctx.current_frame)

        action = NOOP
        if ctx.window.is_full:
            action = self.agent.select_action(ctx.window.stack(), epsilon, ctx.continuation)
            ctx.continuation = True

        score_delta = self._repeat(action)
        ctx.total_score += score_delta

        lives = self.env.lives()
        life_lost = lives < ctx.remaining_lives
        if life_lost:
            ctx.remaining_lives = lives
        reward = shape_reward(score_delta, life_lost)
        if reward not in SHAPED_REWARDS:
            raise RuntimeError(f"Shaped reward {reward} outside {SHAPED_REWARDS}")

        if not update:
            return

        next_frame = self.capture()
        terminal = self.env.is_terminal()
        ctx.episode.append(
            Transition(
                frame=ctx.current_frame,
                action=action,
                reward=reward,
                next_frame=None if terminal else next_frame,
            )
        )
        if (
            self.agent.replay_occupancy() > self.config.memory_threshold
            and step % self.config.update_frequency == 0
        ):
            self.agent.learning_update()
        ctx.current_frame = next_frame

    def _repeat(self, action: Action) -> float:
        """Apply the action for skip_frame + 1 frames, stopping at game over."""
        score = 0.0
        for _ in range(self.config.skip_frame + 1):
            if self.env.is_terminal():
                break
            score += self.env.act(action)
        return score
