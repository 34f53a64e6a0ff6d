"""
Command line entry point.

Trains a (recurrent) DQN agent on one Atari game, evaluates a trained
agent, or times learning updates.

Usage:
    atari-dqn --rom roms/breakout.bin --save runs/
    atari-dqn --rom ALE/Breakout-v5 --save runs/ --unroll 1
    atari-dqn --rom roms/breakout.bin --evaluate --weights runs/breakout_HiScore42_iter_900000.model --gui
    atari-dqn --rom roms/breakout.bin --save runs/ --time
"""

import logging

from pathlib import Path

import click

from atari_rl.core.log import configure_logging
from atari_rl.core.config import AgentConfig
from atari_rl.core.config import RunnerConfig
from atari_rl.core.config import TrainingConfig
from atari_rl.core.config import EvaluationConfig
from atari_rl.core.config import ExplorationConfig
from atari_rl.core.device import detect_device
from atari_rl.core.exploration import LinearEpsilon
from atari_rl.agent.dqn import DQNAgent
from atari_rl.environment.ale import make_environment
from atari_rl.training.runner import EpisodeRunner
from atari_rl.training.trainer import Trainer
from atari_rl.training.recorder import FrameRecorder
from atari_rl.training.checkpoint import CheckpointManager
from atari_rl.training.checkpoint import resolve_save_prefix
from atari_rl.training.evaluation import Evaluator

logger = logging.getLogger("atari_rl.cli")

ROM_SUFFIX = ".bin"


def build_config(
    memory: int,
    explore: int,
    epsilon: float,
    gamma: float,
    clone_freq: int,
    memory_threshold: int,
    skip_frame: int,
    update_frequency: int,
    unroll: int,
    minibatch: int,
    frames_per_timestep: int,
    evaluate_with_epsilon: float,
    evaluate_freq: int,
    repeat_games: int,
    max_iter: int,
    learning_rate: float,
    unroll1_is_lstm: bool,
    obscure_size: int,
    device: str,
) -> TrainingConfig:
    """Assemble the training configuration; invalid values become usage errors."""
    try:
        return TrainingConfig(
            max_iter=max_iter,
            agent=AgentConfig(
                replay_capacity=memory,
                gamma=gamma,
                clone_freq=clone_freq,
                unroll=unroll,
                minibatch=minibatch,
                frames_per_timestep=frames_per_timestep,
                unroll1_is_lstm=unroll1_is_lstm,
                learning_rate=learning_rate,
                device=device,
            ),
            exploration=ExplorationConfig(epsilon_end=epsilon, decay_steps=explore),
            runner=RunnerConfig(
                skip_frame=skip_frame,
                update_frequency=update_frequency,
                memory_threshold=memory_threshold,
                frames_per_timestep=frames_per_timestep,
                obscure_size=obscure_size,
            ),
            evaluation=EvaluationConfig(
                epsilon=evaluate_with_epsilon,
                frequency=evaluate_freq,
                repeat_games=repeat_games,
            ),
        )
    except ValueError as e:
        raise click.UsageError(str(e)) from e


@click.command()
@click.option("--rom", type=str, default=None, help="Atari 2600 ROM file or gymnasium id (e.g. ALE/Breakout-v5)")
@click.option("--save", type=Path, default=None, help="Directory or prefix for snapshots and logs")
@click.option("--gpu/--no-gpu", default=True, help="Use an accelerator when available (default: yes)")
@click.option("--device", type=int, default=-1, help="CUDA device index (-1 for default)")
@click.option("--gui", is_flag=True, help="Open a window showing the game")
# Agent
@click.option("--memory", type=int, default=400_000, help="Replay memory capacity (transitions)")
@click.option("--gamma", type=float, default=0.99, help="Discount factor")
@click.option("--clone-freq", type=int, default=10_000, help="Iterations between target network refreshes")
@click.option("--unroll", type=int, default=10, help="Sequence length for the recurrent layer")
@click.option("--minibatch", type=int, default=32, help="Sequences per learning update")
@click.option("--frames-per-timestep", type=int, default=4, help="Frames stacked into one decision input")
@click.option("--learning-rate", type=float, default=0.00025, help="Adam learning rate")
@click.option("--unroll1-is-lstm", is_flag=True, help="Use an LSTM even when unroll is 1")
# Exploration / acting
@click.option("--explore", type=int, default=1_000_000, help="Iterations for epsilon to decay")
@click.option("--epsilon", type=float, default=0.1, help="Final epsilon value")
@click.option("--memory-threshold", type=int, default=50_000, help="Transitions stored before learning starts")
@click.option("--skip-frame", type=int, default=4, help="Extra frames each action is repeated for")
@click.option("--update-frequency", type=int, default=1, help="Actions between learning updates")
@click.option("--obscure-size", type=int, default=0, help="Side of a centred square hidden from the agent")
# Recording
@click.option("--save-screen", type=str, default="", help="Prefix for PNG screen dumps")
@click.option("--save-binary-screen", type=str, default="", help="Prefix for binary frame dumps")
# Checkpoints
@click.option("--weights", type=Path, default=None, help="Model file to finetune or evaluate")
@click.option("--snapshot", type=Path, default=None, help="Solver state to resume training from")
@click.option("--resume/--no-resume", default=True, help="Resume from the latest snapshot under --save")
# Evaluation / modes
@click.option("--evaluate", is_flag=True, help="Evaluate the agent instead of training")
@click.option("--evaluate-with-epsilon", type=float, default=0.05, help="Epsilon used during evaluation")
@click.option("--evaluate-freq", type=int, default=50_000, help="Iterations between evaluations")
@click.option("--repeat-games", type=int, default=10, help="Episodes per evaluation")
@click.option("--max-iter", type=int, default=10_000_000, help="Learning updates to train for")
@click.option("--time", "time_updates", is_flag=True, help="Time learning updates and exit")
@click.option("--benchmark-iters", type=int, default=1000, help="Learning updates timed by --time")
@click.option("--seed", type=int, default=None, help="Random seed")
def main(
    rom: str | None,
    save: Path | None,
    gpu: bool,
    device: int,
    gui: bool,
    memory: int,
    gamma: float,
    clone_freq: int,
    unroll: int,
    minibatch: int,
    frames_per_timestep: int,
    learning_rate: float,
    unroll1_is_lstm: bool,
    explore: int,
    epsilon: float,
    memory_threshold: int,
    skip_frame: int,
    update_frequency: int,
    obscure_size: int,
    save_screen: str,
    save_binary_screen: str,
    weights: Path | None,
    snapshot: Path | None,
    resume: bool,
    evaluate: bool,
    evaluate_with_epsilon: float,
    evaluate_freq: int,
    repeat_games: int,
    max_iter: int,
    time_updates: bool,
    benchmark_iters: int,
    seed: int | None,
) -> None:
    """Train or evaluate a deep recurrent Q-network on an Atari game."""
    if not rom:
        raise click.UsageError("Rom file required but not set")
    if rom.endswith(ROM_SUFFIX) and not Path(rom).is_file():
        raise click.UsageError(f"Invalid ROM file: {rom}")
    if save is None and not evaluate:
        raise click.UsageError("Save path (or --evaluate) required but not set")
    if snapshot is not None and weights is not None:
        raise click.UsageError("Give a snapshot to resume training or weights to finetune but not both")

    config = build_config(
        memory=memory,
        explore=explore,
        epsilon=epsilon,
        gamma=gamma,
        clone_freq=clone_freq,
        memory_threshold=memory_threshold,
        skip_frame=skip_frame,
        update_frequency=update_frequency,
        unroll=unroll,
        minibatch=minibatch,
        frames_per_timestep=frames_per_timestep,
        evaluate_with_epsilon=evaluate_with_epsilon,
        evaluate_freq=evaluate_freq,
        repeat_games=repeat_games,
        max_iter=max_iter,
        learning_rate=learning_rate,
        unroll1_is_lstm=unroll1_is_lstm,
        obscure_size=obscure_size,
        device=detect_device(gpu, device),
    )

    rom_stem = Path(rom).stem
    prefix = resolve_save_prefix(save, rom_stem) if save is not None else None
    if evaluate:
        configure_logging(to_stderr=True)
    else:
        assert prefix is not None
        prefix.parent.mkdir(parents=True, exist_ok=True)
        configure_logging(prefix=prefix)
        config.to_json(Path(f"{prefix}_config.json"))

    env = make_environment(rom, display_screen=gui)
    agent = DQNAgent(legal_actions=env.legal_actions(), config=config.agent, seed=seed)
    logger.info("Device: %s, legal actions: %s", agent.device, agent.legal_actions)

    recorder = FrameRecorder(screen_prefix=save_screen or None, binary_prefix=save_binary_screen or None)
    if recorder.screen_prefix:
        logger.info("Saving screens to: %s", recorder.screen_prefix)
    runner = EpisodeRunner(env=env, agent=agent, config=config.runner, recorder=recorder)
    evaluator = Evaluator(runner=runner, config=config.evaluation)
    checkpoints = CheckpointManager(prefix=prefix if prefix is not None else Path(rom_stem))

    resumed = None
    if snapshot is not None or (resume and prefix is not None):
        try:
            resumed = checkpoints.resume(agent, snapshot)
        except FileNotFoundError as e:
            raise click.ClickException(str(e)) from e
    if resumed is None and weights is not None:
        logger.info("Finetuning from %s", weights)
        agent.load_trained_model(weights)

    if evaluate:
        if gui:
            score = evaluator.play_once()
            logger.info("Score %s", score)
        else:
            evaluator.evaluate()
        return

    if time_updates:
        runner.play(config.evaluation.epsilon, update=True)
        if not agent.memory.can_sample(config.agent.unroll):
            raise click.ClickException("Not enough replay memory after one episode to time learning updates")
        agent.benchmark(benchmark_iters)
        return

    if resumed is not None or resume:
        checkpoints.restore_high_score()

    trainer = Trainer(
        agent=agent,
        runner=runner,
        evaluator=evaluator,
        checkpoints=checkpoints,
        schedule=LinearEpsilon.from_config(config.exploration),
        config=config,
    )
    trainer.train()


if __name__ == "__main__":
    main()
