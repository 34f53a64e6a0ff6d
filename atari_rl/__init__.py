"""
Atari RL - Deep recurrent Q-learning for Atari 2600 games

A single-process training stack featuring:
- Arcade Learning Environment adapter with screen preprocessing
- Episode-structured replay memory with sequence sampling
- DQN / DRQN agent with a periodically cloned target network
- Resumable snapshots and best-score checkpoints
"""

__version__ = "0.1.0"
