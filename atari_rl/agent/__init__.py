"""Agents and their networks."""

from atari_rl.agent.base import Agent
from atari_rl.agent.dqn import DQNAgent
from atari_rl.agent.network import QNetwork

__all__ = [
    "Agent",
    "DQNAgent",
    "QNetwork",
]
