"""DQN Learner.

Implements the Learner protocol for DQN with a target network:
- Computes TD loss against a periodically cloned target network
- Works on sequences so recurrent networks are unrolled over time
- Huber loss for robustness to outliers
- Returns training metrics for logging
"""

from __future__ import annotations

from typing import Any
from typing import TYPE_CHECKING
from dataclasses import dataclass

import torch
from torch import Tensor
import torch.nn.functional as F

from atari_rl.core.replay_memory import Batch

if TYPE_CHECKING:
    from atari_rl.agent.network import QNetwork


@dataclass
class DQNLearner:
    """Learner for DQN training.

    Computes the DQN loss:
        target = r + γ * max_a Q_target(s', a) * (1 - done)
        loss = mean(huber_loss(Q_online(s, a), target))

    Both networks start every sampled sequence from a zero recurrent state.
    """

    online: QNetwork
    target: QNetwork
    gamma: float = 0.99

    def compute_loss(self, batch: Batch) -> tuple[Tensor, dict[str, Any]]:
        """Compute DQN loss for a batch of sequences.

        Args:
            batch: States (N, T, C, H, W), action indices (N, T), rewards,
                next states and done flags

        Returns:
            loss: Scalar loss tensor for backpropagation
            metrics: Dict with training metrics
        """
        current_q, _ = self.online(batch.states)  # (N, T, A)
        current_q_selected = current_q.gather(2, batch.actions.unsqueeze(-1)).squeeze(-1)  # (N, T)

        with torch.no_grad():
            next_q, _ = self.target(batch.next_states)  # (N, T, A)
            next_q_max = next_q.max(dim=2).values
            target_q = batch.rewards + self.gamma * next_q_max * (1.0 - batch.dones)

        loss = F.huber_loss(current_q_selected, target_q, delta=1.0)

        td_errors = (current_q_selected - target_q).abs().detach()
        metrics: dict[str, Any] = {
            "loss": loss.item(),
            "q_mean": current_q_selected.detach().mean().item(),
            "q_max": current_q_selected.detach().max().item(),
            "td_error": td_errors.mean().item(),
            "target_q_mean": target_q.mean().item(),
        }
        return loss, metrics

    def update_targets(self) -> None:
        """Hard sync: copy online weights to the target network and freeze it."""
        self.target.load_state_dict(self.online.state_dict())
        for p in self.target.parameters():
            p.requires_grad = False
