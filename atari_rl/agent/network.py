"""
Q-network for stacked Atari frames, optionally recurrent.

Architecture:
    ┌─────────────────────────────────────────────────────────────────┐
    │                      QNetwork Architecture                       │
    │                                                                  │
    │   Input: (N, T, C, H, W) uint8      C = stacked grayscale frames │
    │           ↓  / 255                  T = unrolled time steps      │
    │   ┌─────────────────────────────────────────────────────────┐   │
    │   │              CNN Backbone (Nature DQN)                   │   │
    │   │  Conv(C→32, 8x8, s=4) → ReLU                            │   │
    │   │  Conv(32→64, 4x4, s=2) → ReLU                           │   │
    │   │  Conv(64→64, 3x3, s=1) → ReLU                           │   │
    │   │  Flatten → FC(→512) → ReLU                              │   │
    │   └───────────────────────┬─────────────────────────────────┘   │
    │                           ↓                                      │
    │            LSTM(512→512) over T    (recurrent only)              │
    │                           ↓                                      │
    │                  FC(512→A) = Q(s, a)                             │
    │                                                                  │
    └─────────────────────────────────────────────────────────────────┘

The recurrent variant keeps an (h, c) state between calls so that
consecutive decisions in one episode share context.
"""

from typing import Tuple

import torch
import numpy as np
from torch import nn

Hidden = Tuple[torch.Tensor, torch.Tensor]


def layer_init(layer: nn.Module, std: float = np.sqrt(2), bias_const: float = 0.0) -> nn.Module:
    """Initialize layer with orthogonal weights and constant bias."""
    if isinstance(layer, (nn.Linear, nn.Conv2d)):
        nn.init.orthogonal_(layer.weight, std)
        if layer.bias is not None:
            nn.init.constant_(layer.bias, bias_const)
    return layer


class ConvBackbone(nn.Module):
    """
    Nature DQN convolutional backbone.

    Takes frame-stacked observations (N, C, H, W) already scaled to [0, 1].
    """

    def __init__(self, input_shape: Tuple[int, ...], feature_dim: int = 512):
        super().__init__()
        c, h, w = input_shape

        self.conv1 = layer_init(nn.Conv2d(c, 32, kernel_size=8, stride=4))
        self.conv2 = layer_init(nn.Conv2d(32, 64, kernel_size=4, stride=2))
        self.conv3 = layer_init(nn.Conv2d(64, 64, kernel_size=3, stride=1))

        # Calculate flattened size
        with torch.no_grad():
            dummy = torch.zeros(1, c, h, w)
            dummy = torch.relu(self.conv1(dummy))
            dummy = torch.relu(self.conv2(dummy))
            dummy = torch.relu(self.conv3(dummy))
            flat_size = dummy.flatten(1).shape[1]

        self.fc = layer_init(nn.Linear(flat_size, feature_dim))
        self.feature_dim = feature_dim

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        x = torch.relu(self.conv1(x))
        x = torch.relu(self.conv2(x))
        x = torch.relu(self.conv3(x))
        return torch.relu(self.fc(x.flatten(1)))


class QNetwork(nn.Module):
    """
    Q-network over sequences of frame stacks.

    Features:
    - Nature DQN backbone applied to every time step
    - Optional LSTM carrying context across time steps
    - Linear Q-value output (unbounded)
    """

    def __init__(
        self,
        input_shape: Tuple[int, ...],
        num_actions: int,
        feature_dim: int = 512,
        recurrent: bool = False,
    ):
        """
        Args:
            input_shape: Shape of one frame stack (C, H, W)
            num_actions: Number of actions in action space
            feature_dim: Dimension of backbone feature output
            recurrent: Insert an LSTM between backbone and head
        """
        super().__init__()
        self.num_actions = num_actions
        self.backbone = ConvBackbone(input_shape, feature_dim)
        self.lstm = nn.LSTM(feature_dim, feature_dim, batch_first=True) if recurrent else None
        self.head = layer_init(nn.Linear(feature_dim, num_actions), std=0.01)

    @property
    def recurrent(self) -> bool:
        return self.lstm is not None

    def forward(
        self,
        x: torch.Tensor,
        hidden: Hidden | None = None,
    ) -> tuple[torch.Tensor, Hidden | None]:
        """
        Forward pass returning Q-values for all actions at every time step.

        Args:
            x: Frames (N, T, C, H, W), uint8 in [0, 255]
            hidden: Recurrent state from a previous call (None = zeros)

        Returns:
            q_values: (N, T, num_actions)
            hidden: Updated recurrent state (None for feed-forward networks)
        """
        n, t = x.shape[:2]
        features = self.backbone(x.flatten(0, 1).float() / 255.0)
        features = features.view(n, t, -1)
        if self.lstm is not None:
            features, hidden = self.lstm(features, hidden)
        return self.head(features), hidden
