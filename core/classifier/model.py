"""MLP for static hand-sign classification.

Architecture:
    63 → Linear(256) → ReLU → Dropout
       → Linear(128) → ReLU → Dropout
       → Linear(64)  → ReLU
       → Linear(N)   → softmax (in predict)

One normalized landmark frame in, one probability per known letter out.
"""

from __future__ import annotations

import torch
import torch.nn as nn
import torch.nn.functional as F

from core.types import FEATURE_DIM

DEFAULT_HIDDEN_DIMS: tuple[int, ...] = (256, 128, 64)


class SignClassifierNet(nn.Module):
    """Feed-forward classifier over 63-dim landmark features.

    Args:
        num_classes: Size of the Label Set.
        input_dim: Feature vector length.
        hidden_dims: Hidden layer widths.
        dropout: Dropout rate after every hidden layer except the last.

    Input:
        x: (batch, input_dim) feature vectors.

    Output:
        Dict with 'logits' (batch, num_classes).
    """

    def __init__(
        self,
        num_classes: int,
        input_dim: int = FEATURE_DIM,
        hidden_dims: tuple[int, ...] = DEFAULT_HIDDEN_DIMS,
        dropout: float = 0.2,
    ) -> None:
        super().__init__()
        if num_classes < 1:
            raise ValueError(f"num_classes must be >= 1, got {num_classes}")
        self.input_dim = input_dim
        self.num_classes = num_classes
        self.hidden_dims = tuple(hidden_dims)

        layers: list[nn.Module] = []
        prev_dim = input_dim
        for i, h in enumerate(self.hidden_dims):
            layers.extend([nn.Linear(prev_dim, h), nn.ReLU()])
            if i < len(self.hidden_dims) - 1:
                layers.append(nn.Dropout(dropout))
            prev_dim = h
        layers.append(nn.Linear(prev_dim, num_classes))

        self.net = nn.Sequential(*layers)
        self._init_weights()

    def _init_weights(self) -> None:
        """Kaiming initialization for ReLU activations."""
        for m in self.modules():
            if isinstance(m, nn.Linear):
                nn.init.kaiming_normal_(m.weight, nonlinearity="relu")
                if m.bias is not None:
                    nn.init.zeros_(m.bias)

    def forward(self, x: torch.Tensor) -> dict[str, torch.Tensor]:
        return {"logits": self.net(x)}

    def predict(self, x: torch.Tensor) -> dict[str, torch.Tensor]:
        """Inference-mode prediction with softmax probabilities."""
        self.eval()
        with torch.no_grad():
            logits = self.forward(x)["logits"]
            probs = F.softmax(logits, dim=-1)
            return {
                "class_id": torch.argmax(probs, dim=-1),
                "class_probs": probs,
            }

    def get_model_size_mb(self) -> float:
        """Return model size in megabytes."""
        param_size = sum(p.numel() * p.element_size() for p in self.parameters())
        return param_size / (1024 * 1024)
