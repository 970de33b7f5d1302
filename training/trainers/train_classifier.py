"""Training loop for the static sign classifier.

Features:
    - Shuffled mini-batches, fixed epoch count
    - Per-epoch loss / accuracy reporting (log + optional callback)
    - Reproducible seeding
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np
import torch
import torch.nn as nn
from loguru import logger
from torch.optim import Adam
from torch.utils.data import DataLoader

if TYPE_CHECKING:
    from core.classifier.model import SignClassifierNet
    from training.datasets.sample_dataset import SignSampleDataset

EpochCallback = Callable[[int, int, dict[str, float]], None]


@dataclass
class TrainConfig:
    """Training hyperparameters.

    Attributes:
        epochs: Number of passes over the data.
        batch_size: Mini-batch size.
        learning_rate: Adam learning rate.
        seed: Random seed (None leaves the RNG untouched).
        device: "auto", "cpu" or "cuda".
    """

    epochs: int = 50
    batch_size: int = 32
    learning_rate: float = 1e-3
    seed: int | None = 42
    device: str = "cpu"


@dataclass
class TrainResult:
    """Result of a training run."""

    final_loss: float = float("inf")
    final_accuracy: float = 0.0
    total_epochs: int = 0
    history: list[dict[str, float]] = field(default_factory=list)
    training_time_sec: float = 0.0


class SignTrainer:
    """Fits a SignClassifierNet on collected samples.

    Usage:
        >>> config = TrainConfig(epochs=50, batch_size=32)
        >>> trainer = SignTrainer(model, dataset, config)
        >>> result = trainer.train()
        >>> print(f"Final accuracy: {result.final_accuracy:.4f}")
    """

    def __init__(
        self,
        model: SignClassifierNet,
        dataset: SignSampleDataset,
        config: TrainConfig | None = None,
        on_epoch_end: EpochCallback | None = None,
    ) -> None:
        self._config = config or TrainConfig()
        if self._config.seed is not None:
            self._set_seed(self._config.seed)

        if self._config.device == "auto":
            self._device = torch.device("cuda" if torch.cuda.is_available() else "cpu")
        else:
            self._device = torch.device(self._config.device)

        self._model = model.to(self._device)
        self._on_epoch_end = on_epoch_end

        self._loader = DataLoader(
            dataset,
            batch_size=self._config.batch_size,
            shuffle=True,
        )
        self._optimizer = Adam(self._model.parameters(), lr=self._config.learning_rate)
        self._criterion = nn.CrossEntropyLoss()

        logger.info(
            f"Trainer initialized | Device: {self._device} | "
            f"Samples: {len(dataset)} | Classes: {dataset.num_classes} | "
            f"Params: {sum(p.numel() for p in model.parameters()):,}"
        )

    def train(self) -> TrainResult:
        """Run the full training loop.

        Returns:
            TrainResult with per-epoch metrics.
        """
        result = TrainResult()
        t_start = time.time()

        for epoch in range(1, self._config.epochs + 1):
            metrics = self._train_epoch()
            result.history.append(metrics)

            logger.info(
                f"Epoch {epoch}/{self._config.epochs} | "
                f"Loss: {metrics['loss']:.3f} | Acc: {metrics['accuracy']:.3f}"
            )
            if self._on_epoch_end:
                self._on_epoch_end(epoch, self._config.epochs, metrics)

            result.final_loss = metrics["loss"]
            result.final_accuracy = metrics["accuracy"]
            result.total_epochs = epoch

        self._model.eval()
        self._model.to("cpu")
        result.training_time_sec = time.time() - t_start

        logger.info(
            f"Training complete | Loss: {result.final_loss:.4f} | "
            f"Acc: {result.final_accuracy:.4f} | Time: {result.training_time_sec:.1f}s"
        )
        return result

    def _train_epoch(self) -> dict[str, float]:
        """Run one training epoch."""
        self._model.train()
        total_loss = 0.0
        correct = 0
        total = 0

        for features, labels in self._loader:
            features = features.to(self._device)
            labels = labels.to(self._device)

            self._optimizer.zero_grad()
            logits = self._model(features)["logits"]
            loss = self._criterion(logits, labels)
            loss.backward()
            self._optimizer.step()

            total_loss += loss.item() * labels.size(0)
            correct += (logits.argmax(dim=-1) == labels).sum().item()
            total += labels.size(0)

        return {
            "loss": total_loss / max(total, 1),
            "accuracy": correct / max(total, 1),
        }

    @staticmethod
    def _set_seed(seed: int) -> None:
        """Set all random seeds for reproducibility."""
        np.random.seed(seed)
        torch.manual_seed(seed)
        if torch.cuda.is_available():
            torch.cuda.manual_seed_all(seed)
