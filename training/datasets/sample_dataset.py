"""PyTorch dataset over collected sign samples.

Wraps the in-memory (feature vector, label) pairs produced by the
SampleCollector, mapping label strings to class indices in first-seen
order. That order *is* the Label Set persisted next to the classifier.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np
import torch
from torch.utils.data import Dataset

from core.types import FEATURE_DIM


class SignSampleDataset(Dataset):
    """Static-sign training samples.

    Usage:
        >>> dataset = SignSampleDataset(collector.samples, collector.labels)
        >>> features, label = dataset[0]
        >>> dataset.label_names  # ["A", "B", ...]
    """

    def __init__(
        self,
        samples: Sequence[np.ndarray | Sequence[float]],
        labels: Sequence[str],
    ) -> None:
        if len(samples) != len(labels):
            raise ValueError(f"Got {len(samples)} samples but {len(labels)} labels")

        self._label_names: list[str] = list(dict.fromkeys(labels))
        index = {name: i for i, name in enumerate(self._label_names)}

        self._features = (
            np.asarray(samples, dtype=np.float32).reshape(len(samples), FEATURE_DIM)
            if len(samples)
            else np.zeros((0, FEATURE_DIM), dtype=np.float32)
        )
        self._targets = np.array([index[l] for l in labels], dtype=np.int64)

    @property
    def label_names(self) -> list[str]:
        """Ordered, de-duplicated Label Set."""
        return self._label_names

    @property
    def num_classes(self) -> int:
        return len(self._label_names)

    @property
    def feature_dim(self) -> int:
        return FEATURE_DIM

    def __len__(self) -> int:
        return len(self._targets)

    def __getitem__(self, idx: int) -> tuple[torch.Tensor, torch.Tensor]:
        return (
            torch.from_numpy(self._features[idx]),
            torch.tensor(self._targets[idx], dtype=torch.long),
        )
