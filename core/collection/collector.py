"""Labelled sample collection for classifier training.

While collection is active, every frame with a hand contributes one
normalized feature vector tagged with the current label, regardless of
the stability phase. Samples live in memory until exported.

Dataset file format (JSON):
    {
        "samples": [[63 floats], ...],
        "labels": [0, 0, 1, ...],        # index into label_names
        "label_names": ["A", "B", ...]   # first-seen order
    }
"""

from __future__ import annotations

import json
import threading
from collections import Counter
from pathlib import Path
from typing import Any

import numpy as np
from loguru import logger

from core.errors import DatasetFormatError, UserInputError
from core.types import FEATURE_DIM, Sample


class SampleCollector:
    """In-memory buffer of (feature vector, label) pairs.

    Usage:
        >>> collector = SampleCollector()
        >>> collector.toggle("A", tracking_active=True)
        >>> collector.add(features)
        >>> collector.save("data/libras_dataset.json")
    """

    def __init__(self) -> None:
        self._samples: list[np.ndarray] = []
        self._labels: list[str] = []
        self._counts: Counter[str] = Counter()
        self._label: str | None = None
        self._lock = threading.Lock()

    # ----- Collection mode -----

    @property
    def is_collecting(self) -> bool:
        return self._label is not None

    @property
    def current_label(self) -> str | None:
        return self._label

    def toggle(self, label: str, tracking_active: bool) -> bool:
        """Start collecting ``label``, or stop if collection is already on.

        Args:
            label: Sign being recorded (trimmed and upper-cased).
            tracking_active: Whether the camera / detector session is running.

        Returns:
            True if collection is now active.

        Raises:
            UserInputError: Empty label, or no active tracking session.
        """
        label = (label or "").strip().upper()
        if not label:
            raise UserInputError("Type a letter before collecting.")
        if not tracking_active:
            raise UserInputError("Turn the camera on first.")

        if self._label is not None:
            logger.info(f"Collection paused ({self._counts[self._label]} samples of '{self._label}')")
            self._label = None
            return False

        self._label = label
        logger.info(f"Collecting samples for '{label}'")
        return True

    def stop(self) -> None:
        self._label = None

    def add(self, features: np.ndarray) -> int:
        """Record one sample under the active label.

        Returns:
            Running count for the active label.

        Raises:
            RuntimeError: If collection is not active.
        """
        label = self._label
        if label is None:
            raise RuntimeError("Collection is not active. Call toggle() first.")
        vector = self._validate_vector(features)
        with self._lock:
            self._samples.append(vector)
            self._labels.append(label)
            self._counts[label] += 1
            return self._counts[label]

    # ----- Accessors -----

    @property
    def samples(self) -> list[np.ndarray]:
        with self._lock:
            return list(self._samples)

    @property
    def labels(self) -> list[str]:
        with self._lock:
            return list(self._labels)

    @property
    def counts(self) -> dict[str, int]:
        with self._lock:
            return dict(self._counts)

    @property
    def label_names(self) -> list[str]:
        """Distinct labels in first-seen order."""
        with self._lock:
            return list(dict.fromkeys(self._labels))

    def items(self) -> list[Sample]:
        with self._lock:
            return [Sample(features=f, label=l) for f, l in zip(self._samples, self._labels)]

    def __len__(self) -> int:
        with self._lock:
            return len(self._samples)

    def clear(self) -> None:
        with self._lock:
            self._samples.clear()
            self._labels.clear()
            self._counts.clear()

    # ----- Export / import -----

    def export(self) -> dict[str, Any]:
        """Serialize the samples with integer-coded labels.

        Raises:
            UserInputError: If nothing has been collected.
        """
        with self._lock:
            if not self._samples:
                raise UserInputError("No samples collected!")
            names = list(dict.fromkeys(self._labels))
            index = {name: i for i, name in enumerate(names)}
            return {
                "samples": [s.tolist() for s in self._samples],
                "labels": [index[l] for l in self._labels],
                "label_names": names,
            }

    def import_(self, data: dict[str, Any]) -> int:
        """Replace the in-memory samples with a decoded dataset.

        Args:
            data: Parsed dataset JSON.

        Returns:
            Number of samples loaded.

        Raises:
            DatasetFormatError: Missing ``samples``/``labels`` or bad vectors.
        """
        if not isinstance(data, dict) or "samples" not in data or "labels" not in data:
            raise DatasetFormatError("Invalid dataset format: 'samples' and 'labels' are required.")

        raw_samples, raw_labels = data["samples"], data["labels"]
        names = data.get("label_names") or []
        if not isinstance(raw_samples, list) or not isinstance(raw_labels, list):
            raise DatasetFormatError("Invalid dataset format: 'samples' and 'labels' must be lists.")
        if not isinstance(names, list):
            raise DatasetFormatError("Invalid dataset format: 'label_names' must be a list.")
        if len(raw_samples) != len(raw_labels):
            raise DatasetFormatError(
                f"Dataset has {len(raw_samples)} samples but {len(raw_labels)} labels."
            )

        try:
            samples = [self._validate_vector(s) for s in raw_samples]
        except (TypeError, ValueError) as e:
            raise DatasetFormatError(f"Invalid sample vector: {e}") from e
        labels = [self._decode_label(l, names) for l in raw_labels]

        with self._lock:
            self._samples = samples
            self._labels = labels
            self._counts = Counter(labels)

        logger.info(f"Dataset loaded with {len(samples)} samples")
        return len(samples)

    def save(self, path: str | Path) -> Path:
        """Write the exported dataset to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.export()))
        logger.info(f"Dataset saved: {path} ({len(self)} samples)")
        return path

    def load(self, path: str | Path) -> int:
        """Read a dataset JSON file and import it."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Dataset not found: {path}")
        try:
            data = json.loads(path.read_text())
        except json.JSONDecodeError as e:
            raise DatasetFormatError(f"Error reading dataset JSON: {e}") from e
        return self.import_(data)

    # ----- Helpers -----

    @staticmethod
    def _validate_vector(features: Any) -> np.ndarray:
        vector = np.asarray(features, dtype=np.float32).reshape(-1)
        if vector.shape != (FEATURE_DIM,):
            raise ValueError(f"Expected {FEATURE_DIM} values, got {vector.size}")
        return vector

    @staticmethod
    def _decode_label(index: Any, names: list[str]) -> str:
        if isinstance(index, int) and 0 <= index < len(names) and names[index]:
            return str(names[index])
        return str(index)
