"""Emission gate — decides which predictions reach the outside world.

A prediction is surfaced only if its top probability clears the confidence
threshold and enough time has passed since the previous emission. The
interval is global: a different letter is held back just like a repeat.
Rejected predictions are dropped silently.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np
from loguru import logger

from core.types import EmissionRecord


@dataclass(frozen=True, slots=True)
class EmissionConfig:
    """Configuration for the emission gate.

    Attributes:
        confidence_threshold: Minimum top-class probability (inclusive).
        min_interval_ms: Minimum spacing between two emissions (inclusive).
    """
    confidence_threshold: float = 0.93
    min_interval_ms: int = 1500


class EmissionGate:
    """Confidence + cooldown filter over classifier output.

    Usage:
        >>> gate = EmissionGate()
        >>> label = gate.offer(probs, ["A", "B"], now_ms=2000)
        >>> if label:
        ...     sink(label)
    """

    def __init__(self, config: EmissionConfig | None = None) -> None:
        self._config = config or EmissionConfig()
        self._last: EmissionRecord | None = None
        self._lock = threading.Lock()

    @property
    def config(self) -> EmissionConfig:
        return self._config

    @property
    def last_emission(self) -> EmissionRecord | None:
        return self._last

    @staticmethod
    def best(probs: np.ndarray | Sequence[float], label_names: Sequence[str]) -> tuple[str, float]:
        """Top label and its probability; ties go to the earliest label."""
        probs = np.asarray(probs, dtype=np.float64).reshape(-1)
        if len(probs) != len(label_names):
            raise ValueError(
                f"Distribution has {len(probs)} entries but Label Set has {len(label_names)}"
            )
        if len(probs) == 0:
            raise ValueError("Empty distribution")
        idx = int(np.argmax(probs))
        return label_names[idx], float(probs[idx])

    def offer(
        self,
        probs: np.ndarray | Sequence[float],
        label_names: Sequence[str],
        now_ms: int | None = None,
    ) -> str | None:
        """Emit the top label if it passes both gates.

        Args:
            probs: Probability distribution aligned with ``label_names``.
            label_names: Current Label Set.
            now_ms: Current time in milliseconds (wall clock if omitted).

        Returns:
            The emitted label, or None when the prediction is dropped.
        """
        label, prob = self.best(probs, label_names)
        if now_ms is None:
            now_ms = int(time.time() * 1000)

        if prob < self._config.confidence_threshold:
            return None

        with self._lock:
            last = self._last
            if last is not None and now_ms - last.timestamp_ms < self._config.min_interval_ms:
                return None
            self._last = EmissionRecord(label=label, timestamp_ms=now_ms)

        logger.info(f"Recognized '{label}' ({prob:.2%})")
        return label

    def reset(self) -> None:
        """Forget the last emission (next confident prediction passes)."""
        with self._lock:
            self._last = None
