"""Shared test fixtures for LibrasSign."""

from __future__ import annotations

from collections.abc import Callable
from concurrent.futures import Future
from pathlib import Path

import numpy as np
import pytest

from core.classifier.manager import ClassifierConfig
from core.types import LANDMARK_DIMS, NUM_HAND_LANDMARKS, Handedness, HandLandmarks
from training.trainers.train_classifier import TrainConfig


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------

class ManualTimer:
    def __init__(self, due: float, callback: Callable[[], None]) -> None:
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Virtual-time scheduler: callbacks run only inside ``advance``."""

    def __init__(self) -> None:
        self.now = 0.0
        self._timers: list[ManualTimer] = []

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(self.now + delay_s, callback)
        self._timers.append(timer)
        return timer

    @property
    def pending(self) -> list[ManualTimer]:
        return [t for t in self._timers if not t.cancelled]

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [t for t in self._timers if not t.cancelled and t.due <= target + 1e-9]
            if not due:
                break
            timer = min(due, key=lambda t: t.due)
            self._timers.remove(timer)
            self.now = timer.due
            timer.callback()
        self.now = target

    def clock_ms(self) -> int:
        return int(round(self.now * 1000))


class FakeDetector:
    """Returns queued detection results; an Exception entry is raised."""

    def __init__(self) -> None:
        self.queue: list[list[HandLandmarks] | Exception] = []
        self.closed = False

    def detect(self, frame: np.ndarray) -> list[HandLandmarks]:
        item = self.queue.pop(0) if self.queue else []
        if isinstance(item, Exception):
            raise item
        return item

    def close(self) -> None:
        self.closed = True


class StubClassifier:
    """Fixed-output stand-in for ClassifierManager."""

    def __init__(self, probs: list[float] | None = None, labels: list[str] | None = None) -> None:
        self.probs = np.asarray(probs if probs is not None else [0.97, 0.03], dtype=np.float32)
        self._labels = labels if labels is not None else ["A", "B"]
        self.loaded = True
        self.predict_calls = 0
        self.auto_load_calls = 0
        self.status = "stub"

    @property
    def is_loaded(self) -> bool:
        return self.loaded

    @property
    def is_training(self) -> bool:
        return False

    @property
    def label_names(self) -> list[str]:
        return list(self._labels) if self.loaded else []

    def auto_load(self) -> bool:
        self.auto_load_calls += 1
        return self.loaded

    def predict(self, features: np.ndarray) -> tuple[np.ndarray, list[str]]:
        self.predict_calls += 1
        return self.probs, list(self._labels)

    def train_async(self, samples, labels, on_epoch_end=None) -> Future:  # noqa: ANN001
        future: Future = Future()
        future.set_result(None)
        return future


def make_hand(offset: float = 0.0, seed: int = 7) -> HandLandmarks:
    """Deterministic hand, shifted by ``offset`` on every coordinate."""
    rng = np.random.default_rng(seed)
    landmarks = rng.random((NUM_HAND_LANDMARKS, LANDMARK_DIMS)).astype(np.float32) + offset
    return HandLandmarks(landmarks=landmarks, handedness=Handedness.RIGHT, confidence=0.9)


def make_samples(label_offsets: dict[str, float], per_label: int = 20, seed: int = 0):
    """Well-separated feature clusters, one per label."""
    rng = np.random.default_rng(seed)
    samples: list[np.ndarray] = []
    labels: list[str] = []
    for label, center in label_offsets.items():
        for _ in range(per_label):
            samples.append((center + 0.01 * rng.standard_normal(63)).astype(np.float32))
            labels.append(label)
    return samples, labels


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def random_landmarks() -> HandLandmarks:
    """Generate random hand landmarks."""
    rng = np.random.default_rng(42)
    return HandLandmarks(
        landmarks=rng.random((NUM_HAND_LANDMARKS, LANDMARK_DIMS)).astype(np.float32),
        handedness=Handedness.RIGHT,
        confidence=0.95,
    )


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def detector() -> FakeDetector:
    return FakeDetector()


@pytest.fixture
def dummy_bgr_frame() -> np.ndarray:
    """Generate a dummy 480x640 BGR frame."""
    return np.zeros((480, 640, 3), dtype=np.uint8)


@pytest.fixture
def classifier_config(tmp_path: Path) -> ClassifierConfig:
    """Classifier config isolated under tmp_path with a short training run."""
    return ClassifierConfig(
        models_dir=str(tmp_path / "models"),
        model_name="libras-model",
        bundled_model_path=None,
        export_dir=str(tmp_path / "downloads"),
        train=TrainConfig(epochs=30, batch_size=8, learning_rate=1e-3, seed=0),
    )
