"""Shared types, protocols, and constants for LibrasSign core."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import TYPE_CHECKING, Protocol

import numpy as np

if TYPE_CHECKING:
    from numpy.typing import NDArray


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

NUM_HAND_LANDMARKS = 21
LANDMARK_DIMS = 3  # x, y, z
FEATURE_DIM = NUM_HAND_LANDMARKS * LANDMARK_DIMS  # 63
WRIST = 0


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class Handedness(Enum):
    LEFT = "left"
    RIGHT = "right"
    UNKNOWN = "unknown"


class StabilityPhase(Enum):
    """Settlement of the tracked hand."""
    IDLE = auto()      # no hand
    SETTLING = auto()  # countdown running, predictions suppressed
    READY = auto()     # predictions permitted


# ---------------------------------------------------------------------------
# Core Data Structures
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class HandLandmarks:
    """Raw 3D hand landmarks for a single hand.

    Attributes:
        landmarks: (21, 3) array of [x, y, z] in image-relative coordinates.
        handedness: Left or right hand.
        confidence: Detection confidence [0, 1].
    """
    landmarks: NDArray[np.float32]  # shape (21, 3)
    handedness: Handedness = Handedness.UNKNOWN
    confidence: float = 0.0

    def __post_init__(self) -> None:
        assert self.landmarks.shape == (NUM_HAND_LANDMARKS, LANDMARK_DIMS), (
            f"Expected shape ({NUM_HAND_LANDMARKS}, {LANDMARK_DIMS}), "
            f"got {self.landmarks.shape}"
        )


@dataclass(frozen=True, slots=True)
class Sample:
    """One labelled feature vector collected for training."""
    features: NDArray[np.float32]  # shape (63,)
    label: str


@dataclass(frozen=True, slots=True)
class EmissionRecord:
    """Last emitted symbol and when it was emitted."""
    label: str
    timestamp_ms: int


@dataclass(frozen=True, slots=True)
class PipelineResult:
    """Outcome of one frame through the pipeline.

    Attributes:
        hand_present: Whether the detector reported a hand.
        phase: Stability phase after this frame.
        countdown: Remaining settle countdown in seconds.
        status: Human-readable status line.
        probabilities: Classifier output, if inference ran.
        emitted: Label surfaced to the text sink, if any.
        collected: Whether a sample was recorded this frame.
        hand: Source hand landmarks (optional).
        processing_time_ms: Time spent handling the frame.
        label_names: Label Set aligned with ``probabilities``.
    """
    hand_present: bool = False
    phase: StabilityPhase = StabilityPhase.IDLE
    countdown: int = 0
    status: str = ""
    probabilities: NDArray[np.float32] | None = None
    emitted: str | None = None
    collected: bool = False
    hand: HandLandmarks | None = None
    processing_time_ms: float = 0.0
    label_names: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Protocols (Interfaces)
# ---------------------------------------------------------------------------

class HandDetector(Protocol):
    """Protocol for hand landmark detection backends."""

    def detect(self, frame: NDArray[np.uint8]) -> list[HandLandmarks]:
        """Detect hand landmarks in a BGR frame."""
        ...

    def close(self) -> None:
        """Release resources."""
        ...


class TimerHandle(Protocol):
    """A scheduled callback that can be cancelled."""

    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    """Protocol for delayed callback execution (countdown ticks, timeouts)."""

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> TimerHandle:
        """Run ``callback`` once after ``delay_s`` seconds."""
        ...
